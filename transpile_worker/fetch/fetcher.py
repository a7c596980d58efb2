"""Remote fetcher.

Guarantees that a path is present in the store, downloading it through the
configured downloader when needed, and turns "missing module" failures into the
fetch that fixes them.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any

from ..exceptions import FetchError
from ..exceptions import MissingArtifactError
from ..exceptions import UnrecoverableFailureError
from ..resolution.naming import get_dependency_name
from ..store.overlay import OverlayStore
from ..store.paths import join_path
from ..store.paths import normalize_path
from .parsing import parse_missing_module
from .parsing import request_to_path
from .protocol import DownloaderProtocol

logger = logging.getLogger(__name__)


class RemoteFetcher:
    """Populate the store's remote-backed layer on demand.

    ensure_path() is idempotent per store generation: once a path was fetched
    it is not requested again until the store is reset. Concurrent requests
    for the same path share one download.
    """

    def __init__(
        self,
        store: OverlayStore,
        downloader: DownloaderProtocol,
        packages_root: str = "/node_modules",
    ) -> None:
        self._store = store
        self._downloader = downloader
        self._packages_root = normalize_path(packages_root)
        self._fetched: set[str] = set()
        self._pending: dict[str, asyncio.Future[None]] = {}
        self._generation = store.generation
        self.download_count = 0

    def _sync_generation(self) -> None:
        if self._generation != self._store.generation:
            self._fetched.clear()
            self._generation = self._store.generation

    def is_fetched(self, path: str) -> bool:
        self._sync_generation()
        return normalize_path(path) in self._fetched

    async def ensure_path(self, path: str, context_id: Any = None) -> None:
        """Make sure ``path`` is available in the store.

        Args:
            path: Store path of a file or package directory.
            context_id: Loader context of the requesting compile.

        Raises:
            FetchError: If the remote source has no such artifact.
        """
        path = normalize_path(path)
        self._sync_generation()

        if path in self._fetched:
            return
        if self._store.exists(path):
            self._fetched.add(path)
            return

        # Another task is already downloading this path - await it
        if path in self._pending:
            await asyncio.shield(self._pending[path])
            return

        task = asyncio.ensure_future(self._download(path, context_id))
        self._pending[path] = task
        try:
            await asyncio.shield(task)
        finally:
            if task.done():
                self._pending.pop(path, None)

    async def _download(self, path: str, context_id: Any) -> None:
        logger.debug(f"[fetch] requesting {path}")
        files = await self._downloader.download(path, context_id)
        self.download_count += 1
        for file_path, content in files.items():
            self._store.populate(file_path, content)
        self._fetched.add(path)
        logger.info(f"[fetch] {path} ({len(files)} files)")

        await self._ensure_package_metadata(path, context_id)

    async def _ensure_package_metadata(self, path: str, context_id: Any) -> None:
        """Best effort: fetch the package.json of the package owning ``path``."""
        prefix = self._packages_root.rstrip("/") + "/"
        if not path.startswith(prefix):
            return

        package = get_dependency_name(path[len(prefix) :])
        metadata_path = join_path(self._packages_root, package, "package.json")
        if metadata_path == path or self._store.exists(metadata_path):
            return

        with contextlib.suppress(FetchError):
            await self.ensure_path(metadata_path, context_id)

    def missing_path(self, error: BaseException) -> str | None:
        """Store path a failure reports as missing, or None.

        Prefers the structured path of a MissingArtifactError and falls back
        to parsing the failure message.
        """
        if isinstance(error, MissingArtifactError) and error.path:
            return normalize_path(error.path)

        parsed = parse_missing_module(str(error))
        if parsed is None:
            return None
        request, importer = parsed
        return request_to_path(request, importer, self._packages_root)

    async def recover_from_failure(self, error: BaseException, context_id: Any = None) -> str:
        """Fetch the file whose absence caused ``error``.

        Args:
            error: The failure raised by the engine or the sandbox.
            context_id: Loader context of the requesting compile.

        Returns:
            The store path that was fetched.

        Raises:
            UnrecoverableFailureError: If the failure names no module path.
            FetchError: If the inferred path does not exist remotely.
        """
        path = self.missing_path(error)
        if path is None:
            raise UnrecoverableFailureError(str(error)) from error

        logger.info(f"[fetch:recover] {path} inferred from: {error}")
        await self.ensure_path(path, context_id)
        return path

"""Two-layer virtual file store.

Reads check the writable layer first, then the remote-backed layer. Writes
always land in the writable layer. The remote-backed layer is filled out of
band: once by the lazy project mirror and afterwards by the fetcher. A read
miss never triggers a fetch; fetch policy lives in the fetcher and resolver.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from ..exceptions import StoreNotFoundError
from ..exceptions import TranspileError
from .memory import InMemoryLayer
from .paths import normalize_path
from .protocol import ProjectFilesProvider
from .protocol import StoreLayerProtocol

logger = logging.getLogger(__name__)


class OverlayStore:
    """Writable in-memory layer overlaying a remote-backed layer."""

    def __init__(
        self,
        project_files: ProjectFilesProvider | None = None,
        writable: StoreLayerProtocol | None = None,
        remote: StoreLayerProtocol | None = None,
    ) -> None:
        """
        Initialize the store.

        Args:
            project_files: Source of project files mirrored into the remote
                layer on first need. Without one the store is ready at once.
            writable: Writable layer (defaults to in-memory).
            remote: Remote-backed layer (defaults to in-memory).
        """
        self._project_files = project_files
        self._writable = writable or InMemoryLayer()
        self._remote = remote or InMemoryLayer()
        self._ready = project_files is None
        self._init_task: asyncio.Future[None] | None = None
        self._generation = 0

    @property
    def is_ready(self) -> bool:
        """True once the remote-backed layer has been initialized."""
        return self._ready

    @property
    def generation(self) -> int:
        """Incremented on every full reset; fetch bookkeeping keys on it."""
        return self._generation

    def exists(self, path: str) -> bool:
        return self._writable.exists(path) or self._remote.exists(path)

    def read(self, path: str) -> bytes:
        """Read a file, writable layer first.

        Raises:
            StoreNotFoundError: If neither layer has the file.
        """
        if self._writable.exists(path):
            return self._writable.read(path)
        if self._remote.exists(path):
            return self._remote.read(path)
        raise StoreNotFoundError(normalize_path(path))

    def read_text(self, path: str) -> str:
        return self.read(path).decode("utf-8")

    def write(self, path: str, content: bytes | str) -> None:
        if isinstance(content, str):
            content = content.encode("utf-8")
        self._writable.write(path, content)

    def populate(self, path: str, content: bytes | str) -> None:
        """Place a fetched file in the remote-backed layer."""
        if isinstance(content, str):
            content = content.encode("utf-8")
        self._remote.write(path, content)

    def remote_paths(self) -> list[str]:
        """Paths held by the remote-backed layer."""
        return self._remote.paths()

    async def ensure_ready(self, context_id: Any = None) -> None:
        """Initialize the remote-backed layer if it is not yet initialized.

        Concurrent callers share a single initialization. If it fails, every
        waiter sees the error and the next call starts a fresh attempt.

        Args:
            context_id: Loader context passed to the project files provider.
        """
        if self._ready:
            return

        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._initialize(context_id))

        task = self._init_task
        try:
            await asyncio.shield(task)
        except Exception:
            if self._init_task is task:
                self._init_task = None
            raise

    async def _initialize(self, context_id: Any) -> None:
        if self._project_files is None:
            raise TranspileError("Store has no project files provider to initialize from")
        logger.debug(f"[store:init] mirroring project files for context {context_id!r}")
        files = await self._project_files.get_project_files(context_id)
        for path, content in files.items():
            self._remote.write(path, content)
        self._ready = True
        logger.info(f"[store:init] mirrored {len(files)} project files")

    def reset(self) -> None:
        """Drop every file in both layers and require re-initialization."""
        self._writable.clear()
        self._remote.clear()
        self._ready = self._project_files is None
        self._init_task = None
        self._generation += 1
        logger.debug(f"[store:reset] generation {self._generation}")

"""Module provider: the capability through which evaluated code loads files.

Evaluated plugins never reach the store directly. They ask the provider, which
decides what a request means (relative file, package entry, absolute path) and
whether it is available.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Protocol

from ..fetch.parsing import request_to_path
from ..store.overlay import OverlayStore
from ..store.paths import join_path
from ..store.paths import normalize_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedModule:
    """A store file that satisfies a module request."""

    path: str
    source: bytes


class ModuleProvider(Protocol):
    """Capability handed to the sandbox for loading other modules."""

    def locate(self, request: str, importer: str | None = None) -> str:
        """Store path a request refers to, whether or not it exists."""
        ...

    def resolve(self, request: str, importer: str | None = None) -> ResolvedModule | None:
        """Resolve a request to an available file, or None if absent."""
        ...


class StoreModuleProvider:
    """ModuleProvider over the virtual file store.

    Resolution order for a located path: the exact file, the file with each
    extension, the ``main`` entry of ``package.json`` (as a file or as a
    directory with an ``index``), then ``index`` with each extension.
    """

    def __init__(
        self,
        store: OverlayStore,
        packages_root: str = "/node_modules",
        extensions: tuple[str, ...] = (".py", ".js", ".json"),
    ) -> None:
        self._store = store
        self._packages_root = normalize_path(packages_root)
        self._extensions = extensions

    def locate(self, request: str, importer: str | None = None) -> str:
        return request_to_path(request, importer, self._packages_root)

    def resolve(self, request: str, importer: str | None = None) -> ResolvedModule | None:
        return self.resolve_path(self.locate(request, importer))

    def resolve_path(self, path: str) -> ResolvedModule | None:
        found = self._resolve_file(path)
        if found:
            return found

        metadata_path = join_path(path, "package.json")
        if self._store.exists(metadata_path):
            main = self._read_main(metadata_path)
            if main:
                entry = join_path(path, main)
                found = self._resolve_file(entry) or self._resolve_file(join_path(entry, "index"))
                if found:
                    return found

        return self._resolve_file(join_path(path, "index"))

    def _resolve_file(self, path: str) -> ResolvedModule | None:
        for candidate in (path, *(path + ext for ext in self._extensions)):
            if self._store.exists(candidate):
                return ResolvedModule(path=normalize_path(candidate), source=self._store.read(candidate))
        return None

    def _read_main(self, metadata_path: str) -> str | None:
        try:
            metadata = json.loads(self._store.read(metadata_path))
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring malformed {metadata_path}: {e}")
            return None
        main = metadata.get("main") if isinstance(metadata, dict) else None
        return main if isinstance(main, str) else None

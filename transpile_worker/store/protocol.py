"""Protocols for store layers and the project file mirror."""

from __future__ import annotations

from typing import Any
from typing import Protocol


class StoreLayerProtocol(Protocol):
    """One layer of the virtual file store.

    InMemoryLayer is the reference layer. Apps may back a layer with anything
    that can answer these calls synchronously.
    """

    def exists(self, path: str) -> bool:
        """Check if a file is present in this layer."""
        ...

    def read(self, path: str) -> bytes:
        """Read a file.

        Raises:
            StoreNotFoundError: If the file is not in this layer.
        """
        ...

    def write(self, path: str, content: bytes) -> None:
        """Write a file into this layer."""
        ...

    def clear(self) -> None:
        """Drop every file in this layer."""
        ...

    def paths(self) -> list[str]:
        """Every path present in this layer."""
        ...


class ProjectFilesProvider(Protocol):
    """Supplies the project's files when the remote-backed layer initializes.

    Mirroring is expensive (every project file is copied into the store), so
    the store only asks for it the first time a compile needs the file system.
    """

    async def get_project_files(self, context_id: Any) -> dict[str, bytes]:
        """Return every project file as ``{path: content}``.

        Args:
            context_id: Opaque loader context the files belong to.
        """
        ...


class StaticProjectFiles:
    """ProjectFilesProvider over a fixed mapping. Useful for tools and tests."""

    def __init__(self, files: dict[str, bytes | str] | None = None) -> None:
        self._files = {
            path: content.encode("utf-8") if isinstance(content, str) else content
            for path, content in (files or {}).items()
        }
        self.calls = 0

    async def get_project_files(self, context_id: Any) -> dict[str, bytes]:
        self.calls += 1
        return dict(self._files)

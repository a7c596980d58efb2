"""Simple in-memory store layer."""

from __future__ import annotations

from ..exceptions import StoreNotFoundError
from .paths import normalize_path


class InMemoryLayer:
    """Dict-backed store layer.

    No eviction - files live until clear() is called or the process ends.
    """

    def __init__(self) -> None:
        self._files: dict[str, bytes] = {}

    def exists(self, path: str) -> bool:
        return normalize_path(path) in self._files

    def read(self, path: str) -> bytes:
        try:
            return self._files[normalize_path(path)]
        except KeyError:
            raise StoreNotFoundError(path) from None

    def write(self, path: str, content: bytes) -> None:
        self._files[normalize_path(path)] = content

    def clear(self) -> None:
        self._files.clear()

    def paths(self) -> list[str]:
        return list(self._files)

    def __contains__(self, path: str) -> bool:
        return self.exists(path)

    def __len__(self) -> int:
        return len(self._files)

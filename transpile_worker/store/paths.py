"""Path helpers for the virtual file store.

Store paths are POSIX, absolute and normalized regardless of host OS.
"""

from __future__ import annotations

import posixpath


def normalize_path(path: str) -> str:
    """Normalize a store path: absolute, no ``.``/``..`` segments, no trailing slash."""
    if not path.startswith("/"):
        path = "/" + path
    return posixpath.normpath(path).replace("//", "/")


def join_path(*parts: str) -> str:
    """Join path segments and normalize the result."""
    return normalize_path(posixpath.join(*parts))


def dirname(path: str) -> str:
    """Directory containing a store path."""
    return posixpath.dirname(normalize_path(path)) or "/"

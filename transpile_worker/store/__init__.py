"""Virtual file store: a writable layer over a remote-backed layer."""

from .memory import InMemoryLayer
from .overlay import OverlayStore
from .paths import join_path
from .paths import normalize_path
from .protocol import ProjectFilesProvider
from .protocol import StaticProjectFiles
from .protocol import StoreLayerProtocol

__all__ = [
    "InMemoryLayer",
    "OverlayStore",
    "ProjectFilesProvider",
    "StaticProjectFiles",
    "StoreLayerProtocol",
    "join_path",
    "normalize_path",
]

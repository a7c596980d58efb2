"""Plugin/preset name resolution and naming conventions."""

from .naming import get_dependency_name
from .naming import get_prefixed_name
from .naming import normalize_name
from .naming import normalize_plugin_name
from .naming import normalize_preset_name
from .resolver import NameResolver

__all__ = [
    "NameResolver",
    "get_dependency_name",
    "get_prefixed_name",
    "normalize_name",
    "normalize_plugin_name",
    "normalize_preset_name",
]

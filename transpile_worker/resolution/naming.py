"""Naming conventions for plugin and preset packages.

Users write short names (``env``, ``transform-runtime``, ``@org/x``); packages
are distributed under prefixed names whose shape depends on the engine
generation. Everything here is a pure string transform.
"""

from __future__ import annotations

from typing import Literal

ModuleKind = Literal["plugin", "preset"]

DEFAULT_MODERN_MAJOR = 7


def get_dependency_name(name: str) -> str:
    """Package a module request belongs to.

    ``styled-jsx/babel`` -> ``styled-jsx``;
    ``@babel/plugin-x/package.json`` -> ``@babel/plugin-x``.
    """
    parts = name.split("/")
    if name.startswith("@") and len(parts) > 1:
        return f"{parts[0]}/{parts[1]}"
    return parts[0]


def is_modern(engine_major: int, modern_major: int = DEFAULT_MODERN_MAJOR) -> bool:
    """True for engine generations that distribute under the ``@babel`` scope."""
    return engine_major >= modern_major


def get_prefixed_name(
    name: str,
    kind: ModuleKind,
    engine_major: int,
    modern_major: int = DEFAULT_MODERN_MAJOR,
) -> str:
    """Conventional distribution name for a plugin/preset.

    Names already carrying the convention's prefix come back unchanged.

    Args:
        name: Package name as written (sub-paths already stripped).
        kind: "plugin" or "preset".
        engine_major: Major version of the target engine.
        modern_major: First major version of the modern generation.
    """
    prefix = f"babel-{kind}"
    modern = is_modern(engine_major, modern_major)

    if name.startswith("@"):
        scope, _, rest = name.partition("/")
        if not rest:
            return f"{scope}/{prefix}"
        if scope == "@babel" and modern:
            if rest.startswith(f"{kind}-"):
                return name
            return f"@babel/{kind}-{rest}"
        if rest == prefix or rest.startswith(f"{prefix}-"):
            return name
        return f"{scope}/{prefix}-{rest}"

    if name == prefix or name.startswith(f"{prefix}-"):
        return name
    if modern:
        return f"@babel/{kind}-{name}"
    return f"{prefix}-{name}"


def normalize_name(name: str, kind: ModuleKind) -> str:
    """Short form shared by every distribution spelling of one module.

    ``@babel/plugin-x``, ``babel-plugin-x`` and ``x`` all normalize to ``x``.
    """
    for prefix in (f"@babel/{kind}-", f"babel-{kind}-", "@babel/"):
        if name.startswith(prefix):
            return name[len(prefix) :]
    return name


def normalize_plugin_name(name: str) -> str:
    return normalize_name(name, "plugin")


def normalize_preset_name(name: str) -> str:
    return normalize_name(name, "preset")

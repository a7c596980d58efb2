"""Worker settings.

Settings are policy: which built-in plugins are appended, which paths count as
external libraries, how many recovery cycles a compile may spend. Defaults
reproduce the behavior of the hosted worker; apps override them with a YAML
file.
"""

from __future__ import annotations

import copy
import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel
from pydantic import Field

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "TRANSPILE_WORKER_CONFIG"

# Conservative configurations for external library files. The rename-import
# plugin and the capability plugins are added around these at compile time.
DEFAULT_EXTERNAL_CONFIG_MODERN: dict[str, Any] = {
    "parserOpts": {"plugins": ["dynamicImport", "objectRestSpread"]},
    "presets": ["env", "react"],
    "plugins": [
        "transform-modules-commonjs",
        "proposal-class-properties",
        "@babel/plugin-transform-runtime",
    ],
}

DEFAULT_EXTERNAL_CONFIG_LEGACY: dict[str, Any] = {
    "presets": ["es2015", "react", "stage-0"],
    "plugins": [
        "transform-es2015-modules-commonjs",
        "transform-class-properties",
        ["transform-runtime", {"helpers": False, "polyfill": False, "regenerator": True}],
        # Async functions are already converted to generators by the env preset
        ["transform-regenerator", {"async": False}],
    ],
}


class WorkerSettings(BaseModel):
    """Settings shared by every component of a compiler context."""

    packages_root: str = Field(
        default="/node_modules", description="Store directory holding fetched packages"
    )
    external_library_pattern: str = Field(
        default=r"^/node_modules/.*\.js$",
        description="Source paths compiled with the conservative configuration",
    )
    external_config_modern: dict[str, Any] = Field(
        default_factory=lambda: copy.deepcopy(DEFAULT_EXTERNAL_CONFIG_MODERN)
    )
    external_config_legacy: dict[str, Any] = Field(
        default_factory=lambda: copy.deepcopy(DEFAULT_EXTERNAL_CONFIG_LEGACY)
    )
    rename_import_plugin: str = "babel-plugin-csb-rename-import"
    detective_plugin: str = "babel-plugin-detective"
    detective_options: dict[str, Any] = Field(
        default_factory=lambda: {"source": True, "nodes": True, "generated": True}
    )
    loop_guard_plugin: str = "babel-plugin-transform-prevent-infinite-loops"
    dynamic_css_modules_plugin: str = "dynamic-css-modules"
    runtime_helpers: list[str] = Field(
        default_factory=lambda: [
            "@babel/runtime/helpers/interopRequireDefault",
            "@babel/runtime/helpers/interopRequireWildcard",
        ]
    )
    modern_engine_major: int = Field(
        default=7, description="First engine major version using scoped names"
    )
    max_recovery_attempts: int = Field(
        default=10, ge=1, description="Fetch-and-retry cycles allowed per operation"
    )
    bundled_plugins: dict[str, str] = Field(
        default_factory=dict,
        description="Plugin name -> 'module:attr' import path, registered on demand",
    )
    plugin_remaps: dict[str, str] = Field(
        default_factory=lambda: {"syntax-dynamic-import": "proposal-dynamic-import"},
        description="Alias -> registered plugin name, applied when only the target exists",
    )
    cdn_url: str = "https://unpkg.com"
    fetch_timeout: float = 60.0


def load_settings(path: Path | None = None) -> WorkerSettings:
    """Load settings from a YAML file.

    Resolves in order:
    1. Explicit ``path`` parameter
    2. ``TRANSPILE_WORKER_CONFIG`` environment variable
    3. Built-in defaults

    Args:
        path: Optional YAML file to read.

    Returns:
        Validated settings.

    Raises:
        yaml.YAMLError: If the file contains invalid YAML.
        pydantic.ValidationError: If a value has the wrong type.
    """
    if path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        if not env_path:
            return WorkerSettings()
        path = Path(env_path).expanduser()

    if not path.exists():
        logger.warning(f"Settings file {path} does not exist, using defaults")
        return WorkerSettings()

    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    logger.debug(f"Loaded settings from {path}")
    return WorkerSettings.model_validate(data)

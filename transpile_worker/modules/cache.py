"""Installed module cache.

One canonical slot per evaluated plugin/preset plus an alias table, so that
``env``, ``babel-preset-env`` and ``@babel/preset-env`` all find the same
value without evaluating it twice.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from dataclasses import field
from typing import Any

from ..resolution.naming import ModuleKind
from ..resolution.naming import normalize_name

logger = logging.getLogger(__name__)


@dataclass
class InstalledModule:
    """An evaluated plugin or preset."""

    key: str
    kind: ModuleKind
    value: Any
    canonical: str | None = None
    aliases: set[str] = field(default_factory=set)
    builtin: bool = False


@dataclass(frozen=True)
class ModuleRegistry:
    """Snapshot of every installed name, handed to the engine and sandbox."""

    plugins: Mapping[str, Any]
    presets: Mapping[str, Any]

    def get(self, kind: ModuleKind, name: str) -> Any | None:
        table = self.presets if kind == "preset" else self.plugins
        if name in table:
            return table[name]
        return table.get(normalize_name(name, kind))


class ModuleCache:
    """Cache of installed plugins and presets.

    Engine built-ins are seeded on construction and again after every reset;
    everything else is dropped by reset().
    """

    def __init__(
        self,
        builtin_plugins: Mapping[str, Any] | None = None,
        builtin_presets: Mapping[str, Any] | None = None,
        remaps: Mapping[str, str] | None = None,
    ) -> None:
        self._builtin_plugins = dict(builtin_plugins or {})
        self._builtin_presets = dict(builtin_presets or {})
        self._remaps = dict(remaps or {})
        self._modules: dict[tuple[ModuleKind, str], InstalledModule] = {}
        self._aliases: dict[tuple[ModuleKind, str], str] = {}
        self.generation = 0
        self._seed()

    def _seed(self) -> None:
        for name, value in self._builtin_plugins.items():
            self.register("plugin", name, value, builtin=True)
        for name, value in self._builtin_presets.items():
            self.register("preset", name, value, builtin=True)

        # Engine versions rename some built-ins; keep the old spelling working
        for alias, target in self._remaps.items():
            if self.lookup("plugin", alias) is None and self.lookup("plugin", target):
                self.add_alias("plugin", alias, target)

    def lookup(self, kind: ModuleKind, name: str) -> InstalledModule | None:
        """Find a module by any spelling. No side effects."""
        key = self._aliases.get((kind, name))
        if key is None:
            key = self._aliases.get((kind, normalize_name(name, kind)))
        if key is None:
            return None
        return self._modules.get((kind, key))

    def installed_value(self, kind: ModuleKind, name: str) -> Any | None:
        """Evaluated value installed under ``name``, or None."""
        module = self.lookup(kind, name)
        return module.value if module else None

    def register(
        self,
        kind: ModuleKind,
        name: str,
        value: Any,
        canonical: str | None = None,
        builtin: bool = False,
    ) -> InstalledModule:
        """Store an evaluated module under its canonical key and every alias.

        Args:
            kind: "plugin" or "preset".
            name: Name as requested.
            value: Evaluated export.
            canonical: Package name the request resolved to, if different.
            builtin: True for engine-provided modules.
        """
        key = normalize_name(canonical or name, kind)
        module = self._modules.get((kind, key))
        if module is None:
            module = InstalledModule(
                key=key, kind=kind, value=value, canonical=canonical, builtin=builtin
            )
            self._modules[(kind, key)] = module
        else:
            module.value = value
            module.canonical = canonical or module.canonical

        for alias in {name, normalize_name(name, kind), key}:
            self._bind(module, alias)
        if canonical:
            self._bind(module, canonical)
        return module

    def add_alias(self, kind: ModuleKind, alias: str, name: str) -> None:
        """Make ``alias`` resolve to the module installed under ``name``.

        Raises:
            KeyError: If nothing is installed under ``name``.
        """
        module = self.lookup(kind, name)
        if module is None:
            raise KeyError(f"No {kind} installed as '{name}'")
        self._bind(module, alias)

    def _bind(self, module: InstalledModule, alias: str) -> None:
        self._aliases[(module.kind, alias)] = module.key
        module.aliases.add(alias)

    def names(self, kind: ModuleKind) -> list[str]:
        """Every name (aliases included) that resolves for ``kind``."""
        return sorted(alias for k, alias in self._aliases if k == kind)

    def available(self, kind: ModuleKind) -> dict[str, Any]:
        """``{name: value}`` for every alias of ``kind``."""
        return {
            alias: self._modules[(k, key)].value
            for (k, alias), key in self._aliases.items()
            if k == kind
        }

    def registry(self) -> ModuleRegistry:
        return ModuleRegistry(
            plugins=self.available("plugin"), presets=self.available("preset")
        )

    def reset(self) -> None:
        """Drop every installed module and re-seed the built-ins."""
        self._modules.clear()
        self._aliases.clear()
        self.generation += 1
        self._seed()
        logger.debug(f"[modules:reset] generation {self.generation}")

    def __contains__(self, item: tuple[ModuleKind, str]) -> bool:
        kind, name = item
        return self.lookup(kind, name) is not None

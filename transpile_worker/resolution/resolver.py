"""Plugin/preset name resolution.

The engine may expand a short plugin name into a longer distribution name
(``styled-jsx`` -> ``babel-plugin-styled-jsx``). We want to know which one
exists before fetching, so the literal name is tried first and the
conventional prefixed name second.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from typing import Any

from ..exceptions import FetchError
from ..exceptions import ResolutionError
from ..store.paths import join_path
from .naming import DEFAULT_MODERN_MAJOR
from .naming import ModuleKind
from .naming import get_dependency_name
from .naming import get_prefixed_name

if TYPE_CHECKING:
    from ..fetch.fetcher import RemoteFetcher

logger = logging.getLogger(__name__)


class NameResolver:
    """Map logical plugin/preset names to fetchable package names."""

    def __init__(
        self,
        fetcher: "RemoteFetcher",
        packages_root: str = "/node_modules",
        modern_major: int = DEFAULT_MODERN_MAJOR,
    ) -> None:
        self._fetcher = fetcher
        self._packages_root = packages_root
        self._modern_major = modern_major

    def metadata_path(self, package: str) -> str:
        return join_path(self._packages_root, package, "package.json")

    async def resolve(
        self,
        name: str,
        is_preset: bool = False,
        engine_major: int = DEFAULT_MODERN_MAJOR,
        context_id: Any = None,
    ) -> str:
        """Resolve a name to the package name that exists remotely.

        Args:
            name: Plugin/preset name as written in the configuration.
            is_preset: Resolve with the preset naming convention.
            engine_major: Major version of the target engine.
            context_id: Loader context of the requesting compile.

        Returns:
            ``name`` unchanged if its package exists, otherwise the prefixed
            package name.

        Raises:
            ResolutionError: Neither candidate exists; both are named.
        """
        kind: ModuleKind = "preset" if is_preset else "plugin"
        dependency_name = get_dependency_name(name)

        try:
            await self._fetcher.ensure_path(self.metadata_path(dependency_name), context_id)
            return name
        except FetchError as first_error:
            logger.debug(f"[resolve] '{dependency_name}' not found: {first_error}")

        prefixed_name = get_prefixed_name(dependency_name, kind, engine_major, self._modern_major)
        try:
            await self._fetcher.ensure_path(self.metadata_path(prefixed_name), context_id)
        except FetchError as err:
            raise ResolutionError(
                name, [dependency_name, prefixed_name], preset=is_preset
            ) from err

        logger.debug(f"[resolve] {kind} '{name}' -> '{prefixed_name}'")
        return prefixed_name

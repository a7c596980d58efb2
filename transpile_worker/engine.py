"""Transform engine contract.

The engine is an external collaborator. This module only defines what the
orchestrator needs from it; implementations wrap whatever actually transforms
source code.
"""

from __future__ import annotations

from collections.abc import Awaitable
from collections.abc import Mapping
from typing import Any
from typing import Protocol

from .models import TransformResult
from .modules.cache import ModuleRegistry


class TransformEngineProtocol(Protocol):
    """Protocol for transform engines.

    Failures are raised as exceptions. A failure caused by an absent file
    should be a MissingArtifactError carrying the path; engines that cannot do
    that must at least put ``Cannot find module '<request>'`` in the message.
    A failure caused by touching the store before it is ready may set
    ``code = "EIO"`` on the exception.
    """

    @property
    def version(self) -> str:
        """Engine version string, e.g. ``"7.12.3"``."""
        ...

    def transform(
        self, code: str, config: dict[str, Any], registry: ModuleRegistry
    ) -> TransformResult | Awaitable[TransformResult]:
        """Transform source code.

        Args:
            code: Source text.
            config: Final configuration (plugins, presets, passthrough keys).
            registry: Every installed plugin/preset, by every alias.

        Returns:
            Transformed code plus metadata (sync or awaitable).
        """
        ...

    def builtin_plugins(self) -> Mapping[str, Any]:
        """Plugins the engine ships with, by name."""
        ...

    def builtin_presets(self) -> Mapping[str, Any]:
        """Presets the engine ships with, by name."""
        ...

    def reset(self) -> None:
        """Drop any internal compilation memoization."""
        ...

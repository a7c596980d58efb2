"""Compiler context: every cache a compile touches, with an explicit lifecycle.

A context owns the store, the fetcher, the module cache and the sandbox, plus
the fingerprint of the last active configuration. Independent contexts share
nothing, so tests and multi-tenant hosts can run several side by side.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from .config import WorkerSettings
from .engine import TransformEngineProtocol
from .fetch.fetcher import RemoteFetcher
from .fetch.protocol import DownloaderProtocol
from .modules.cache import ModuleCache
from .modules.installer import ModuleInstaller
from .modules.provider import StoreModuleProvider
from .modules.sandbox import PythonSandbox
from .modules.sandbox import SandboxProtocol
from .resolution.resolver import NameResolver
from .store.overlay import OverlayStore
from .store.protocol import ProjectFilesProvider

logger = logging.getLogger(__name__)


def config_fingerprint(*parts: Any) -> str:
    """Stable fingerprint of configuration values (key order does not matter)."""
    return json.dumps(parts, sort_keys=True, default=repr)


class CompilerContext:
    """Process-wide compile state, made explicit.

    Lifecycle:
        - reset_modules(): drop evaluated plugins/presets and engine
          memoization. Triggered by a configuration change or a recovery.
        - reset(include_store=True): additionally drop every file in the store.
    """

    def __init__(
        self,
        engine: TransformEngineProtocol,
        downloader: DownloaderProtocol,
        settings: WorkerSettings | None = None,
        project_files: ProjectFilesProvider | None = None,
        sandbox: SandboxProtocol | None = None,
    ) -> None:
        """
        Initialize a context.

        Args:
            engine: Transform engine.
            downloader: Fetch primitive for remote artifacts.
            settings: Worker settings (defaults if omitted).
            project_files: Source for the lazily mirrored project files.
            sandbox: Module evaluator (PythonSandbox if omitted).
        """
        self.settings = settings or WorkerSettings()
        self.engine = engine
        self.store = OverlayStore(project_files)
        self.fetcher = RemoteFetcher(self.store, downloader, self.settings.packages_root)
        self.resolver = NameResolver(
            self.fetcher,
            packages_root=self.settings.packages_root,
            modern_major=self.settings.modern_engine_major,
        )
        self.provider = StoreModuleProvider(self.store, self.settings.packages_root)
        self.sandbox: SandboxProtocol = sandbox or PythonSandbox()
        self.modules = ModuleCache(
            builtin_plugins=engine.builtin_plugins(),
            builtin_presets=engine.builtin_presets(),
            remaps=self.settings.plugin_remaps,
        )
        self.installer = ModuleInstaller(self)
        self.last_fingerprint: str | None = None

    def reset_modules(self) -> None:
        """Drop evaluated modules and every evaluation/compilation memo."""
        self.modules.reset()
        self.sandbox.reset()
        self.engine.reset()
        logger.debug("[context:reset] module caches cleared")

    def reset(self, include_store: bool = False) -> None:
        """Reset module caches, and optionally the store."""
        self.reset_modules()
        if include_store:
            self.store.reset()
        self.last_fingerprint = None

    def activate(self, fingerprint: str) -> bool:
        """Make ``fingerprint`` the active configuration.

        Returns:
            True if it differed from the previous one and caches were reset.
        """
        if self.last_fingerprint is None:
            self.last_fingerprint = fingerprint
            return False
        if fingerprint == self.last_fingerprint:
            return False

        logger.info("[context] configuration changed, resetting module caches")
        self.reset_modules()
        self.last_fingerprint = fingerprint
        return True

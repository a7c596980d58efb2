"""
Compile orchestration - the heart of transpile-worker.

A compile walks a small state machine:

    RESOLVING_CONFIG -> INSTALLING_DEPS -> TRANSFORMING -> DONE
                             ^                  |
                             +--- RECOVERING <--+

The full dependency graph is unknown up front. Plugins are installed on
demand, and when the engine (or a plugin) fails because a file is missing,
the fetcher downloads it, caches are reset, and the compile starts over.
Recovery cycles are bounded by ``max_recovery_attempts``.
"""

import asyncio
import copy
import importlib
import inspect
import itertools
import logging
import re
from enum import Enum
from typing import Any

from pydantic import ValidationError

from .context import CompilerContext
from .context import config_fingerprint
from .dependencies import get_dependencies
from .dependencies import with_code_frame
from .exceptions import InstallError
from .exceptions import MissingArtifactError
from .exceptions import RecoveryLimitError
from .exceptions import StoreNotReadyError
from .exceptions import TranspileError
from .exceptions import TransformError
from .fetch.parsing import is_missing_module_message
from .models import CompileRequest
from .models import CompileResponse
from .models import DependencyRecord
from .models import LoaderOptions
from .models import PluginEntry
from .models import TransformResult
from .resolution.naming import ModuleKind
from .resolution.naming import is_modern

logger = logging.getLogger(__name__)

WARMUP_SOURCE = 'const a = "b";'


class CompileState(Enum):
    """Compile attempt states."""

    RESOLVING_CONFIG = "resolving_config"
    INSTALLING_DEPS = "installing_deps"
    TRANSFORMING = "transforming"
    RECOVERING = "recovering"
    DONE = "done"


def entry_names(entries: list[PluginEntry] | None) -> list[str]:
    """Plugin/preset names of a config list (``[name, options]`` pairs included)."""
    names = []
    for entry in entries or []:
        if isinstance(entry, str):
            names.append(entry)
        elif isinstance(entry, (list, tuple)) and entry and isinstance(entry[0], str):
            names.append(entry[0])
    return names


def _strip_prefix(prefix: str):
    def strip(entry: PluginEntry) -> PluginEntry:
        if isinstance(entry, str):
            return entry.replace(prefix, "", 1)
        if isinstance(entry, (list, tuple)) and entry and isinstance(entry[0], str):
            return [entry[0].replace(prefix, "", 1), *entry[1:]]
        return entry

    return strip


def normalize_modern_config(config: dict[str, Any]) -> dict[str, Any]:
    """Remove ``@babel/plugin-`` and ``@babel/preset-`` from entry names.

    The modern engine registers its plugins under the short names only.
    """
    return {
        **config,
        "plugins": [_strip_prefix("@babel/plugin-")(p) for p in config.get("plugins") or []],
        "presets": [_strip_prefix("@babel/preset-")(p) for p in config.get("presets") or []],
    }


class Compiler:
    """Compile orchestrator bound to one CompilerContext."""

    def __init__(self, context: CompilerContext) -> None:
        self.context = context
        # In-flight compiles, keyed by start order
        self._attempts: dict[int, CompileState] = {}
        self._attempt_ids = itertools.count()

    @property
    def state(self) -> CompileState:
        """State of the most recently started compile still running, DONE when idle."""
        if not self._attempts:
            return CompileState.DONE
        return self._attempts[max(self._attempts)]

    @property
    def states(self) -> list[CompileState]:
        """States of every compile in progress, oldest first."""
        return [self._attempts[key] for key in sorted(self._attempts)]

    @property
    def settings(self):
        return self.context.settings

    def _modern(self, engine_version: int) -> bool:
        return is_modern(engine_version, self.settings.modern_engine_major)

    # =========================================================================
    # RESOLVING_CONFIG
    # =========================================================================

    def capability_plugins(self, options: LoaderOptions) -> list[PluginEntry]:
        """Built-in plugins appended to every configuration."""
        settings = self.settings
        plugins: list[PluginEntry] = []
        if not options.disable_builtin_plugins:
            if options.dynamic_css_modules:
                plugins.append(settings.dynamic_css_modules_plugin)
            if options.infinite_loop_protection:
                plugins.append(settings.loop_guard_plugin)

        plugins.append([settings.detective_plugin, dict(settings.detective_options)])
        return plugins

    def is_external_library(self, request: CompileRequest) -> bool:
        return request.loader_options.compile_node_modules_with_env and bool(
            re.search(self.settings.external_library_pattern, request.source_path)
        )

    def build_config(self, request: CompileRequest) -> dict[str, Any]:
        """Merge the caller's configuration with the built-in plugins.

        External library files get the conservative configuration for the
        engine generation instead of the caller's.
        """
        settings = self.settings
        capability = self.capability_plugins(request.loader_options)

        if self.is_external_library(request):
            base = (
                settings.external_config_modern
                if self._modern(request.engine_version)
                else settings.external_config_legacy
            )
            config = copy.deepcopy(base)
            config["plugins"] = [
                settings.rename_import_plugin,
                *config.get("plugins", []),
                *capability,
            ]
            return config

        config = request.config.to_engine_dict()
        user_plugins = config.get("plugins")
        if user_plugins is not None:
            config["plugins"] = [settings.rename_import_plugin, *user_plugins, *capability]
        else:
            config["plugins"] = capability
        return config

    # =========================================================================
    # INSTALLING_DEPS
    # =========================================================================

    def _register_bundled(self, names: list[str]) -> None:
        """Import and register bundled plugins the config references."""
        modules = self.context.modules
        for name in names:
            import_path = self.settings.bundled_plugins.get(name)
            if import_path is None or modules.lookup("plugin", name) is not None:
                continue

            module_name, _, attr = import_path.partition(":")
            try:
                module = importlib.import_module(module_name)
                plugin = getattr(module, attr) if attr else module
            except (ImportError, AttributeError) as err:
                logger.warning(f"[install] bundled plugin '{name}' from {import_path} failed: {err}")
                raise InstallError("plugin", name, str(err)) from err
            modules.register("plugin", name, plugin, builtin=True)
            logger.debug(f"[install] registered bundled plugin '{name}' from {import_path}")

    async def _install_one(self, kind: ModuleKind, name: str, request: CompileRequest) -> None:
        try:
            await self.context.installer.install(
                kind,
                name,
                current_path=request.source_path,
                engine_version=request.engine_version,
                context_id=request.context_id,
            )
        except Exception as err:
            logger.warning(f"[install] {kind} '{name}' failed: {err}")
            raise InstallError(kind, name, str(err)) from err

    async def install_dependencies(self, config: dict[str, Any], request: CompileRequest) -> None:
        """Install every plugin, then every preset, of ``config``.

        A recovery inside one install resets the module cache, which can drop
        modules a sibling install already registered. Rounds repeat until a
        round ends with everything installed.

        Raises:
            InstallError: The first plugin/preset that could not be installed.
            RecoveryLimitError: Rounds kept losing modules to cache resets.
        """
        plugins = entry_names(config.get("plugins"))
        presets = entry_names(config.get("presets"))
        modules = self.context.modules

        if request.has_macros:
            await self.context.store.ensure_ready(request.context_id)

        for _ in range(self.settings.max_recovery_attempts + 1):
            self._register_bundled(plugins)
            await asyncio.gather(*(self._install_one("plugin", p, request) for p in plugins))
            await asyncio.gather(*(self._install_one("preset", p, request) for p in presets))

            if all(modules.lookup("plugin", p) for p in plugins) and all(
                modules.lookup("preset", p) for p in presets
            ):
                return
            logger.debug("[install] module cache was reset during install, repeating round")

        raise RecoveryLimitError(self.settings.max_recovery_attempts)

    # =========================================================================
    # TRANSFORMING / RECOVERING
    # =========================================================================

    async def _transform(self, code: str, config: dict[str, Any]) -> TransformResult:
        result = self.context.engine.transform(code, config, self.context.modules.registry())
        if inspect.isawaitable(result):
            result = await result
        return result

    def _is_not_ready(self, err: Exception) -> bool:
        if self.context.store.is_ready:
            return False
        return (
            isinstance(err, (StoreNotReadyError, MissingArtifactError))
            or getattr(err, "code", None) == "EIO"
            or is_missing_module_message(str(err))
        )

    @staticmethod
    def _is_missing_artifact(err: Exception) -> bool:
        return isinstance(err, MissingArtifactError) or is_missing_module_message(str(err))

    def _terminal_error(self, err: Exception, request: CompileRequest) -> TransformError:
        message = str(err).replace("unknown", request.source_path, 1)
        if not self._modern(request.engine_version):
            message = with_code_frame(message, request.source_code)
        return TransformError(message, path=request.source_path)

    def dependencies(self, result: TransformResult, request: CompileRequest) -> list[DependencyRecord]:
        """Dependencies of a transform result, plus the runtime helpers on modern engines."""
        dependencies = get_dependencies(result.metadata)
        if self._modern(request.engine_version):
            # The modern engine does not always report these helpers
            present = {d.path for d in dependencies}
            for helper in self.settings.runtime_helpers:
                if helper not in present:
                    dependencies.append(DependencyRecord(path=helper, type="direct"))
        return dependencies

    async def compile(self, request: CompileRequest | dict[str, Any]) -> CompileResponse:
        """Compile one request.

        Args:
            request: A CompileRequest or its wire dict.

        Returns:
            Transformed code and discovered dependencies.

        Raises:
            InstallError: A plugin/preset could not be found or installed.
            TransformError: The engine rejected the source.
            RecoveryLimitError: Missing files kept appearing.
            FetchError: A file named by a missing-module failure does not
                exist remotely.
        """
        if not isinstance(request, CompileRequest):
            request = CompileRequest.model_validate(request)

        attempt = next(self._attempt_ids)
        self._attempts[attempt] = CompileState.RESOLVING_CONFIG
        try:
            return await self._compile(attempt, request)
        finally:
            del self._attempts[attempt]

    async def _compile(self, attempt: int, request: CompileRequest) -> CompileResponse:
        context = self.context
        context.activate(
            config_fingerprint(
                request.config.to_engine_dict(),
                request.engine_version,
                request.transpiler_options,
            )
        )
        custom_config = self.build_config(request)
        engine_config = (
            normalize_modern_config(custom_config)
            if self._modern(request.engine_version)
            else custom_config
        )

        recoveries = 0
        while True:
            self._attempts[attempt] = CompileState.INSTALLING_DEPS
            await self.install_dependencies(custom_config, request)

            self._attempts[attempt] = CompileState.TRANSFORMING
            try:
                result = await self._transform(request.source_code, engine_config)
            except Exception as err:
                self._attempts[attempt] = CompileState.RECOVERING
                if self._is_not_ready(err):
                    logger.debug(f"[compile:recover] store not ready for {request.source_path}, waiting")
                    await context.store.ensure_ready(request.context_id)
                    continue

                if self._is_missing_artifact(err):
                    if recoveries >= self.settings.max_recovery_attempts:
                        raise RecoveryLimitError(recoveries, str(err)) from err
                    recoveries += 1
                    await context.fetcher.recover_from_failure(err, request.context_id)
                    context.reset_modules()
                    logger.info(
                        f"[compile:recover] retrying {request.source_path} (recovery {recoveries})"
                    )
                    continue

                self._attempts[attempt] = CompileState.DONE
                raise self._terminal_error(err, request) from err

            self._attempts[attempt] = CompileState.DONE
            return CompileResponse(code=result.code, dependencies=self.dependencies(result, request))

    async def handle(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Request boundary: wire dict in, ``{code, dependencies}`` or ``{error}`` out."""
        try:
            response = await self.compile(payload)
        except (TranspileError, ValidationError) as e:
            logger.error(f"Compile failed: {e}")
            return {"error": {"message": str(e)}}
        return response.model_dump()

    # =========================================================================
    # Engine context
    # =========================================================================

    def describe_engine(self) -> dict[str, Any]:
        """Engine version and every plugin/preset name currently available."""
        modules = self.context.modules
        return {
            "version": self.context.engine.version,
            "available_plugins": modules.names("plugin"),
            "available_presets": modules.names("preset"),
        }

    async def warmup(self) -> bool:
        """Pre-install the common preset by compiling a trivial file.

        Returns:
            True if the warm-up compile succeeded.
        """
        request = CompileRequest(
            source_code=WARMUP_SOURCE,
            source_path="test.js",
            config={"presets": ["env"]},
            engine_version=self.settings.modern_engine_major,
        )
        try:
            await self.compile(request)
        except TranspileError as e:
            logger.error(f"Warm-up compile failed: {e}")
            return False
        return True

"""Plugin/preset installation.

install() = cache lookup -> resolve -> fetch -> evaluate -> register. A failed
first evaluation usually means the module needs a file that is not in the
store yet, so the fetcher is asked to recover from the failure and the install
starts over with fresh caches.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING
from typing import Any

from ..exceptions import EvaluationError
from ..exceptions import RecoveryLimitError
from ..resolution.naming import ModuleKind
from ..resolution.naming import normalize_name
from ..store.paths import join_path

if TYPE_CHECKING:
    from ..context import CompilerContext

logger = logging.getLogger(__name__)


class ModuleInstaller:
    """Install plugins and presets into a context's module cache.

    Concurrent installs of the same module (by normalized name) share one
    in-flight task.
    """

    def __init__(self, context: "CompilerContext") -> None:
        self._context = context
        self._pending: dict[tuple[ModuleKind, str], asyncio.Future[Any]] = {}

    def installed_value(self, kind: ModuleKind, name: str) -> Any | None:
        """Cache lookup with no side effects."""
        return self._context.modules.installed_value(kind, name)

    async def install(
        self,
        kind: ModuleKind,
        name: str,
        current_path: str | None = None,
        engine_version: int = 7,
        context_id: Any = None,
    ) -> Any:
        """Install a plugin or preset and return its evaluated export.

        Args:
            kind: "plugin" or "preset".
            name: Name as written in the configuration.
            current_path: Path of the file being compiled.
            engine_version: Major version of the target engine.
            context_id: Loader context of the requesting compile.

        Raises:
            ResolutionError: No package exists under either candidate name.
            FetchError: The resolved package could not be downloaded.
            UnrecoverableFailureError: Evaluation failed for a reason no
                fetch can fix.
            RecoveryLimitError: Evaluation kept reporting missing files.
            EvaluationError: The module's export is empty.
        """
        cache = self._context.modules
        module = cache.lookup(kind, name)
        if module is not None:
            # Remember this spelling for symmetric lookups
            cache.add_alias(kind, name, module.key)
            return module.value

        pending_key = (kind, normalize_name(name, kind))
        if pending_key in self._pending:
            logger.debug(f"[install] joining in-flight install of {kind} '{name}'")
            return await asyncio.shield(self._pending[pending_key])

        task = asyncio.ensure_future(
            self._install(kind, name, current_path, engine_version, context_id)
        )
        self._pending[pending_key] = task
        try:
            return await asyncio.shield(task)
        finally:
            if task.done():
                self._pending.pop(pending_key, None)

    async def _install(
        self,
        kind: ModuleKind,
        name: str,
        current_path: str | None,
        engine_version: int,
        context_id: Any,
    ) -> Any:
        context = self._context
        max_attempts = context.settings.max_recovery_attempts
        attempts = 0

        while True:
            await context.store.ensure_ready(context_id)

            canonical = await context.resolver.resolve(
                name,
                is_preset=kind == "preset",
                engine_major=engine_version,
                context_id=context_id,
            )
            module_path = join_path(context.settings.packages_root, canonical)
            await context.fetcher.ensure_path(module_path, context_id)

            try:
                value = context.sandbox.evaluate(
                    module_path, context.provider, context.modules.registry()
                )
                break
            except Exception as first_error:
                if attempts >= max_attempts:
                    raise RecoveryLimitError(attempts, str(first_error)) from first_error
                attempts += 1
                logger.warning(
                    f"[install] evaluating {kind} '{name}' for {current_path} failed "
                    f"(attempt {attempts}), recovering: {first_error}"
                )
                await context.fetcher.recover_from_failure(first_error, context_id)
                context.reset_modules()

        if not value:
            raise EvaluationError(name, kind)

        context.modules.register(kind, name, value, canonical=canonical)
        logger.info(f"[install] {kind} '{name}' from {module_path}")
        return value

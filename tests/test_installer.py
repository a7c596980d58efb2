"""Tests for ModuleInstaller."""

import asyncio

import pytest

from transpile_worker.config import WorkerSettings
from transpile_worker.exceptions import EvaluationError
from transpile_worker.exceptions import RecoveryLimitError
from transpile_worker.exceptions import ResolutionError
from transpile_worker.exceptions import UnrecoverableFailureError


class TestInstall:
    """Tests for the install happy path."""

    @pytest.mark.asyncio
    async def test_installs_and_registers(self, context) -> None:
        """The evaluated export is cached under the requested name."""
        value = await context.installer.install("preset", "env", engine_version=7)

        assert value == {"name": "env", "plugins": []}
        assert context.installer.installed_value("preset", "env") is value

    @pytest.mark.asyncio
    async def test_idempotent(self, context, downloader) -> None:
        """A second install fetches and evaluates nothing."""
        first = await context.installer.install("preset", "env")
        calls = list(downloader.calls)
        evaluations = context.sandbox.evaluations

        second = await context.installer.install("preset", "env")

        assert second is first
        assert downloader.calls == calls
        assert context.sandbox.evaluations == evaluations

    @pytest.mark.asyncio
    async def test_concurrent_installs_share_work(self, context) -> None:
        """Concurrent installs of one module evaluate it once."""
        results = await asyncio.gather(
            *(context.installer.install("preset", "env") for _ in range(3))
        )

        assert results[0] is results[1] is results[2]
        assert context.sandbox.evaluations == 1

    @pytest.mark.asyncio
    async def test_prefixed_fallback_registers_both_names(self, context) -> None:
        """Requested and canonical names resolve to the same value."""
        value = await context.installer.install("plugin", "my-plugin", engine_version=7)

        assert context.modules.installed_value("plugin", "my-plugin") is value
        assert context.modules.installed_value("plugin", "@babel/plugin-my-plugin") is value

    @pytest.mark.asyncio
    async def test_other_spelling_hits_cache(self, context, downloader) -> None:
        """A normalized spelling of an installed module is a cache hit."""
        await context.installer.install("plugin", "my-plugin", engine_version=7)
        calls = len(downloader.calls)

        await context.installer.install("plugin", "@babel/plugin-my-plugin", engine_version=7)

        assert len(downloader.calls) == calls

    @pytest.mark.asyncio
    async def test_main_directory_entry(self, context, downloader) -> None:
        """A package whose ``main`` is a directory installs without recovery."""
        downloader.add(
            {
                "/node_modules/dirmain/package.json": '{"main": "lib"}',
                "/node_modules/dirmain/lib/index.py": "default = 'from lib'\n",
            }
        )

        value = await context.installer.install("plugin", "dirmain", engine_version=6)

        assert value == "from lib"
        assert context.modules.generation == 0

    @pytest.mark.asyncio
    async def test_builtin_needs_no_fetch(self, context, downloader) -> None:
        """Engine built-ins are served from the cache."""
        await context.installer.install("plugin", "babel-plugin-detective")
        assert downloader.calls == []

    @pytest.mark.asyncio
    async def test_unknown_name(self, context) -> None:
        """Resolution failures propagate."""
        with pytest.raises(ResolutionError):
            await context.installer.install("plugin", "nope", engine_version=6)


class TestInstallFailures:
    """Tests for recovery and terminal install failures."""

    @pytest.mark.asyncio
    async def test_recovers_missing_dependency(self, fakes, context, downloader) -> None:
        """A missing require is fetched and the install retried."""
        downloader.add(fakes.package("needs-helper", "default = {'helper': require('helper-lib')}\n"))
        downloader.add(fakes.package("helper-lib", "default = 'helper'\n"))

        value = await context.installer.install("plugin", "needs-helper", engine_version=7)

        assert value == {"helper": "helper"}
        assert "/node_modules/helper-lib" in downloader.calls
        assert context.modules.generation == 1

    @pytest.mark.asyncio
    async def test_falsy_export(self, fakes, context, downloader) -> None:
        """An undefined export fails with the module name."""
        downloader.add(fakes.package("empty-plugin", "default = None\n"))

        with pytest.raises(EvaluationError, match="Could not install plugin 'empty-plugin'"):
            await context.installer.install("plugin", "empty-plugin")

    @pytest.mark.asyncio
    async def test_runtime_fault_is_unrecoverable(self, fakes, context, downloader) -> None:
        """A failure naming no module is not retried."""
        downloader.add(fakes.package("broken", "raise ValueError('boom')\n"))

        with pytest.raises(UnrecoverableFailureError, match="boom"):
            await context.installer.install("plugin", "broken")

    @pytest.mark.asyncio
    async def test_retries_are_bounded(self, fakes, make_context, downloader) -> None:
        """A file that never materializes ends in RecoveryLimitError."""
        context = make_context(settings=WorkerSettings(max_recovery_attempts=2))
        downloader.add(fakes.package("loops", "default = require('ghost')\n"))
        # The remote has something under ghost/, but nothing loadable
        downloader.add({"/node_modules/ghost/README": "nothing here"})

        with pytest.raises(RecoveryLimitError) as exc_info:
            await context.installer.install("plugin", "loops")

        assert exc_info.value.attempts == 2
        assert "Cannot find module 'ghost'" in str(exc_info.value)

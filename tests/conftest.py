"""
Shared fakes for transpile-worker tests.

- FakeDownloader: serves a dict of remote files and records every request.
- FakeEngine: checks that every configured plugin/preset is installed and
  returns the source with a marker, optionally failing first.
- Plugin sources in the fake remote are Python, evaluated by PythonSandbox.
"""

from __future__ import annotations

import json
from typing import Any

import pytest

from transpile_worker.compiler import Compiler
from transpile_worker.config import WorkerSettings
from transpile_worker.context import CompilerContext
from transpile_worker.exceptions import FetchError
from transpile_worker.models import TransformResult
from transpile_worker.modules.cache import ModuleRegistry
from transpile_worker.store.protocol import StaticProjectFiles


class FakeDownloader:
    """DownloaderProtocol over an in-memory remote.

    A request for ``path`` returns the file at ``path`` or, for a directory,
    every file below it.
    """

    def __init__(self, remote: dict[str, str | bytes] | None = None) -> None:
        self.remote = {
            path: content.encode("utf-8") if isinstance(content, str) else content
            for path, content in (remote or {}).items()
        }
        self.calls: list[str] = []

    def add(self, files: dict[str, str | bytes]) -> None:
        """Publish more files on the remote."""
        for path, content in files.items():
            self.remote[path] = content.encode("utf-8") if isinstance(content, str) else content

    async def download(self, path: str, context_id: Any = None) -> dict[str, bytes]:
        self.calls.append(path)
        prefix = path.rstrip("/") + "/"
        files = {p: c for p, c in self.remote.items() if p == path or p.startswith(prefix)}
        if not files:
            raise FetchError(path, "not found")
        return files


class EngineFailure(Exception):
    """Failure raised by FakeEngine, optionally carrying an ``EIO`` code."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class FakeEngine:
    """TransformEngineProtocol test double.

    Attributes:
        failures: Exceptions raised (in order) by the next transforms.
        require_files: Store paths that must exist or the transform fails
            with a ``Cannot find module`` message.
        store: Store consulted for ``require_files`` and ``fail_until_ready``.
        fail_until_ready: Raise an ``EIO`` failure while the store is not ready.
        dependencies: Requests reported in the metadata.
    """

    def __init__(
        self,
        plugins: dict[str, Any] | None = None,
        presets: dict[str, Any] | None = None,
    ) -> None:
        self._plugins = plugins if plugins is not None else default_builtin_plugins()
        self._presets = presets or {}
        self.failures: list[Exception] = []
        self.require_files: list[str] = []
        self.store = None
        self.fail_until_ready = False
        self.dependencies: dict[str, list[str]] = {}
        self.calls: list[dict[str, Any]] = []
        self.resets = 0

    @property
    def version(self) -> str:
        return "7.0.0-test"

    def builtin_plugins(self) -> dict[str, Any]:
        return dict(self._plugins)

    def builtin_presets(self) -> dict[str, Any]:
        return dict(self._presets)

    def reset(self) -> None:
        self.resets += 1

    def transform(
        self, code: str, config: dict[str, Any], registry: ModuleRegistry
    ) -> TransformResult:
        self.calls.append(config)

        if self.fail_until_ready and self.store is not None and not self.store.is_ready:
            raise EngineFailure("EIO: i/o error, read", code="EIO")
        if self.failures:
            raise self.failures.pop(0)
        for path in self.require_files:
            if self.store is None or not self.store.exists(path):
                raise EngineFailure(f"Cannot find module '{path}'")

        for kind, key in (("plugin", "plugins"), ("preset", "presets")):
            for entry in config.get(key) or []:
                name = entry if isinstance(entry, str) else entry[0]
                if registry.get(kind, name) is None:
                    raise EngineFailure(f"unknown: {kind} '{name}' is not installed")

        return TransformResult(
            code=f"/* transformed */\n{code}",
            metadata={"dependencies": dict(self.dependencies)},
        )


def default_builtin_plugins() -> dict[str, Any]:
    """Capability plugins the default settings always reference."""
    return {
        "babel-plugin-detective": {"name": "detective"},
        "babel-plugin-transform-prevent-infinite-loops": {"name": "loop-guard"},
        "babel-plugin-csb-rename-import": {"name": "rename-import"},
        "dynamic-css-modules": {"name": "dynamic-css-modules"},
        "proposal-dynamic-import": {"name": "proposal-dynamic-import"},
    }


def package(name: str, source: str, **metadata: Any) -> dict[str, str]:
    """Remote files for a package with a Python ``index.py`` entry."""
    root = f"/node_modules/{name}"
    return {
        f"{root}/package.json": json.dumps({"name": name, **metadata}),
        f"{root}/index.py": source,
    }


@pytest.fixture
def remote_files() -> dict[str, str]:
    """Remote with the ``env`` preset and a scoped-only ``my-plugin``."""
    return {
        **package("env", 'default = {"name": "env", "plugins": []}\n'),
        **package("@babel/plugin-my-plugin", 'default = {"name": "my-plugin"}\n'),
        **package("babel-plugin-styled-jsx", 'default = {"name": "styled-jsx"}\n'),
    }


@pytest.fixture
def downloader(remote_files: dict[str, str]) -> FakeDownloader:
    return FakeDownloader(remote_files)


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def make_context(downloader: FakeDownloader, engine: FakeEngine):
    """Factory building a CompilerContext over the shared fakes."""

    def factory(
        settings: WorkerSettings | None = None,
        project_files: StaticProjectFiles | None = None,
    ) -> CompilerContext:
        context = CompilerContext(
            engine, downloader, settings=settings, project_files=project_files
        )
        engine.store = context.store
        return context

    return factory


@pytest.fixture
def context(make_context) -> CompilerContext:
    return make_context()


@pytest.fixture
def compiler(context: CompilerContext) -> Compiler:
    return Compiler(context)


@pytest.fixture
def fakes():
    """Fake classes for tests that build their own instances."""

    class Fakes:
        Downloader = FakeDownloader
        Engine = FakeEngine
        EngineFailure = EngineFailure
        package = staticmethod(package)

    return Fakes

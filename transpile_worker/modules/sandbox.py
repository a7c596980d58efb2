"""Sandboxed evaluation of fetched modules.

The sandbox turns a store file into an evaluated export. Every load the module
performs goes through the ModuleProvider it is given, so the set of loadable
files is exactly what the store holds.

PythonSandbox is the reference implementation: it evaluates Python source
through an importlib loader, isolated from ``sys.modules``. Inside an evaluated
file, ``require(request)`` loads another store file (or an installed
plugin/preset by name) and ``registry`` exposes the installed modules.
"""

from __future__ import annotations

import importlib.abc
import importlib.util
import json
import logging
import re
from collections.abc import Callable
from types import ModuleType
from typing import Any
from typing import Protocol

from ..exceptions import MissingArtifactError
from .cache import ModuleRegistry
from .provider import ModuleProvider
from .provider import ResolvedModule

logger = logging.getLogger(__name__)

_UNSET = object()


class SandboxProtocol(Protocol):
    """Evaluates store files as executable modules."""

    def evaluate(self, path: str, provider: ModuleProvider, registry: ModuleRegistry) -> Any:
        """Evaluate the module at ``path`` and return its export.

        Raises:
            MissingArtifactError: A file the module needs is not in the store.
        """
        ...

    def reset(self) -> None:
        """Forget every memoized evaluation."""
        ...


def export_value(module: ModuleType) -> Any:
    """A module's ``default`` attribute when it defines one, else the module."""
    value = getattr(module, "default", _UNSET)
    return module if value is _UNSET else value


def _is_bare(request: str) -> bool:
    return not request.startswith(("./", "../", "/")) and request not in (".", "..")


class StoreLoader(importlib.abc.Loader):
    """importlib loader executing a store file inside the sandbox."""

    def __init__(
        self,
        resolved: ResolvedModule,
        require: Callable[[str], Any],
        registry: ModuleRegistry,
    ) -> None:
        self._resolved = resolved
        self._require = require
        self._registry = registry

    def create_module(self, spec):  # noqa: ANN001
        return None

    def exec_module(self, module: ModuleType) -> None:
        path = self._resolved.path
        module.__file__ = path
        source = self._resolved.source.decode("utf-8")

        if path.endswith(".json"):
            module.default = json.loads(source)  # type: ignore[attr-defined]
            return

        module.__dict__["require"] = self._require
        module.__dict__["registry"] = self._registry
        code = compile(source, path, "exec")
        exec(code, module.__dict__)  # noqa: S102


class PythonSandbox:
    """Evaluate Python source from the store, memoized per path."""

    def __init__(self) -> None:
        self._modules: dict[str, ModuleType] = {}
        self.evaluations = 0

    def evaluate(self, path: str, provider: ModuleProvider, registry: ModuleRegistry) -> Any:
        resolved = provider.resolve(path)
        if resolved is None:
            raise MissingArtifactError(
                f"Cannot find module '{path}'", path=provider.locate(path), request=path
            )
        return export_value(self._load(resolved, provider, registry))

    def _load(
        self, resolved: ResolvedModule, provider: ModuleProvider, registry: ModuleRegistry
    ) -> ModuleType:
        cached = self._modules.get(resolved.path)
        if cached is not None:
            return cached

        loader = StoreLoader(resolved, self._make_require(resolved.path, provider, registry), registry)
        name = "transpile_sandbox." + re.sub(r"\W", "_", resolved.path.lstrip("/"))
        spec = importlib.util.spec_from_loader(name, loader, origin=resolved.path)
        if spec is None:
            raise ImportError(f"Could not load spec for {resolved.path}")
        module = importlib.util.module_from_spec(spec)

        # Registered before execution so require cycles see the partial module
        self._modules[resolved.path] = module
        try:
            loader.exec_module(module)
        except BaseException:
            del self._modules[resolved.path]
            raise

        self.evaluations += 1
        logger.debug(f"[sandbox] evaluated {resolved.path}")
        return module

    def _make_require(
        self, importer: str, provider: ModuleProvider, registry: ModuleRegistry
    ) -> Callable[[str], Any]:
        def require(request: str) -> Any:
            if _is_bare(request):
                for kind in ("plugin", "preset"):
                    installed = registry.get(kind, request)  # type: ignore[arg-type]
                    if installed is not None:
                        return installed

            resolved = provider.resolve(request, importer)
            if resolved is None:
                raise MissingArtifactError(
                    f"Cannot find module '{request}' from '{importer}'",
                    path=provider.locate(request, importer),
                    request=request,
                    importer=importer,
                )
            return export_value(self._load(resolved, provider, registry))

        return require

    def reset(self) -> None:
        self._modules.clear()

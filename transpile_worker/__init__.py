"""Transpile Worker - dynamic plugin resolution for a source transform engine.

The worker turns a compile request (source, path, plugin/preset names) into
transformed code plus the dependencies it discovered. Plugins and presets are
resolved, fetched and evaluated on demand; failures caused by missing files
drive further fetches until the compile converges.

Philosophy: the engine, the network and the sandbox are collaborators behind
protocols. This package owns resolution, caching and the retry loop.
"""

from __future__ import annotations

# Core classes
from transpile_worker.compiler import CompileState
from transpile_worker.compiler import Compiler
from transpile_worker.context import CompilerContext
from transpile_worker.context import config_fingerprint

# Configuration
from transpile_worker.config import WorkerSettings
from transpile_worker.config import load_settings

# Protocols
from transpile_worker.engine import TransformEngineProtocol
from transpile_worker.fetch.protocol import DownloaderProtocol
from transpile_worker.modules.provider import ModuleProvider
from transpile_worker.modules.sandbox import SandboxProtocol
from transpile_worker.store.protocol import ProjectFilesProvider
from transpile_worker.store.protocol import StoreLayerProtocol

# Reference implementations
from transpile_worker.fetch.http import HttpPackageDownloader
from transpile_worker.modules.sandbox import PythonSandbox
from transpile_worker.store.memory import InMemoryLayer
from transpile_worker.store.protocol import StaticProjectFiles

# Components
from transpile_worker.fetch.fetcher import RemoteFetcher
from transpile_worker.modules.cache import ModuleCache
from transpile_worker.modules.cache import ModuleRegistry
from transpile_worker.modules.installer import ModuleInstaller
from transpile_worker.resolution.resolver import NameResolver
from transpile_worker.store.overlay import OverlayStore

# Models
from transpile_worker.models import CompileRequest
from transpile_worker.models import CompileResponse
from transpile_worker.models import DependencyRecord
from transpile_worker.models import LoaderOptions
from transpile_worker.models import TransformConfig
from transpile_worker.models import TransformResult

# Exceptions
from transpile_worker.exceptions import EvaluationError
from transpile_worker.exceptions import FetchError
from transpile_worker.exceptions import InstallError
from transpile_worker.exceptions import MissingArtifactError
from transpile_worker.exceptions import RecoveryLimitError
from transpile_worker.exceptions import ResolutionError
from transpile_worker.exceptions import StoreNotFoundError
from transpile_worker.exceptions import StoreNotReadyError
from transpile_worker.exceptions import TranspileError
from transpile_worker.exceptions import TransformError
from transpile_worker.exceptions import UnrecoverableFailureError

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Core
    "Compiler",
    "CompileState",
    "CompilerContext",
    "config_fingerprint",
    # Configuration
    "WorkerSettings",
    "load_settings",
    # Protocols
    "DownloaderProtocol",
    "ModuleProvider",
    "ProjectFilesProvider",
    "SandboxProtocol",
    "StoreLayerProtocol",
    "TransformEngineProtocol",
    # Reference implementations
    "HttpPackageDownloader",
    "InMemoryLayer",
    "PythonSandbox",
    "StaticProjectFiles",
    # Components
    "ModuleCache",
    "ModuleInstaller",
    "ModuleRegistry",
    "NameResolver",
    "OverlayStore",
    "RemoteFetcher",
    # Models
    "CompileRequest",
    "CompileResponse",
    "DependencyRecord",
    "LoaderOptions",
    "TransformConfig",
    "TransformResult",
    # Exceptions
    "EvaluationError",
    "FetchError",
    "InstallError",
    "MissingArtifactError",
    "RecoveryLimitError",
    "ResolutionError",
    "StoreNotFoundError",
    "StoreNotReadyError",
    "TransformError",
    "TranspileError",
    "UnrecoverableFailureError",
]

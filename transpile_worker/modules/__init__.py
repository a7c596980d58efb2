"""Module cache, provider capability, sandbox and installer."""

from .cache import InstalledModule
from .cache import ModuleCache
from .cache import ModuleRegistry
from .installer import ModuleInstaller
from .provider import ModuleProvider
from .provider import ResolvedModule
from .provider import StoreModuleProvider
from .sandbox import PythonSandbox
from .sandbox import SandboxProtocol
from .sandbox import export_value

__all__ = [
    "InstalledModule",
    "ModuleCache",
    "ModuleInstaller",
    "ModuleProvider",
    "ModuleRegistry",
    "PythonSandbox",
    "ResolvedModule",
    "SandboxProtocol",
    "StoreModuleProvider",
    "export_value",
]

"""Exception hierarchy for transpile-worker.

Collaborators translate their failures into these types so the compile
orchestrator can tell recoverable conditions (a missing file that can be
fetched, a store that is still initializing) from terminal ones.

- Chain preservation: wrappers use ``raise X(...) from err`` so the original
  failure stays reachable through ``__cause__``.
- Structured data first: ``MissingArtifactError`` carries the missing path when
  the producer knows it; message parsing is only the fallback.
"""

from __future__ import annotations


class TranspileError(Exception):
    """Base for all transpile-worker errors."""


class StoreNotFoundError(TranspileError):
    """Path is present in neither layer of the virtual file store."""

    def __init__(self, path: str) -> None:
        super().__init__(f"ENOENT: no such file or directory, open '{path}'")
        self.path = path


class StoreNotReadyError(TranspileError):
    """The remote-backed store layer has not finished initializing."""

    code = "EIO"


class FetchError(TranspileError):
    """The remote source has no artifact at the requested path."""

    def __init__(self, path: str, reason: str | None = None) -> None:
        message = f"Could not fetch '{path}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.path = path
        self.reason = reason


class ResolutionError(TranspileError):
    """Neither the literal nor the prefixed name exists remotely.

    Attributes:
        name: The name as written in the configuration.
        candidates: Every canonical name that was tried, in order.
    """

    def __init__(self, name: str, candidates: list[str], *, preset: bool = False) -> None:
        kind = "preset" if preset else "plugin"
        tried = " or ".join(f"'{c}'" for c in candidates)
        super().__init__(f"Cannot find {kind} {tried}")
        self.name = name
        self.candidates = list(candidates)


class MissingArtifactError(TranspileError):
    """A transform or evaluation failed because a file is absent.

    Attributes:
        path: Store path of the missing file when the producer knows it.
        request: The module request that could not be satisfied.
        importer: Path of the file that issued the request.
    """

    def __init__(
        self,
        message: str,
        *,
        path: str | None = None,
        request: str | None = None,
        importer: str | None = None,
    ) -> None:
        super().__init__(message)
        self.path = path
        self.request = request
        self.importer = importer

    def __repr__(self) -> str:
        parts = [repr(str(self))]
        if self.path is not None:
            parts.append(f"path={self.path!r}")
        if self.request is not None:
            parts.append(f"request={self.request!r}")
        if self.importer is not None:
            parts.append(f"importer={self.importer!r}")
        return f"{type(self).__name__}({', '.join(parts)})"


class UnrecoverableFailureError(TranspileError):
    """A failure message names no module path, so no fetch can fix it."""


class EvaluationError(TranspileError):
    """An installed module evaluated to an empty export."""

    def __init__(self, name: str, kind: str = "plugin") -> None:
        super().__init__(f"Could not install {kind} '{name}', it is undefined.")
        self.name = name
        self.kind = kind


class InstallError(TranspileError):
    """A plugin or preset could not be found or installed."""

    def __init__(self, kind: str, name: str, reason: str) -> None:
        super().__init__(f"Could not find/install {kind} '{name}': {reason}")
        self.kind = kind
        self.name = name
        self.reason = reason


class TransformError(TranspileError):
    """The transform engine rejected the source (syntax error and the like)."""

    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class RecoveryLimitError(TranspileError):
    """Fetch-and-retry cycles kept finding missing files."""

    def __init__(self, attempts: int, last_error: str | None = None) -> None:
        message = f"Dependency resolution did not converge after {attempts} recovery attempts"
        if last_error:
            message = f"{message}: {last_error}"
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error

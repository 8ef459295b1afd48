from __future__ import annotations

from enum import Enum
from pathlib import Path


class BuildError(Exception):
    """Base class for every failure the pipeline reports."""


class ConfigError(BuildError):
    pass


class CompileErrorKind(Enum):
    SYNTAX = "syntax"
    IMPORT_RESOLUTION = "import"
    INTERNAL = "internal"


class CompileError(BuildError):
    """A compiler could not produce an artifact from its sources."""

    def __init__(self, kind: CompileErrorKind, file: Path | str, message: str):
        super().__init__(f"{file}: {message}")
        self.kind = kind
        self.file = file
        self.message = message


class OutputErrorKind(Enum):
    PERMISSION_DENIED = "permission-denied"
    NOT_FOUND = "not-found"
    OTHER = "other"


class OutputError(BuildError):
    """Writing to or cleaning the output tree failed."""

    def __init__(self, kind: OutputErrorKind, path: Path | str, message: str = ""):
        super().__init__(f"{path}: {message or kind.value}")
        self.kind = kind
        self.path = path
        self.message = message

    @classmethod
    def from_os_error(cls, exc: OSError, path: Path | str) -> "OutputError":
        if isinstance(exc, PermissionError):
            kind = OutputErrorKind.PERMISSION_DENIED
        elif isinstance(exc, FileNotFoundError):
            kind = OutputErrorKind.NOT_FOUND
        else:
            kind = OutputErrorKind.OTHER
        return cls(kind, exc.filename or path, exc.strerror or str(exc))


class TaskError(BuildError):
    """A task in the graph failed; dependents were skipped."""

    def __init__(self, failed_task: str, cause: BaseException):
        super().__init__(f"task '{failed_task}' failed: {cause}")
        self.failed_task = failed_task
        self.cause = cause

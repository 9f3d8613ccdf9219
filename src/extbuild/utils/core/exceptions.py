"""
Exception classes for extbuild.

This module contains the error taxonomy shared by the orchestrator and the
build components. It has no dependencies on the rest of the package so it can
be imported from anywhere without creating import cycles.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path


class ErrorSeverity(Enum):
    """Error severity levels for classification and handling."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Categories of errors for appropriate handling strategies."""

    COMPILE = "compile"
    BUNDLING = "bundling"
    INTEGRITY = "integrity"
    SYNC = "sync"
    ORCHESTRATION = "orchestration"
    TOOL = "tool"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


class ExtBuildError(Exception):
    """Base exception class for extbuild specific errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        context: object | None = None,
        recoverable: bool = True,
    ) -> None:
        super().__init__(message)
        self.category: ErrorCategory = category
        self.severity: ErrorSeverity = severity
        self.context: object | None = context
        self.recoverable: bool = recoverable


class CompileError(ExtBuildError):
    """A source file failed to compile. Other files may still have been emitted."""

    def __init__(self, message: str, source: Path | None = None) -> None:
        super().__init__(
            message,
            category=ErrorCategory.COMPILE,
            severity=ErrorSeverity.MEDIUM,
            context=source,
            recoverable=True,
        )
        self.source: Path | None = source


class BundlingError(ExtBuildError):
    """Localization metadata could not be extracted or merged."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(
            message,
            category=ErrorCategory.BUNDLING,
            severity=ErrorSeverity.HIGH,
            context=path,
            recoverable=False,
        )
        self.path: str | None = path


class IntegrityError(ExtBuildError):
    """The dependency directory is not safe to package."""

    def __init__(self, message: str, path: Path) -> None:
        super().__init__(
            message,
            category=ErrorCategory.INTEGRITY,
            severity=ErrorSeverity.CRITICAL,
            context=path,
            recoverable=False,
        )
        self.path: Path = path


class TransifexError(ExtBuildError):
    """A single request to the translation service failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(
            message,
            category=ErrorCategory.SYNC,
            severity=ErrorSeverity.MEDIUM,
            recoverable=True,
        )
        self.status_code: int | None = status_code


class SyncError(ExtBuildError):
    """One or more languages failed to synchronize."""

    def __init__(
        self, message: str, failures: dict[str, BaseException] | None = None
    ) -> None:
        super().__init__(
            message,
            category=ErrorCategory.SYNC,
            severity=ErrorSeverity.HIGH,
            context=failures,
            recoverable=True,
        )
        self.failures: dict[str, BaseException] = failures or {}


class TaskGraphError(ExtBuildError):
    """The task graph is malformed (duplicate, unknown task or cycle)."""

    def __init__(self, message: str) -> None:
        super().__init__(
            message,
            category=ErrorCategory.ORCHESTRATION,
            severity=ErrorSeverity.HIGH,
            recoverable=False,
        )


class TaskFailedError(ExtBuildError):
    """A task in a graph run failed or could not run."""

    def __init__(self, message: str, task: str) -> None:
        super().__init__(
            message,
            category=ErrorCategory.ORCHESTRATION,
            severity=ErrorSeverity.HIGH,
            context=task,
            recoverable=False,
        )
        self.task: str = task


class SequenceError(ExtBuildError):
    """A stage of a serial task sequence failed; later stages did not run."""

    def __init__(self, message: str, stage: str) -> None:
        super().__init__(
            message,
            category=ErrorCategory.ORCHESTRATION,
            severity=ErrorSeverity.HIGH,
            context=stage,
            recoverable=False,
        )
        self.stage: str = stage


class ToolError(ExtBuildError):
    """An external tool exited with a non-zero status."""

    def __init__(self, message: str, returncode: int | None = None) -> None:
        super().__init__(
            message,
            category=ErrorCategory.TOOL,
            severity=ErrorSeverity.HIGH,
            context=returncode,
            recoverable=False,
        )
        self.returncode: int | None = returncode


class ConfigurationError(ExtBuildError):
    """Configuration-related errors."""

    def __init__(self, message: str, context: object | None = None) -> None:
        super().__init__(
            message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.HIGH,
            context=context,
            recoverable=False,
        )

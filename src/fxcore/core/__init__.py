"""Core modules for fxcore - error taxonomy and shared definitions."""

from fxcore.core.errors import (
    CyclicDependencyError,
    DependencyNotInstalledError,
    DuplicatePluginError,
    DuplicateQuestionIdError,
    EnvironmentProfileError,
    ErrorKind,
    ExitCode,
    FxError,
    FxSystemError,
    InvalidPluginError,
    PhaseCancelledError,
    PhaseError,
    PhaseOrderError,
    PluginNotFoundError,
    QuestionValidationError,
    TaskRouteError,
    UncaughtError,
    UserError,
    format_error_message,
    normalize_error,
)

__all__ = [
    "ExitCode",
    "ErrorKind",
    "FxError",
    "UserError",
    "FxSystemError",
    "UncaughtError",
    "PhaseError",
    "PhaseOrderError",
    "PhaseCancelledError",
    "CyclicDependencyError",
    "DuplicateQuestionIdError",
    "QuestionValidationError",
    "PluginNotFoundError",
    "DuplicatePluginError",
    "InvalidPluginError",
    "TaskRouteError",
    "DependencyNotInstalledError",
    "EnvironmentProfileError",
    "format_error_message",
    "normalize_error",
]

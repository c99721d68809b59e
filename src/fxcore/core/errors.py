"""
Unified error taxonomy for the fxcore lifecycle engine.

Every failure the engine surfaces is an ``FxError`` of one of two kinds:

- USER: caller-actionable (bad input, missing permission, misordered phase)
- SYSTEM: unexpected or internal (plugin crash, registration mistakes)

Errors that arrive from plugin code without a kind are normalized into
``UncaughtError`` by the boundary guard, so callers never observe an
unclassified failure.

Exit Codes:
- 0: Success
- 2: Blocked (phase order violated, tool missing)
- 10: Configuration error
- 11: Plugin error (a resource plugin failed)
- 12: Validation error
- 130: Cancelled
- 127: Unknown/internal error
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from fxcore.orchestration.results import LifecycleResult


class ExitCode(IntEnum):
    """Standardized exit codes for front ends embedding the engine."""

    SUCCESS = 0
    BLOCKED = 2
    CONFIG_ERROR = 10
    PLUGIN_ERROR = 11
    VALIDATION_ERROR = 12
    CANCELLED = 130
    UNKNOWN_ERROR = 127


class ErrorKind(Enum):
    """Classification of every engine error."""

    USER = "user"
    SYSTEM = "system"


class FxError(Exception):
    """Base exception for engine errors with kind and exit code support."""

    kind: ErrorKind = ErrorKind.SYSTEM
    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR

    def __init__(
        self,
        message: str,
        source: str = "core",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.source = source
        self.details = details or {}

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind.value,
            "source": self.source,
            "message": self.message,
            **self.details,
        }


class UserError(FxError):
    """Raised for caller-actionable failures."""

    kind = ErrorKind.USER
    exit_code = ExitCode.CONFIG_ERROR


class FxSystemError(FxError):
    """Raised for unexpected internal failures."""

    kind = ErrorKind.SYSTEM
    exit_code = ExitCode.PLUGIN_ERROR


class UncaughtError(FxSystemError):
    """An exception that escaped plugin code without a classification."""

    exit_code = ExitCode.UNKNOWN_ERROR

    def __init__(self, inner: BaseException, source: str = "core"):
        super().__init__(
            f"Uncaught {type(inner).__name__}: {inner}",
            source=source,
            details={"error_type": type(inner).__name__},
        )
        self.inner = inner


class PhaseOrderError(UserError):
    """Raised when a phase is run before its predecessor completed, or re-run."""

    exit_code = ExitCode.BLOCKED


class CyclicDependencyError(FxSystemError):
    """Raised when plugin dependencies form a cycle inside the selected subset."""

    exit_code = ExitCode.CONFIG_ERROR

    def __init__(self, cycle: list[str]):
        super().__init__(
            f"Cyclic plugin dependency: {' -> '.join(cycle)}",
            source="registry",
            details={"cycle": cycle},
        )
        self.cycle = cycle


class DuplicateQuestionIdError(FxSystemError):
    """Raised when two eligible plugins register the same answer path."""

    exit_code = ExitCode.CONFIG_ERROR

    def __init__(self, path: str, plugins: list[str]):
        super().__init__(
            f"Question '{path}' is registered by more than one plugin: {', '.join(plugins)}",
            source="questions",
            details={"path": path, "plugins": plugins},
        )
        self.path = path
        self.plugins = plugins


class QuestionValidationError(UserError):
    """Raised when an answer is missing or fails its validation."""

    exit_code = ExitCode.VALIDATION_ERROR


class PluginNotFoundError(UserError):
    """Raised when a plugin name is not registered."""


class DuplicatePluginError(UserError):
    """Raised when a plugin name is registered twice."""


class InvalidPluginError(UserError):
    """Raised when a plugin declaration is malformed."""


class TaskRouteError(UserError):
    """Raised when a custom task cannot be routed to a plugin."""


class DependencyNotInstalledError(UserError):
    """Raised when a local tool a plugin requires could not be installed."""

    exit_code = ExitCode.BLOCKED


class EnvironmentProfileError(UserError):
    """Raised for invalid environment profile operations."""


class PhaseCancelledError(UserError):
    """Raised when the caller cancelled a phase; carries the committed partial result."""

    exit_code = ExitCode.CANCELLED

    def __init__(self, message: str, partial: LifecycleResult):
        super().__init__(message, source="orchestrator")
        self.partial = partial


class PhaseError(FxError):
    """A phase failed part-way. Wraps the originating plugin error.

    The kind and exit code follow the wrapped error so that a user error in a
    plugin stays a user error at the phase level.
    """

    def __init__(
        self,
        cause: FxError,
        plugin: str,
        partial: LifecycleResult,
        failures: dict[str, FxError] | None = None,
        blocked: list[str] | None = None,
        skipped: list[str] | None = None,
    ):
        super().__init__(
            f"Plugin '{plugin}' failed: {cause.message}",
            source="orchestrator",
            details={"plugin": plugin, "blocked": blocked or [], "skipped": skipped or []},
        )
        self.cause = cause
        self.plugin = plugin
        self.partial = partial
        self.failures = failures or {plugin: cause}
        self.blocked = blocked or []
        self.skipped = skipped or []
        self.kind = cause.kind
        self.exit_code = cause.exit_code


def normalize_error(error: BaseException, source: str = "core") -> FxError:
    """Return ``error`` if already classified, else wrap it as ``UncaughtError``."""
    if isinstance(error, (UserError, FxSystemError, PhaseError)):
        return error
    uncaught = UncaughtError(error, source=source)
    uncaught.__cause__ = error
    return uncaught


def format_error_message(error: FxError) -> str:
    """Format an error message for display to users."""
    msg = error.message
    if error.details:
        detail_str = ", ".join(f"{k}={v}" for k, v in error.details.items())
        msg = f"{msg} ({detail_str})"
    return msg

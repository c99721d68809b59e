"""
Boundary guard applied at every plugin call site and phase entry point.

Invokes a coroutine, logs start/success/failure with a result summary and
normalizes any unclassified exception into ``UncaughtError``.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, TypeVar

import structlog

from fxcore.core.errors import FxError, PhaseCancelledError, PhaseError, normalize_error

T = TypeVar("T")


def summarize(value: Any) -> Any:
    """Short, log-friendly description of a result."""
    if value is None:
        return None
    if hasattr(value, "summary"):
        return value.summary()
    if hasattr(value, "state_values"):
        return {"state_keys": sorted(value.state_values)}
    if isinstance(value, dict):
        return {"keys": sorted(map(str, value))}
    return type(value).__name__


def _error_summary(error: FxError) -> Any:
    if isinstance(error, (PhaseError, PhaseCancelledError)):
        return error.partial.summary()
    return None


async def guard_invocation(
    operation: str,
    call: Callable[[], Awaitable[T]],
    *,
    logger: Any = None,
    source: str = "core",
    **fields: Any,
) -> T:
    """Await ``call()`` and return its result, raising only classified errors.

    Raises:
        FxError: The original error if already classified, else ``UncaughtError``
    """
    log = (logger or structlog.get_logger()).bind(operation=operation, **fields)
    log.info("invocation_started")
    try:
        result = await call()
    except Exception as e:
        error = normalize_error(e, source=source)
        log.warning(
            "invocation_failed",
            error_type=error.name,
            kind=error.kind.value,
            message=error.message,
            result=_error_summary(error),
        )
        if error is e:
            raise
        raise error from e
    log.info("invocation_succeeded", result=summarize(result))
    return result

import logging
from typing import Any

import structlog


def configure_logging(level: int | str | None = None, json: bool = True) -> None:
    """Configure the structlog/standard logging bridge.

    ``level`` defaults to ``FXCORE_LOG_LEVEL``. With ``json=False`` events are
    rendered for a terminal instead of as JSON lines.
    """
    if level is None:
        from fxcore.config import get_settings

        level = get_settings().log_level
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    renderer = structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=level, format="%(message)s")


def bind_context(**kwargs: Any) -> structlog.stdlib.BoundLogger:
    """Logger carrying solution/environment fields, for handing to the orchestrator."""
    return structlog.get_logger("fxcore").bind(**kwargs)

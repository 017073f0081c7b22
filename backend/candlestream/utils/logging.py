"""Structured logging setup with structlog and feed session IDs.

Supports two output modes:
- "json": Machine-readable JSON lines (for production/Docker)
- "console": Human-readable colored output (for development)

The feed session ID is injected via contextvars into every log entry
emitted while a feed connection is active, so reconnect gaps can be traced
to the connection that dropped.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from uuid import uuid4

import structlog

_feed_session_id: ContextVar[str] = ContextVar("feed_session_id", default="")

# Libraries that log per frame or per statement at DEBUG
_NOISY_LOGGERS = ("websockets", "aiosqlite", "sqlalchemy.engine")

# uvicorn installs its own handlers; these are routed through the root one
_UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def set_feed_session_id(session_id: str) -> None:
    """Set the feed session ID for the current context."""
    _feed_session_id.set(session_id)


def get_feed_session_id() -> str:
    """Get the feed session ID for the current context."""
    return _feed_session_id.get()


def new_feed_session_id() -> str:
    """Start a new feed session in the current context and return its ID."""
    session_id = uuid4().hex[:12]
    _feed_session_id.set(session_id)
    return session_id


def _add_feed_session_id(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    """Inject feed_session_id into every log entry."""
    session_id = get_feed_session_id()
    if session_id:
        event_dict["feed_session_id"] = session_id
    return event_dict


def setup_logging(level: str = "INFO", log_format: str = "json") -> None:
    """Configure structlog for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_format: Output format - "json" for production, "console" for dev.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        _add_feed_session_id,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level.upper()))

    for name in _UVICORN_LOGGERS:
        uv_logger = logging.getLogger(name)
        uv_logger.handlers.clear()
        uv_logger.propagate = True

    # Keep third-party chatter out of DEBUG runs unless asked for explicitly
    noisy_level = max(root_logger.level, logging.INFO)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a named structlog logger."""
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger

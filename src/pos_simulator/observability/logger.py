"""Structured logging for the simulator.

structlog renders every record, including those emitted through plain
``logging.getLogger(__name__)`` loggers and uvicorn's own loggers, as JSON
(or a console format during development).  Request-scoped fields such as
``trace_id``, ``method`` and ``path`` are bound through structlog's
contextvars, so a log line written inside a handler carries them
automatically.  Detached webhook tasks copy the context at spawn time and
keep the trace id of the order that triggered them.
"""

from __future__ import annotations

import logging
import sys
import uuid
from typing import Any

import structlog

_SHARED_PROCESSORS: list[Any] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    structlog.processors.StackInfoRenderer(),
]


def bind_request_context(trace_id: str | None = None, **fields: Any) -> str:
    """Start a fresh log context for one inbound request.

    Returns the trace id in use (generated when not supplied).
    """
    tid = trace_id or uuid.uuid4().hex
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(trace_id=tid, **fields)
    return tid


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()


def setup_logging(level: str = "INFO", format: str = "json") -> None:
    """Configure structlog and route stdlib logging through it.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
        format: "json" for deployed simulators, "console" for a terminal.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    renderer: Any
    if format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_SHARED_PROCESSORS,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_SHARED_PROCESSORS,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(log_level)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uv_logger = logging.getLogger(name)
        uv_logger.handlers.clear()
        uv_logger.propagate = True


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger for a module."""
    return structlog.get_logger(name)

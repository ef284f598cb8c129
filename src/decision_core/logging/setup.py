"""Structured logging setup with structlog."""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from enum import Enum

import structlog

from decision_core.config.schema import LoggingConfig


def _flatten_values(logger, method_name, event_dict):
    """Log enums by value and datetimes as ISO strings."""
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
        elif isinstance(value, datetime):
            event_dict[key] = value.isoformat()
    return event_dict


def setup_logging(
    config: LoggingConfig | None = None,
    *,
    level: str | None = None,
    log_format: str | None = None,
) -> None:
    """Configure structlog for the decision pipeline.

    Args:
        config: The ``logging`` section of AppConfig; defaults apply when omitted.
        level: Overrides ``config.level`` (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_format: Overrides ``config.format``: "json" for production,
            "console" for development.
    """
    config = config or LoggingConfig()
    level = level or config.level
    log_format = log_format or config.format

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _flatten_values,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "console":
        renderer: structlog.types.Processor = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    # Loggers are created at import time in every module, so they must not
    # cache the configuration they first saw.
    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))


def get_logger(name: str | None = None, **initial_context) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger, optionally pre-bound with context."""
    logger = structlog.get_logger(name)
    if initial_context:
        logger = logger.bind(**initial_context)
    return logger


@contextmanager
def cycle_context(**context) -> Iterator[None]:
    """Bind *context* (e.g. symbol, timeframe) to every log line in the block."""
    with structlog.contextvars.bound_contextvars(**context):
        yield

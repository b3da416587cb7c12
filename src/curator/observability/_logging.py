"""Curator structured logging with JSON formatting.

Provides structured logging using structlog with:
- JSON format for machine parsing (production, curator Jobs)
- Colorful console output for development
- ISO timestamps
- Exception formatting
"""

import logging
import sys
from typing import Any, cast

import structlog
from structlog.types import FilteringBoundLogger, Processor

from curator.config.settings import settings


# Third-party loggers that are too chatty at INFO
NOISY_LOGGERS = ("urllib3", "kubernetes", "asyncio")


def configure_logging(level: str | None = None) -> FilteringBoundLogger:
    """Configure structlog for the application.

    Args:
        level: Override for the configured log level

    Returns:
        FilteringBoundLogger: Configured logger instance
    """
    if level is None:
        level = "DEBUG" if settings.debug else settings.observability.log_level
    numeric_level = logging.getLevelName(level.upper())

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    processors: list[Processor]
    if settings.observability.log_format == "json" or settings.is_production:
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(sort_keys=True),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.set_exc_info,
            structlog.dev.ConsoleRenderer(
                colors=True,
                pad_event=25,
                exception_formatter=structlog.dev.plain_traceback,
            ),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # kopf logs through the standard library
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=numeric_level,
    )
    for noisy_logger in NOISY_LOGGERS:
        logging.getLogger(noisy_logger).setLevel(max(numeric_level, logging.WARNING))

    return cast(FilteringBoundLogger, structlog.get_logger())


def get_logger(name: str | None = None, **initial_context: Any) -> FilteringBoundLogger:
    """Get a logger instance with optional initial context.

    Args:
        name: Optional logger name (typically module name)
        **initial_context: Initial context to bind to logger

    Returns:
        FilteringBoundLogger: Logger instance with bound context

    Example:
        >>> log = get_logger(__name__, cluster="sno-1")
        >>> log.info("step_started", step="prehook-ansiblejob")
        {
          "cluster": "sno-1",
          "event": "step_started",
          "level": "info",
          "step": "prehook-ansiblejob",
          "timestamp": "2026-01-09T12:34:56.789Z"
        }
    """
    logger = structlog.get_logger(name) if name else structlog.get_logger()

    if initial_context:
        logger = logger.bind(**initial_context)

    return cast(FilteringBoundLogger, logger)


def bind_curation_context(**context: Any) -> None:
    """Bind context (cluster, curation, step) to every log entry of this task."""
    structlog.contextvars.bind_contextvars(**context)


def clear_curation_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()


# Initialize logging on module import
configure_logging()


__all__ = [
    "bind_curation_context",
    "clear_curation_context",
    "configure_logging",
    "get_logger",
]

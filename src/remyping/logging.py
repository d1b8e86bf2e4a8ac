"""Structured logging configuration using structlog.

JSON output for production, human-readable console output for development.
Package code logs through get_logger() and never print(). While a job is
being checked, job_context() binds its id, date and window to every event
emitted by the checker, navigator and notifier.
"""

import logging
import sys
from contextlib import AbstractContextManager

import structlog

# Chatty third-party loggers kept at WARNING unless DEBUG is requested
_QUIET_LOGGERS = ("apscheduler", "uvicorn.access")


def setup_logging(json_output: bool = False, log_level: str = "INFO") -> None:
    """Configure structlog and the stdlib bridge.

    Args:
        json_output: If True, output JSON (production). If False, console format (dev).
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if json_output:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # uvicorn and apscheduler log through stdlib
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)
    logging.getLogger().handlers = []
    logging.getLogger().addHandler(logging.StreamHandler(sys.stdout))
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a logger instance bound with the module name.

    Args:
        name: Logger name (typically __name__ from calling module).

    Returns:
        Configured structlog logger with module name context.
    """
    return structlog.get_logger(name)


def job_context(job_id: str, **values: object) -> AbstractContextManager:
    """Bind job_id (and any extra values) to all log events inside the block."""
    return structlog.contextvars.bound_contextvars(job_id=job_id, **values)

"""Logging for the Textila API.

Stdlib logging writes to stdout; structlog renders on top of it. The
level and renderer follow ``Settings.environment`` unless ``LOG_LEVEL``
is set explicitly.
"""

import logging
import sys
from typing import Any, Optional

import structlog

LEVELS = {
    "production": "INFO",
    "staging": "INFO",
    "development": "DEBUG",
    "test": "WARNING",
}

JSON_ENVIRONMENTS = ("production", "staging")

# Libraries that are chatty at DEBUG.
QUIET_LOGGERS = ("pymongo", "stripe", "asyncio", "urllib3")


def get_log_level(environment: str, override: Optional[str] = None) -> str:
    if override:
        return override.upper()
    return LEVELS.get(environment.lower(), "INFO")


def configure_logging(environment: str = "development", level: Optional[str] = None) -> None:
    log_level = get_log_level(environment, level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if environment.lower() in JSON_ENVIRONMENTS:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def add_context(**kwargs: Any) -> None:
    """Bind values (e.g. ``request_id``) to every log line of the current request."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()

"""
Logging for the script engine.

structlog over stdlib logging, rendered as JSON or for the console.
Runs bind direction and prefix with ``structlog.contextvars``; connection
URLs and passwords are redacted before rendering.
"""

import logging
import sys
from typing import Literal

import structlog
from structlog.types import EventDict, WrappedLogger

SENSITIVE_KEYS = ("password", "secret", "token", "credential", "url", "dsn")
REDACTED = "***REDACTED***"


def censor_sensitive_data(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Redact string values whose key looks like a credential or a connection URL."""
    for key, value in event_dict.items():
        if key == "event" or not isinstance(value, str):
            continue
        if any(s in key.lower() for s in SENSITIVE_KEYS):
            event_dict[key] = REDACTED
    return event_dict


def configure_logging(
    level: str = "INFO",
    format: Literal["json", "console"] = "console",
) -> None:
    """
    Configure structlog on top of stdlib logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        format: Output format ("json" for production, "console" for development)
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        censor_sensitive_data,
        structlog.processors.StackInfoRenderer(),
    ]

    if format == "json":
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper()),
    )

    # Statements are logged by the engine itself when asked for
    logging.getLogger("neo4j").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def resolve_level(log: str | bool) -> int | None:
    """
    Translate a ``log`` option into a stdlib level.

    Args:
        log: Level name ("info", "debug", ...), True for info, False for quiet

    Returns:
        Numeric level, or None when logging is disabled
    """
    if log is False:
        return None
    if log is True:
        return logging.INFO
    level = logging.getLevelName(log.upper())
    if not isinstance(level, int):
        raise ValueError(f"unknown log level: {log!r}")
    return level

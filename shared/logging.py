"""
Centralized structured logging.

Sets up structlog with:
- JSON formatting for production, pretty console for development
- Redaction of credentials and signatures
- Sentry breadcrumbs for INFO+ when a DSN is configured

Usage:
    >>> from shared.logging import get_logger
    >>> log = get_logger(__name__)
    >>> log.info("link_provisioned", form_key="contact")
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from typing import Optional

import structlog
from structlog.stdlib import BoundLogger
from structlog.types import EventDict, Processor

# Keys whose values never reach a log sink
REDACTED_FIELDS = {
    "api_key",
    "authorization",
    "password",
    "secret",
    "secret_signature",
    "signature",
    "link_id",
}

_SENSITIVE_SUBSTRINGS = ("password", "secret", "api_key", "signature")


def get_logger(name: str) -> BoundLogger:
    """Get a structlog logger named after the calling module."""
    return structlog.get_logger(name)


def add_timestamp(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add ISO format timestamp to event dict."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def redact_sensitive_fields(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Redact sensitive fields from logs."""
    for key in list(event_dict.keys()):
        if key in ("level", "event", "timestamp", "logger"):
            continue
        lowered = key.lower()
        if lowered in REDACTED_FIELDS or any(
            sensitive in lowered for sensitive in _SENSITIVE_SUBSTRINGS
        ):
            event_dict[key] = "***REDACTED***"
    return event_dict


def configure_structlog(log_format: str = "console") -> None:
    """
    Configure structlog processors.

    json:    one JSON object per line, for log shippers
    console: coloured key/value output for development
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_timestamp,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        redact_sensitive_fields,
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=True, pad_event=15, sort_keys=False
        )

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_stdlib_logging(log_level: str = "INFO") -> None:
    """Route stdlib logging to stdout and quieten chatty drivers."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("pymongo").setLevel(logging.WARNING)


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "console",
    env: str = "development",
    sentry_dsn: Optional[str] = None,
) -> None:
    """
    Initialize logging for the application.

    Called once from create_app() with values taken from LoggingSettings.
    """
    configure_stdlib_logging(log_level)
    configure_structlog(log_format)

    structlog.get_logger(__name__).info(
        "logging_initialized",
        env=env,
        log_level=log_level,
        log_format=log_format,
        sentry_enabled=bool(sentry_dsn),
    )


__all__ = [
    "get_logger",
    "configure_structlog",
    "setup_logging",
]

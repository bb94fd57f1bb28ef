"""Structured logging configuration with redaction support."""

import logging
import sys
from typing import Any, Dict, Optional

import structlog

SENSITIVE_KEYS = {
    "authorization",
    "token",
    "secret",
    "password",
}


def redact_sensitive(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Redact sensitive information from log entries.

    Redacts any field whose name contains 'authorization', 'token',
    'secret' or 'password' (case-insensitive). The store service token
    and forwarded auth headers are the usual offenders.
    """
    for key in list(event_dict.keys()):
        key_lower = key.lower()
        if any(sensitive in key_lower for sensitive in SENSITIVE_KEYS):
            event_dict[key] = "REDACTED"

    return event_dict


def bind_request_context(
    correlation_id: str,
    partnership_id: Optional[str] = None,
    user_id: Optional[str] = None,
) -> None:
    """Start a fresh log context for one dashboard request.

    Every event logged while handling the request carries the correlation
    id and, when the auth layer supplied them, the visitor's partnership
    and user ids.
    """
    structlog.contextvars.clear_contextvars()
    context = {"correlation_id": correlation_id}
    if partnership_id:
        context["partnership_id"] = partnership_id
    if user_id:
        context["user_id"] = user_id
    structlog.contextvars.bind_contextvars(**context)


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structlog for JSON output with correlation ID support.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        redact_sensitive,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a configured logger instance.

    Args:
        name: Optional logger name for context

    Returns:
        Configured structlog logger
    """
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger_name=name)
    return logger

"""
Structured logging via structlog.

Entries carry timestamp, level, severity, logger name, the service/env pair,
plus anything bound to the context (request_id is bound by AuditLogMiddleware).

Usage:
    logger = get_logger(__name__)
    logger.info("analytics.computed", workspace_id="ws_1", period="7d")
    logger.error("analytics.query_failed", stage="current_events", error=str(e))
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, WrappedLogger

from glance.core.config import settings

SERVICE_NAME = "glance-api"

_SEVERITY = {
    "debug": "DEBUG",
    "info": "INFO",
    "warning": "WARNING",
    "error": "ERROR",
    "critical": "CRITICAL",
}


def add_severity_field(
    logger: WrappedLogger, method: str, event_dict: EventDict
) -> EventDict:
    """Severity strings understood by GCP/Datadog log ingestion."""
    event_dict["severity"] = _SEVERITY.get(method, "INFO")
    return event_dict


def add_service_context(
    logger: WrappedLogger, method: str, event_dict: EventDict
) -> EventDict:
    event_dict.setdefault("service", SERVICE_NAME)
    event_dict.setdefault("env", settings.ENVIRONMENT)
    return event_dict


def setup_logging() -> None:
    """Configure structlog for JSON (production) or console (dev) output."""
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        add_severity_field,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if settings.LOG_FORMAT == "json":
        processors += [add_service_context, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(settings.LOG_LEVEL.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    for noisy in ("uvicorn.access", "sqlalchemy.engine", "aiosqlite"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.BoundLogger:
    """Logger that tags every entry with `logger=name`."""
    return structlog.get_logger().bind(logger=name)

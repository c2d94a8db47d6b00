"""Structured logging configuration.

Features:
- JSON and text format support
- Controller / reconcile key correlation
- Service context injection
"""

import logging
import sys
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from hub_shared.config import LogFormat, LogLevel, get_settings

# Context variables for reconcile tracking
controller_var: ContextVar[str | None] = ContextVar("controller", default=None)
key_var: ContextVar[str | None] = ContextVar("key", default=None)


def add_service_context(
    logger: logging.Logger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Add service context to log events."""
    settings = get_settings()
    event_dict["service"] = settings.app_name
    event_dict["environment"] = settings.environment.value
    return event_dict


def add_reconcile_context(
    logger: logging.Logger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Add controller and key from context variables."""
    if controller := controller_var.get():
        event_dict.setdefault("controller", controller)
    if key := key_var.get():
        event_dict.setdefault("key", key)
    return event_dict


def add_timestamp(
    logger: logging.Logger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Add ISO 8601 timestamp."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def setup_logging(
    log_level: LogLevel | None = None,
    log_format: LogFormat | None = None,
) -> None:
    """Configure structured logging for the application.

    Args:
        log_level: Override log level (defaults to settings.log_level)
        log_format: Override log format (defaults to settings.log_format)
    """
    settings = get_settings()

    level = log_level or settings.log_level
    fmt = log_format or settings.log_format

    level_str = level.value if hasattr(level, "value") else str(level).upper()
    numeric_level = getattr(logging, level_str)

    logging.basicConfig(
        level=numeric_level,
        stream=sys.stdout,
        format="%(message)s",
    )

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_timestamp,
        add_service_context,
        add_reconcile_context,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    fmt_str = fmt.value if hasattr(fmt, "value") else str(fmt).lower()
    if fmt_str == LogFormat.JSON.value:
        # JSON format for production
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        # Text format for development
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            ),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Suppress noisy loggers
    logging.getLogger("kubernetes.client.rest").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name (defaults to module name)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


class ReconcileContext:
    """Context manager for reconcile-scoped logging context.

    Usage:
        with ReconcileContext(controller="csr-approving", key="csr-abc"):
            logger.info("Evaluating request")  # Includes controller and key
    """

    def __init__(self, controller: str | None = None, key: str | None = None):
        self.controller = controller
        self.key = key
        self._tokens: list[tuple[ContextVar[str | None], Token[str | None]]] = []

    def __enter__(self) -> "ReconcileContext":
        if self.controller:
            self._tokens.append((controller_var, controller_var.set(self.controller)))
        if self.key:
            self._tokens.append((key_var, key_var.set(self.key)))
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()


def log_external_call_start(
    logger: structlog.stdlib.BoundLogger,
    service: str,
    operation: str,
) -> None:
    """Log start of external service call."""
    logger.debug(
        "External call started",
        external_service=service,
        external_operation=operation,
    )


def log_external_call_end(
    logger: structlog.stdlib.BoundLogger,
    service: str,
    operation: str,
    success: bool,
    duration_ms: float,
    error: str | None = None,
) -> None:
    """Log completion of external service call."""
    log_data = {
        "external_service": service,
        "external_operation": operation,
        "success": success,
        "duration_ms": round(duration_ms, 2),
    }
    if error:
        log_data["error"] = error

    if success:
        logger.debug("External call completed", **log_data)
    else:
        logger.warning("External call failed", **log_data)

"""Observability module for structured logging."""

from .logging import (
    ReconcileContext,
    controller_var,
    get_logger,
    key_var,
    log_external_call_end,
    log_external_call_start,
    setup_logging,
)

__all__ = [
    # Setup
    "setup_logging",
    "get_logger",
    # Context
    "ReconcileContext",
    "controller_var",
    "key_var",
    # Logging helpers
    "log_external_call_start",
    "log_external_call_end",
]

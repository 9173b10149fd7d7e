"""Shared utility helpers for the ACS email client."""

from .background import run_background
from .cancellation import CancellationError, CancellationToken, CancellationTokenSource
from .logging import LoggingOptions, configure_logging, get_logger, operation_context
from .sanitize import mask_secret_fields, sanitize_log_message

__all__ = [
    "LoggingOptions",
    "configure_logging",
    "get_logger",
    "operation_context",
    "mask_secret_fields",
    "sanitize_log_message",
    "CancellationToken",
    "CancellationTokenSource",
    "CancellationError",
    "run_background",
]

"""Cross-cutting primitives: errors, logging, cancellation and constants."""

from .cancellation import CancellationToken, CancelledError
from .errors import ErrorCode, FramingError, classify_exception, wrap_exception
from .logging import LogContext, configure_logger, get_logger, log_event, normalized_log_event

__all__ = [
    "CancellationToken",
    "CancelledError",
    "ErrorCode",
    "FramingError",
    "classify_exception",
    "wrap_exception",
    "LogContext",
    "configure_logger",
    "get_logger",
    "log_event",
    "normalized_log_event",
]

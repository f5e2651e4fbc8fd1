"""
Error classification helpers mapping exceptions to normalized ErrorCode values.
"""
from __future__ import annotations

import asyncio

from pydantic import ValidationError

from ..cancellation_parts.cancelled_error import CancelledError
from .error_code import ErrorCode
from .framing_error import FramingError


def classify_exception(exc: BaseException) -> ErrorCode:
    """Classify an exception into a normalized :class:`ErrorCode`.

    Precedence:
        1. FramingError passthrough.
        2. Cooperative or asyncio cancellation.
        3. Option validation failures.
        4. Connection / OS level failures (transport).
        5. ``UNKNOWN`` fallback.
    """
    if isinstance(exc, FramingError):
        return exc.code
    if isinstance(exc, (CancelledError, asyncio.CancelledError)):
        return ErrorCode.CANCELLED
    if isinstance(exc, (ValidationError, ValueError)):
        return ErrorCode.CONFIGURATION
    if isinstance(exc, (ConnectionError, EOFError, OSError)):
        return ErrorCode.TRANSPORT
    return ErrorCode.UNKNOWN


def wrap_exception(exc: BaseException, message: str | None = None) -> FramingError:
    """Return ``exc`` as a :class:`FramingError`, classifying it if needed."""
    if isinstance(exc, FramingError):
        return exc
    return FramingError(
        code=classify_exception(exc),
        message=message or str(exc) or type(exc).__name__,
        raw=exc,
    )


__all__ = ["classify_exception", "wrap_exception"]

"""Unified framing error taxonomy public surface.

This module re-exports the one-class-per-file implementations under
``record_stream.base.errors_parts`` to keep a stable import path.
"""

from .errors_parts.error_code import ErrorCode
from .errors_parts.framing_error import FramingError
from .errors_parts.classification import classify_exception, wrap_exception

__all__ = ["ErrorCode", "FramingError", "classify_exception", "wrap_exception"]

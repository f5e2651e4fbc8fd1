"""Errors parts package public surface.

Re-exports individual error taxonomy components for optional direct imports.
Prefer importing from `record_stream.base.errors` for the stable surface.
"""

from .error_code import ErrorCode
from .framing_error import FramingError
from .classification import classify_exception, wrap_exception

__all__ = ["ErrorCode", "FramingError", "classify_exception", "wrap_exception"]

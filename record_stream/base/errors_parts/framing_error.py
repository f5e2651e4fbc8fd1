"""
Structured framing error exception type.

Wraps configuration, overflow and transport failures with a normalized
`ErrorCode` for consistent handling and structured logging.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .error_code import ErrorCode


@dataclass
class FramingError(Exception):
    """Represents a structured framing error with a normalized error code.

    Attributes:
        code: Normalized :class:`ErrorCode` classification for the failure.
        message: Human-readable error message suitable for logging.
        retryable: Hint for upstream logic. The framing layer never retries.
        raw: Optional original exception for diagnostics.
    """

    code: ErrorCode
    message: str
    retryable: bool = False
    raw: Optional[BaseException] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.code.value}: {self.message}"


__all__ = ["FramingError"]

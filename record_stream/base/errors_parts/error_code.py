"""
Normalized framing error codes (taxonomy).

Defines the `ErrorCode` enumeration used by the controller, the options layer
and the transport adapters. Values are lowercase snake_case and are considered
a stable public contract for logging.
"""
from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """Enumerated normalized error codes representing failure categories."""

    CONFIGURATION = "configuration"
    OVERFLOW = "overflow"
    TRANSPORT = "transport"
    CANCELLED = "cancelled"
    INTERNAL = "internal"
    UNKNOWN = "unknown"


__all__ = ["ErrorCode"]

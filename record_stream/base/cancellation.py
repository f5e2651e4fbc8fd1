"""Cooperative cancellation primitives (public API facade).

``CancellationToken`` lets callers outside the event loop request that a
stream controller abort; the controller polls it on every drain tick.
``CancelledError`` is raised by code that observes a cancelled token.
"""

from .cancellation_parts.cancelled_error import CancelledError
from .cancellation_parts.cancellation_token import CancellationToken

__all__ = ["CancellationToken", "CancelledError"]

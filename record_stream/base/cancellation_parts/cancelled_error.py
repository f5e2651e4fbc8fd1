"""Cancellation error type.

Defines the public ``CancelledError`` used to signal cooperative cancellation
of a framed stream.
"""

from __future__ import annotations


class CancelledError(RuntimeError):
    """Raised when a framed stream is cancelled cooperatively.

    Distinct from :class:`asyncio.CancelledError`: this one is raised by code
    that observes a :class:`CancellationToken` rather than by the event loop.
    """

__all__ = ["CancelledError"]

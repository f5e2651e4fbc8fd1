"""Cooperative cancellation token implementation.

Exposes the ``CancellationToken`` class polled by stream controllers to
request early termination from outside the event loop thread.
"""

from __future__ import annotations

from threading import Lock
from typing import List

from .state import State
from .cancelled_error import CancelledError


class CancellationToken:
    """A cooperative cancellation token with optional cascading semantics.

    Thread-safe for ``cancel`` + ``cancelled`` polling, so a token may be
    cancelled from a worker thread while a controller polls it on its loop.
    Child tokens inherit cancellation when the parent is cancelled.
    """

    def __init__(self, *, parent: "CancellationToken | None" = None) -> None:
        self._state = State()
        self._lock = Lock()
        self._children: List[CancellationToken] = []
        self._parent: "CancellationToken | None" = None
        if parent is not None:
            parent.link_child(self)

    @property
    def cancelled(self) -> bool:  # noqa: D401 - short form
        """Whether cancellation has been requested."""
        return self._state.cancelled

    @property
    def reason(self) -> str | None:  # noqa: D401 - short form
        """Reason string supplied at cancel time (if any)."""
        return self._state.reason

    def cancel(self, reason: str | None = None) -> None:
        """Request cooperative cancellation and cascade to children."""
        with self._lock:
            if self._state.cancelled:
                return
            self._state.cancelled = True
            self._state.reason = reason
            children = list(self._children)
        for child in children:
            child.cancel(reason)

    def link_child(self, token: "CancellationToken") -> "CancellationToken":
        """Link a child token so parent cancellation cascades (returns child)."""
        with self._lock:
            self._children.append(token)
            token._parent = self
            should_cancel = self._state.cancelled
            reason = self._state.reason
        if should_cancel:
            token.cancel(reason)
        return token

    def unlink_child(self, token: "CancellationToken") -> None:
        """Stop cascading to ``token``; unknown tokens are ignored."""
        with self._lock:
            if token not in self._children:
                return
            self._children.remove(token)
            token._parent = None

    def detach(self) -> None:
        """Unlink from the parent so a finished stream is not retained by it."""
        parent = self._parent
        if parent is not None:
            parent.unlink_child(self)

    def raise_if_cancelled(self) -> None:
        """Raise ``CancelledError`` if token is cancelled."""
        if self._state.cancelled:
            raise CancelledError(self._state.reason or "stream cancelled")

    def child(self) -> "CancellationToken":
        return CancellationToken(parent=self)

    def __repr__(self) -> str:  # pragma: no cover - introspection aid
        return (
            f"CancellationToken(cancelled={self._state.cancelled}, "
            f"reason={self._state.reason!r}, children={len(self._children)})"
        )


__all__ = ["CancellationToken"]

"""Named-event listener registry used by the stream controller.

Listeners run synchronously, in registration order, on the thread that emits.
An exception raised by a listener propagates to the emitter's caller.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, List, Optional

Listener = Callable[..., Any]


@dataclass
class _Registration:
    listener: Listener
    once: bool = False


class EventEmitter:
    """Minimal ``on`` / ``once`` / ``off`` / ``emit`` surface.

    Args:
        events: When given, the only event names that may be registered or
            emitted; anything else raises ``ValueError``.
    """

    def __init__(self, events: Optional[FrozenSet[str]] = None) -> None:
        self._allowed = events
        self._listeners: Dict[str, List[_Registration]] = {}

    def on(self, event: str, listener: Listener) -> "EventEmitter":
        self._check(event)
        self._listeners.setdefault(event, []).append(_Registration(listener))
        return self

    def once(self, event: str, listener: Listener) -> "EventEmitter":
        self._check(event)
        self._listeners.setdefault(event, []).append(_Registration(listener, once=True))
        return self

    def off(self, event: str, listener: Listener) -> "EventEmitter":
        """Remove the most recently added registration of ``listener``."""
        self._check(event)
        regs = self._listeners.get(event, [])
        for i in range(len(regs) - 1, -1, -1):
            if regs[i].listener == listener:
                del regs[i]
                break
        return self

    def listener_count(self, event: str) -> int:
        self._check(event)
        return len(self._listeners.get(event, []))

    def emit(self, event: str, *args: Any) -> bool:
        """Call every listener for ``event``; return whether any existed."""
        self._check(event)
        regs = self._listeners.get(event)
        if not regs:
            return False
        snapshot = list(regs)
        for reg in snapshot:
            if reg.once:
                # identity match: the same callable may also be registered with on()
                self._listeners[event] = [r for r in self._listeners[event] if r is not reg]
            reg.listener(*args)
        return True

    def _check(self, event: str) -> None:
        if self._allowed is not None and event not in self._allowed:
            raise ValueError(f"unknown event {event!r}; expected one of {sorted(self._allowed)}")


__all__ = ["EventEmitter", "Listener"]

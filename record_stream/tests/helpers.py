"""Shared helpers for controller tests.

``FakeTransport`` records ``destroy()`` calls; ``Recorder`` captures every
controller event in order so tests can assert on the exact sequence.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, List, Tuple

from record_stream.framing import StreamController

FAST_INTERVAL_MS = 1.0


class FakeTransport:
    """Transport stub: counts destroy calls."""

    def __init__(self) -> None:
        self.destroy_calls = 0

    @property
    def destroyed(self) -> bool:
        return self.destroy_calls > 0

    def destroy(self) -> None:
        self.destroy_calls += 1


@dataclass
class Recorder:
    """Collects ``(event, payload)`` tuples from a controller."""

    events: List[Tuple[str, Any]] = field(default_factory=list)

    def attach(self, controller: StreamController) -> "Recorder":
        controller.on("data", lambda rec: self.events.append(("data", rec)))
        controller.on("completed", lambda: self.events.append(("completed", None)))
        controller.on("cancelled", lambda: self.events.append(("cancelled", None)))
        controller.on("error", lambda err: self.events.append(("error", err)))
        return self

    @property
    def records(self) -> List[bytes]:
        return [payload for name, payload in self.events if name == "data"]

    def names(self) -> List[str]:
        return [name for name, _ in self.events]

    def terminal(self) -> List[str]:
        return [n for n in self.names() if n in ("completed", "cancelled")]


def make_controller(**overrides: Any) -> Tuple[StreamController, FakeTransport, Recorder]:
    """Create a controller on the running loop with a fast polling interval."""
    overrides.setdefault("loop_interval", FAST_INTERVAL_MS)
    transport = FakeTransport()
    controller = StreamController(transport, **overrides)
    recorder = Recorder().attach(controller)
    return controller, transport, recorder


async def settle(ticks: int = 5, interval_ms: float = FAST_INTERVAL_MS) -> None:
    """Sleep long enough for ``ticks`` scheduler periods to elapse."""
    await asyncio.sleep(ticks * interval_ms / 1000.0 + 0.005)


async def finish(controller: StreamController, timeout: float = 2.0) -> str:
    return await asyncio.wait_for(controller.wait(), timeout)

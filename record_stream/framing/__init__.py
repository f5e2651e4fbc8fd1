"""Delimiter framing package.

Exposes the accumulator, scheduler, controller and transport adapters under a
single namespace.
"""

from .accumulator import NOT_FOUND, ByteAccumulator
from .events import EventEmitter
from .metrics import StreamMetrics
from .options import StreamOptions, resolve_options
from .scheduler import DrainScheduler, SchedulerState
from .stream_controller import StreamController
from .transport import ControllerProtocol, ReaderTransport, Transport, frame_reader, pump_reader

__all__ = [
    "NOT_FOUND",
    "ByteAccumulator",
    "EventEmitter",
    "StreamMetrics",
    "StreamOptions",
    "resolve_options",
    "DrainScheduler",
    "SchedulerState",
    "StreamController",
    "ControllerProtocol",
    "ReaderTransport",
    "Transport",
    "frame_reader",
    "pump_reader",
]

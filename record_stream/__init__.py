"""record_stream package

Frames a chunk-delivered byte stream (for example the stdout of a remote
command) into delimiter-terminated records delivered as events.

Public API (re-exported):
    - Version: ``__version__``
    - Controller: :class:`StreamController`, :func:`frame_reader`
    - Building blocks: :class:`ByteAccumulator`, :class:`DrainScheduler`
    - Options: :class:`StreamOptions`
    - Cancellation: :class:`CancellationToken`
    - Exceptions: :class:`FramingError`, :class:`ErrorCode`
"""

from .base.cancellation import CancellationToken, CancelledError
from .base.errors import ErrorCode, FramingError
from .framing import (
    ByteAccumulator,
    ControllerProtocol,
    DrainScheduler,
    ReaderTransport,
    StreamController,
    StreamMetrics,
    StreamOptions,
    frame_reader,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "StreamController",
    "frame_reader",
    "ControllerProtocol",
    "ReaderTransport",
    "ByteAccumulator",
    "DrainScheduler",
    "StreamOptions",
    "StreamMetrics",
    "CancellationToken",
    "CancelledError",
    "ErrorCode",
    "FramingError",
]

"""Transport contract and asyncio adapters feeding a stream controller.

The controller only needs a handle it can ``destroy()``; chunks and the close
notification are pushed into it through ``feed`` / ``close``. Two adapters
cover the usual asyncio sources:

* :class:`ControllerProtocol` for ``loop.create_connection`` /
  ``connect_read_pipe`` style protocol factories;
* :class:`ReaderTransport` (and :func:`frame_reader`) for an
  ``asyncio.StreamReader`` such as a subprocess or SSH channel stdout.
"""
from __future__ import annotations

import asyncio
from typing import Any, Optional, Protocol, Union, runtime_checkable

from ..base.logging import get_logger
from ..config.defaults import DEFAULT_READ_CHUNK_SIZE
from .options import StreamOptions
from .stream_controller import StreamController

logger = get_logger("framing.transport")


@runtime_checkable
class Transport(Protocol):
    """Handle the controller may forcibly terminate."""

    def destroy(self) -> None: ...


class ControllerProtocol(asyncio.Protocol):
    """``asyncio.Protocol`` bridging a transport's callbacks into a controller."""

    def __init__(self, controller: StreamController) -> None:
        self.controller = controller
        self._transport: Optional[asyncio.BaseTransport] = None

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self._transport = transport
        self.controller.attach(self)

    def data_received(self, data: bytes) -> None:
        self.controller.feed(data)

    def eof_received(self) -> bool:
        """Let the transport close itself; ``connection_lost`` then closes the stream."""
        return False

    def connection_lost(self, exc: Optional[Exception]) -> None:
        self.controller.close(exc)

    def destroy(self) -> None:
        transport = self._transport
        if transport is not None and not transport.is_closing():
            transport.close()


async def pump_reader(
    controller: StreamController,
    reader: asyncio.StreamReader,
    *,
    chunk_size: int = DEFAULT_READ_CHUNK_SIZE,
) -> None:
    """Feed ``reader`` into ``controller`` until EOF, then signal close.

    Connection level read failures are handed to ``controller.close`` so the
    controller reports them and still drains what it already buffered.
    """
    error: Optional[BaseException] = None
    try:
        while not controller.done:
            chunk = await reader.read(chunk_size)
            if not chunk:
                break
            controller.feed(chunk)
    except (ConnectionError, OSError, asyncio.IncompleteReadError) as exc:
        logger.debug("reader failed: %r", exc)
        error = exc
    controller.close(error)


class ReaderTransport:
    """Transport handle around an ``asyncio.StreamReader`` pump task.

    ``destroy`` stops the pump and closes the optional writer (the channel
    the reader belongs to).
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: Optional[asyncio.StreamWriter] = None,
        *,
        chunk_size: int = DEFAULT_READ_CHUNK_SIZE,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self._reader = reader
        self._writer = writer
        self._chunk_size = chunk_size
        self._task: Optional[asyncio.Task] = None
        self.destroyed = False

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task

    def start(self, controller: StreamController) -> asyncio.Task:
        if self._task is not None:
            raise RuntimeError("reader transport already started")
        controller.attach(self)
        self._task = asyncio.get_running_loop().create_task(
            pump_reader(controller, self._reader, chunk_size=self._chunk_size)
        )
        return self._task

    def destroy(self) -> None:
        if self.destroyed:
            return
        self.destroyed = True
        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        if self._writer is not None and not self._writer.is_closing():
            self._writer.close()


def frame_reader(
    reader: asyncio.StreamReader,
    writer: Optional[asyncio.StreamWriter] = None,
    options: Union[StreamOptions, dict, None] = None,
    *,
    chunk_size: int = DEFAULT_READ_CHUNK_SIZE,
    **kwargs: Any,
) -> StreamController:
    """Build a controller over ``reader`` and start pumping it.

    ``kwargs`` are passed to :class:`StreamController` (``token``, ``label``
    and option overrides). Must be called with a running event loop.
    """
    transport = ReaderTransport(reader, writer, chunk_size=chunk_size)
    controller = StreamController(transport, options, **kwargs)
    transport.start(controller)
    return controller


__all__ = ["Transport", "ControllerProtocol", "ReaderTransport", "pump_reader", "frame_reader"]

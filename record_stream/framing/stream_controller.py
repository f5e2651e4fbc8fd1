"""Stream controller: turns a chunked byte stream into delimited records.

The controller owns one :class:`ByteAccumulator` and one
:class:`DrainScheduler` bound to a single transport session. Chunks are
appended as they arrive; every scheduler tick drains all complete records in
source order. Two triggers end a session and both funnel into ``_cleanup``:

* the transport closes (``close``): once no complete record remains buffered
  the controller emits ``completed``, unless an abort got there first;
* the caller aborts (``abort``): ``cancelled`` is emitted immediately and any
  buffered bytes are discarded.

Exactly one of ``completed`` / ``cancelled`` is emitted per session. All entry
points must be called from the event loop thread; use ``abort_threadsafe`` or
a :class:`CancellationToken` from elsewhere.
"""
from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import TYPE_CHECKING, Any, AsyncIterator, Optional, Union

from ..base.cancellation import CancellationToken
from ..base.constants import (
    CONTROLLER_EVENTS,
    EVENT_CANCELLED,
    EVENT_COMPLETED,
    EVENT_DATA,
    EVENT_ERROR,
    OUTCOME_CANCELLED,
    OUTCOME_COMPLETED,
)
from ..base.errors import ErrorCode, FramingError
from ..base.logging import LogContext, get_logger, log_event, normalized_log_event
from .accumulator import NOT_FOUND, ByteAccumulator
from .events import EventEmitter, Listener
from .metrics import StreamMetrics
from .options import StreamOptions, resolve_options
from .scheduler import DrainScheduler

if TYPE_CHECKING:
    from .transport import Transport

logger = get_logger("framing.controller")

_END = object()


class StreamController:
    """Delimiter framing over one transport session.

    Args:
        transport: Object with a ``destroy()`` method, called on cleanup. May be
            attached later with :meth:`attach`.
        options: ``StreamOptions`` or a mapping of option values; keyword
            ``overrides`` are applied on top.
        token: Optional session token. The controller polls a child of it on
            every tick, so cancelling the session aborts every stream derived
            from it while an abort of this stream leaves the session alone.
        loop: Event loop to run on; defaults to the running loop.
        label: Free-form name included in log events (e.g. the remote command).

    Raises:
        FramingError: ``ErrorCode.CONFIGURATION`` for invalid options. Raised
            before the transport is touched and before any event can fire.
    """

    def __init__(
        self,
        transport: Optional["Transport"] = None,
        options: Union[StreamOptions, dict, None] = None,
        *,
        token: Optional[CancellationToken] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        label: Optional[str] = None,
        **overrides: Any,
    ) -> None:
        self._options = resolve_options(options, **overrides)
        self._loop = loop or asyncio.get_running_loop()
        self._transport = transport
        self._token = token.child() if token is not None else CancellationToken()
        self._accumulator = ByteAccumulator(self._options.separator_bytes)
        self._events = EventEmitter(CONTROLLER_EVENTS)
        self._metrics = StreamMetrics()
        self._started = time.monotonic()
        self._done = False
        self._closed = False
        self._outcome: Optional[str] = None
        self._cancel_reason: Optional[str] = None
        self._trailing: Optional[bytes] = None
        self._close_task: Optional[asyncio.Task] = None
        self._finished: asyncio.Future = self._loop.create_future()
        self.stream_id = uuid.uuid4().hex[:12]
        self._ctx = LogContext(
            stream_id=self.stream_id,
            label=label,
            separator=repr(self._options.separator),
        )
        self._scheduler = DrainScheduler(
            self._options.interval_seconds,
            self._drain,
            loop=self._loop,
            autostart=True,
        )
        log_event(
            logger,
            "stream.start",
            self._ctx,
            level=logging.DEBUG,
            loop_interval_ms=self._options.loop_interval,
            max_buffered_bytes=self._options.max_buffered_bytes,
        )

    # State ---------------------------------------------------------------
    @property
    def done(self) -> bool:
        """True once terminal cleanup has run."""
        return self._done

    @property
    def closed(self) -> bool:
        """Whether the transport has signalled close."""
        return self._closed

    @property
    def outcome(self) -> Optional[str]:
        """``"completed"``, ``"cancelled"`` or ``None`` while active."""
        return self._outcome

    @property
    def cancel_reason(self) -> Optional[str]:
        return self._cancel_reason

    @property
    def trailing(self) -> Optional[bytes]:
        """Bytes left after the last separator and not delivered at close."""
        return self._trailing

    @property
    def options(self) -> StreamOptions:
        return self._options

    @property
    def metrics(self) -> StreamMetrics:
        return self._metrics

    @property
    def unread_count(self) -> int:
        return self._accumulator.unread_count()

    @property
    def token(self) -> CancellationToken:
        """Per-stream token; cancelled when the stream is aborted."""
        return self._token

    @property
    def transport(self) -> Optional["Transport"]:
        return self._transport

    # Events --------------------------------------------------------------
    def on(self, event: str, listener: Listener) -> "StreamController":
        self._events.on(event, listener)
        return self

    def once(self, event: str, listener: Listener) -> "StreamController":
        self._events.once(event, listener)
        return self

    def off(self, event: str, listener: Listener) -> "StreamController":
        self._events.off(event, listener)
        return self

    # Transport side ------------------------------------------------------
    def attach(self, transport: "Transport") -> None:
        """Bind the transport handle; destroyed at once if already done."""
        self._transport = transport
        if self._done:
            transport.destroy()

    def feed(self, chunk: Union[bytes, bytearray, memoryview, str]) -> None:
        """Accept one chunk from the transport. Ignored once done.

        Crossing ``max_buffered_bytes`` drains complete records at once; only a
        partial record still over the ceiling overflows.
        """
        if self._done:
            return
        if isinstance(chunk, str):
            chunk = self._options.encode_text(chunk)
        self._metrics.chunks_received += 1
        self._metrics.bytes_received += len(chunk)
        self._accumulator.append(chunk)
        ceiling = self._options.max_buffered_bytes
        if ceiling is None or self._accumulator.unread_count() <= ceiling:
            return
        self._drain()
        if not self._done and self._accumulator.unread_count() > ceiling:
            self._overflow(ceiling)

    def close(self, exc: Optional[BaseException] = None) -> None:
        """Transport close notification; only the first call has effect.

        A non-None ``exc`` is reported through an ``error`` event first; the
        buffered records are still drained.
        """
        if self._closed:
            return
        self._closed = True
        if exc is not None and not self._done:
            error = FramingError(
                code=ErrorCode.TRANSPORT,
                message=str(exc) or type(exc).__name__,
                raw=exc,
            )
            normalized_log_event(
                logger,
                "stream.transport_error",
                self._ctx,
                phase="close",
                error_code=error.code.value,
                level=logging.WARNING,
                message=error.message,
            )
            self._events.emit(EVENT_ERROR, error)
        if self._done:
            return
        self._close_task = self._loop.create_task(self._finish_after_close())

    # Caller side ---------------------------------------------------------
    def abort(self, reason: Optional[str] = None) -> None:
        """Cancel the stream. Idempotent; a no-op once the stream is done."""
        if self._done or self._outcome is not None or self._scheduler.destroyed:
            self._cleanup()
            return
        self._outcome = OUTCOME_CANCELLED
        self._cancel_reason = reason
        self._token.cancel(reason)
        normalized_log_event(
            logger,
            "stream.cancelled",
            self._ctx,
            phase="abort",
            outcome=OUTCOME_CANCELLED,
            reason=reason,
            discarded_bytes=self._accumulator.unread_count(),
        )
        try:
            self._events.emit(EVENT_CANCELLED)
        finally:
            self._cleanup()

    def abort_threadsafe(self, reason: Optional[str] = None) -> None:
        """Schedule :meth:`abort` on the controller's loop from another thread."""
        self._loop.call_soon_threadsafe(self.abort, reason)

    async def wait(self, *, raise_on_cancel: bool = False) -> str:
        """Wait for the terminal event and return the outcome.

        With ``raise_on_cancel`` a cancelled stream raises
        :class:`CancelledError` carrying the abort reason instead.
        """
        outcome = await asyncio.shield(self._finished)
        if raise_on_cancel and outcome == OUTCOME_CANCELLED:
            self._token.raise_if_cancelled()
        return outcome

    def records(self) -> AsyncIterator[bytes]:
        """Async iterator over records emitted from now until the terminal event."""
        queue: asyncio.Queue = asyncio.Queue()

        def _push(record: bytes) -> None:
            queue.put_nowait(record)

        def _end() -> None:
            queue.put_nowait(_END)

        self.on(EVENT_DATA, _push)
        self.once(EVENT_COMPLETED, _end)
        self.once(EVENT_CANCELLED, _end)
        if self._done:
            _end()

        async def _iterate() -> AsyncIterator[bytes]:
            try:
                while True:
                    item = await queue.get()
                    if item is _END:
                        return
                    yield item
            finally:
                self._events.off(EVENT_DATA, _push)
                self._events.off(EVENT_COMPLETED, _end)
                self._events.off(EVENT_CANCELLED, _end)

        return _iterate()

    async def __aenter__(self) -> "StreamController":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if not self._done:
            self.abort("context exit" if exc is None else f"context exit: {exc_type.__name__}")

    # Internals -----------------------------------------------------------
    def _drain(self) -> None:
        self._metrics.drain_passes += 1
        if self._token.cancelled:
            self.abort(self._token.reason)
            return
        sep_len = len(self._accumulator.separator)
        offset = self._accumulator.find_delimiter()
        while offset != NOT_FOUND and not self._scheduler.destroyed:
            record = self._accumulator.take_record(offset)
            self._accumulator.skip_delimiter(sep_len)
            self._emit_record(record)
            offset = self._accumulator.find_delimiter()

    def _emit_record(self, record: bytes) -> None:
        if self._metrics.time_to_first_record_ms is None:
            self._metrics.time_to_first_record_ms = self._elapsed_ms()
        self._metrics.records_emitted += 1
        self._metrics.bytes_emitted += len(record)
        self._events.emit(EVENT_DATA, record)

    async def _finish_after_close(self) -> None:
        interval = self._options.interval_seconds
        while not self._scheduler.destroyed:
            if self._token.cancelled:
                self.abort(self._token.reason)
                return
            if self._accumulator.find_delimiter() == NOT_FOUND:
                break
            await asyncio.sleep(interval)
        if self._done or self._scheduler.destroyed or self._outcome is not None:
            return
        self._outcome = OUTCOME_COMPLETED
        try:
            self._settle_trailing()
            normalized_log_event(
                logger,
                "stream.completed",
                self._ctx,
                phase="close",
                outcome=OUTCOME_COMPLETED,
                records=self._metrics.records_emitted,
                bytes_received=self._metrics.bytes_received,
            )
            self._events.emit(EVENT_COMPLETED)
        finally:
            self._cleanup()

    def _settle_trailing(self) -> None:
        if self._accumulator.unread_count() == 0:
            return
        tail = self._accumulator.take_all()
        self._metrics.trailing_bytes = len(tail)
        if self._options.flush_trailing:
            self._emit_record(tail)
            return
        self._trailing = tail
        log_event(logger, "stream.trailing", self._ctx, level=logging.WARNING, trailing_bytes=len(tail))

    def _overflow(self, ceiling: int) -> None:
        error = FramingError(
            code=ErrorCode.OVERFLOW,
            message=(
                f"{self._accumulator.unread_count()} unread bytes exceed the "
                f"{ceiling} byte ceiling without a separator"
            ),
        )
        normalized_log_event(
            logger,
            "stream.overflow",
            self._ctx,
            phase="feed",
            error_code=error.code.value,
            level=logging.ERROR,
            unread_bytes=self._accumulator.unread_count(),
            ceiling=ceiling,
        )
        try:
            self._events.emit(EVENT_ERROR, error)
        finally:
            self.abort("overflow")

    def _cleanup(self) -> None:
        if self._done:
            return
        self._done = True
        self._scheduler.destroy()
        self._accumulator.clear()
        self._token.detach()
        self._metrics.total_duration_ms = self._elapsed_ms()
        self._metrics.outcome = self._outcome
        if not self._finished.done():
            self._finished.set_result(self._outcome)
        task = self._close_task
        if task is not None and not task.done() and task is not asyncio.current_task(self._loop):
            task.cancel()
        if self._transport is not None:
            self._transport.destroy()

    def _elapsed_ms(self) -> float:
        return (time.monotonic() - self._started) * 1000.0

    def __repr__(self) -> str:  # pragma: no cover - introspection aid
        return (
            f"StreamController(id={self.stream_id}, done={self._done}, "
            f"outcome={self._outcome}, unread={self._accumulator.unread_count()})"
        )


__all__ = ["StreamController"]

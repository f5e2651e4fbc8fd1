"""Lifecycle and framing tests for ``StreamController``.

Covers:
- Record framing in source order with the separator excluded.
- Chunk-boundary independence (including a split separator).
- Completion after transport close, and cleanup of the transport handle.
- Abort idempotency and abort winning a race against completion.
- Empty-separator rejection before any event can fire.
- Trailing partial records at close (kept or flushed).
- Overflow ceiling, transport errors, and cancellation tokens.
"""
from __future__ import annotations

import asyncio
import sys

import pytest

from record_stream.base.cancellation import CancellationToken, CancelledError
from record_stream.base.errors import ErrorCode, FramingError
from record_stream.framing import StreamController, StreamOptions

from .helpers import FakeTransport, Recorder, finish, make_controller, settle

RECORDS = [b"alpha", b"", b"gamma delta", b"\xce\xbb", b"last"]


def _joined(sep: bytes) -> bytes:
    return b"".join(r + sep for r in RECORDS)


def test_records_emitted_in_order_without_separator():
    print("TEST: N separated records yield N data events in order, then completed")

    async def scenario():
        ctrl, transport, rec = make_controller()
        ctrl.feed(_joined(b"\r\n"))
        ctrl.close()
        outcome = await finish(ctrl)
        return ctrl, transport, rec, outcome

    ctrl, transport, rec, outcome = asyncio.run(scenario())
    if rec.records != RECORDS:
        raise AssertionError(f"unexpected records: {rec.records!r}")
    if rec.names()[-1] != "completed" or rec.terminal() != ["completed"]:
        raise AssertionError(f"expected a single trailing completed event, got {rec.names()}")
    if outcome != "completed" or not ctrl.done:
        raise AssertionError("controller should be done with outcome completed")
    if transport.destroy_calls != 1:
        raise AssertionError("transport must be destroyed exactly once on cleanup")


@pytest.mark.parametrize("size", [1, 2, 3, 7])
def test_chunking_does_not_change_output(size):
    print(f"TEST: feeding in {size}-byte chunks matches unsplit output")
    payload = _joined(b"\r\n")

    async def scenario():
        ctrl, _, rec = make_controller()
        for i in range(0, len(payload), size):
            ctrl.feed(payload[i:i + size])
            if i % 4 == 0:
                await asyncio.sleep(0)
        ctrl.close()
        await finish(ctrl)
        return rec

    rec = asyncio.run(scenario())
    assert rec.records == RECORDS  # nosec B101 - pytest assert in tests


def test_separator_split_across_ticks():
    print("TEST: a separator straddling two chunks delivered across ticks is still matched")

    async def scenario():
        ctrl, _, rec = make_controller()
        ctrl.feed(b"first\r")
        await settle()
        seen_before = list(rec.records)
        ctrl.feed(b"\nsecond\r\n")
        await settle()
        ctrl.close()
        await finish(ctrl)
        return seen_before, rec

    seen_before, rec = asyncio.run(scenario())
    assert seen_before == []  # nosec B101
    assert rec.records == [b"first", b"second"]  # nosec B101


def test_custom_text_separator_and_encoding():
    async def scenario():
        ctrl, _, rec = make_controller(separator="§", encoding="latin-1")
        ctrl.feed("a§b§".encode("latin-1"))
        ctrl.close()
        await finish(ctrl)
        return rec

    rec = asyncio.run(scenario())
    assert rec.records == [b"a", b"b"]  # nosec B101


def test_str_chunks_are_encoded():
    async def scenario():
        ctrl, _, rec = make_controller(separator="\n")
        ctrl.feed("héllo\nwörld\n")
        ctrl.close()
        await finish(ctrl)
        return rec

    rec = asyncio.run(scenario())
    assert rec.records == ["héllo".encode(), "wörld".encode()]  # nosec B101


@pytest.mark.parametrize("encoding", ["utf-16", "utf-32"])
def test_bom_emitting_encoding_frames_native_order(encoding):
    native = f"{encoding}-{'le' if sys.byteorder == 'little' else 'be'}"

    async def scenario():
        ctrl, _, rec = make_controller(encoding=encoding)
        ctrl.feed("a\r\nb\r\n".encode(native))
        ctrl.feed("c\r\n")
        ctrl.close()
        await finish(ctrl)
        return rec

    rec = asyncio.run(scenario())
    assert rec.records == [s.encode(native) for s in ("a", "b", "c")]  # nosec B101


def test_empty_separator_rejected_at_construction():
    print("TEST: zero-length separator fails before any transport interaction")

    async def scenario():
        transport = FakeTransport()
        with pytest.raises(FramingError) as excinfo:
            StreamController(transport, separator="")
        return transport, excinfo.value

    transport, err = asyncio.run(scenario())
    assert err.code is ErrorCode.CONFIGURATION  # nosec B101
    assert transport.destroy_calls == 0  # nosec B101


def test_abort_emits_cancelled_once_and_is_idempotent():
    async def scenario():
        ctrl, transport, rec = make_controller()
        ctrl.feed(b"buffered but never delimited")
        ctrl.abort("user")
        ctrl.abort("again")
        ctrl.abort()
        await settle()
        return ctrl, transport, rec

    ctrl, transport, rec = asyncio.run(scenario())
    assert rec.names() == ["cancelled"]  # nosec B101
    assert ctrl.done and ctrl.outcome == "cancelled"  # nosec B101
    assert ctrl.cancel_reason == "user"  # nosec B101
    assert ctrl.unread_count == 0  # nosec B101
    assert transport.destroy_calls == 1  # nosec B101


def test_abort_before_first_byte():
    async def scenario():
        ctrl, transport, rec = make_controller()
        ctrl.abort()
        ctrl.feed(b"late\r\n")
        await settle()
        return ctrl, rec

    ctrl, rec = asyncio.run(scenario())
    assert rec.names() == ["cancelled"]  # nosec B101
    assert ctrl.metrics.bytes_received == 0  # nosec B101


def test_abort_after_completion_is_noop():
    async def scenario():
        ctrl, transport, rec = make_controller()
        ctrl.feed(b"x\r\n")
        ctrl.close()
        await finish(ctrl)
        ctrl.abort()
        ctrl.abort()
        return ctrl, transport, rec

    ctrl, transport, rec = asyncio.run(scenario())
    assert rec.terminal() == ["completed"]  # nosec B101
    assert ctrl.outcome == "completed"  # nosec B101
    assert transport.destroy_calls == 1  # nosec B101


def test_abort_after_close_suppresses_completion():
    print("TEST: abort between transport close and declared completion wins the race")

    async def scenario():
        # long interval: the close handler is still waiting for the first tick
        ctrl, _, rec = make_controller(loop_interval=200)
        ctrl.feed(b"pending\r\nrecord\r\n")
        ctrl.close()
        await asyncio.sleep(0)
        ctrl.abort()
        await asyncio.sleep(0.3)
        return ctrl, rec

    ctrl, rec = asyncio.run(scenario())
    assert "completed" not in rec.names()  # nosec B101
    assert rec.terminal() == ["cancelled"]  # nosec B101
    assert rec.records == []  # nosec B101
    assert ctrl.outcome == "cancelled"  # nosec B101


def test_abort_inside_data_listener_stops_draining():
    async def scenario():
        ctrl, _, rec = make_controller()
        ctrl.on("data", lambda _: ctrl.abort("enough"))
        ctrl.feed(b"a\r\nb\r\nc\r\n")
        await settle()
        return ctrl, rec

    ctrl, rec = asyncio.run(scenario())
    assert rec.records == [b"a"]  # nosec B101
    assert rec.terminal() == ["cancelled"]  # nosec B101


def test_close_with_trailing_partial_completes_and_keeps_tail():
    print("TEST: trailing bytes without a separator do not stall completion")

    async def scenario():
        ctrl, transport, rec = make_controller()
        ctrl.feed(b"whole\r\npartial")
        ctrl.close()
        await finish(ctrl)
        return ctrl, transport, rec

    ctrl, transport, rec = asyncio.run(scenario())
    assert rec.records == [b"whole"]  # nosec B101
    assert rec.terminal() == ["completed"]  # nosec B101
    assert ctrl.trailing == b"partial"  # nosec B101
    assert ctrl.metrics.trailing_bytes == len(b"partial")  # nosec B101
    assert transport.destroyed  # nosec B101


def test_close_with_only_partial_completes_within_bounded_ticks():
    async def scenario():
        ctrl, _, rec = make_controller(loop_interval=5)
        ctrl.feed(b"no separator here")
        ctrl.close()
        await asyncio.wait_for(ctrl.wait(), 0.5)
        return ctrl, rec

    ctrl, rec = asyncio.run(scenario())
    assert rec.names() == ["completed"]  # nosec B101
    assert ctrl.trailing == b"no separator here"  # nosec B101


def test_flush_trailing_emits_final_record():
    async def scenario():
        ctrl, _, rec = make_controller(flush_trailing=True)
        ctrl.feed(b"one\r\ntwo")
        ctrl.close()
        await finish(ctrl)
        return ctrl, rec

    ctrl, rec = asyncio.run(scenario())
    assert rec.records == [b"one", b"two"]  # nosec B101
    assert rec.names()[-1] == "completed"  # nosec B101
    assert ctrl.trailing is None  # nosec B101


def test_completion_waits_for_buffered_records():
    async def scenario():
        ctrl, _, rec = make_controller(loop_interval=20)
        ctrl.feed(b"r1\r\nr2\r\n")
        ctrl.close()
        await asyncio.sleep(0)
        premature = "completed" in rec.names()
        await finish(ctrl)
        return premature, rec

    premature, rec = asyncio.run(scenario())
    assert premature is False  # nosec B101
    assert rec.names() == ["data", "data", "completed"]  # nosec B101


def test_second_close_is_ignored():
    async def scenario():
        ctrl, transport, rec = make_controller()
        ctrl.close()
        ctrl.close()
        await finish(ctrl)
        ctrl.close(ConnectionResetError("late"))
        return transport, rec

    transport, rec = asyncio.run(scenario())
    assert rec.names() == ["completed"]  # nosec B101
    assert transport.destroy_calls == 1  # nosec B101


def test_transport_error_reports_then_drains():
    async def scenario():
        ctrl, _, rec = make_controller()
        ctrl.feed(b"kept\r\n")
        ctrl.close(ConnectionResetError("peer reset"))
        await finish(ctrl)
        return rec

    rec = asyncio.run(scenario())
    assert rec.names() == ["error", "data", "completed"]  # nosec B101
    err = rec.events[0][1]
    assert isinstance(err, FramingError) and err.code is ErrorCode.TRANSPORT  # nosec B101
    assert isinstance(err.raw, ConnectionResetError)  # nosec B101


def test_overflow_emits_error_then_cancelled():
    async def scenario():
        ctrl, transport, rec = make_controller(max_buffered_bytes=8)
        ctrl.feed(b"12345")
        ctrl.feed(b"6789")
        ctrl.feed(b"ignored\r\n")
        await settle()
        return ctrl, transport, rec

    ctrl, transport, rec = asyncio.run(scenario())
    assert rec.names() == ["error", "cancelled"]  # nosec B101
    assert rec.events[0][1].code is ErrorCode.OVERFLOW  # nosec B101
    assert ctrl.cancel_reason == "overflow"  # nosec B101
    assert transport.destroy_calls == 1  # nosec B101


def test_burst_of_complete_records_over_ceiling_is_drained():
    print("TEST: complete records larger than the ceiling in one interval are all delivered")
    lines = [b"line%02d" % i for i in range(20)]

    async def scenario(single_chunk):
        ctrl, _, rec = make_controller(max_buffered_bytes=64)
        if single_chunk:
            ctrl.feed(b"".join(line + b"\r\n" for line in lines))
        else:
            for line in lines:
                ctrl.feed(line + b"\r\n")
        ctrl.close()
        outcome = await finish(ctrl)
        return rec, outcome

    for single_chunk in (False, True):
        rec, outcome = asyncio.run(scenario(single_chunk))
        assert rec.records == lines  # nosec B101 - pytest assert in tests
        assert rec.names()[-1] == "completed" and "error" not in rec.names()  # nosec B101
        assert outcome == "completed"  # nosec B101


def test_partial_record_over_ceiling_after_drain_overflows():
    async def scenario():
        ctrl, _, rec = make_controller(max_buffered_bytes=8)
        ctrl.feed(b"ok\r\n" + b"y" * 12)
        await settle()
        return rec

    rec = asyncio.run(scenario())
    assert rec.names() == ["data", "error", "cancelled"]  # nosec B101
    assert rec.records == [b"ok"]  # nosec B101
    assert rec.events[1][1].code is ErrorCode.OVERFLOW  # nosec B101


def test_unbounded_buffer_when_ceiling_disabled():
    async def scenario():
        ctrl, _, rec = make_controller(options={"max_buffered_bytes": None})
        ctrl.feed(b"x" * (17 * 1024 * 1024))
        unread = ctrl.unread_count
        ctrl.abort()
        return unread, rec

    unread, rec = asyncio.run(scenario())
    assert unread == 17 * 1024 * 1024  # nosec B101
    assert rec.names() == ["cancelled"]  # nosec B101


def test_cancellation_token_polled_on_tick():
    async def scenario():
        token = CancellationToken()
        ctrl, _, rec = make_controller(token=token)
        ctrl.feed(b"a\r\n")
        await settle()
        token.cancel("shutdown")
        await finish(ctrl)
        return ctrl, rec

    ctrl, rec = asyncio.run(scenario())
    assert rec.names() == ["data", "cancelled"]  # nosec B101
    assert ctrl.cancel_reason == "shutdown"  # nosec B101


def test_session_token_cancels_every_derived_stream():
    async def scenario():
        session = CancellationToken()
        first, _, rec_first = make_controller(token=session)
        second, _, rec_second = make_controller(token=session)
        session.cancel("session closed")
        await finish(first)
        await finish(second)
        return first, second, rec_first, rec_second

    first, second, rec_first, rec_second = asyncio.run(scenario())
    assert rec_first.terminal() == rec_second.terminal() == ["cancelled"]  # nosec B101
    assert first.cancel_reason == second.cancel_reason == "session closed"  # nosec B101


def test_stream_abort_does_not_reach_session_or_siblings():
    async def scenario():
        session = CancellationToken()
        first, _, _ = make_controller(token=session)
        second, _, rec_second = make_controller(token=session)
        first.abort("one stream")
        await settle()
        second.close()
        await finish(second)
        return session, first, rec_second

    session, first, rec_second = asyncio.run(scenario())
    assert first.token.cancelled and first.token.reason == "one stream"  # nosec B101
    assert not session.cancelled  # nosec B101
    assert rec_second.terminal() == ["completed"]  # nosec B101


def test_finished_stream_is_detached_from_session():
    async def scenario():
        session = CancellationToken()
        ctrl, _, _ = make_controller(token=session)
        ctrl.close()
        await finish(ctrl)
        session.cancel("late")
        return ctrl

    ctrl = asyncio.run(scenario())
    assert ctrl.outcome == "completed" and not ctrl.token.cancelled  # nosec B101


def test_wait_raises_cancelled_error_on_request():
    async def scenario():
        ctrl, _, _ = make_controller()
        ctrl.abort("stop now")
        with pytest.raises(CancelledError, match="stop now"):
            await ctrl.wait(raise_on_cancel=True)
        done, _, _ = make_controller()
        done.close()
        return await done.wait(raise_on_cancel=True)

    assert asyncio.run(scenario()) == "completed"  # nosec B101


def test_abort_threadsafe_from_worker_thread():
    async def scenario():
        ctrl, _, rec = make_controller()
        await asyncio.to_thread(ctrl.abort_threadsafe, "worker")
        await finish(ctrl)
        return ctrl, rec

    ctrl, rec = asyncio.run(scenario())
    assert rec.names() == ["cancelled"]  # nosec B101
    assert ctrl.cancel_reason == "worker"  # nosec B101


def test_records_iterator_ends_at_terminal_event():
    async def scenario():
        ctrl, _, _ = make_controller(separator=b"\n")
        records = ctrl.records()
        ctrl.feed(b"1\n2\n3\n")
        ctrl.close()
        return [r async for r in records]

    assert asyncio.run(scenario()) == [b"1", b"2", b"3"]  # nosec B101


def test_once_and_off_listeners():
    async def scenario():
        ctrl, _, _ = make_controller()
        once_seen, on_seen = [], []
        ctrl.once("data", once_seen.append)
        listener = on_seen.append
        ctrl.on("data", listener)
        ctrl.feed(b"a\r\n")
        await settle()
        ctrl.off("data", listener)
        ctrl.feed(b"b\r\n")
        await settle()
        ctrl.abort()
        return once_seen, on_seen

    once_seen, on_seen = asyncio.run(scenario())
    assert once_seen == [b"a"]  # nosec B101
    assert on_seen == [b"a"]  # nosec B101


def test_unknown_event_name_rejected():
    async def scenario():
        ctrl, _, _ = make_controller()
        try:
            with pytest.raises(ValueError):
                ctrl.on("stream_complete", lambda: None)
        finally:
            ctrl.abort()

    asyncio.run(scenario())


def test_metrics_track_counts():
    async def scenario():
        ctrl, _, _ = make_controller()
        ctrl.feed(b"ab\r\n")
        ctrl.feed(b"cde\r\n")
        ctrl.close()
        await finish(ctrl)
        return ctrl.metrics

    metrics = asyncio.run(scenario())
    assert metrics.chunks_received == 2  # nosec B101
    assert metrics.bytes_received == 9  # nosec B101
    assert metrics.records_emitted == 2  # nosec B101
    assert metrics.bytes_emitted == 5  # nosec B101
    assert metrics.drain_passes >= 1  # nosec B101
    assert metrics.outcome == "completed"  # nosec B101
    assert metrics.time_to_first_record_ms is not None  # nosec B101
    assert metrics.total_duration_ms is not None  # nosec B101


def test_async_context_manager_aborts_on_exit():
    async def scenario():
        transport = FakeTransport()
        async with StreamController(transport, StreamOptions(loop_interval=1)) as ctrl:
            rec = Recorder().attach(ctrl)
            ctrl.feed(b"x")
        return ctrl, rec, transport

    ctrl, rec, transport = asyncio.run(scenario())
    assert rec.names() == ["cancelled"]  # nosec B101
    assert ctrl.done and transport.destroyed  # nosec B101


def test_attach_after_done_destroys_transport():
    async def scenario():
        ctrl = StreamController(loop_interval=1)
        ctrl.abort()
        late = FakeTransport()
        ctrl.attach(late)
        return late

    late = asyncio.run(scenario())
    assert late.destroy_calls == 1  # nosec B101

from __future__ import annotations

import pytest

from chyavan.buffer import EventBuffer
from chyavan.config import TrackerConfig
from chyavan.delivery import DeliveryEngine, FlushOutcome
from chyavan.ports import ManualClock
from chyavan.transport import DeliveryError


class _RecordingSender:
    def __init__(self, fail_times: int = 0) -> None:
        self.batches: list[list[int]] = []
        self.fail_times = fail_times

    def __call__(self, events) -> None:
        self.batches.append([e.timestamp for e in events])
        if self.fail_times > 0:
            self.fail_times -= 1
            raise DeliveryError("HTTP 503: Service Unavailable", status=503)


def _engine(sender, *, capacity: int = 3, interval_ms: int = 1000, **options):
    clock = ManualClock()
    buffer = EventBuffer(capacity)
    config = TrackerConfig(buffer_capacity=capacity, flush_interval_ms=interval_ms, **options)
    engine = DeliveryEngine(buffer, clock, config=lambda: config, sender=sender)
    return engine, buffer, clock


def test_flush_on_empty_buffer_is_noop() -> None:
    hook_calls: list[list] = []
    sender = _RecordingSender()
    engine, _buffer, _clock = _engine(sender, on_flush=hook_calls.append)

    result = engine.flush()

    assert result.outcome == FlushOutcome.EMPTY
    assert sender.batches == []
    assert hook_calls == []


def test_successful_flush_commits_batch(make_event) -> None:
    hook_calls: list[list] = []
    sender = _RecordingSender()
    engine, buffer, _clock = _engine(sender, on_flush=hook_calls.append)
    for n in range(3):
        buffer.append(make_event(n))

    result = engine.flush()

    assert result.outcome == FlushOutcome.COMMITTED
    assert result.count == 3
    assert sender.batches == [[0, 1, 2]]
    assert [[e.timestamp for e in batch] for batch in hook_calls] == [[0, 1, 2]]
    assert len(buffer) == 0


def test_failed_flush_requeues_ahead_of_newcomers(make_event) -> None:
    buffer_ref: list[EventBuffer] = []

    def sender(events) -> None:
        buffer_ref[0].append(make_event(99))
        raise ConnectionError("network down")

    engine, buffer, _clock = _engine(sender, capacity=10)
    buffer_ref.append(buffer)
    for n in range(3):
        buffer.append(make_event(n))

    result = engine.flush()

    assert result.outcome == FlushOutcome.REQUEUED
    assert result.error == "network down"
    assert [e.timestamp for e in buffer.snapshot()] == [0, 1, 2, 99]


def test_hook_failure_is_treated_as_delivery_failure(make_event) -> None:
    sender = _RecordingSender()

    def broken_hook(events) -> None:
        raise RuntimeError("hook exploded")

    engine, buffer, _clock = _engine(sender, on_flush=broken_hook)
    buffer.append(make_event(1))

    result = engine.flush()

    assert result.outcome == FlushOutcome.REQUEUED
    assert sender.batches == []
    assert [e.timestamp for e in buffer.snapshot()] == [1]


def test_overflow_requests_are_coalesced_into_one_flush(make_event) -> None:
    sender = _RecordingSender()
    engine, buffer, clock = _engine(sender, capacity=3)

    for n in range(4):
        if buffer.append(make_event(n)):
            engine.request_flush()

    assert sender.batches == []
    clock.advance(0)

    assert sender.batches == [[0, 1, 2, 3]]
    clock.advance(0)
    assert len(sender.batches) == 1


def test_periodic_timer_flushes_until_stopped(make_event) -> None:
    sender = _RecordingSender()
    engine, buffer, clock = _engine(sender, capacity=50, interval_ms=1000)
    engine.start()
    assert engine.running is True

    buffer.append(make_event(1))
    clock.advance(999)
    assert sender.batches == []
    clock.advance(1)
    assert sender.batches == [[1]]

    engine.stop()
    buffer.append(make_event(2))
    clock.advance(5000)
    assert sender.batches == [[1]]
    assert engine.running is False


def test_failed_batch_is_retried_on_every_tick(make_event) -> None:
    sender = _RecordingSender(fail_times=3)
    engine, buffer, clock = _engine(sender, capacity=50, interval_ms=1000)
    engine.start()
    buffer.append(make_event(7))

    clock.advance(3000)
    assert sender.batches == [[7], [7], [7]]
    assert len(buffer) == 1

    clock.advance(1000)
    assert sender.batches[-1] == [7]
    assert len(buffer) == 0
    assert engine.last_result is not None
    assert engine.last_result.outcome == FlushOutcome.COMMITTED


def test_in_flight_send_outcome_applies_after_stop(make_event) -> None:
    engine_ref: list[DeliveryEngine] = []

    def sender(events) -> None:
        engine_ref[0].stop()
        raise TimeoutError("slow network")

    engine, buffer, _clock = _engine(sender)
    engine_ref.append(engine)
    engine.start()
    buffer.append(make_event(5))

    result = engine.flush()

    assert result.outcome == FlushOutcome.REQUEUED
    assert engine.running is False
    assert [e.timestamp for e in buffer.snapshot()] == [5]


@pytest.mark.parametrize("debug", [True, False])
def test_flush_never_raises(make_event, debug: bool) -> None:
    def sender(events) -> None:
        raise ValueError("bad")

    engine, buffer, _clock = _engine(sender, debug=debug)
    buffer.append(make_event(1))

    assert engine.flush().ok is False


def test_batch_failing_after_close_is_dropped(make_event) -> None:
    engine_ref: list[DeliveryEngine] = []

    def sender(events) -> None:
        engine_ref[0].close()
        raise TimeoutError("slow network")

    engine, buffer, _clock = _engine(sender)
    engine_ref.append(engine)
    engine.start()
    buffer.append(make_event(5))

    result = engine.flush()

    assert result.outcome == FlushOutcome.DROPPED
    assert result.ok is False
    assert engine.running is False
    assert len(buffer) == 0

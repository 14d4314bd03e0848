from __future__ import annotations

import pytest

from chyavan.buffer import EventBuffer


def test_append_reports_threshold_crossing(make_event) -> None:
    buffer = EventBuffer(3)

    flags = [buffer.append(make_event(n)) for n in range(4)]

    assert flags == [False, False, True, True]
    assert len(buffer) == 4


def test_drain_all_empties_buffer(make_event) -> None:
    buffer = EventBuffer(10)
    for n in range(3):
        buffer.append(make_event(n))

    drained = buffer.drain_all()

    assert [e.timestamp for e in drained] == [0, 1, 2]
    assert len(buffer) == 0
    assert buffer.drain_all() == []


def test_requeue_front_keeps_older_events_first(make_event) -> None:
    buffer = EventBuffer(10)
    for n in range(3):
        buffer.append(make_event(n))
    batch = buffer.drain_all()
    buffer.append(make_event(99))

    buffer.requeue_front(batch)

    assert [e.timestamp for e in buffer.snapshot()] == [0, 1, 2, 99]


def test_requeue_may_exceed_capacity(make_event) -> None:
    buffer = EventBuffer(2)
    batch = [make_event(n) for n in range(2)]
    buffer.append(make_event(10))
    buffer.append(make_event(11))

    buffer.requeue_front(batch)

    assert len(buffer) == 4


def test_capacity_must_be_positive() -> None:
    with pytest.raises(ValueError, match="capacity"):
        EventBuffer(0)
    buffer = EventBuffer(1)
    with pytest.raises(ValueError, match="capacity"):
        buffer.capacity = -1
    buffer.capacity = 5
    assert buffer.capacity == 5


def test_clear_drops_everything(make_event) -> None:
    buffer = EventBuffer(5)
    buffer.append(make_event(1))

    buffer.clear()

    assert buffer.snapshot() == []

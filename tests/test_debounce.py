from __future__ import annotations

import threading
import time

from chyavan.debounce import Debouncer
from chyavan.ports import ManualClock, ThreadingClock


def test_burst_collapses_to_last_payload_after_quiet_period() -> None:
    clock = ManualClock()
    calls: list[tuple[int, str]] = []
    debounced = Debouncer(lambda value: calls.append((clock.now_ms(), value)), 400, clock)

    debounced("a")
    clock.advance(100)
    debounced("b")
    clock.advance(50)
    debounced("c")
    clock.advance(50)
    debounced("d")

    clock.advance(399)
    assert calls == []
    clock.advance(1)
    assert calls == [(600, "d")]
    clock.advance(5000)
    assert calls == [(600, "d")]


def test_separate_bursts_each_emit_once() -> None:
    clock = ManualClock()
    calls: list[str] = []
    debounced = Debouncer(calls.append, 200, clock)

    debounced("first")
    clock.advance(200)
    debounced("second")
    clock.advance(200)

    assert calls == ["first", "second"]


def test_cancel_drops_pending_call() -> None:
    clock = ManualClock()
    calls: list[str] = []
    debounced = Debouncer(calls.append, 400, clock)

    debounced("x")
    assert debounced.pending is True
    debounced.cancel()
    clock.advance(1000)

    assert calls == []
    assert debounced.pending is False


def test_threading_clock_debounce_emits_last_value() -> None:
    calls: list[int] = []
    done = threading.Event()

    def record(value: int) -> None:
        calls.append(value)
        done.set()

    debounced = Debouncer(record, 30, ThreadingClock())
    for value in range(5):
        debounced(value)

    assert done.wait(2.0)
    time.sleep(0.1)
    assert calls == [4]

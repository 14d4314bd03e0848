from __future__ import annotations

import heapq
import itertools
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol


class Subscription(Protocol):
    def close(self) -> None: ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...

    @property
    def active(self) -> bool: ...


class ClockPort(Protocol):
    def now_ms(self) -> int: ...

    def call_later(self, delay_ms: int, fn: Callable[..., Any], *args: Any) -> TimerHandle: ...

    def call_every(self, interval_ms: int, fn: Callable[[], Any]) -> TimerHandle: ...


@dataclass(frozen=True, slots=True)
class ScrollMetrics:
    scroll_left: int
    scroll_top: int
    scroll_height: int
    viewport_height: int

    @property
    def max_scroll_top(self) -> int:
        return self.scroll_height - self.viewport_height


class DocumentPort(Protocol):
    """Capabilities the observation layer needs from the host page."""

    @property
    def location_href(self) -> str: ...

    @property
    def user_agent(self) -> str: ...

    def query_inputs(self) -> Sequence[Any]: ...

    def add_listener(
        self, target: Any, event_type: str, handler: Callable[[Any], None]
    ) -> Subscription: ...

    def observe_mutations(
        self,
        callback: Callable[[list[Any]], None],
        *,
        subtree: bool = True,
        character_data: bool = True,
        child_list: bool = True,
    ) -> Subscription: ...

    def scroll_metrics(self) -> ScrollMetrics: ...


class _ThreadTimer:
    def __init__(self, timer: threading.Timer) -> None:
        self._timer = timer

    def cancel(self) -> None:
        self._timer.cancel()

    @property
    def active(self) -> bool:
        return self._timer.is_alive() and not self._timer.finished.is_set()


class _RepeatingThread:
    def __init__(self, interval_ms: int, fn: Callable[[], Any]) -> None:
        self._stop = threading.Event()
        self._interval_s = interval_ms / 1000.0
        self._fn = fn
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def _run(self) -> None:
        while not self._stop.wait(self._interval_s):
            self._fn()

    def cancel(self) -> None:
        self._stop.set()

    @property
    def active(self) -> bool:
        return not self._stop.is_set()


class ThreadingClock:
    """Wall-clock timers backed by daemon threads."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)

    def call_later(self, delay_ms: int, fn: Callable[..., Any], *args: Any) -> TimerHandle:
        timer = threading.Timer(max(0, delay_ms) / 1000.0, fn, args=args)
        timer.daemon = True
        timer.start()
        return _ThreadTimer(timer)

    def call_every(self, interval_ms: int, fn: Callable[[], Any]) -> TimerHandle:
        return _RepeatingThread(interval_ms, fn)


@dataclass(slots=True)
class _ManualTimer:
    due_ms: int
    fn: Callable[..., Any]
    args: tuple[Any, ...]
    interval_ms: int | None = None
    cancelled: bool = False
    fired: bool = False
    seq: int = field(default=0)

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def active(self) -> bool:
        return not self.cancelled and (self.interval_ms is not None or not self.fired)


class ManualClock:
    """Virtual clock: nothing runs until ``advance`` moves time forward.

    Callbacks run on the calling thread, ordered by due time and then by
    scheduling order.
    """

    def __init__(self, start_ms: int = 0) -> None:
        self._now = start_ms
        self._seq = itertools.count()
        self._queue: list[tuple[int, int, _ManualTimer]] = []

    def now_ms(self) -> int:
        return self._now

    def call_later(self, delay_ms: int, fn: Callable[..., Any], *args: Any) -> _ManualTimer:
        timer = _ManualTimer(self._now + max(0, delay_ms), fn, args)
        self._push(timer)
        return timer

    def call_every(self, interval_ms: int, fn: Callable[[], Any]) -> _ManualTimer:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        timer = _ManualTimer(self._now + interval_ms, fn, (), interval_ms=interval_ms)
        self._push(timer)
        return timer

    def pending(self) -> int:
        return sum(1 for _, _, timer in self._queue if not timer.cancelled)

    def advance(self, ms: int) -> None:
        target = self._now + max(0, ms)
        while self._queue and self._queue[0][0] <= target:
            due, _, timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self._now = max(self._now, due)
            if timer.interval_ms is not None:
                timer.due_ms = due + timer.interval_ms
                self._push(timer)
            else:
                timer.fired = True
            timer.fn(*timer.args)
        self._now = target

    def _push(self, timer: _ManualTimer) -> None:
        timer.seq = next(self._seq)
        heapq.heappush(self._queue, (timer.due_ms, timer.seq, timer))

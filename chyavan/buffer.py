from __future__ import annotations

import threading
from collections import deque
from collections.abc import Iterable

from .events import TrackingEvent


class EventBuffer:
    """Pending events awaiting delivery.

    ``capacity`` is the auto-flush trigger, not a hard cap: a failed flush
    puts its batch back at the front even when that overfills the buffer.
    """

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._lock = threading.Lock()
        self._events: deque[TrackingEvent] = deque()

    @property
    def capacity(self) -> int:
        return self._capacity

    @capacity.setter
    def capacity(self, value: int) -> None:
        if value <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = value

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def append(self, event: TrackingEvent) -> bool:
        """Add ``event`` and report whether the flush threshold is reached."""
        with self._lock:
            self._events.append(event)
            return len(self._events) >= self._capacity

    def drain_all(self) -> list[TrackingEvent]:
        with self._lock:
            drained = list(self._events)
            self._events.clear()
        return drained

    def requeue_front(self, events: Iterable[TrackingEvent]) -> None:
        with self._lock:
            self._events.extendleft(reversed(list(events)))

    def clear(self) -> None:
        with self._lock:
            self._events.clear()

    def snapshot(self) -> list[TrackingEvent]:
        with self._lock:
            return list(self._events)

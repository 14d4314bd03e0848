from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any

from .ports import ClockPort, TimerHandle

KEYSTROKE_DEBOUNCE_MS = 400
SCROLL_DEBOUNCE_MS = 200


class Debouncer:
    """Collapse a burst of calls into one call carrying the last arguments.

    Every call cancels the pending timer and re-arms it, so ``fn`` runs once
    ``delay_ms`` after the final call of a burst. Earlier arguments are dropped.
    """

    def __init__(self, fn: Callable[..., Any], delay_ms: int, clock: ClockPort) -> None:
        self._fn = fn
        self._delay_ms = delay_ms
        self._clock = clock
        self._lock = threading.Lock()
        self._timer: TimerHandle | None = None
        self._generation = 0

    @property
    def delay_ms(self) -> int:
        return self._delay_ms

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def __call__(self, *args: Any) -> None:
        with self._lock:
            existing = self._timer
            if existing:
                existing.cancel()
            self._generation += 1
            self._timer = self._clock.call_later(
                self._delay_ms, self._fire, self._generation, args
            )

    def cancel(self) -> None:
        with self._lock:
            timer = self._timer
            self._timer = None
            self._generation += 1
        if timer:
            timer.cancel()

    def _fire(self, generation: int, args: tuple[Any, ...]) -> None:
        with self._lock:
            # A thread timer can fire after being superseded or cancelled.
            if generation != self._generation:
                return
            self._timer = None
        self._fn(*args)

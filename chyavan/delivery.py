from __future__ import annotations

import enum
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .buffer import EventBuffer
from .config import TrackerConfig
from .events import TrackingEvent
from .ports import ClockPort, TimerHandle

logger = logging.getLogger(__name__)

Sender = Callable[[list[TrackingEvent]], Any]


class FlushState(enum.StrEnum):
    IDLE = "idle"
    DRAINING = "draining"
    SENDING = "sending"


class FlushOutcome(enum.StrEnum):
    EMPTY = "empty"
    COMMITTED = "committed"
    REQUEUED = "requeued"
    DROPPED = "dropped"


@dataclass(frozen=True, slots=True)
class FlushResult:
    outcome: FlushOutcome
    count: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome in (FlushOutcome.EMPTY, FlushOutcome.COMMITTED)


class DeliveryEngine:
    """Move buffered events to the sender, at-least-once.

    ``drain_all`` is the only boundary that empties the buffer, so the timer
    and overflow paths can both flush without sending an event twice. A
    failed batch goes back to the front of the buffer and is retried on the
    next tick or overflow, with no backoff and no retry cap. After ``close()``
    a failed batch is dropped instead.
    """

    def __init__(
        self,
        buffer: EventBuffer,
        clock: ClockPort,
        *,
        config: Callable[[], TrackerConfig],
        sender: Sender,
    ) -> None:
        self._buffer = buffer
        self._clock = clock
        self._config = config
        self.sender = sender
        self._lock = threading.Lock()
        self._timer: TimerHandle | None = None
        self._requested: TimerHandle | None = None
        self._in_flight = 0
        self._closed = False
        self.state = FlushState.IDLE
        self.last_result: FlushResult | None = None

    @property
    def running(self) -> bool:
        with self._lock:
            return self._timer is not None

    @property
    def in_flight(self) -> int:
        with self._lock:
            return self._in_flight

    def start(self) -> None:
        with self._lock:
            if self._timer is not None:
                return
            interval_ms = self._config().flush_interval_ms
            self._timer = self._clock.call_every(interval_ms, self._tick)

    def stop(self) -> None:
        with self._lock:
            timer, self._timer = self._timer, None
            requested, self._requested = self._requested, None
        if timer:
            timer.cancel()
        if requested:
            requested.cancel()

    def close(self) -> None:
        """Stop for good and empty the buffer; later failures are not requeued."""
        self.stop()
        with self._lock:
            self._closed = True
            self._buffer.clear()

    def restart(self) -> None:
        if not self.running:
            return
        self.stop()
        self.start()

    def request_flush(self) -> bool:
        """Schedule one fire-and-forget flush; coalesce while one is pending."""
        with self._lock:
            if self._requested is not None:
                return False
            self._requested = self._clock.call_later(0, self._run_requested)
        return True

    def _run_requested(self) -> None:
        with self._lock:
            self._requested = None
        self.flush()

    def _tick(self) -> None:
        self.flush()

    def flush(self) -> FlushResult:
        config = self._config()
        self.state = FlushState.DRAINING
        events = self._buffer.drain_all()
        if not events:
            self.state = FlushState.IDLE
            return FlushResult(FlushOutcome.EMPTY)

        with self._lock:
            self._in_flight += 1
        try:
            if config.on_flush is not None:
                config.on_flush(list(events))
            self.state = FlushState.SENDING
            self.sender(events)
        except Exception as exc:
            error = str(exc) or type(exc).__name__
            with self._lock:
                closed = self._closed
                if not closed:
                    self._buffer.requeue_front(events)
            if closed:
                logger.debug("flush failed after close, dropped %d events: %s", len(events), exc)
                result = FlushResult(FlushOutcome.DROPPED, len(events), error)
            else:
                if config.debug:
                    logger.warning("flush failed, requeued %d events", len(events), exc_info=exc)
                else:
                    logger.debug("flush failed, requeued %d events: %s", len(events), exc)
                result = FlushResult(FlushOutcome.REQUEUED, len(events), error)
        else:
            if config.debug:
                logger.info("flushed %d events", len(events))
            result = FlushResult(FlushOutcome.COMMITTED, len(events))
        finally:
            with self._lock:
                self._in_flight -= 1
            self.state = FlushState.IDLE
        self.last_result = result
        return result

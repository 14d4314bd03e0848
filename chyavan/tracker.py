from __future__ import annotations

import enum
import logging
import threading
import uuid
from collections.abc import Mapping
from typing import Any

from .buffer import EventBuffer
from .config import MODE_CONSOLE, TrackerConfig, merge_config, resolve_endpoint
from .delivery import DeliveryEngine, FlushOutcome, FlushResult, Sender
from .events import EventData, TrackingEvent, coerce_event_data
from .observation import ObservationLayer
from .ports import ClockPort, DocumentPort, ThreadingClock
from .transport import HttpSender, NullSender

logger = logging.getLogger(__name__)


class TrackerState(enum.StrEnum):
    UNINITIALIZED = "uninitialized"
    ENABLED = "enabled"
    DISABLED = "disabled"
    DESTROYED = "destroyed"


class TrackerDestroyedError(RuntimeError):
    pass


def generate_session_id(now_ms: int) -> str:
    return f"session_{uuid.uuid4().hex[:9]}_{now_ms}"


class Tracker:
    """Capture, redact, buffer and deliver behavioural events for one page.

    Tracking starts enabled only when ``consent_check`` returns True, except
    in console mode where nothing leaves the process. Failures never escape:
    a broken consent check or listener setup leaves the tracker disabled, and
    a failed delivery puts the batch back for the next flush.

    ``sender`` replaces the HTTP transport when given; otherwise it is built
    from the resolved endpoint and rebuilt on every ``update_config``.
    """

    def __init__(
        self,
        config: TrackerConfig | None = None,
        *,
        document: DocumentPort,
        clock: ClockPort | None = None,
        sender: Sender | None = None,
        **options: Any,
    ) -> None:
        self._config = merge_config(config or TrackerConfig(), options)
        self._document = document
        self._clock = clock or ThreadingClock()
        self._custom_sender = sender
        self._lock = threading.Lock()
        self.endpoint = resolve_endpoint(self._config)
        self.state = TrackerState.UNINITIALIZED
        self.session_id: str | None = generate_session_id(self._clock.now_ms())
        self.buffer = EventBuffer(self._config.buffer_capacity)
        self.delivery = DeliveryEngine(
            self.buffer,
            self._clock,
            config=self.get_config,
            sender=self._build_sender(),
        )
        self.observation = ObservationLayer(
            document,
            self._clock,
            track=self.track,
            is_enabled=lambda: self.is_enabled,
        )
        self._init()

    def _log(self, message: str, *args: Any) -> None:
        if self._config.debug:
            logger.info(message, *args)
        else:
            logger.debug(message, *args)

    def _init(self) -> None:
        try:
            granted = self._config.mode == MODE_CONSOLE or bool(self._config.consent_check())
        except Exception:
            logger.exception("tracker init failed: consent check raised")
            self.state = TrackerState.DISABLED
            return
        self.state = TrackerState.DISABLED
        if not granted:
            self._log("tracker initialized but tracking disabled - no consent")
            return
        self.enable()
        if self.is_enabled:
            self._log("tracker initialized with consent")

    def _build_sender(self) -> Sender:
        if self._custom_sender is not None:
            return self._custom_sender
        if self.endpoint is None:
            return NullSender()
        return HttpSender(self.endpoint, timeout_s=self._config.request_timeout_s)

    @property
    def is_enabled(self) -> bool:
        return self.state == TrackerState.ENABLED

    def enable(self) -> None:
        with self._lock:
            if self.state == TrackerState.DESTROYED:
                raise TrackerDestroyedError("tracker has been destroyed")
            if self.state == TrackerState.ENABLED:
                return
            try:
                self.observation.attach()
                self.delivery.start()
            except Exception:
                logger.exception("tracker setup failed, tracking stays disabled")
                self.observation.detach()
                self.delivery.stop()
                self.state = TrackerState.DISABLED
                return
            self.state = TrackerState.ENABLED
        self._log("tracking enabled")

    def disable(self) -> None:
        with self._lock:
            if self.state != TrackerState.ENABLED:
                return
            self.state = TrackerState.DISABLED
            self.observation.detach()
            self.delivery.stop()
        self._log("tracking disabled")

    def destroy(self) -> None:
        self.disable()
        with self._lock:
            self.state = TrackerState.DESTROYED
            self.delivery.close()
            self.session_id = None
        self._log("tracker destroyed")

    def active_handle_count(self) -> int:
        return self.observation.handle_count + (1 if self.delivery.running else 0)

    def track(self, event_type: str, data: EventData | Mapping[str, Any] | None = None) -> None:
        if not self.is_enabled or self.session_id is None:
            return
        event = TrackingEvent(
            type=event_type,
            timestamp=self._clock.now_ms(),
            data=coerce_event_data(data),
            session_id=self.session_id,
            context_url=self._document.location_href,
            user_agent=self._document.user_agent,
        )
        if self.buffer.append(event):
            self.delivery.request_flush()
        self._log("event tracked: %s %s", event_type, event.data.to_dict())

    def flush(self) -> FlushResult:
        if self.state == TrackerState.DESTROYED:
            return FlushResult(FlushOutcome.EMPTY)
        return self.delivery.flush()

    def get_config(self) -> TrackerConfig:
        return self._config

    def update_config(self, **changes: Any) -> TrackerConfig:
        """Swap in a new config snapshot; the endpoint is resolved again."""
        new_config = merge_config(self._config, changes)
        with self._lock:
            previous = self._config
            self._config = new_config
            self.endpoint = resolve_endpoint(new_config)
            self.buffer.capacity = new_config.buffer_capacity
            self.delivery.sender = self._build_sender()
        if previous.flush_interval_ms != new_config.flush_interval_ms:
            self.delivery.restart()
        return new_config

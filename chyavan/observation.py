from __future__ import annotations

import logging
import math
from collections.abc import Callable
from typing import Any

from .debounce import KEYSTROKE_DEBOUNCE_MS, SCROLL_DEBOUNCE_MS, Debouncer
from .events import (
    EVENT_KEYSTROKE,
    EVENT_MOUSE,
    EVENT_SCROLL,
    EventData,
    KeystrokeData,
    MouseData,
    ScrollData,
)
from .ports import ClockPort, DocumentPort, ScrollMetrics, Subscription
from .redaction import is_sensitive_field, sanitize_text

logger = logging.getLogger(__name__)

DOCUMENT_TARGET = "document"
WINDOW_TARGET = "window"
CHARACTER_DATA = "characterData"


def scroll_percentage(metrics: ScrollMetrics) -> int:
    """Scroll position as a whole percentage; 0 when nothing can scroll."""
    max_scroll_top = metrics.max_scroll_top
    if max_scroll_top <= 0:
        return 0
    return int(math.floor(metrics.scroll_top / max_scroll_top * 100 + 0.5))


def _tag_name(target: Any) -> str | None:
    value = getattr(target, "tag_name", None)
    return value if isinstance(value, str) else None


class ObservationLayer:
    def __init__(
        self,
        document: DocumentPort,
        clock: ClockPort,
        *,
        track: Callable[[str, EventData], None],
        is_enabled: Callable[[], bool],
    ) -> None:
        self._document = document
        self._track = track
        self._is_enabled = is_enabled
        self._subscriptions: list[Subscription] = []
        self._keystrokes = Debouncer(self._emit_keystroke, KEYSTROKE_DEBOUNCE_MS, clock)
        self._scrolls = Debouncer(self._emit_scroll, SCROLL_DEBOUNCE_MS, clock)

    @property
    def handle_count(self) -> int:
        return len(self._subscriptions)

    @property
    def attached(self) -> bool:
        return bool(self._subscriptions)

    def attach(self) -> None:
        if self._subscriptions:
            return
        try:
            self._attach_inputs()
            self._attach_mutations()
            self._attach_clicks()
            self._attach_scroll()
        except Exception:
            self.detach()
            raise

    def detach(self) -> None:
        subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            try:
                subscription.close()
            except Exception as exc:
                logger.warning("listener detach failed", exc_info=exc)
        self._keystrokes.cancel()
        self._scrolls.cancel()

    def _attach_inputs(self) -> None:
        for element in self._document.query_inputs():
            if is_sensitive_field(element):
                continue
            self._subscriptions.append(
                self._document.add_listener(element, "input", self._on_input)
            )

    def _attach_mutations(self) -> None:
        self._subscriptions.append(
            self._document.observe_mutations(
                self._on_mutations, subtree=True, character_data=True, child_list=True
            )
        )

    def _attach_clicks(self) -> None:
        self._subscriptions.append(
            self._document.add_listener(DOCUMENT_TARGET, "click", self._on_click)
        )

    def _attach_scroll(self) -> None:
        self._subscriptions.append(
            self._document.add_listener(WINDOW_TARGET, "scroll", self._on_scroll)
        )

    def _on_input(self, event: Any) -> None:
        target = event.target
        self._keystrokes(target, getattr(target, "value", "") or "")

    def _on_mutations(self, mutations: list[Any]) -> None:
        # Runs inside host-driven delivery; failures must not reach the host.
        try:
            for mutation in mutations:
                if mutation.type != CHARACTER_DATA:
                    continue
                parent = getattr(mutation.target, "parent_element", None)
                if parent is None or is_sensitive_field(parent):
                    continue
                self._keystrokes(parent, mutation.target.node_value or "")
        except Exception as exc:
            logger.warning("mutation observer error", exc_info=exc)

    def _on_click(self, event: Any) -> None:
        if not self._is_enabled() or is_sensitive_field(event.target):
            return
        self._track(
            EVENT_MOUSE,
            MouseData(
                x=int(event.client_x),
                y=int(event.client_y),
                element=_tag_name(event.target),
                action=event.type,
            ),
        )

    def _on_scroll(self, event: Any) -> None:
        self._scrolls()

    def _emit_keystroke(self, target: Any, value: str) -> None:
        if not self._is_enabled() or is_sensitive_field(target):
            return
        self._track(
            EVENT_KEYSTROKE,
            KeystrokeData(
                element=_tag_name(target) or "",
                field_type=str(getattr(target, "type", "") or ""),
                sanitized=sanitize_text(value),
                length=len(value),
            ),
        )

    def _emit_scroll(self) -> None:
        if not self._is_enabled():
            return
        metrics = self._document.scroll_metrics()
        self._track(
            EVENT_SCROLL,
            ScrollData(
                x=int(metrics.scroll_left),
                y=int(metrics.scroll_top),
                percentage=scroll_percentage(metrics),
            ),
        )

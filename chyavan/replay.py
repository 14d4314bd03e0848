from __future__ import annotations

import json
import time
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from .config import TrackerConfig, resolve_endpoint
from .debounce import KEYSTROKE_DEBOUNCE_MS, SCROLL_DEBOUNCE_MS
from .dom import Element, MemoryDocument
from .events import TrackingEvent
from .ports import ManualClock
from .tracker import Tracker
from .transport import HttpSender, NullSender

SIGNALS = {"page", "input", "text", "click", "scroll", "custom"}


@dataclass(frozen=True)
class ReplaySummary:
    session_id: str | None
    signals: int
    tracked: int
    flushes: int
    delivered: int
    failed_attempts: int
    pending: int
    endpoint: str | None


class _CountingSender:
    def __init__(self, inner: Any) -> None:
        self._inner = inner
        self.attempts = 0
        self.failures = 0
        self.delivered = 0

    def __call__(self, events: list[TrackingEvent]) -> Any:
        self.attempts += 1
        try:
            result = self._inner(events)
        except Exception:
            self.failures += 1
            raise
        self.delivered += len(events)
        return result


def load_recording(path: Path) -> list[dict[str, Any]]:
    records: list[dict[str, Any]] = []
    for lineno, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
        if not line.strip():
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError as exc:
            raise ValueError(f"line {lineno}: invalid json") from exc
        if not isinstance(record, dict):
            raise ValueError(f"line {lineno}: record must be an object")
        signal = record.get("signal")
        if signal not in SIGNALS:
            raise ValueError(f"line {lineno}: unknown signal {signal!r}")
        records.append(record)
    return records


def _build_document(records: list[dict[str, Any]]) -> tuple[MemoryDocument, dict[str, Element]]:
    document = MemoryDocument()
    elements: dict[str, Element] = {}
    for record in records:
        if record["signal"] == "page":
            document.location_href = str(record.get("url") or document.location_href)
            document.user_agent = str(record.get("userAgent") or document.user_agent)
            document.scroll_height = int(record.get("scrollHeight") or 0)
            document.viewport_height = int(record.get("viewportHeight") or 0)
        for key in ("target", "parent"):
            attrs = record.get(key)
            if not isinstance(attrs, dict):
                continue
            element_id = str(attrs.get("id") or f"_anon{len(elements)}")
            if element_id not in elements:
                elements[element_id] = document.add_element(Element.from_dict(attrs))
            attrs["id"] = element_id
    return document, elements


def _apply(
    record: dict[str, Any],
    tracker: Tracker,
    document: MemoryDocument,
    elements: dict[str, Element],
) -> None:
    signal = record["signal"]
    target = elements.get(str((record.get("target") or {}).get("id")))
    if signal == "input" and target is not None:
        document.type_into(target, str(record.get("value") or ""))
    elif signal == "text":
        parent = elements.get(str((record.get("parent") or {}).get("id")))
        document.set_text(parent, str(record.get("value") or ""))
    elif signal == "click" and target is not None:
        document.click(target, int(record.get("x") or 0), int(record.get("y") or 0))
    elif signal == "scroll":
        if record.get("scrollHeight") is not None:
            document.scroll_height = int(record["scrollHeight"])
        if record.get("viewportHeight") is not None:
            document.viewport_height = int(record["viewportHeight"])
        left = record.get("left")
        document.scroll_to(int(record.get("top") or 0), int(left) if left is not None else None)
    elif signal == "custom":
        data = record.get("data")
        tracker.track(str(record.get("type") or "custom"), data if isinstance(data, dict) else {})


def replay_recording(
    records: list[dict[str, Any]],
    config: TrackerConfig | None = None,
    *,
    start_ms: int | None = None,
) -> ReplaySummary:
    """Drive a tracker through a recorded session in virtual time."""
    config = replace(config or TrackerConfig(), consent_check=lambda: True)
    endpoint = resolve_endpoint(config)
    inner = (
        HttpSender(endpoint, timeout_s=config.request_timeout_s) if endpoint else NullSender()
    )
    sender = _CountingSender(inner)
    document, elements = _build_document(records)
    clock = ManualClock(start_ms if start_ms is not None else int(time.time() * 1000))
    tracker = Tracker(config, document=document, clock=clock, sender=sender)
    elapsed = 0
    ordered = sorted(enumerate(records), key=lambda item: (int(item[1].get("t") or 0), item[0]))
    for _, record in ordered:
        offset = int(record.get("t") or 0)
        if offset > elapsed:
            clock.advance(offset - elapsed)
            elapsed = offset
        _apply(record, tracker, document, elements)
    clock.advance(max(KEYSTROKE_DEBOUNCE_MS, SCROLL_DEBOUNCE_MS))
    tracker.flush()
    pending = len(tracker.buffer)
    session_id = tracker.session_id
    tracker.destroy()
    return ReplaySummary(
        session_id=session_id,
        signals=len(records),
        tracked=sender.delivered + pending,
        flushes=sender.attempts,
        delivered=sender.delivered,
        failed_attempts=sender.failures,
        pending=pending,
        endpoint=endpoint,
    )

from __future__ import annotations

import hashlib
import json
import logging
import os
import re
import threading
from collections.abc import Collection
from http.server import BaseHTTPRequestHandler, HTTPServer
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from .receiver_http import (
    PayloadTooLarge,
    cors_headers,
    read_json_body,
    reject_cross_origin,
    send_json_response,
)

logger = logging.getLogger(__name__)

DEFAULT_RECEIVER_HOST = "127.0.0.1"
DEFAULT_RECEIVER_PORT = 3000
DEFAULT_TRACK_PATH = "/track"
MAX_EVENTS_PER_BATCH = 100
MAX_BODY_BYTES = 1048576

EVENT_TYPE_RE = re.compile(r"[A-Za-z0-9_.:-]{1,64}")


def event_fingerprint(event: dict[str, Any]) -> str:
    canonical = json.dumps(event, sort_keys=True, ensure_ascii=False, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def validate_batch(payload: dict[str, Any] | None, *, max_events: int) -> list[dict[str, Any]]:
    """Return the batch's events or raise ValueError with a short error code."""
    if payload is None:
        raise ValueError("invalid_json")
    events = payload.get("events")
    if not isinstance(events, list):
        raise ValueError("events_must_be_array")
    if len(events) > max_events:
        raise PayloadTooLarge("too_many_events")
    for event in events:
        if not isinstance(event, dict):
            raise ValueError("invalid_event")
        event_type = event.get("type")
        if not isinstance(event_type, str) or not EVENT_TYPE_RE.fullmatch(event_type):
            raise ValueError("invalid_event_type")
    return events


class EventSink:
    """Accepted events, deduplicated so retried batches are harmless."""

    def __init__(self, out_path: Path | None = None) -> None:
        self.out_path = out_path
        self._lock = threading.Lock()
        self._seen: set[str] = set()
        self.events: list[dict[str, Any]] = []

    def __len__(self) -> int:
        with self._lock:
            return len(self.events)

    def add_batch(self, events: list[dict[str, Any]]) -> tuple[int, int]:
        accepted: list[dict[str, Any]] = []
        with self._lock:
            for event in events:
                fingerprint = event_fingerprint(event)
                if fingerprint in self._seen:
                    continue
                self._seen.add(fingerprint)
                accepted.append(event)
            self.events.extend(accepted)
            if accepted and self.out_path is not None:
                self.out_path.parent.mkdir(parents=True, exist_ok=True)
                with self.out_path.open("a", encoding="utf-8") as handle:
                    for event in accepted:
                        handle.write(json.dumps(event, ensure_ascii=False) + "\n")
        return len(accepted), len(events) - len(accepted)


def build_receiver_handler(
    sink: EventSink,
    *,
    max_events_per_batch: int = MAX_EVENTS_PER_BATCH,
    allowed_origins: Collection[str] = (),
    track_path: str = DEFAULT_TRACK_PATH,
) -> type[BaseHTTPRequestHandler]:
    origins = frozenset(allowed_origins)

    class ReceiverHandler(BaseHTTPRequestHandler):
        def _send_json(self, payload: dict, status: int = 200) -> None:
            headers = cors_headers(self.headers.get("Origin"), origins)
            send_json_response(self, payload, status=status, headers=headers)

        def log_message(self, format: str, *args: object) -> None:  # noqa: A003
            if os.environ.get("CHYAVAN_RECEIVER_LOGS") == "1":
                super().log_message(format, *args)

        def do_OPTIONS(self) -> None:  # noqa: N802
            if reject_cross_origin(self, origins):
                return
            self.send_response(204)
            for name, value in cors_headers(self.headers.get("Origin"), origins).items():
                self.send_header(name, value)
            self.send_header("Content-Length", "0")
            self.end_headers()

        def do_GET(self) -> None:  # noqa: N802
            if urlparse(self.path).path == "/health":
                self._send_json({"ok": True, "events": len(sink)})
                return
            self._send_json({"error": "not_found"}, status=404)

        def do_POST(self) -> None:  # noqa: N802
            if urlparse(self.path).path != track_path:
                self._send_json({"error": "not_found"}, status=404)
                return
            if reject_cross_origin(self, origins):
                return
            try:
                payload = read_json_body(self, max_bytes=MAX_BODY_BYTES)
                events = validate_batch(payload, max_events=max_events_per_batch)
            except PayloadTooLarge as exc:
                self._send_json({"error": str(exc)}, status=413)
                return
            except ValueError as exc:
                self._send_json({"error": str(exc)}, status=400)
                return
            accepted, duplicates = sink.add_batch(events)
            logger.info("received events: %d (duplicates %d)", accepted, duplicates)
            self._send_json({"ok": True, "accepted": accepted, "duplicates": duplicates})

    return ReceiverHandler


def run_receiver(
    host: str,
    port: int,
    *,
    sink: EventSink | None = None,
    max_events_per_batch: int = MAX_EVENTS_PER_BATCH,
    allowed_origins: Collection[str] = (),
    stop_event: threading.Event | None = None,
) -> None:
    handler = build_receiver_handler(
        sink or EventSink(),
        max_events_per_batch=max_events_per_batch,
        allowed_origins=allowed_origins,
    )
    server = HTTPServer((host, port), handler)
    if stop_event is None:
        try:
            server.serve_forever()
        finally:
            server.server_close()
        return
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        stop_event.wait()
    finally:
        server.shutdown()
        server.server_close()

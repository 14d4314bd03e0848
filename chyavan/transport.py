from __future__ import annotations

import json
import logging
from http.client import HTTPConnection, HTTPSConnection
from typing import Any
from urllib.parse import urlparse

from .events import TrackingEvent, events_payload

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 3.0


class DeliveryError(RuntimeError):
    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


def build_base_url(address: str) -> str:
    trimmed = address.strip().rstrip("/")
    if not trimmed:
        return ""
    parsed = urlparse(trimmed)
    if parsed.scheme:
        return trimmed
    return f"http://{trimmed}"


def request_json(
    method: str,
    url: str,
    *,
    headers: dict[str, str] | None = None,
    body: dict[str, Any] | None = None,
    timeout_s: float = DEFAULT_TIMEOUT_S,
) -> tuple[int, dict[str, Any] | None]:
    parsed = urlparse(url)
    if not parsed.hostname:
        raise ValueError("missing hostname")
    if parsed.scheme == "https":
        conn = HTTPSConnection(parsed.hostname, parsed.port or 443, timeout=timeout_s)
    else:
        conn = HTTPConnection(parsed.hostname, parsed.port or 80, timeout=timeout_s)
    path = parsed.path or "/"
    if parsed.query:
        path = f"{path}?{parsed.query}"
    payload = None
    body_bytes = None
    if body is not None:
        body_bytes = json.dumps(body, ensure_ascii=False).encode("utf-8")
    request_headers = {"Accept": "application/json"}
    if body_bytes is not None:
        request_headers["Content-Type"] = "application/json"
        request_headers["Content-Length"] = str(len(body_bytes))
    if headers:
        request_headers.update(headers)
    status: int | None = None
    reason = ""
    try:
        conn.request(method, path, body=body_bytes, headers=request_headers)
        resp = conn.getresponse()
        status = int(resp.status)
        reason = str(getattr(resp, "reason", "") or "")
        raw = resp.read()
        if raw:
            try:
                payload = json.loads(raw.decode("utf-8"))
            except json.JSONDecodeError:
                snippet = raw[:240].decode("utf-8", errors="replace").strip()
                payload = {
                    "error": f"non_json_response: {snippet}" if snippet else "non_json_response"
                }
    finally:
        conn.close()
    assert status is not None
    if not 200 <= status < 300:
        raise DeliveryError(f"HTTP {status}: {reason}".rstrip(": "), status=status)
    if payload is None:
        return status, None
    if isinstance(payload, dict):
        return status, payload
    return status, {"error": f"unexpected_json_type: {type(payload).__name__}"}


class HttpSender:
    """POST a batch as ``{"events": [...]}``; any non-2xx status raises."""

    def __init__(self, endpoint: str, *, timeout_s: float = DEFAULT_TIMEOUT_S) -> None:
        self.endpoint = endpoint
        self.timeout_s = timeout_s

    def __call__(self, events: list[TrackingEvent]) -> dict[str, Any] | None:
        _status, payload = request_json(
            "POST", self.endpoint, body=events_payload(events), timeout_s=self.timeout_s
        )
        return payload


class NullSender:
    """No-network delivery used when no endpoint resolves."""

    endpoint = None

    def __call__(self, events: list[TrackingEvent]) -> None:
        logger.debug("no delivery endpoint, dropping %d events", len(events))
        return None

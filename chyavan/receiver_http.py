from __future__ import annotations

import json
from collections.abc import Collection
from http.server import BaseHTTPRequestHandler
from typing import Any


class PayloadTooLarge(ValueError):
    pass


def send_json_response(
    handler: BaseHTTPRequestHandler,
    payload: dict,
    status: int = 200,
    *,
    headers: dict[str, str] | None = None,
) -> None:
    body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
    handler.send_response(status)
    handler.send_header("Content-Type", "application/json; charset=utf-8")
    handler.send_header("Content-Length", str(len(body)))
    for name, value in (headers or {}).items():
        handler.send_header(name, value)
    handler.end_headers()
    handler.wfile.write(body)


def read_json_body(handler: BaseHTTPRequestHandler, *, max_bytes: int) -> dict[str, Any] | None:
    try:
        length = int(handler.headers.get("Content-Length", "0") or 0)
    except ValueError:
        raise ValueError("invalid_content_length") from None
    if length < 0:
        raise ValueError("invalid_content_length")
    if length > max_bytes:
        raise PayloadTooLarge("payload_too_large")
    raw = handler.rfile.read(length).decode("utf-8") if length else ""
    if not raw:
        return None
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        return None
    return payload if isinstance(payload, dict) else None


def cors_headers(origin: str | None, allowed_origins: Collection[str]) -> dict[str, str]:
    if not origin:
        return {}
    if allowed_origins and origin not in allowed_origins:
        return {}
    return {
        "Access-Control-Allow-Origin": origin,
        "Access-Control-Allow-Methods": "POST, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type",
        "Vary": "Origin",
    }


def reject_cross_origin(
    handler: BaseHTTPRequestHandler, allowed_origins: Collection[str]
) -> bool:
    """Send 403 and return True when the request's Origin is not allowed.

    Requests without an Origin header (non-browser clients) always pass; an
    empty allow-list accepts every origin.
    """
    origin = handler.headers.get("Origin")
    if not origin or not allowed_origins or origin in allowed_origins:
        return False
    send_json_response(handler, {"error": "forbidden"}, status=403)
    return True

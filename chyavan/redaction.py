from __future__ import annotations

import re
from typing import Any

SENSITIVE_FIELD_TYPES = {"password", "hidden"}
SENSITIVE_NAME_MARKERS = ("card", "cvv", "password", "ssn", "secret", "token")
SENSITIVE_AUTOCOMPLETE_PREFIX = "cc-"

ONLY_DIGITS_RE = re.compile(r"[0-9]+")
DESCRIPTOR_RE = re.compile(r"\[[0-9]+ (?:digits|characters)\]")


def _attr(target: Any, name: str) -> str:
    value = getattr(target, name, None)
    if not isinstance(value, str):
        return ""
    return value.lower()


def is_sensitive_field(target: Any) -> bool:
    """Return True when a capture target must never be observed or logged.

    ``None`` is not sensitive; callers short-circuit on a missing target
    before it reaches the capture pipeline.
    """
    if target is None:
        return False
    field_type = _attr(target, "type")
    name = _attr(target, "name")
    autocomplete = _attr(target, "autocomplete")
    if field_type in SENSITIVE_FIELD_TYPES:
        return True
    if any(marker in name for marker in SENSITIVE_NAME_MARKERS):
        return True
    return autocomplete.startswith(SENSITIVE_AUTOCOMPLETE_PREFIX)


def sanitize_text(text: str | None) -> str:
    """Reduce text to a length descriptor; descriptors pass through unchanged."""
    if not text:
        return ""
    if DESCRIPTOR_RE.fullmatch(text):
        return text
    if ONLY_DIGITS_RE.fullmatch(text):
        return f"[{len(text)} digits]"
    return f"[{len(text)} characters]"

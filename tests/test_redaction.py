from __future__ import annotations

from types import SimpleNamespace

import pytest

from chyavan.dom import Element
from chyavan.redaction import is_sensitive_field, sanitize_text


@pytest.mark.parametrize(
    "attrs",
    [
        {"type": "password"},
        {"type": "hidden"},
        {"type": "PASSWORD"},
        {"name": "credit_card_number"},
        {"name": "CVV2"},
        {"name": "user_password"},
        {"name": "ssn"},
        {"name": "api_secret"},
        {"name": "csrfToken"},
        {"autocomplete": "cc-number"},
        {"autocomplete": "CC-exp"},
    ],
)
def test_sensitive_fields_are_detected(attrs: dict[str, str]) -> None:
    assert is_sensitive_field(Element("input", **attrs)) is True


@pytest.mark.parametrize(
    "target",
    [
        Element("input", type="text", name="search"),
        Element("input", type="email", autocomplete="email"),
        Element("textarea", name="comment"),
        SimpleNamespace(tag_name="DIV"),
    ],
)
def test_ordinary_fields_are_not_sensitive(target: object) -> None:
    assert is_sensitive_field(target) is False


def test_missing_target_is_not_sensitive() -> None:
    assert is_sensitive_field(None) is False


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("", ""),
        (None, ""),
        ("4111111111111111", "[16 digits]"),
        ("hello", "[5 characters]"),
        ("12a", "[3 characters]"),
        ("123\n", "[4 characters]"),
        ("٣٤", "[2 characters]"),
    ],
)
def test_sanitize_text_reduces_to_length_descriptor(text: str | None, expected: str) -> None:
    assert sanitize_text(text) == expected


def test_sanitize_text_never_leaks_content() -> None:
    for text in ["4111111111111111", "my secret diary", "hunter2", "x" * 300]:
        descriptor = sanitize_text(text)
        assert text not in descriptor
        assert "secret" not in descriptor
        assert "hunter" not in descriptor


@pytest.mark.parametrize("text", ["4111111111111111", "hunter2", "", "[3 digits]x"])
def test_sanitize_text_is_idempotent(text: str) -> None:
    once = sanitize_text(text)

    assert sanitize_text(once) == once

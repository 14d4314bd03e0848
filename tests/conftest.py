from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path

import pytest

from chyavan.dom import Element, MemoryDocument
from chyavan.events import CustomData, TrackingEvent
from chyavan.ports import ManualClock


@pytest.fixture(autouse=True)
def _isolate_chyavan_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for key in list(os.environ):
        if key.startswith("CHYAVAN_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("CHYAVAN_CONFIG", str(tmp_path / "missing-config.json"))


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(1_000)


@pytest.fixture
def document() -> MemoryDocument:
    doc = MemoryDocument(
        location_href="https://shop.example/checkout",
        user_agent="pytest-agent",
        scroll_height=2000,
        viewport_height=1000,
    )
    doc.add_element(Element("input", type="text", name="search", id="search"))
    doc.add_element(Element("input", type="password", name="pw", id="pw"))
    doc.add_element(Element("input", type="text", name="card_number", id="card"))
    doc.add_element(Element("textarea", name="comment", id="comment"))
    doc.add_element(Element("div", id="banner"))
    doc.add_element(Element("button", id="buy"))
    return doc


def _find_element(doc: MemoryDocument, element_id: str) -> Element:
    for item in doc.elements:
        if item.id == element_id:
            return item
    raise KeyError(element_id)


def _make_event(n: int, *, event_type: str = "custom") -> TrackingEvent:
    return TrackingEvent(
        type=event_type,
        timestamp=n,
        data=CustomData({"n": n}),
        session_id="session_test",
        context_url="https://shop.example/",
        user_agent="pytest-agent",
    )


@pytest.fixture
def make_event() -> Callable[..., TrackingEvent]:
    return _make_event


@pytest.fixture
def find_element() -> Callable[[MemoryDocument, str], Element]:
    return _find_element

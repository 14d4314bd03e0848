from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from .observation import DOCUMENT_TARGET as DOCUMENT
from .observation import WINDOW_TARGET as WINDOW
from .ports import ScrollMetrics

INPUT_TAGS = {"INPUT", "TEXTAREA"}


@dataclass(eq=False)
class Element:
    tag_name: str
    type: str = ""
    name: str = ""
    autocomplete: str = ""
    value: str = ""
    id: str | None = None

    def __post_init__(self) -> None:
        self.tag_name = self.tag_name.upper()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Element:
        return cls(
            tag_name=str(data.get("tagName") or data.get("tag_name") or "DIV"),
            type=str(data.get("type") or ""),
            name=str(data.get("name") or ""),
            autocomplete=str(data.get("autocomplete") or ""),
            value=str(data.get("value") or ""),
            id=data.get("id"),
        )


@dataclass(eq=False)
class TextNode:
    node_value: str
    parent_element: Element | None = None


@dataclass(frozen=True, slots=True)
class DomEvent:
    type: str
    target: Any
    client_x: int = 0
    client_y: int = 0


@dataclass(frozen=True, slots=True)
class Mutation:
    type: str
    target: Any


class _Listener:
    def __init__(self, document: MemoryDocument, key: tuple[Any, str], handler: Callable) -> None:
        self._document = document
        self._key = key
        self.handler = handler
        self.closed = False

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._document._remove_listener(self._key, self)


class _MutationObserver:
    def __init__(
        self, document: MemoryDocument, callback: Callable[[list[Mutation]], None]
    ) -> None:
        self._document = document
        self.callback = callback
        self.closed = False

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._document._remove_observer(self)


@dataclass
class MemoryDocument:
    """In-memory stand-in for a rendered page.

    Signals are injected with ``dispatch``, ``type_into`` and ``set_text``;
    listener and observer counts are exposed for teardown checks.
    """

    elements: list[Element] = field(default_factory=list)
    location_href: str = "about:blank"
    user_agent: str = "chyavan/memory-document"
    scroll_left: int = 0
    scroll_top: int = 0
    scroll_height: int = 0
    viewport_height: int = 0
    _listeners: dict[tuple[Any, str], list[_Listener]] = field(default_factory=dict, repr=False)
    _observers: list[_MutationObserver] = field(default_factory=list, repr=False)

    def add_element(self, element: Element) -> Element:
        self.elements.append(element)
        return element

    def query_inputs(self) -> list[Element]:
        return [el for el in self.elements if el.tag_name in INPUT_TAGS]

    def add_listener(
        self, target: Any, event_type: str, handler: Callable[[DomEvent], None]
    ) -> _Listener:
        key = (_target_key(target), event_type)
        listener = _Listener(self, key, handler)
        self._listeners.setdefault(key, []).append(listener)
        return listener

    def observe_mutations(
        self,
        callback: Callable[[list[Mutation]], None],
        *,
        subtree: bool = True,
        character_data: bool = True,
        child_list: bool = True,
    ) -> _MutationObserver:
        observer = _MutationObserver(self, callback)
        self._observers.append(observer)
        return observer

    def scroll_metrics(self) -> ScrollMetrics:
        return ScrollMetrics(
            scroll_left=self.scroll_left,
            scroll_top=self.scroll_top,
            scroll_height=self.scroll_height,
            viewport_height=self.viewport_height,
        )

    @property
    def listener_count(self) -> int:
        return sum(len(items) for items in self._listeners.values())

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def dispatch(self, target: Any, event_type: str, **kwargs: Any) -> None:
        event = DomEvent(type=event_type, target=target, **kwargs)
        for listener in list(self._listeners.get((_target_key(target), event_type), [])):
            listener.handler(event)
        # Element events bubble to the document, as clicks do in a browser.
        if isinstance(target, Element):
            for listener in list(self._listeners.get((DOCUMENT, event_type), [])):
                listener.handler(event)

    def type_into(self, element: Element, value: str) -> None:
        element.value = value
        self.dispatch(element, "input")

    def click(self, element: Element, x: int, y: int) -> None:
        self.dispatch(element, "click", client_x=x, client_y=y)

    def scroll_to(self, top: int, left: int | None = None) -> None:
        self.scroll_top = top
        if left is not None:
            self.scroll_left = left
        self.dispatch(WINDOW, "scroll")

    def set_text(self, parent: Element | None, value: str) -> None:
        self.notify([Mutation(type="characterData", target=TextNode(value, parent))])

    def notify(self, mutations: list[Mutation]) -> None:
        for observer in list(self._observers):
            observer.callback(mutations)

    def _remove_listener(self, key: tuple[Any, str], listener: _Listener) -> None:
        items = self._listeners.get(key, [])
        if listener in items:
            items.remove(listener)
        if not items:
            self._listeners.pop(key, None)

    def _remove_observer(self, observer: _MutationObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)


def _target_key(target: Any) -> Any:
    if isinstance(target, str):
        return target
    return id(target)

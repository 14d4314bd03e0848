from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

EVENT_KEYSTROKE = "keystroke"
EVENT_MOUSE = "mouse"
EVENT_SCROLL = "scroll"


@dataclass(frozen=True, slots=True)
class KeystrokeData:
    element: str
    field_type: str
    sanitized: str
    length: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "element": self.element,
            "fieldType": self.field_type,
            "sanitized": self.sanitized,
            "length": self.length,
        }


@dataclass(frozen=True, slots=True)
class MouseData:
    x: int
    y: int
    element: str | None
    action: str = "click"

    def to_dict(self) -> dict[str, Any]:
        return {"x": self.x, "y": self.y, "element": self.element, "action": self.action}


@dataclass(frozen=True, slots=True)
class ScrollData:
    x: int
    y: int
    percentage: int

    def to_dict(self) -> dict[str, Any]:
        return {"x": self.x, "y": self.y, "percentage": self.percentage}


@dataclass(frozen=True, slots=True)
class CustomData:
    values: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    def to_dict(self) -> dict[str, Any]:
        return dict(self.values)


EventData = KeystrokeData | MouseData | ScrollData | CustomData


def coerce_event_data(data: EventData | Mapping[str, Any] | None) -> EventData:
    if data is None:
        return CustomData()
    if isinstance(data, (KeystrokeData, MouseData, ScrollData, CustomData)):
        return data
    if isinstance(data, Mapping):
        return CustomData(data)
    raise TypeError(f"unsupported event data: {type(data).__name__}")


@dataclass(frozen=True, slots=True)
class TrackingEvent:
    type: str
    timestamp: int
    data: EventData
    session_id: str
    context_url: str
    user_agent: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "timestamp": self.timestamp,
            "data": self.data.to_dict(),
            "sessionId": self.session_id,
            "url": self.context_url,
            "userAgent": self.user_agent,
        }


def events_payload(events: list[TrackingEvent]) -> dict[str, Any]:
    return {"events": [event.to_dict() for event in events]}

from __future__ import annotations

import json
from pathlib import Path

import pytest

from chyavan.config import TrackerConfig
from chyavan.replay import load_recording, replay_recording

RECORDING = [
    {
        "t": 0,
        "signal": "page",
        "url": "https://shop.example/cart",
        "scrollHeight": 2000,
        "viewportHeight": 1000,
    },
    {
        "t": 0,
        "signal": "input",
        "target": {"id": "q", "tagName": "input", "type": "text"},
        "value": "h",
    },
    {"t": 100, "signal": "input", "target": {"id": "q"}, "value": "hi"},
    {
        "t": 200,
        "signal": "input",
        "target": {"id": "pw", "tagName": "input", "type": "password"},
        "value": "hunter2",
    },
    {"t": 300, "signal": "click", "target": {"id": "buy", "tagName": "button"}, "x": 5, "y": 6},
    {"t": 400, "signal": "scroll", "top": 500},
    {"t": 1000, "signal": "custom", "type": "checkout", "data": {"items": 2}},
]


def _write(tmp_path: Path, records: list[dict]) -> Path:
    path = tmp_path / "session.jsonl"
    path.write_text("\n".join(json.dumps(r) for r in records) + "\n")
    return path


def test_replay_tracks_each_channel_once(tmp_path: Path) -> None:
    flushed: list = []
    records = load_recording(_write(tmp_path, RECORDING))

    summary = replay_recording(
        records, TrackerConfig(mode="console", on_flush=flushed.extend), start_ms=0
    )

    assert summary.tracked == 4
    assert summary.delivered == 4
    assert summary.flushes == 1
    assert summary.pending == 0
    assert summary.endpoint is None
    assert [e.type for e in flushed] == ["mouse", "keystroke", "scroll", "checkout"]
    mouse, keystroke, scroll, custom = (e.to_dict() for e in flushed)
    assert keystroke["data"]["sanitized"] == "[2 characters]"
    assert keystroke["timestamp"] == 500
    assert mouse["data"] == {"x": 5, "y": 6, "element": "BUTTON", "action": "click"}
    assert scroll["data"]["percentage"] == 50
    assert custom["data"] == {"items": 2}
    assert custom["url"] == "https://shop.example/cart"
    assert "hunter2" not in json.dumps([e.to_dict() for e in flushed])


def test_replay_overflow_flushes_in_batches(tmp_path: Path) -> None:
    records = [{"t": n * 10, "signal": "custom", "type": "tick"} for n in range(5)]

    summary = replay_recording(records, TrackerConfig(mode="console", buffer_capacity=2))

    assert summary.tracked == 5
    assert summary.flushes == 3
    assert summary.pending == 0


def test_load_recording_rejects_unknown_signal(tmp_path: Path) -> None:
    path = _write(tmp_path, [{"t": 0, "signal": "teleport"}])

    with pytest.raises(ValueError, match="line 1: unknown signal"):
        load_recording(path)


def test_load_recording_rejects_bad_json(tmp_path: Path) -> None:
    path = tmp_path / "broken.jsonl"
    path.write_text('{"t": 0, "signal": "page"}\n{oops\n')

    with pytest.raises(ValueError, match="line 2: invalid json"):
        load_recording(path)

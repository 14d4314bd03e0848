from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path

import typer
from rich import print

from chyavan.config import ConfigError, TrackerConfig, resolve_endpoint
from chyavan.redaction import sanitize_text
from chyavan.replay import load_recording, replay_recording


def replay_cmd(*, config: TrackerConfig, recording: Path, as_json: bool) -> None:
    """Replay a recorded session through a tracker and report delivery."""

    try:
        records = load_recording(recording)
    except FileNotFoundError:
        print(f"[red]Recording not found: {recording}[/red]")
        raise typer.Exit(code=1) from None
    except ValueError as exc:
        print(f"[red]Invalid recording: {exc}[/red]")
        raise typer.Exit(code=1) from None
    summary = replay_recording(records, config)
    if as_json:
        print(json.dumps(asdict(summary), indent=2))
        return
    print(f"Session: {summary.session_id}")
    print(f"Endpoint: {summary.endpoint or '(none, local only)'}")
    print(
        f"signals={summary.signals} tracked={summary.tracked} flushes={summary.flushes} "
        f"delivered={summary.delivered} failed={summary.failed_attempts} "
        f"pending={summary.pending}"
    )
    if summary.pending:
        print(f"[yellow]{summary.pending} events were not delivered[/yellow]")


def redact_cmd(text: str) -> None:
    """Print the redaction descriptor for TEXT."""

    print(sanitize_text(text) or "(empty)")


def show_config_cmd(config: TrackerConfig) -> None:
    """Print the resolved tracker configuration."""

    try:
        endpoint = resolve_endpoint(config)
    except ConfigError as exc:
        print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from None
    data = config.to_public_dict()
    data["resolved_endpoint"] = endpoint
    print(json.dumps(data, indent=2, default=str))

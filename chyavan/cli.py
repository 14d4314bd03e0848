from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich import print

from . import __version__
from .commands.receiver_cmds import serve_cmd
from .commands.replay_cmds import redact_cmd, replay_cmd, show_config_cmd
from .config import ConfigError, TrackerConfig, load_config
from .receiver import DEFAULT_RECEIVER_HOST, DEFAULT_RECEIVER_PORT, MAX_EVENTS_PER_BATCH

app = typer.Typer(help="chyavan: privacy-first behavioural event tracking")


def _configure_logging(debug: bool) -> None:
    if debug:
        logging.basicConfig(level=logging.INFO, format="[chyavan] %(name)s: %(message)s")


def _load_config_or_exit(config_path: str | None, **overrides: object) -> TrackerConfig:
    clean = {key: value for key, value in overrides.items() if value is not None}
    try:
        return load_config(Path(config_path) if config_path else None, **clean)
    except (ConfigError, ValueError) as exc:
        print(f"[red]Invalid configuration: {exc}[/red]")
        raise typer.Exit(code=1) from None


@app.command()
def version() -> None:
    """Print the installed version."""

    print(__version__)


@app.command()
def serve(
    host: str = typer.Option(DEFAULT_RECEIVER_HOST, help="Host to bind"),
    port: int = typer.Option(DEFAULT_RECEIVER_PORT, help="Port to bind"),
    max_batch: int = typer.Option(MAX_EVENTS_PER_BATCH, help="Maximum events per batch"),
    allowed_origin: list[str] = typer.Option(
        [], "--allowed-origin", help="Browser origin allowed to post (repeatable)"
    ),
    out: str = typer.Option(None, help="Append accepted events to this JSONL file"),
    debug: bool = typer.Option(False, help="Log every received batch"),
) -> None:
    """Run the reference event receiver."""

    _configure_logging(debug)
    serve_cmd(
        host=host,
        port=port,
        max_batch=max_batch,
        allowed_origins=allowed_origin,
        out_path=out,
    )


@app.command()
def replay(
    recording: Path = typer.Argument(..., help="JSONL recording of DOM signals"),
    config_path: str = typer.Option(None, "--config", help="Path to config.json"),
    endpoint: str = typer.Option(None, help="Delivery endpoint (overrides config)"),
    mode: str = typer.Option(None, help="console, endpoint or hosted"),
    capacity: int = typer.Option(None, help="Buffer capacity that triggers a flush"),
    interval_ms: int = typer.Option(None, help="Periodic flush interval in ms"),
    debug: bool = typer.Option(False, help="Log tracker activity"),
    as_json: bool = typer.Option(False, "--json", help="Print the summary as JSON"),
) -> None:
    """Replay a recorded page session through a tracker."""

    _configure_logging(debug)
    config = _load_config_or_exit(
        config_path,
        delivery_endpoint=endpoint,
        mode=mode,
        buffer_capacity=capacity,
        flush_interval_ms=interval_ms,
        debug=True if debug else None,
    )
    replay_cmd(config=config, recording=recording, as_json=as_json)


@app.command()
def redact(text: str = typer.Argument(..., help="Text to redact")) -> None:
    """Show what a captured value is reduced to."""

    redact_cmd(text)


@app.command("config")
def show_config(
    config_path: str = typer.Option(None, "--config", help="Path to config.json"),
) -> None:
    """Show the resolved tracker configuration."""

    show_config_cmd(_load_config_or_exit(config_path))


if __name__ == "__main__":
    app()

from __future__ import annotations

from pathlib import Path

import typer
from rich import print

from chyavan.receiver import EventSink, run_receiver


def _port_open(host: str, port: int) -> bool:
    import socket

    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.settimeout(0.2)
        try:
            return sock.connect_ex((host, port)) == 0
        except OSError:
            return False


def serve_cmd(
    *,
    host: str,
    port: int,
    max_batch: int,
    allowed_origins: list[str],
    out_path: str | None,
) -> None:
    """Run the reference receiver in the foreground."""

    if max_batch <= 0:
        print("[red]--max-batch must be positive[/red]")
        raise typer.Exit(code=1)
    if _port_open(host, port):
        print(f"[yellow]Something is already listening at http://{host}:{port}[/yellow]")
        raise typer.Exit(code=1)
    sink = EventSink(Path(out_path).expanduser() if out_path else None)
    print(f"[green]Receiver listening at http://{host}:{port}/track[/green]")
    if allowed_origins:
        print(f"Allowed origins: {', '.join(allowed_origins)}")
    try:
        run_receiver(
            host,
            port,
            sink=sink,
            max_events_per_batch=max_batch,
            allowed_origins=allowed_origins,
        )
    except KeyboardInterrupt:
        print(f"[yellow]Receiver stopped ({len(sink)} events accepted)[/yellow]")

"""
CLI entrypoint for ssewatch.
"""
import sys
from typing import List
import typer
import asyncio
from loguru import logger

from ssewatch.client.visualizer import Visualizer
from ssewatch.coordinator import ConnectionCoordinator
from ssewatch.server.main import BroadcastRelay
from ssewatch.shared.config import settings
from ssewatch.shared.errors import BindError, InvalidURLError
from ssewatch.shared.storage import StreamStorage

app = typer.Typer(help="Watch Server-Sent Event streams from remote URLs or the local ingest port")
streams_app = typer.Typer(help="Manage the saved stream list")
app.add_typer(streams_app, name="streams")

def configure_logging(live_dashboard: bool = False) -> None:
    logger.remove()
    if settings.LOG_FILE:
        logger.add(settings.LOG_FILE, level=settings.LOG_LEVEL.upper())
    elif live_dashboard:
        # Lower levels would tear through the live layout
        logger.add(sys.stderr, level="ERROR")
    else:
        logger.add(sys.stderr, level=settings.LOG_LEVEL.upper())

def parse_headers(values: List[str]) -> dict[str, str]:
    headers = {}
    for value in values:
        key, colon, rest = value.partition(":")
        if not colon or not key.strip():
            raise typer.BadParameter(f"Expected 'Name: value', got {value!r}")
        headers[key.strip()] = rest.strip()
    return headers

@app.command()
def watch(
    url: str = typer.Argument(..., help="Stream URL, or the name of a saved stream"),
    search: str = typer.Option(None, help="Case-insensitive payload filter"),
    kind: str = typer.Option(None, "--type", help="Only show events of this kind"),
    header: List[str] = typer.Option([], help="Extra request header, 'Name: value' (repeatable)"),
):
    """Connect to a stream and show its events in a live dashboard."""
    configure_logging(live_dashboard=True)
    saved = {s.name: s.url for s in StreamStorage().load()}
    target = saved.get(url, url)

    coordinator = ConnectionCoordinator(headers=parse_headers(header))
    visualizer = Visualizer(coordinator, search_text=search, type_filter=kind, max_rows=settings.DISPLAY_EVENTS)
    try:
        asyncio.run(visualizer.run(target))
    except InvalidURLError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(2)
    except KeyboardInterrupt:
        pass

    if coordinator.failure is not None:
        typer.echo(str(coordinator.failure), err=True)
        raise typer.Exit(1)

@app.command()
def serve(port: int = typer.Option(settings.PORT, help="Port to accept POSTs and SSE subscribers on")):
    """Run only the local ingest server, relaying every POST body to SSE subscribers."""
    configure_logging()
    relay = BroadcastRelay(port=port)
    typer.echo(f"Relaying on port {port}...")
    try:
        asyncio.run(relay.run())
    except BindError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(1)
    except KeyboardInterrupt:
        pass

@app.command()
def post(
    body: str = typer.Argument(..., help="Body to send"),
    port: int = typer.Option(settings.PORT, help="Local ingest port"),
    kind: str = typer.Option(None, "--type", help="Sent as X-Event-Type"),
):
    """POST a body to the local ingest port."""
    import httpx
    headers = {"Content-Type": "text/plain"}
    if kind:
        headers["X-Event-Type"] = kind
    try:
        resp = httpx.post(f"http://127.0.0.1:{port}/", content=body.encode("utf-8"), headers=headers)
    except httpx.HTTPError as e:
        typer.echo(f"Could not reach the ingest port: {e}", err=True)
        raise typer.Exit(1)
    typer.echo(f"{resp.status_code} {resp.reason_phrase}")

@streams_app.command("list")
def list_streams():
    """Show saved streams (built-ins when nothing is saved)."""
    for stream in StreamStorage().load():
        typer.echo(f"{stream.name}\t{stream.url}")

@streams_app.command("add")
def add_stream(name: str, url: str):
    """Save a named stream."""
    stream = StreamStorage().add(name, url)
    typer.echo(f"Saved {stream.name} -> {stream.url}")

@streams_app.command("remove")
def remove_stream(name: str):
    """Remove a saved stream by name."""
    if not StreamStorage().remove(name):
        typer.echo(f"No saved stream named {name!r}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Removed {name}")

if __name__ == "__main__":
    app()

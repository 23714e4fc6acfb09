"""
MODULE OVERVIEW:
The Rich Terminal Dashboard.

WHAT IS HAPPENING HERE:
We use Rich to draw the coordinator's view of the world: the connection state
(with the attempt count while reconnecting and the reason once failed), the last
error or bind warning, and the newest events of the active target after the
search/type filters. The state store pushes every transition into a short
timeline; the event table is re-read from the coordinator a few times a second.
"""

from rich.live import Live
from rich.layout import Layout
from rich.panel import Panel
from rich.table import Table
from collections import deque
from datetime import datetime
import asyncio

from ssewatch.coordinator import ConnectionCoordinator
from ssewatch.shared.models import ConnectionState

STATE_COLORS = {
    "connected": "green",
    "connecting": "yellow",
    "reconnecting": "yellow",
    "disconnected": "red",
    "failed": "red",
}

def describe_state(state: ConnectionState) -> str:
    if state.status == "reconnecting":
        return f"RECONNECTING (attempt {state.attempt})"
    if state.status == "failed":
        return f"FAILED: {state.reason}"
    return state.status.upper()

class Visualizer:
    def __init__(self, coordinator: ConnectionCoordinator, search_text: str | None = None, type_filter: str | None = None, max_rows: int = 20):
        self.coordinator = coordinator
        self.search_text = search_text
        self.type_filter = type_filter
        self.max_rows = max_rows
        self.timeline = deque(maxlen=5)
        self._unsubscribe = coordinator.state.subscribe(self.on_state_change)

    def on_state_change(self, state: ConnectionState):
        ts = datetime.now().strftime("%H:%M:%S")
        self.timeline.appendleft(f"[{ts}] State: {describe_state(state)}")

    def generate_layout(self) -> Layout:
        layout = Layout()
        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="main")
        )
        layout["main"].split_row(
            Layout(name="left", ratio=2),
            Layout(name="right", ratio=1)
        )
        layout["right"].split_column(
            Layout(name="stats"),
            Layout(name="timeline")
        )

        state = self.coordinator.connection_state
        color = STATE_COLORS.get(state.status, "yellow")
        layout["header"].update(Panel(f"[{color} bold]{self.coordinator.url} | Status: {describe_state(state)}[/]", style=color))

        table = Table(title="Live Event Feed", expand=True)
        table.add_column("Time", justify="left", style="cyan", no_wrap=True)
        table.add_column("Id", style="blue")
        table.add_column("Kind", style="magenta")
        table.add_column("Payload", style="green")

        url = self.coordinator.url
        events = self.coordinator.events_for(url, self.search_text, self.type_filter) if url else []
        for e in reversed(events[-self.max_rows:]):
            payload = e.payload or ""
            payload_str = payload[:60] + "..." if len(payload) > 60 else payload
            table.add_row(e.received_at.astimezone().strftime("%H:%M:%S"), e.event_id, e.kind, payload_str)

        layout["left"].update(Panel(table, title="Feed"))

        client = self.coordinator.client
        stats_text = (
            f"Events Logged: {len(self.coordinator.events_by_stream.get(url, [])) if url else 0}\n"
            f"Shown: {len(events)}\n"
            f"Bytes (session): {client.bytes_received if client else 0}\n"
            f"Attempt: {self.coordinator.attempt}/{self.coordinator.max_attempts}\n"
        )
        if self.coordinator.connection_error:
            stats_text += f"[red]Error: {self.coordinator.connection_error}[/]\n"
        if self.coordinator.warning:
            stats_text += f"[yellow]Warning: {self.coordinator.warning}[/]\n"
        layout["stats"].update(Panel(stats_text, title="Connection Stats"))

        layout["timeline"].update(Panel("\n".join(self.timeline), title="Timeline"))

        return layout

    async def run(self, url: str):
        await self.coordinator.connect(url)
        try:
            with Live(self.generate_layout(), refresh_per_second=4) as live:
                while self.coordinator.connection_state.status not in ("failed", "disconnected"):
                    live.update(self.generate_layout())
                    await asyncio.sleep(0.25)
                live.update(self.generate_layout())
        finally:
            self._unsubscribe()
            await self.coordinator.aclose()

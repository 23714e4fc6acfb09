"""
MODULE OVERVIEW:
One accepted TCP connection on the ingest port, seen from the server's side.

WHAT IS HAPPENING HERE:
The same wrapper answers plain HTTP requests (`send_plain`) and, after `upgrade()`,
acts as a long-lived SSE stream (`send_event`). Its lifecycle is
PENDING -> READY -> CLOSED; CLOSED is terminal and reachable from either of the other
two. Every frame sent is also appended to `transcript` so a stream can be replayed
for diagnostics.
"""
import asyncio
import uuid
from enum import Enum
from loguru import logger

from ssewatch.shared.http_codec import CORS_HEADERS, render_head, render_response
from ssewatch.shared.route_utils import extract_client_id
from ssewatch.shared.sse_codec import render_event

class ConnectionPhase(str, Enum):
    PENDING = "pending"
    READY = "ready"
    CLOSED = "closed"

class OutboundConnection:
    def __init__(self, writer: asyncio.StreamWriter, connection_id: str | None = None):
        # Key in the broadcast set; `name` is the short label used in log lines
        self.id = uuid.uuid4().hex
        self.name = extract_client_id(connection_id)
        self.writer = writer
        self.phase = ConnectionPhase.PENDING
        self.transcript = ""
        self.headers: dict[str, str] = {
            "Cache-Control": "no-cache",
            "Access-Control-Allow-Origin": CORS_HEADERS["Access-Control-Allow-Origin"],
        }

    @property
    def ready(self) -> bool:
        return self.phase == ConnectionPhase.READY

    @property
    def closed(self) -> bool:
        return self.phase == ConnectionPhase.CLOSED

    @property
    def is_event_stream(self) -> bool:
        return self.headers.get("Content-Type") == "text/event-stream"

    def mark_ready(self) -> None:
        """Called once the transport has delivered a complete request."""
        if self.phase == ConnectionPhase.PENDING:
            self.phase = ConnectionPhase.READY

    def _write(self, data: bytes) -> bool:
        if self.writer.is_closing():
            self.close()
            return False
        try:
            self.writer.write(data)
        except (ConnectionError, RuntimeError) as e:
            logger.warning(f"client_id={self.name} protocol=sse event=error reason='{e}'")
            self.close()
            return False
        return True

    # ==========================
    # SSE
    # ==========================
    def upgrade(self) -> None:
        """Send the one-time SSE preamble: status line and headers, no body framing."""
        if self.closed:
            return
        self.headers["Content-Type"] = "text/event-stream"
        self.headers["Connection"] = "keep-alive"
        self._write(render_head(200, self.headers))

    def send_event(self, payload: str, kind: str | None = None, event_id: str | None = None) -> bool:
        if self.closed:
            return False
        message = render_event(payload, kind=kind, event_id=event_id)
        self.transcript += message
        return self._write(message.encode("utf-8"))

    # ==========================
    # PLAIN HTTP
    # ==========================
    async def send_plain(self, body: str | None = None, status: int = 200, headers: dict[str, str] | None = None) -> None:
        """Write a full response; the transport is closed afterwards unless it became an SSE stream."""
        if self.closed:
            return
        merged = {**self.headers, **(headers or {})}
        if not self._write(render_response(status, merged, body)):
            return
        try:
            await self.writer.drain()
        except ConnectionError as e:
            logger.debug(f"client_id={self.name} protocol=http event=error reason='{e}'")
        if not self.is_event_stream:
            self.close()

    def close(self) -> None:
        if self.closed:
            return
        self.phase = ConnectionPhase.CLOSED
        self.writer.close()

"""
MODULE OVERVIEW:
The upstream Server-Sent Events HTTP client.

WHAT IS HAPPENING HERE:
We use the HTTPX `stream()` context manager to keep the body open with no read
timeout. Text chunks go through a `FrameBuffer`, each complete frame is parsed into
a `TextEvent` and handed to the observer, and the frame's id is remembered so a
later session can resume with `Last-Event-ID`.

How the session ends decides what the observer hears:
  - task cancelled (our own `disconnect()`) -> `on_stream_cancelled`, never a retry
  - anything else, including the server simply closing the stream -> `on_stream_error`
"""
import asyncio
from enum import Enum
import httpx

from ssewatch.client.base_client import BaseStreamClient, StreamObserver
from ssewatch.shared.config import Settings, settings as default_settings
from ssewatch.shared.errors import TransportError
from ssewatch.shared.route_utils import log_connection
from ssewatch.shared.sse_codec import FrameBuffer, parse_event

class ClientPhase(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"

class UpstreamSSEClient(BaseStreamClient):
    protocol_name: str = "sse"

    def __init__(
        self,
        url: str,
        observer: StreamObserver,
        headers: dict[str, str] | None = None,
        last_event_id: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        config: Settings = default_settings,
        client_id: str = "upstream",
    ):
        super().__init__(url, observer, client_id=client_id)
        self.headers = dict(headers or {})
        self.last_event_id = last_event_id
        self.config = config
        self.phase = ClientPhase.IDLE
        self._transport = transport
        self._frames = FrameBuffer()
        self._task: asyncio.Task | None = None

    @property
    def is_connected(self) -> bool:
        return self.phase == ClientPhase.CONNECTED

    def request_headers(self) -> dict[str, str]:
        headers = {"Accept": "text/event-stream", "Cache-Control": "no-cache"}
        if self.last_event_id is not None:
            headers["Last-Event-ID"] = self.last_event_id
        headers.update(self.headers)
        return headers

    def connect(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self.phase = ClientPhase.CONNECTING
        self._frames.clear()
        self._task = asyncio.get_running_loop().create_task(self._run(), name=f"sse-client:{self.url}")

    def disconnect(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self.phase = ClientPhase.CLOSED

    async def wait_closed(self) -> None:
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        try:
            await self._stream()
        except asyncio.CancelledError:
            self.phase = ClientPhase.CLOSED
            self._emit_cancelled()
            raise
        except TransportError as e:
            self.phase = ClientPhase.CLOSED
            self._emit_error(e)
        except httpx.HTTPStatusError as e:
            self.phase = ClientPhase.CLOSED
            self._emit_error(TransportError(f"HTTP {e.response.status_code} from {self.url}"))
        except (httpx.HTTPError, OSError) as e:
            self.phase = ClientPhase.CLOSED
            self._emit_error(TransportError(str(e) or e.__class__.__name__))

    async def _stream(self) -> None:
        timeout = httpx.Timeout(self.config.CONNECT_TIMEOUT_S, read=None)
        async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as http:
            async with http.stream("GET", self.url, headers=self.request_headers()) as response:
                response.raise_for_status()
                log_connection("sse:upstream", self.client_id, {"url": self.url, "status": response.status_code})

                async for chunk in response.aiter_text():
                    self.stats["bytes_received"] += len(chunk.encode("utf-8"))
                    for frame in self._frames.feed(chunk):
                        event = parse_event(frame)
                        self.phase = ClientPhase.CONNECTED
                        self._emit_event(event)
                        self.last_event_id = event.event_id

        raise TransportError(f"Stream closed by {self.url}")

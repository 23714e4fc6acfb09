"""
MODULE OVERVIEW:
The central state registry for one watched stream.
This file is the heart of the architecture: it owns the single active target, the
upstream client, the optional local ingest server, the per-URL event logs and the
reconnect timer.

WHAT IS HAPPENING HERE:
Everything runs on one asyncio event loop and every mutation below is a plain
synchronous method, so state changes and log appends can never interleave. The
network components talk back through observer methods (`on_stream_*` for the
client, `on_request` / `on_client_*` for the server). Each of those first checks
that the caller is still the *current* client or server; anything from a
superseded one is ignored, which is what stops a stale reconnect or a late POST
from resurrecting an old target.

State machine:

  connect()            -> Connecting
  event received       -> Connected        (attempt reset to 0)
  transport error      -> Reconnecting(n)  while n < max attempts, else Failed
  cancellation         -> Disconnected     (never retried)
  disconnect()         -> Disconnected     (never retried)
"""

from typing import Dict, List
from loguru import logger
import httpx

from ssewatch.client.base_client import BaseStreamClient
from ssewatch.client.sse_client import UpstreamSSEClient
from ssewatch.server.ingest_server import IngestServer
from ssewatch.server.outbound import OutboundConnection
from ssewatch.shared.client_utils import CancellableTimer, reconnect_delay
from ssewatch.shared.config import Settings, settings as default_settings
from ssewatch.shared.errors import BindError, MaxAttemptsExceeded, StreamError
from ssewatch.shared.events import StateStore
from ssewatch.shared.http_codec import with_cors
from ssewatch.shared.models import (
    Connected,
    Connecting,
    ConnectionState,
    Disconnected,
    Failed,
    HttpRequest,
    HttpResponse,
    Reconnecting,
    StreamTarget,
    TextEvent,
)
from ssewatch.shared.route_utils import is_local_url, parse_target
from ssewatch.shared.sse_codec import parse_event

GREETING = '{"status": "connected"}'

class ConnectionCoordinator:
    def __init__(
        self,
        config: Settings = default_settings,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        self.headers = dict(headers or {})
        self.max_attempts = config.RECONNECT_MAX_ATTEMPTS

        self.state: StateStore[ConnectionState] = StateStore(Disconnected())
        self.target: StreamTarget | None = None
        self.events_by_stream: Dict[str, List[TextEvent]] = {}

        self.attempt = 0
        self.connection_error: str | None = None
        self.warning: str | None = None
        self.failure: MaxAttemptsExceeded | None = None

        self._transport = transport
        self._client: UpstreamSSEClient | None = None
        self._server: IngestServer | None = None
        self._reconnect_timer: CancellableTimer | None = None
        # Bumped by every connect/disconnect; async steps compare against it
        self._generation = 0

    @property
    def url(self) -> str | None:
        return self.target.url if self.target else None

    @property
    def connection_state(self) -> ConnectionState:
        return self.state.value

    @property
    def is_connected(self) -> bool:
        return self.connection_state == Connected()

    @property
    def client(self) -> UpstreamSSEClient | None:
        return self._client

    @property
    def server(self) -> IngestServer | None:
        return self._server

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_timer is not None and self._reconnect_timer.pending

    # ==========================
    # EVENT ACCESS
    # ==========================
    def events_for(self, url: str, search_text: str | None = None, type_filter: str | None = None) -> List[TextEvent]:
        events = list(self.events_by_stream.get(url, []))

        if search_text:
            needle = search_text.casefold()
            events = [e for e in events if e.payload is not None and needle in e.payload.casefold()]

        if type_filter is not None:
            events = [e for e in events if e.kind == type_filter]

        return events

    def clear(self, url: str) -> None:
        if url in self.events_by_stream:
            self.events_by_stream[url] = []
            logger.info(f"url={url} event=clear")

    # ==========================
    # CONNECTION MANAGEMENT
    # ==========================
    async def connect(self, url: str) -> None:
        parsed = parse_target(url)

        self._generation += 1
        generation = self._generation
        self._cancel_reconnect()
        self.attempt = 0

        # Previous components stop, their logs stay
        self._stop_components()

        self.target = StreamTarget(url=url)
        self.connection_error = None
        self.warning = None
        self.failure = None
        self._set_state(Connecting())
        self.events_by_stream.setdefault(url, [])

        if is_local_url(parsed):
            server: IngestServer | None = IngestServer(self, config=self.config)
            try:
                await server.start()
            except BindError as e:
                server = None
                self.warning = f"Failed to start local server: {e.reason}"
                logger.warning(f"url={url} port={self.config.PORT} event=bind_failed reason='{e.reason}'")

            if generation != self._generation:
                # A newer connect/disconnect ran while we were binding
                if server is not None:
                    server.stop()
                return
            self._server = server

        self._start_client()

    def disconnect(self) -> None:
        self._generation += 1
        self._cancel_reconnect()
        self.attempt = 0
        self._stop_components()
        self._set_state(Disconnected())

    async def aclose(self) -> None:
        client = self._client
        self.disconnect()
        if client is not None:
            await client.wait_closed()

    def _start_client(self, last_event_id: str | None = None) -> None:
        client = UpstreamSSEClient(
            self.target.url,
            self,
            headers=self.headers,
            last_event_id=last_event_id,
            transport=self._transport,
            config=self.config,
        )
        self._client = client
        client.connect()

    def _stop_components(self) -> None:
        if self._client is not None:
            self._client.disconnect()
            self._client = None
        if self._server is not None:
            self._server.stop()
            self._server = None

    def _set_state(self, state: ConnectionState) -> None:
        if state != self.state.value:
            logger.debug(f"url={self.url} event=state state={state.status}")
        self.state.publish(state)

    def _receive(self, event: TextEvent) -> None:
        self.events_by_stream.setdefault(self.target.url, []).append(event)
        if self._client is None:
            # Failed or disconnected: nothing upstream to call connected
            return
        self._set_state(Connected())
        self.attempt = 0

    # ==========================
    # AUTO-RECONNECT
    # ==========================
    def _schedule_reconnect(self, last_event_id: str | None) -> None:
        self.attempt += 1
        self._set_state(Reconnecting(attempt=self.attempt))

        delay = reconnect_delay(self.attempt, self.config.RECONNECT_BASE_DELAY_S, self.config.RECONNECT_MAX_DELAY_S)
        generation = self._generation
        timer = CancellableTimer(delay, lambda: self._fire_reconnect(timer, generation, last_event_id))
        self._reconnect_timer = timer.start()
        logger.info(f"url={self.url} event=reconnect_scheduled attempt={self.attempt} delay_s={delay:.2f}")

    def _fire_reconnect(self, timer: CancellableTimer, generation: int, last_event_id: str | None) -> None:
        if timer is not self._reconnect_timer or generation != self._generation:
            return
        self._reconnect_timer = None
        logger.info(f"url={self.url} event=reconnect attempt={self.attempt}")
        self._start_client(last_event_id)

    def _cancel_reconnect(self) -> None:
        if self._reconnect_timer is not None:
            self._reconnect_timer.cancel()
            self._reconnect_timer = None

    # ==========================
    # UPSTREAM CLIENT OBSERVER
    # ==========================
    def on_stream_event(self, client: BaseStreamClient, event: TextEvent) -> None:
        if client is not self._client:
            return
        self._receive(event)

    def on_stream_error(self, client: BaseStreamClient, error: StreamError) -> None:
        if client is not self._client:
            return
        message = str(error)
        self.connection_error = message

        if self.attempt < self.max_attempts:
            self._schedule_reconnect(getattr(client, "last_event_id", None))
        else:
            self.failure = MaxAttemptsExceeded(self.attempt, message)
            self._client = None
            self._set_state(Failed(reason=message))
            logger.error(f"url={self.url} event=failed attempts={self.attempt} reason='{message}'")

    def on_stream_cancelled(self, client: BaseStreamClient) -> None:
        if client is not self._client:
            return
        self._cancel_reconnect()
        self._client = None
        self._set_state(Disconnected())

    # ==========================
    # INGEST SERVER OBSERVER
    # ==========================
    def on_request(self, server: IngestServer, request: HttpRequest) -> HttpResponse:
        if server is not self._server:
            # A request that finished on a server this coordinator already replaced
            logger.debug(f"url={self.url} event=stale_request port={server.port}")
            return with_cors(HttpResponse.ok())
        self.ingest(request.body, kind=request.header("X-Event-Type"))
        return with_cors(HttpResponse.ok())

    def on_client_connected(self, server: IngestServer, connection: OutboundConnection) -> None:
        if server is not self._server:
            return
        connection.send_event(GREETING)

    def on_client_disconnected(self, server: IngestServer, connection: OutboundConnection) -> None:
        logger.debug(f"client_id={connection.name} protocol=sse event=disconnect transcript_bytes={len(connection.transcript)}")

    def ingest(self, body: str | None, kind: str | None = None) -> TextEvent | None:
        """Turn a POSTed body into an event on the active target's log."""
        if not body or self.target is None:
            return None
        chunk = f"data: {body}"
        if kind:
            chunk = f"event: {kind}\n{chunk}"
        event = parse_event(chunk)
        self._receive(event)
        return event

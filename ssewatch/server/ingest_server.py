"""
MODULE OVERVIEW:
The local ingest server: a raw asyncio TCP listener speaking just enough HTTP/1.1.

WHAT IS HAPPENING HERE:
Every accepted socket gets its own read loop that buffers bytes until
`parse_request` reports a complete request. The request is then classified:

  OPTIONS                        -> 200 with CORS headers, close
  GET + Accept: text/event-stream -> SSE subscriber, kept in the broadcast set
  POST                           -> handed to the observer, its response is sent, close
  anything else                  -> 404

The server never decides what a POST *means*. It only hands the parsed request to
whoever observes it (the coordinator, or the standalone relay) and writes back the
response it gets.
"""
import asyncio
import weakref
from typing import Dict, Protocol
from loguru import logger

from ssewatch.server.outbound import OutboundConnection
from ssewatch.shared.config import Settings, settings as default_settings
from ssewatch.shared.errors import BindError, HttpParseError
from ssewatch.shared.http_codec import CORS_HEADERS, parse_request
from ssewatch.shared.models import HttpRequest, HttpResponse
from ssewatch.shared.route_utils import RequestKind, classify_request, log_connection

class IngestObserver(Protocol):
    def on_request(self, server: "IngestServer", request: HttpRequest) -> HttpResponse: ...

    def on_client_connected(self, server: "IngestServer", connection: OutboundConnection) -> None: ...

    def on_client_disconnected(self, server: "IngestServer", connection: OutboundConnection) -> None: ...

class IngestServer:
    def __init__(self, observer: IngestObserver, port: int | None = None, config: Settings = default_settings):
        # Weak reference: the observer usually owns this server
        self._observer = weakref.ref(observer)
        self.config = config
        self.host = config.HOST
        self.port = config.PORT if port is None else port
        self.clients: Dict[str, OutboundConnection] = {}
        self._server: asyncio.AbstractServer | None = None

    @property
    def running(self) -> bool:
        return self._server is not None

    async def start(self, port: int | None = None) -> None:
        if port is not None:
            self.port = port
        try:
            self._server = await asyncio.start_server(self._handle_connection, self.host, self.port)
        except OSError as e:
            raise BindError(self.port, e.strerror or str(e)) from e

        sockets = self._server.sockets or []
        if sockets:
            self.port = sockets[0].getsockname()[1]
        logger.info(f"protocol=http event=listen host={self.host} port={self.port}")

    def stop(self) -> None:
        """Stop accepting. Open SSE connections end with their own transports."""
        if self._server is None:
            return
        self._server.close()
        self._server = None
        logger.info(f"protocol=http event=stop port={self.port}")

    async def serve_forever(self) -> None:
        if self._server is None:
            await self.start()
        await self._server.serve_forever()

    # ==========================
    # CONNECTION HANDLING
    # ==========================
    async def _handle_connection(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        connection = OutboundConnection(writer)
        try:
            request = await self._read_request(connection, reader)
            if request is None:
                return
            connection.mark_ready()
            await self._dispatch(connection, request, reader)
        except ConnectionError as e:
            logger.debug(f"client_id={connection.name} protocol=http event=error reason='{e}'")
        except Exception as e:
            logger.exception(f"client_id={connection.name} protocol=http event=error reason='{e}'")
        finally:
            connection.close()

    async def _read_request(self, connection: OutboundConnection, reader: asyncio.StreamReader) -> HttpRequest | None:
        limit = self.config.READ_CHUNK_SIZE * self.config.MAX_REQUEST_CHUNKS
        buffer = b""
        while True:
            data = await reader.read(self.config.READ_CHUNK_SIZE)
            if not data:
                # Peer hung up before a full request; drop the partial read
                logger.debug(f"client_id={connection.name} protocol=http event=drop reason=incomplete bytes={len(buffer)}")
                return None
            buffer += data
            try:
                request = parse_request(buffer)
            except HttpParseError as e:
                logger.warning(f"client_id={connection.name} protocol=http event=drop reason='{e}'")
                await connection.send_plain("Bad Request", status=400)
                return None
            if request is not None:
                return request
            if len(buffer) > limit:
                logger.warning(f"client_id={connection.name} protocol=http event=drop reason=too_large bytes={len(buffer)}")
                await connection.send_plain("Request Too Large", status=400)
                return None

    async def _dispatch(self, connection: OutboundConnection, request: HttpRequest, reader: asyncio.StreamReader) -> None:
        kind = classify_request(request)
        logger.debug(f"client_id={connection.name} protocol=http method={request.method} path={request.path} kind={kind.value}")

        if kind == RequestKind.PREFLIGHT:
            await connection.send_plain(None, status=200, headers=CORS_HEADERS)
        elif kind == RequestKind.SUBSCRIBE:
            await self._serve_subscriber(connection, reader)
        elif kind == RequestKind.INGEST:
            observer = self._observer()
            response = observer.on_request(self, request) if observer is not None else HttpResponse.ok()
            await connection.send_plain(response.body, status=response.status, headers=response.headers)
        else:
            await connection.send_plain("Not Found", status=404)

    async def _serve_subscriber(self, connection: OutboundConnection, reader: asyncio.StreamReader) -> None:
        connection.upgrade()
        self.clients[connection.id] = connection
        log_connection("sse:connect", connection.name, {"subscribers": len(self.clients)})

        observer = self._observer()
        if observer is not None:
            observer.on_client_connected(self, connection)

        try:
            # Subscribers never send anything useful; wait for EOF or a reset
            while await reader.read(self.config.READ_CHUNK_SIZE):
                pass
        except ConnectionError:
            pass
        finally:
            connection.close()
            self.clients.pop(connection.id, None)
            log_connection("sse:disconnect", connection.name, {"subscribers": len(self.clients)})
            observer = self._observer()
            if observer is not None:
                observer.on_client_disconnected(self, connection)

    # ==========================
    # FAN-OUT
    # ==========================
    def broadcast(self, payload: str, kind: str | None = None, event_id: str | None = None) -> int:
        """Send one frame to every subscriber. Returns how many deliveries succeeded."""
        delivered = 0
        for client_id, connection in list(self.clients.items()):
            try:
                if connection.send_event(payload, kind=kind, event_id=event_id):
                    delivered += 1
            except Exception as e:
                logger.warning(f"client_id={client_id} protocol=sse event=dropped reason='{e}'")
        return delivered

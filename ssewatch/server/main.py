"""
MODULE OVERVIEW:
The standalone relay: the ingest server on its own, without a coordinator.

WHAT IS HAPPENING HERE:
Any process can POST a plain body to the ingest port and every SSE subscriber gets
it as a frame. The `X-Event-Type` request header, when present, becomes the frame's
`event:` line. We keep the relay running until the task is cancelled (Ctrl-C in the
CLI), then stop the listener in a `finally` block.
"""
import asyncio
from loguru import logger

from ssewatch.server.ingest_server import IngestServer
from ssewatch.server.outbound import OutboundConnection
from ssewatch.shared.config import Settings, settings as default_settings
from ssewatch.shared.http_codec import with_cors
from ssewatch.shared.models import HttpRequest, HttpResponse

class BroadcastRelay:
    greeting = '{"status": "connected"}'

    def __init__(self, port: int | None = None, config: Settings = default_settings):
        self.server = IngestServer(self, port=port, config=config)
        self.total_events_dispatched = 0

    def on_request(self, server: IngestServer, request: HttpRequest) -> HttpResponse:
        if request.body:
            delivered = server.broadcast(request.body, kind=request.header("X-Event-Type"))
            self.total_events_dispatched += 1
            logger.info(f"protocol=http event=relay subscribers={delivered} bytes={len(request.body)}")
        return with_cors(HttpResponse.ok())

    def on_client_connected(self, server: IngestServer, connection: OutboundConnection) -> None:
        connection.send_event(self.greeting)

    def on_client_disconnected(self, server: IngestServer, connection: OutboundConnection) -> None:
        pass

    async def run(self) -> None:
        await self.server.start()
        try:
            await self.server.serve_forever()
        except asyncio.CancelledError:
            logger.debug("protocol=http event=relay_cancelled")
            raise
        finally:
            self.server.stop()
            logger.info(f"Relay shut down after {self.total_events_dispatched} events.")

"""Tests for the upstream SSE client, with HTTP faked by httpx.MockTransport."""

import asyncio

import httpx
import pytest

from ssewatch.client.sse_client import ClientPhase, UpstreamSSEClient
from ssewatch.shared.config import Settings
from ssewatch.shared.errors import TransportError


class RecordingObserver:
    def __init__(self) -> None:
        self.events = []
        self.errors = []
        self.cancelled = 0

    def on_stream_event(self, client, event):
        self.events.append(event)

    def on_stream_error(self, client, error):
        self.errors.append(error)

    def on_stream_cancelled(self, client):
        self.cancelled += 1


def chunked(*chunks: bytes, hold_open: bool = False):
    async def body():
        for chunk in chunks:
            yield chunk
            await asyncio.sleep(0)
        if hold_open:
            await asyncio.Event().wait()

    return body()


class TestRequestHeaders:
    def test_defaults(self) -> None:
        client = UpstreamSSEClient("http://example.test/", RecordingObserver())

        headers = client.request_headers()

        assert headers["Accept"] == "text/event-stream"
        assert "Last-Event-ID" not in headers

    def test_last_event_id_and_custom_headers(self) -> None:
        client = UpstreamSSEClient(
            "http://example.test/",
            RecordingObserver(),
            headers={"Authorization": "Bearer t"},
            last_event_id="41",
        )

        headers = client.request_headers()

        assert headers["Last-Event-ID"] == "41"
        assert headers["Authorization"] == "Bearer t"


class TestStreaming:
    @pytest.mark.asyncio
    async def test_frames_across_chunks_then_server_hangs_up(self, fast_settings: Settings) -> None:
        observer = RecordingObserver()
        seen_headers = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen_headers.append(request.headers)
            return httpx.Response(
                200,
                headers={"Content-Type": "text/event-stream"},
                content=chunked(b"id: 1\ndata: hel", b"lo\n\n: ping\n\n", b'data: {"a":1}\n\n'),
            )

        client = UpstreamSSEClient(
            "http://example.test/stream", observer, transport=httpx.MockTransport(handler), config=fast_settings
        )
        client.connect()
        await client.wait_closed()

        assert [(e.event_id, e.kind, e.payload) for e in observer.events] == [
            ("1", "message", "hello"),
            ("", "system", '{"a":1}'),
        ]
        # Updated after every dispatch, even to an empty id
        assert client.last_event_id == ""
        assert client.events_received == 2
        assert seen_headers[0]["accept"] == "text/event-stream"
        assert len(observer.errors) == 1
        assert isinstance(observer.errors[0], TransportError)
        assert client.phase == ClientPhase.CLOSED

    @pytest.mark.asyncio
    async def test_error_status_is_transport_error(self, fast_settings: Settings) -> None:
        observer = RecordingObserver()
        transport = httpx.MockTransport(lambda request: httpx.Response(503))

        client = UpstreamSSEClient("http://example.test/", observer, transport=transport, config=fast_settings)
        client.connect()
        await client.wait_closed()

        assert observer.events == []
        assert "HTTP 503" in str(observer.errors[0])

    @pytest.mark.asyncio
    async def test_connection_failure_is_transport_error(self, fast_settings: Settings) -> None:
        observer = RecordingObserver()

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = UpstreamSSEClient("http://example.test/", observer, transport=httpx.MockTransport(handler), config=fast_settings)
        client.connect()
        await client.wait_closed()

        assert "connection refused" in str(observer.errors[0])
        assert observer.cancelled == 0

    @pytest.mark.asyncio
    async def test_disconnect_reports_cancellation_not_error(self, fast_settings: Settings, wait_until) -> None:
        observer = RecordingObserver()
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, content=chunked(b"data: one\n\n", hold_open=True))
        )

        client = UpstreamSSEClient("http://example.test/", observer, transport=transport, config=fast_settings)
        client.connect()
        await wait_until(lambda: observer.events)
        assert client.is_connected

        client.disconnect()
        await client.wait_closed()

        assert observer.cancelled == 1
        assert observer.errors == []
        assert client.phase == ClientPhase.CLOSED

from abc import ABC, abstractmethod
import weakref
from typing import Protocol
from loguru import logger

from ssewatch.shared.client_utils import make_client_stats, utc_timestamp
from ssewatch.shared.errors import StreamError
from ssewatch.shared.models import TextEvent

class StreamObserver(Protocol):
    def on_stream_event(self, client: "BaseStreamClient", event: TextEvent) -> None: ...

    def on_stream_error(self, client: "BaseStreamClient", error: StreamError) -> None: ...

    def on_stream_cancelled(self, client: "BaseStreamClient") -> None: ...

class BaseStreamClient(ABC):
    protocol_name: str = "unknown"

    def __init__(self, url: str, observer: StreamObserver, client_id: str = "upstream"):
        self.url = url
        self.client_id = client_id
        # Weak reference: the observer owns this client, not the other way round
        self._observer = weakref.ref(observer)
        self.stats = make_client_stats()

    @property
    def events_received(self) -> int:
        return self.stats["events_received"]

    @property
    def bytes_received(self) -> int:
        return self.stats["bytes_received"]

    def _emit_event(self, event: TextEvent) -> None:
        self.stats["events_received"] += 1
        self.stats["last_event_at"] = utc_timestamp()
        if self.stats["connected_at"] is None:
            self.stats["connected_at"] = self.stats["last_event_at"]
        observer = self._observer()
        if observer is not None:
            observer.on_stream_event(self, event)

    def _emit_error(self, error: StreamError) -> None:
        logger.warning(f"protocol={self.protocol_name} client_id={self.client_id} url={self.url} event=error reason='{error}'")
        observer = self._observer()
        if observer is not None:
            observer.on_stream_error(self, error)

    def _emit_cancelled(self) -> None:
        logger.debug(f"protocol={self.protocol_name} client_id={self.client_id} url={self.url} event=cancelled")
        observer = self._observer()
        if observer is not None:
            observer.on_stream_cancelled(self)

    @abstractmethod
    def connect(self) -> None:
        """Start the read loop in the background."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        pass

import asyncio
from typing import Callable
from datetime import datetime, timezone

def make_client_stats() -> dict:
    """
    Returns a fresh stats dictionary with zeroed counters.
    Every upstream client calls this once in __init__.
    Keys: events_received, bytes_received, last_event_at, connected_at.
    """
    return {
        "events_received": 0,
        "bytes_received": 0,
        "last_event_at": None,
        "connected_at": None,
    }

def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()

def reconnect_delay(attempt: int, base_delay_s: float = 1.0, max_delay_s: float = 30.0) -> float:
    """
    Exponential back-off for the 1-based `attempt`: 1, 2, 4, 8, 16, 30, 30, ...
    """
    if attempt < 1:
        return 0.0
    return min(base_delay_s * (2 ** (attempt - 1)), max_delay_s)

class CancellableTimer:
    """
    A one-shot timer handle on the running event loop.

    Once `cancel()` has been called the callback is replaced by a no-op, even if the
    loop already dequeued the underlying handle.
    """

    def __init__(self, delay_s: float, callback: Callable[[], None]):
        self.delay_s = delay_s
        self._callback: Callable[[], None] | None = callback
        self._handle: asyncio.TimerHandle | None = None
        self.fired = False

    @property
    def cancelled(self) -> bool:
        return self._callback is None and not self.fired

    @property
    def pending(self) -> bool:
        return self._handle is not None and self._callback is not None and not self.fired

    def start(self) -> "CancellableTimer":
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay_s, self._fire)
        return self

    def cancel(self) -> None:
        if self.fired:
            return
        self._callback = None
        if self._handle is not None:
            self._handle.cancel()

    def _fire(self) -> None:
        callback = self._callback
        if callback is None:
            return
        self.fired = True
        self._callback = None
        callback()

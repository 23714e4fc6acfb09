import asyncio
import socket
from typing import Awaitable, Callable

import pytest

from ssewatch.shared.config import Settings


@pytest.fixture(autouse=True)
def no_proxy_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep httpx from routing local test traffic through a proxy."""
    for name in ("HTTP_PROXY", "HTTPS_PROXY", "ALL_PROXY", "http_proxy", "https_proxy", "all_proxy"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def fast_settings(free_port: int, tmp_path) -> Settings:
    return Settings(
        PORT=free_port,
        HOST="127.0.0.1",
        RECONNECT_BASE_DELAY_S=0.01,
        RECONNECT_MAX_DELAY_S=0.01,
        CONNECT_TIMEOUT_S=2.0,
        STREAMS_FILE=str(tmp_path / "streams.json"),
    )


@pytest.fixture
def wait_until() -> Callable[..., Awaitable[None]]:
    async def _wait(predicate: Callable[[], bool], timeout: float = 3.0) -> None:
        deadline = asyncio.get_running_loop().time() + timeout
        while not predicate():
            if asyncio.get_running_loop().time() > deadline:
                raise AssertionError("condition not met before timeout")
            await asyncio.sleep(0.01)

    return _wait

"""
MODULE OVERVIEW:
This module provides application-wide configuration using Pydantic Settings.
Where it fits: every component (ingest server, upstream client, coordinator, CLI)
reads its timings and ports from here.

WHAT IS HAPPENING HERE:
We are declaring the back-off constants, the local ingest port and the storage
location in one place. Instead of hardcoding "30 seconds" deep inside the
reconnect logic, we declare it globally here. Tests build their own `Settings`
instance with tiny delays and free ports.
"""
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    PORT: int = 8787
    HOST: str = "0.0.0.0"
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str | None = None

    # Reconnect back-off
    RECONNECT_BASE_DELAY_S: float = 1.0
    RECONNECT_MAX_DELAY_S: float = 30.0
    RECONNECT_MAX_ATTEMPTS: int = 10

    # Upstream client
    CONNECT_TIMEOUT_S: float = 10.0

    # Ingest server
    READ_CHUNK_SIZE: int = 65536
    # A request still incomplete after this many chunks is rejected
    MAX_REQUEST_CHUNKS: int = 16

    # Persisted stream list
    STREAMS_FILE: str = "~/.ssewatch/streams.json"

    # Dashboard
    DISPLAY_EVENTS: int = 20

    class Config:
        env_prefix = "SSEWATCH_"
        env_file = ".env"
        # Tolerate missing env vars to allow easy out-of-the-box execution
        env_file_encoding = 'utf-8'
        extra = 'ignore'

settings = Settings()

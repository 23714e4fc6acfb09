"""
Persisted list of named streams, stored as a JSON array of {id, name, url} records.

A missing, empty or unreadable file is never an error: `load` falls back to the
built-in streams instead.
"""
import json
from pathlib import Path
from typing import List
from loguru import logger
from pydantic import TypeAdapter, ValidationError

from .config import Settings, settings as default_settings
from .models import StreamConnection

DEFAULT_STREAMS = [
    StreamConnection(name="Localhost", url="http://localhost:8787/"),
    StreamConnection(name="SSE Demo", url="https://sse.dev/test"),
]

_streams_adapter = TypeAdapter(List[StreamConnection])

class StreamStorage:
    def __init__(self, path: str | Path | None = None, config: Settings = default_settings):
        self.path = Path(path if path is not None else config.STREAMS_FILE).expanduser()

    def load(self) -> List[StreamConnection]:
        try:
            raw = self.path.read_text(encoding="utf-8")
            streams = _streams_adapter.validate_json(raw)
        except FileNotFoundError:
            return [s.model_copy() for s in DEFAULT_STREAMS]
        except (OSError, ValidationError) as e:
            logger.warning(f"path={self.path} event=load_failed reason='{e.__class__.__name__}'")
            return [s.model_copy() for s in DEFAULT_STREAMS]

        if not streams:
            return [s.model_copy() for s in DEFAULT_STREAMS]
        return streams

    def save(self, streams: List[StreamConnection]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = [s.model_dump() for s in streams]
        self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        logger.debug(f"path={self.path} event=save count={len(streams)}")

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)

    def add(self, name: str, url: str) -> StreamConnection:
        streams = self.load()
        stream = StreamConnection(name=name, url=url)
        streams.append(stream)
        self.save(streams)
        return stream

    def remove(self, name: str) -> bool:
        streams = self.load()
        kept = [s for s in streams if s.name != name]
        if len(kept) == len(streams):
            return False
        self.save(kept)
        return True

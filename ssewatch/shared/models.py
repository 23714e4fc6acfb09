"""
MODULE OVERVIEW:
This module defines the strictly typed data structures shared by the ingest server,
the upstream client and the coordinator, powered by Pydantic v2.

WHAT IS HAPPENING HERE:
`TextEvent` is the one unit everything revolves around: the upstream client parses
it from SSE frames, the coordinator appends it to per-URL logs and the dashboard
renders it. It is frozen, so a logged event can never be mutated after the fact.
`ConnectionState` is a tagged union: exactly one of these variants describes the
coordinator at any moment, and the `status` literal is the tag.
"""
from typing import Annotated, Literal, Union
from uuid import uuid4
from datetime import datetime, timezone
from pydantic import BaseModel, ConfigDict, Field

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

class TextEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_id: str = ""
    kind: str = "message"
    payload: str | None = None
    received_at: datetime = Field(default_factory=_utcnow)

# WHAT IS HAPPENING HERE:
# One small frozen model per state. Equality is by value, so
# `Reconnecting(attempt=2) == Reconnecting(attempt=2)` holds.
class Disconnected(BaseModel):
    model_config = ConfigDict(frozen=True)
    status: Literal["disconnected"] = "disconnected"

class Connecting(BaseModel):
    model_config = ConfigDict(frozen=True)
    status: Literal["connecting"] = "connecting"

class Connected(BaseModel):
    model_config = ConfigDict(frozen=True)
    status: Literal["connected"] = "connected"

class Reconnecting(BaseModel):
    model_config = ConfigDict(frozen=True)
    status: Literal["reconnecting"] = "reconnecting"
    attempt: int

class Failed(BaseModel):
    model_config = ConfigDict(frozen=True)
    status: Literal["failed"] = "failed"
    reason: str

ConnectionState = Annotated[
    Union[Disconnected, Connecting, Connected, Reconnecting, Failed],
    Field(discriminator="status"),
]

class StreamTarget(BaseModel):
    model_config = ConfigDict(frozen=True)
    url: str

class StreamConnection(BaseModel):
    """A named stream in the persisted list."""
    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    url: str

class HttpRequest(BaseModel):
    method: str
    path: str = "/"
    headers: dict[str, str] = Field(default_factory=dict)
    body: str | None = None

    def header(self, name: str) -> str | None:
        """Case-insensitive header lookup; keys keep the case they were received with."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None

class HttpResponse(BaseModel):
    status: int = 200
    headers: dict[str, str] = Field(default_factory=dict)
    body: str | None = None

    def with_header(self, name: str, value: str) -> "HttpResponse":
        return self.model_copy(update={"headers": {**self.headers, name: value}})

    @classmethod
    def ok(cls, body: str | None = None) -> "HttpResponse":
        return cls(status=200, body=body)

    @classmethod
    def not_found(cls, message: str = "Not Found") -> "HttpResponse":
        return cls(status=404, body=message)

    @classmethod
    def bad_request(cls, message: str = "Bad Request") -> "HttpResponse":
        return cls(status=400, body=message)

    @classmethod
    def no_content(cls) -> "HttpResponse":
        return cls(status=204)

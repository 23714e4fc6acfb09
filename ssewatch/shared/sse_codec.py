"""
MODULE OVERVIEW:
The Server-Sent Events frame codec.

WHAT IS HAPPENING HERE:
We manually parse the `id: `, `event: ` and `data: ` lines to keep the RAW text
protocol visible. A frame is everything up to a blank line ("\\n\\n"). Segments that
start with ":" are comments (usually keep-alives) and never become events.

Parsing is deliberately minimal: `id` and `event` keep their first occurrence, `data`
keeps its last one, and multi-line data is not folded.
"""
from .models import TextEvent

FRAME_SEPARATOR = "\n\n"

_ID_PREFIX = "id: "
_EVENT_PREFIX = "event: "
_DATA_PREFIX = "data: "

def looks_like_json_object(payload: str | None) -> bool:
    """Cheap structural check used to promote JSON-object payloads to `system` events."""
    if payload is None:
        return False
    trimmed = payload.strip()
    return trimmed.startswith("{") and trimmed.endswith("}")

def parse_event(chunk: str) -> TextEvent:
    """Parse one raw frame into a TextEvent. Never raises."""
    event_id: str | None = None
    kind: str | None = None
    payload: str | None = None

    for line in chunk.split("\n"):
        if line.startswith(_ID_PREFIX):
            if event_id is None:
                event_id = line[len(_ID_PREFIX):]
        elif line.startswith(_EVENT_PREFIX):
            if kind is None:
                kind = line[len(_EVENT_PREFIX):]
        elif line.startswith(_DATA_PREFIX):
            payload = line[len(_DATA_PREFIX):]

    # System events are JSON objects {}
    if looks_like_json_object(payload):
        kind = "system"

    return TextEvent(event_id=event_id or "", kind=kind or "message", payload=payload)

def split_frames(text: str) -> list[str]:
    """Split already-terminated text into usable frames, dropping empties and comments."""
    frames = []
    for segment in text.split(FRAME_SEPARATOR):
        if not segment:
            continue
        if segment.startswith(":"):
            continue
        frames.append(segment)
    return frames

def render_event(payload: str, kind: str | None = None, event_id: str | None = None) -> str:
    message = ""
    if event_id is not None:
        message += f"{_ID_PREFIX}{event_id}\n"
    if kind is not None:
        message += f"{_EVENT_PREFIX}{kind}\n"
    message += f"{_DATA_PREFIX}{payload}{FRAME_SEPARATOR}"
    return message

class FrameBuffer:
    """
    Accumulates streamed text and hands out complete frames.

    A frame split across two network chunks stays buffered until its blank line
    arrives. CRLF line endings are folded to LF first; a lone trailing "\\r" waits
    for the next chunk so a CRLF pair split across chunks still folds.
    """

    def __init__(self):
        self._buffer = ""

    @property
    def pending(self) -> str:
        return self._buffer

    def feed(self, text: str) -> list[str]:
        self._buffer = (self._buffer + text).replace("\r\n", "\n")
        complete, sep, rest = self._buffer.rpartition(FRAME_SEPARATOR)
        if not sep:
            return []
        self._buffer = rest
        return split_frames(complete)

    def clear(self) -> None:
        self._buffer = ""

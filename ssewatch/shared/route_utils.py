import uuid
from enum import Enum
import httpx
from loguru import logger

from .errors import InvalidURLError
from .models import HttpRequest

LOCAL_HOSTS = {"", "localhost", "127.0.0.1"}

class RequestKind(str, Enum):
    PREFLIGHT = "preflight"
    INGEST = "ingest"
    SUBSCRIBE = "subscribe"
    UNSUPPORTED = "unsupported"

def extract_client_id(client_id: str | None = None) -> str:
    """
    If the caller provided a client_id, use it.
    If not, generate a short readable one like 'client-a3f2'.
    This prevents anonymous connections from cluttering logs.
    """
    if client_id:
        return client_id
    return f"client-{str(uuid.uuid4())[:4]}"

def log_connection(protocol: str, client_id: str, extra: dict | None = None) -> None:
    """
    Single structured log entry for a connection lifecycle step.
    Writes: protocol, client_id and any extra fields.
    """
    log_str = f"protocol={protocol} client_id={client_id}"
    for k, v in (extra or {}).items():
        log_str += f" {k}={v}"
    logger.info(log_str)

def classify_request(request: HttpRequest) -> RequestKind:
    method = request.method.upper()
    if method == "OPTIONS":
        return RequestKind.PREFLIGHT
    if method == "POST":
        return RequestKind.INGEST
    if method == "GET" and "text/event-stream" in (request.header("Accept") or ""):
        return RequestKind.SUBSCRIBE
    return RequestKind.UNSUPPORTED

def parse_target(url: str) -> httpx.URL:
    """Validate a stream target. Only absolute http(s) URLs are accepted."""
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError) as e:
        raise InvalidURLError(url, str(e)) from e
    if parsed.scheme not in ("http", "https"):
        raise InvalidURLError(url, f"unsupported scheme {parsed.scheme!r}")
    return parsed

def is_local_url(url: str | httpx.URL) -> bool:
    host = url.host if isinstance(url, httpx.URL) else parse_target(url).host
    return host in LOCAL_HOSTS

"""
MODULE OVERVIEW:
A deliberately tiny HTTP/1.x request parser and response renderer.

WHAT IS HAPPENING HERE:
The ingest server is not a web framework. It reads raw bytes off a socket and asks
`parse_request` whether they already form a whole request. `None` means "keep
reading": either the blank line ending the headers has not arrived yet, or fewer
body bytes than `Content-Length` are buffered. Requests without `Content-Length`
are complete as soon as the headers are.
"""
from .errors import HttpParseError
from .models import HttpRequest, HttpResponse

HEADER_TERMINATOR = b"\r\n\r\n"
CRLF = "\r\n"
HTTP_VERSION = "HTTP/1.1"

STATUS_TEXT = {
    200: "OK",
    201: "Created",
    204: "No Content",
    301: "Moved Permanently",
    302: "Found",
    304: "Not Modified",
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    500: "Internal Server Error",
    502: "Bad Gateway",
    503: "Service Unavailable",
}

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, X-Event-Type",
}

def status_text(status: int) -> str:
    return STATUS_TEXT.get(status, "OK")

def _declared_length(headers: dict[str, str]) -> int | None:
    for key, value in headers.items():
        if key.lower() == "content-length":
            try:
                return int(value)
            except ValueError:
                return None
    return None

def parse_request(buffer: bytes) -> HttpRequest | None:
    """
    Parse a buffered request, or return None while it is still incomplete.

    Raises HttpParseError when the header section is complete but has no usable
    request line.
    """
    head, sep, body_bytes = buffer.partition(HEADER_TERMINATOR)
    if not sep:
        return None

    lines = [line for line in head.decode("utf-8", errors="replace").split(CRLF) if line]
    if not lines:
        raise HttpParseError("empty request line")

    request_parts = lines[0].split()
    if not request_parts:
        raise HttpParseError(f"malformed request line: {lines[0]!r}")
    method = request_parts[0]
    path = request_parts[1] if len(request_parts) > 1 else "/"

    headers: dict[str, str] = {}
    for line in lines[1:]:
        key, colon, value = line.partition(":")
        if colon:
            headers[key.strip()] = value.strip()

    # Compared in bytes, so multi-byte bodies are not cut short
    declared = _declared_length(headers)
    if declared is not None and len(body_bytes) < declared:
        return None

    body = body_bytes.decode("utf-8", errors="replace") if body_bytes else None
    return HttpRequest(method=method, path=path, headers=headers, body=body)

def render_response(status: int, headers: dict[str, str] | None = None, body: str | None = None) -> bytes:
    payload = body or ""
    lines = [f"{HTTP_VERSION} {status} {status_text(status)}"]
    lines.append(f"Content-Length: {len(payload.encode('utf-8'))}")
    for key, value in (headers or {}).items():
        lines.append(f"{key}: {value}")
    lines.append("")
    lines.append(payload)
    return CRLF.join(lines).encode("utf-8")

def render_head(status: int, headers: dict[str, str]) -> bytes:
    """Status line plus headers and the blank line, with no body framing (SSE preamble)."""
    lines = [f"{HTTP_VERSION} {status} {status_text(status)}"]
    for key, value in headers.items():
        lines.append(f"{key}: {value}")
    return (CRLF.join(lines) + CRLF + CRLF).encode("utf-8")

def with_cors(response: HttpResponse) -> HttpResponse:
    return response.model_copy(update={"headers": {**response.headers, **CORS_HEADERS}})

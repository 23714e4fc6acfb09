"""Error taxonomy shared by the ingest server, the upstream client and the coordinator."""


class StreamError(Exception):
    """Base class for every error raised by ssewatch."""


class InvalidURLError(StreamError):
    def __init__(self, url: str, reason: str = "unsupported or malformed URL"):
        self.url = url
        self.reason = reason
        super().__init__(f"Invalid URL {url!r}: {reason}")


class BindError(StreamError):
    """The ingest listener could not bind (port in use, permission denied)."""

    def __init__(self, port: int, reason: str):
        self.port = port
        self.reason = reason
        super().__init__(f"Failed to bind port {port}: {reason}")


class HttpParseError(StreamError):
    """A request header section that cannot be interpreted as HTTP/1.x."""


class TransportError(StreamError):
    """Connection reset, DNS failure, timeout, bad status or an upstream that hung up."""


class MaxAttemptsExceeded(StreamError):
    def __init__(self, attempts: int, last_error: str):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Gave up after {attempts} reconnect attempts: {last_error}")

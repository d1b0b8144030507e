"""Error types for the Streamr client."""


class StreamrError(Exception):
    """Base exception for Streamr client errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def is_retryable(self) -> bool:
        return False


class InvalidURLError(StreamrError):
    """Raised when a request path does not resolve to an absolute URL."""

    def __init__(self, url: str, reason: str = "not an absolute http(s) URL"):
        self.url = url
        super().__init__(f"Invalid URL {url!r}: {reason}")


class SerializationError(StreamrError):
    """Raised when a request body cannot be encoded as JSON."""

    def __init__(self, message: str):
        super().__init__(f"Serialization error: {message}")


class TransportError(StreamrError):
    """Raised when the request never produced an HTTP response.

    Covers connection failures, DNS and TLS errors, and timeouts.
    """

    def __init__(self, message: str):
        super().__init__(f"Transport error: {message}")

    def is_retryable(self) -> bool:
        return True


class ApiError(StreamrError):
    """Raised when the API answers with a non-2xx status."""

    def __init__(self, method: str, url: str, status: int):
        self.method = method
        self.url = url
        self.status = status
        super().__init__(f"{method} {url}: {status}")

    def is_retryable(self) -> bool:
        return self.status >= 500


class DecodeError(StreamrError):
    """Raised when a successful response body cannot be decoded."""

    def __init__(self, message: str):
        super().__init__(f"Decode error: {message}")


class EntropyError(StreamrError):
    """Raised when the random source fails during identifier generation."""

    def __init__(self, message: str):
        super().__init__(f"Entropy error: {message}")

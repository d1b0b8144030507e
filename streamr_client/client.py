"""HTTP client for the Streamr API."""

from datetime import datetime
from typing import Any, Callable, List, Optional
from urllib.parse import quote
import dataclasses
import json
import logging
import os

import httpx

from .errors import (
    ApiError,
    DecodeError,
    InvalidURLError,
    SerializationError,
    StreamrError,
    TransportError,
)
from .models import Stream, StreamQuery, Subscription, generate_subscription_id
from .registry import MessageCallback, SubscriptionRegistry

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://www.streamr.com/api/v1/"
DEFAULT_TIMEOUT = 30.0

Parser = Callable[[Any], Any]


def _json_default(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _encode_json(body: Any) -> bytes:
    # Non-ASCII text and <, > and & are written as is; NaN and Infinity are rejected.
    try:
        return json.dumps(
            body, ensure_ascii=False, allow_nan=False, default=_json_default
        ).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise SerializationError(str(e)) from e


def _segment(value: str) -> str:
    return quote(str(value), safe="")


def _normalize_base(base_url: str) -> httpx.URL:
    if not base_url.endswith("/"):
        base_url += "/"
    try:
        url = httpx.URL(base_url)
    except httpx.InvalidURL as e:
        raise InvalidURLError(base_url, str(e)) from e
    if url.scheme not in ("http", "https") or not url.host:
        raise InvalidURLError(base_url)
    return url


class Response:
    """The outcome of one HTTP exchange with the API.

    Wraps the ``httpx.Response`` and classifies it. After ``execute`` the
    decoded body, if one was requested, is available as ``data``.
    """

    def __init__(self, response: httpx.Response):
        self._response = response
        self.data: Any = None

    def __repr__(self) -> str:
        return f"<Response [{self.status_code}] {self.method} {self.url}>"

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def headers(self) -> httpx.Headers:
        return self._response.headers

    @property
    def method(self) -> str:
        return self._response.request.method

    @property
    def url(self) -> str:
        return str(self._response.request.url)

    @property
    def content(self) -> bytes:
        return self._response.content

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code <= 299


    def decode(self, parser: Optional[Parser] = None) -> Any:
        """Decode the JSON body and optionally pass it through ``parser``.

        An empty body decodes to None without calling ``parser``.

        Raises:
            DecodeError: If the body is not JSON or ``parser`` rejects it.
        """
        content = self._response.content
        if not content.strip():
            return None
        try:
            value = json.loads(content)
        except ValueError as e:
            raise DecodeError(f"{self.method} {self.url}: {e}") from e
        if parser is None:
            return value
        try:
            return parser(value)
        except (KeyError, TypeError, ValueError) as e:
            raise DecodeError(f"{self.method} {self.url}: unexpected payload: {e!r}") from e


class StreamrClient:
    """HTTP client for the Streamr API.

    Example:
        >>> with StreamrClient("my-api-key") as client:
        ...     stream = client.streams.get_or_create("sensor-readings")
        ...     client.streams.produce(stream.id, {"temperature": 21.5})
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """Create a new Streamr client.

        Args:
            api_key: Streamr API key, sent as ``Authorization: Token <key>``.
            base_url: Base URL of the API. Relative request paths are
                resolved against it.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport, mostly for tests.
        """
        if timeout is None or timeout <= 0:
            raise ValueError("timeout must be a positive number of seconds")
        self.api_key = api_key
        self.base_url = _normalize_base(base_url)
        self._client = httpx.Client(
            timeout=httpx.Timeout(timeout),
            follow_redirects=False,
            transport=transport,
        )
        self.streams = StreamService(self, SubscriptionRegistry())
        self.data = DataService(self)

    @classmethod
    def from_env(cls, **kwargs: Any) -> "StreamrClient":
        """Create a client from ``STREAMR_*`` environment variables.

        Reads ``STREAMR_API_KEY`` (required), ``STREAMR_BASE_URL`` and
        ``STREAMR_TIMEOUT``. Keyword arguments take precedence.
        """
        api_key = os.environ.get("STREAMR_API_KEY")
        if not api_key:
            raise StreamrError("STREAMR_API_KEY is not set")
        if "STREAMR_BASE_URL" in os.environ:
            kwargs.setdefault("base_url", os.environ["STREAMR_BASE_URL"])
        if "STREAMR_TIMEOUT" in os.environ:
            try:
                timeout = float(os.environ["STREAMR_TIMEOUT"])
            except ValueError as e:
                raise StreamrError(
                    f"STREAMR_TIMEOUT is not a number: {os.environ['STREAMR_TIMEOUT']!r}"
                ) from e
            kwargs.setdefault("timeout", timeout)
        return cls(api_key, **kwargs)

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def close(self):
        """Close the HTTP client."""
        self._client.close()

    def build_request(
        self,
        method: str,
        path: str,
        body: Any = None,
        *,
        params: Optional[dict[str, Any]] = None,
    ) -> httpx.Request:
        """Build an authenticated API request without sending it.

        Args:
            method: HTTP method.
            path: Path relative to ``base_url``. Absolute paths replace the
                base path.
            body: Optional JSON-serializable body.
            params: Optional query parameters.

        Raises:
            InvalidURLError: If the path does not resolve to an absolute URL.
            SerializationError: If the body cannot be encoded as JSON.
        """
        try:
            url = self.base_url.join(path)
        except httpx.InvalidURL as e:
            raise InvalidURLError(path, str(e)) from e
        if url.scheme not in ("http", "https") or not url.host:
            raise InvalidURLError(str(url))

        headers = {
            "Authorization": f"Token {self.api_key}",
            "Connection": "close",
        }
        content = None
        if body is not None:
            content = _encode_json(body)
            headers["Content-Type"] = "application/json"

        return self._client.build_request(
            method, url, content=content, params=params, headers=headers
        )

    def execute(
        self, request: httpx.Request, decode: Optional[Parser] = None
    ) -> Response:
        """Send a request and classify the response.

        Args:
            request: A request from ``build_request``.
            decode: Optional parser applied to the decoded JSON body; the
                result is stored as ``Response.data``.

        Returns:
            The response envelope.

        Raises:
            TransportError: If no response was received.
            ApiError: If the status is outside 2xx.
            DecodeError: If the body cannot be decoded.
        """
        try:
            raw = self._client.send(request)
        except httpx.TimeoutException as e:
            raise TransportError(f"Request timed out: {e}") from e
        except httpx.TransportError as e:
            raise TransportError(str(e)) from e

        try:
            response = Response(raw)
            logger.debug("HTTP %s %s -> %s", request.method, request.url, raw.status_code)
            if not response.is_success:
                logger.warning(
                    "Streamr API returned %s for %s %s",
                    raw.status_code, request.method, request.url,
                )
                raise ApiError(request.method, str(request.url), raw.status_code)
            if decode is not None:
                response.data = response.decode(decode)
            return response
        finally:
            raw.close()


def _parse_stream_list(data: Any) -> list[Stream]:
    if not isinstance(data, list):
        raise TypeError(f"expected a list of streams, got {type(data).__name__}")
    return [Stream.from_dict(item) for item in data]


class StreamService:
    """Stream operations and local subscriptions.

    Available as ``StreamrClient.streams``.
    """

    def __init__(self, client: StreamrClient, registry: SubscriptionRegistry):
        self._client = client
        self._registry = registry

    # =========================================================================
    # Data
    # =========================================================================

    def produce(self, stream_id: str, data: Any) -> Response:
        """Push a data record to a stream.

        Args:
            stream_id: Target stream.
            data: Any JSON-serializable value.

        Returns:
            The response envelope; nothing is decoded.

        Raises:
            SerializationError: If ``data`` cannot be encoded as JSON.
            TransportError: If unable to reach the server.
            ApiError: If the server returns an error.
        """
        request = self._client.build_request(
            "POST", f"streams/{_segment(stream_id)}/data", data
        )
        return self._client.execute(request)

    # =========================================================================
    # Streams
    # =========================================================================

    def get(self, stream_id: str) -> Stream:
        """Get a stream by id.

        Raises:
            TransportError: If unable to reach the server.
            ApiError: If the server returns an error (404 for unknown ids).
            DecodeError: If the response is not a stream.
        """
        request = self._client.build_request("GET", f"streams/{_segment(stream_id)}")
        return self._expect_stream(self._client.execute(request, Stream.from_dict))

    def list(self, query: Optional[StreamQuery] = None) -> list[Stream]:
        """List streams visible to the API key.

        Every call issues a fresh request.

        Args:
            query: Optional filters.

        Raises:
            TransportError: If unable to reach the server.
            ApiError: If the server returns an error.
            DecodeError: If the response is not a list of streams.
        """
        params = query.to_params() if query else None
        request = self._client.build_request("GET", "streams", params=params)
        response = self._client.execute(request, _parse_stream_list)
        return response.data if response.data is not None else []

    def create(self, name: str, description: Optional[str] = None) -> Stream:
        """Create a new stream.

        Raises:
            TransportError: If unable to reach the server.
            ApiError: If the server returns an error.
            DecodeError: If the response is not a stream.
        """
        body = {"name": name}
        if description is not None:
            body["description"] = description
        request = self._client.build_request("POST", "streams", body)
        return self._expect_stream(self._client.execute(request, Stream.from_dict))

    def get_by_name(self, name: str) -> Optional[Stream]:
        """Find a stream by exact name.

        Returns:
            The first stream whose name equals ``name``, or None.
        """
        for stream in self.list(StreamQuery(name=name)):
            if stream.name == name:
                return stream
        return None

    def get_or_create(self, name: str) -> Stream:
        """Return the stream called ``name``, creating it if missing."""
        stream = self.get_by_name(name)
        if stream is None:
            logger.debug("Stream %r not found, creating it", name)
            stream = self.create(name)
        return stream

    @staticmethod
    def _expect_stream(response: Response) -> Stream:
        if response.data is None:
            raise DecodeError(f"{response.method} {response.url}: empty response body")
        return response.data

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def subscribe(
        self,
        stream_id: str,
        callback: MessageCallback,
        *,
        partition: str = "",
        api_key: str = "",
    ) -> Subscription:
        """Register interest in a stream's messages.

        No request is made; the subscription is only recorded locally.

        Args:
            stream_id: The stream to subscribe to.
            callback: Called with each incoming message payload.
            partition: Stream partition, empty for the default one.
            api_key: Delivery credential, empty to use the client's own.

        Raises:
            EntropyError: If no subscription id could be generated.
        """
        subscription = Subscription(
            id=generate_subscription_id(),
            stream_id=stream_id,
            stream_partition=partition,
            api_key=api_key,
        )
        self._registry.insert(subscription, callback)
        logger.debug("Subscribed %s to stream %s", subscription.id, stream_id)
        return subscription

    def unsubscribe(self, subscription_id: str) -> Optional[Subscription]:
        """Drop a subscription. Returns it, or None if it was unknown."""
        subscription = self._registry.remove(subscription_id)
        if subscription is not None:
            logger.debug("Unsubscribed %s from stream %s", subscription_id, subscription.stream_id)
        return subscription

    def subscription(self, subscription_id: str) -> Optional[Subscription]:
        return self._registry.lookup(subscription_id)

    def subscriptions(self, stream_id: str) -> List[Subscription]:
        """Subscriptions of a stream in registration order."""
        return self._registry.list_by_stream(stream_id)

    def callback(self, subscription_id: str) -> Optional[MessageCallback]:
        return self._registry.callback_for(subscription_id)


class DataService:
    """Data operations, available as ``StreamrClient.data``."""

    def __init__(self, client: StreamrClient):
        self._client = client

    def produce_to_stream(self, stream_id: str, data: Any) -> Response:
        """Push a data record to a stream. See ``StreamService.produce``."""
        return self._client.streams.produce(stream_id, data)

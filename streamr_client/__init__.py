"""Streamr Python Client - HTTP client for the Streamr data streaming API."""

from .client import DEFAULT_BASE_URL, DataService, Response, StreamService, StreamrClient
from .errors import (
    StreamrError,
    InvalidURLError,
    SerializationError,
    TransportError,
    ApiError,
    DecodeError,
    EntropyError,
)
from .models import Stream, StreamQuery, Subscription, generate_subscription_id
from .registry import SubscriptionRegistry

__version__ = "0.1.0"
__all__ = [
    "DEFAULT_BASE_URL",
    "StreamrClient",
    "StreamService",
    "DataService",
    "Response",
    "StreamrError",
    "InvalidURLError",
    "SerializationError",
    "TransportError",
    "ApiError",
    "DecodeError",
    "EntropyError",
    "Stream",
    "StreamQuery",
    "Subscription",
    "SubscriptionRegistry",
    "generate_subscription_id",
]

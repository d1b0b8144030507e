"""Data models for the Streamr client."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional
import secrets

from .errors import EntropyError


def _parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp as sent by the API."""
    if not value:
        return None
    if not isinstance(value, str):
        raise TypeError(f"expected an ISO-8601 timestamp string, got {type(value).__name__}")
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def _format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat() + "Z"


@dataclass
class Stream:
    """A Streamr data stream.

    Attributes:
        id: Unique identifier, assigned by Streamr.
        name: Human readable name.
        description: Free text description (may be empty).
        date_created: When the stream was created.
        last_updated: When the stream was last modified.
    """
    id: str
    name: str
    description: str = ""
    date_created: Optional[datetime] = None
    last_updated: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Stream":
        """Parse from API response."""
        return cls(
            id=data["id"],
            name=data["name"],
            description=data.get("description") or "",
            date_created=_parse_timestamp(data.get("dateCreated")),
            last_updated=_parse_timestamp(data.get("lastUpdated")),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
        }
        if self.date_created is not None:
            result["dateCreated"] = _format_timestamp(self.date_created)
        if self.last_updated is not None:
            result["lastUpdated"] = _format_timestamp(self.last_updated)
        return result


@dataclass
class StreamQuery:
    """Query parameters for listing streams."""
    name: Optional[str] = None
    search: Optional[str] = None
    public: Optional[bool] = None
    max: Optional[int] = None
    offset: Optional[int] = None

    def to_params(self) -> dict[str, Any]:
        """Convert to query parameters."""
        params: dict[str, Any] = {}
        if self.name:
            params["name"] = self.name
        if self.search:
            params["search"] = self.search
        if self.public is not None:
            params["public"] = str(self.public).lower()
        if self.max is not None:
            params["max"] = self.max
        if self.offset is not None:
            params["offset"] = self.offset
        return params


@dataclass(frozen=True)
class Subscription:
    """A local registration of interest in a stream's messages.

    The callback is not part of this record; it is held by the
    ``SubscriptionRegistry`` next to it.

    Attributes:
        id: Client-generated identifier, see ``generate_subscription_id``.
        stream_id: The stream being subscribed to.
        stream_partition: Partition key, empty for the default partition.
        api_key: Credential used for delivery, empty to use the client's own.
    """
    id: str
    stream_id: str
    stream_partition: str = ""
    api_key: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "streamId": self.stream_id,
            "streamPartition": self.stream_partition,
            "apiKey": self.api_key,
        }


def generate_subscription_id() -> str:
    """Generate a random subscription identifier.

    Sixteen random bytes rendered as uppercase hex in 8-4-4-4-12 groups.
    Version and variant bits are not set.

    Raises:
        EntropyError: If the system random source is unavailable.
    """
    try:
        raw = secrets.token_bytes(16)
    except (OSError, NotImplementedError) as e:
        raise EntropyError(str(e)) from e
    h = raw.hex().upper()
    return f"{h[0:8]}-{h[8:12]}-{h[12:16]}-{h[16:20]}-{h[20:32]}"

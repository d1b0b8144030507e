"""In-memory index of active subscriptions."""

import threading
from typing import Any, Callable, Optional

from .models import Subscription

MessageCallback = Callable[[Any], None]


class SubscriptionRegistry:
    """Subscriptions indexed by subscription id and by stream id.

    Both indices are updated under a single lock, so every subscription
    reachable through ``lookup`` is listed by ``list_by_stream`` for its
    stream and the other way round. Callbacks are stored alongside the
    subscription records rather than inside them.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._by_id: dict[str, tuple[Subscription, MessageCallback]] = {}
        self._by_stream: dict[str, list[Subscription]] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_id)

    def __contains__(self, subscription_id: object) -> bool:
        with self._lock:
            return subscription_id in self._by_id

    def insert(self, subscription: Subscription, callback: MessageCallback) -> None:
        """Add a subscription to both indices.

        Raises:
            ValueError: If the id is already registered.
        """
        with self._lock:
            if subscription.id in self._by_id:
                raise ValueError(f"Subscription {subscription.id} is already registered")
            self._by_id[subscription.id] = (subscription, callback)
            self._by_stream.setdefault(subscription.stream_id, []).append(subscription)

    def lookup(self, subscription_id: str) -> Optional[Subscription]:
        with self._lock:
            entry = self._by_id.get(subscription_id)
        return entry[0] if entry is not None else None

    def callback_for(self, subscription_id: str) -> Optional[MessageCallback]:
        with self._lock:
            entry = self._by_id.get(subscription_id)
        return entry[1] if entry is not None else None

    def list_by_stream(self, stream_id: str) -> list[Subscription]:
        """Subscriptions of a stream in registration order."""
        with self._lock:
            return list(self._by_stream.get(stream_id, ()))

    def remove(self, subscription_id: str) -> Optional[Subscription]:
        """Remove a subscription from both indices.

        Returns:
            The removed subscription, or None if it was not registered.
        """
        with self._lock:
            entry = self._by_id.pop(subscription_id, None)
            if entry is None:
                return None
            subscription = entry[0]
            subs = self._by_stream[subscription.stream_id]
            subs.remove(subscription)
            if not subs:
                del self._by_stream[subscription.stream_id]
            return subscription

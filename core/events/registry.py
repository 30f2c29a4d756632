"""
POS Sync Bus — Channel Registry
==================================
Controls which handlers hear which sync events.

Keys:
- 'product'          every action on the product channel
- 'product:created'  one action on one channel
- '*'                every event on every channel

Rules:
- Duplicate handler under the same key forbidden
- A handler may be registered under several keys; the dispatcher
  still calls it once per event
- Each registration may carry a subscriber_id (the view that owns it)
  so a sender can skip its own handlers
- In-memory only, thread-safe
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Optional

from core.events.errors import (
    DuplicateSubscriberError,
    InvalidChannelFormat,
    SyncBusError,
)

logger = logging.getLogger("pos.sync")

WILDCARD = "*"

_NAME_RE = re.compile(r"^[a-z][a-z0-9_]*$")


@dataclass(frozen=True)
class Subscription:
    key: str
    handler: Callable
    subscriber_id: Optional[str] = None

    @property
    def handler_name(self) -> str:
        return getattr(self.handler, "__qualname__", str(self.handler))


def event_key(channel: str, action: str) -> str:
    return f"{channel}:{action}"


class ChannelRegistry:
    """
    In-memory registry of sync subscriptions keyed by channel/action.
    """

    def __init__(self):
        self._subscriptions: dict[str, list[Subscription]] = {}
        self._lock = Lock()

    @staticmethod
    def validate_key(key: str) -> None:
        if not key or not isinstance(key, str):
            raise InvalidChannelFormat(key or "")
        if key == WILDCARD:
            return

        parts = key.split(":")
        if len(parts) > 2 or not all(_NAME_RE.match(p) for p in parts):
            raise InvalidChannelFormat(key)

    def register(
        self,
        key: str,
        handler: Callable,
        subscriber_id: Optional[str] = None,
    ) -> Subscription:
        """
        Register a handler under a key.

        Raises:
            InvalidChannelFormat:     Bad key
            DuplicateSubscriberError: Handler already under this key
        """
        self.validate_key(key)

        if not callable(handler):
            raise SyncBusError(
                f"Handler must be callable, got {type(handler)}."
            )

        subscription = Subscription(
            key=key, handler=handler, subscriber_id=subscriber_id,
        )

        with self._lock:
            existing = self._subscriptions.setdefault(key, [])
            for current in existing:
                if current.handler == handler:
                    raise DuplicateSubscriberError(
                        key, subscription.handler_name,
                    )
            existing.append(subscription)

        logger.debug(
            f"Subscriber registered: {subscription.handler_name} → {key} "
            f"(view: {subscriber_id})"
        )
        return subscription

    def unregister(self, subscription: Subscription) -> None:
        """Remove a subscription. Unknown subscriptions are ignored."""
        with self._lock:
            current = self._subscriptions.get(subscription.key, [])
            if subscription in current:
                current.remove(subscription)
            if not current:
                self._subscriptions.pop(subscription.key, None)

    def matching(self, channel: str, action: str) -> list[Subscription]:
        """
        Subscriptions for an event, most specific key first:
        'channel:action', then 'channel', then '*'.
        """
        keys = (event_key(channel, action), channel, WILDCARD)
        with self._lock:
            found: list[Subscription] = []
            for key in keys:
                found.extend(self._subscriptions.get(key, []))
            return found

    def subscriber_count(self, key: str) -> int:
        with self._lock:
            return len(self._subscriptions.get(key, []))

    def keys(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._subscriptions.keys())

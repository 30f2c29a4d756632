"""
POS Sync Bus — Broadcast Channel
==================================
One bus per process, shared by every open register or inventory
view. A view broadcasts what it changed; every other view hears it.

Delivery contract:
- Fire-and-forget. The sender never waits on, or fails because of,
  a listener.
- No global ordering and no event-id dedup. Listeners stay idempotent
  by checking whether the entity already exists, and resolve races
  with last-writer-wins.
- Deferred mode queues events until flush(), which is how tests (and
  hosts with their own loop) model delivery that interleaves with
  local edits.
"""

from __future__ import annotations

import logging
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from threading import Lock
from typing import Any, Callable, Dict, Iterable, Optional, Union

from core.events.dispatcher import dispatch
from core.events.registry import ChannelRegistry
from core.time import Clock, SystemClock

logger = logging.getLogger("pos.sync")


# ══════════════════════════════════════════════════════════════
# SYNC EVENT
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SyncEvent:
    """
    Broadcast message describing a change made by one view.

    event_id is for tracing only; events are not globally sequenced.
    """

    channel: str
    action: str
    payload: Dict[str, Any]
    timestamp: datetime
    origin_id: Optional[str] = None
    exclude_origin: bool = False
    event_id: uuid.UUID = field(default_factory=uuid.uuid4)

    def __post_init__(self):
        if not self.channel or not isinstance(self.channel, str):
            raise ValueError("channel must be a non-empty string.")
        if not self.action or not isinstance(self.action, str):
            raise ValueError("action must be a non-empty string.")
        if not isinstance(self.payload, dict):
            raise ValueError("payload must be a dict.")

    @property
    def key(self) -> str:
        return f"{self.channel}:{self.action}"


# ══════════════════════════════════════════════════════════════
# SYNC BUS
# ══════════════════════════════════════════════════════════════

class SyncBus:
    """Process-wide publish/subscribe channel for sync events."""

    def __init__(
        self,
        *,
        clock: Clock | None = None,
        registry: ChannelRegistry | None = None,
        deferred: bool = False,
    ):
        self._clock = clock or SystemClock()
        self._registry = registry or ChannelRegistry()
        self._deferred = deferred
        self._pending: deque[SyncEvent] = deque()
        self._pending_lock = Lock()

    @property
    def registry(self) -> ChannelRegistry:
        return self._registry

    @property
    def pending_count(self) -> int:
        with self._pending_lock:
            return len(self._pending)

    def subscribe(
        self,
        channels: Union[str, Iterable[str]],
        handler: Callable[[SyncEvent], Any],
        subscriber_id: Optional[str] = None,
    ) -> Callable[[], None]:
        """
        Register `handler` under one or more keys.

        Returns a callable that removes every registration made here.
        """
        keys = [channels] if isinstance(channels, str) else list(channels)
        subscriptions = [
            self._registry.register(key, handler, subscriber_id)
            for key in keys
        ]

        def unsubscribe() -> None:
            for subscription in subscriptions:
                self._registry.unregister(subscription)

        return unsubscribe

    def broadcast(
        self,
        channel: str,
        action: str,
        payload: Optional[Dict[str, Any]] = None,
        *,
        origin_id: Optional[str] = None,
        exclude_origin: bool = False,
    ) -> Optional[dict]:
        """
        Publish a change.

        Returns the dispatch report, or None when the event was queued
        for a later flush().
        """
        event = SyncEvent(
            channel=channel,
            action=action,
            payload=dict(payload or {}),
            timestamp=self._clock.now_utc(),
            origin_id=origin_id,
            exclude_origin=exclude_origin,
        )
        logger.debug(
            f"Broadcasting {event.key} from {origin_id} "
            f"(event_id: {event.event_id})"
        )

        if self._deferred:
            with self._pending_lock:
                self._pending.append(event)
            return None
        return dispatch(event, self._registry)

    def replay(self, event: SyncEvent) -> dict:
        """Deliver an already-built event again (duplicate delivery)."""
        return dispatch(event, self._registry)

    def flush(self) -> list[dict]:
        """Deliver every queued event, oldest first."""
        reports: list[dict] = []
        while True:
            with self._pending_lock:
                if not self._pending:
                    break
                event = self._pending.popleft()
            reports.append(dispatch(event, self._registry))
        return reports

"""
POS Sync Bus — Public API
===========================
Every open view hears what every other view changed.
"""

from core.events.bus import SyncBus, SyncEvent
from core.events.dispatcher import dispatch
from core.events.errors import (
    DuplicateSubscriberError,
    InvalidChannelFormat,
    SyncBusError,
)
from core.events.registry import WILDCARD, ChannelRegistry, Subscription

__all__ = [
    "SyncBus",
    "SyncEvent",
    "dispatch",
    "ChannelRegistry",
    "Subscription",
    "WILDCARD",
    "SyncBusError",
    "InvalidChannelFormat",
    "DuplicateSubscriberError",
]

"""
Tests for core.events — SyncBus, ChannelRegistry and dispatch.
"""

import pytest
from datetime import datetime, timezone

from core.events import (
    ChannelRegistry,
    DuplicateSubscriberError,
    InvalidChannelFormat,
    SyncBus,
    SyncEvent,
    WILDCARD,
)
from core.time import FixedClock


T0 = datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)


class Recorder:
    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)


def _bus(**kwargs):
    return SyncBus(clock=FixedClock(T0), **kwargs)


# ── Registry ─────────────────────────────────────────────────

class TestChannelRegistry:
    @pytest.mark.parametrize("key", ["product", "product:created", "*", "inventory:stock_updated"])
    def test_valid_keys(self, key):
        ChannelRegistry.validate_key(key)

    @pytest.mark.parametrize("key", ["", "Product", "a:b:c", "product:", ":created", "sale created"])
    def test_invalid_keys(self, key):
        with pytest.raises(InvalidChannelFormat):
            ChannelRegistry.validate_key(key)

    def test_duplicate_handler_under_same_key(self):
        registry = ChannelRegistry()
        handler = Recorder()
        registry.register("product", handler)
        with pytest.raises(DuplicateSubscriberError):
            registry.register("product", handler)

    def test_same_handler_under_different_keys(self):
        registry = ChannelRegistry()
        handler = Recorder()
        registry.register("product", handler)
        registry.register("product:created", handler)
        assert registry.subscriber_count("product") == 1
        assert registry.subscriber_count("product:created") == 1

    def test_matching_order(self):
        registry = ChannelRegistry()
        a, b, c = Recorder(), Recorder(), Recorder()
        registry.register(WILDCARD, a)
        registry.register("sale", b)
        registry.register("sale:created", c)
        handlers = [s.handler for s in registry.matching("sale", "created")]
        assert handlers == [c, b, a]

    def test_unregister_removes_empty_key(self):
        registry = ChannelRegistry()
        subscription = registry.register("sale", Recorder())
        registry.unregister(subscription)
        assert "sale" not in registry.keys()


# ── Events ───────────────────────────────────────────────────

class TestSyncEvent:
    def test_key(self):
        event = SyncEvent(channel="sale", action="created", payload={}, timestamp=T0)
        assert event.key == "sale:created"

    def test_rejects_non_dict_payload(self):
        with pytest.raises(ValueError, match="payload"):
            SyncEvent(channel="sale", action="created", payload=[], timestamp=T0)

    def test_event_ids_are_unique(self):
        e1 = SyncEvent(channel="sale", action="created", payload={}, timestamp=T0)
        e2 = SyncEvent(channel="sale", action="created", payload={}, timestamp=T0)
        assert e1.event_id != e2.event_id


# ── Broadcast ────────────────────────────────────────────────

class TestBroadcast:
    def test_channel_subscriber_hears_every_action(self):
        bus = _bus()
        handler = Recorder()
        bus.subscribe("product", handler)

        bus.broadcast("product", "created", {"id": 1})
        bus.broadcast("product", "deleted", {"id": 1})
        bus.broadcast("sale", "created", {"id": 9})

        assert [e.action for e in handler.events] == ["created", "deleted"]

    def test_action_subscriber_hears_only_that_action(self):
        bus = _bus()
        handler = Recorder()
        bus.subscribe("product:created", handler)

        bus.broadcast("product", "created", {"id": 1})
        bus.broadcast("product", "updated", {"id": 1})

        assert len(handler.events) == 1

    def test_wildcard_hears_everything(self):
        bus = _bus()
        handler = Recorder()
        bus.subscribe("*", handler)

        bus.broadcast("product", "created", {"id": 1})
        bus.broadcast("inventory", "stock_updated", {"id": 1, "stock": 3})

        assert [e.key for e in handler.events] == [
            "product:created", "inventory:stock_updated",
        ]

    def test_handler_matched_by_several_keys_runs_once(self):
        bus = _bus()
        handler = Recorder()
        bus.subscribe(["product", "product:created", "*"], handler)

        report = bus.broadcast("product", "created", {"id": 1})

        assert len(handler.events) == 1
        assert report["subscribers_notified"] == 1

    def test_payload_and_timestamp(self):
        bus = _bus()
        handler = Recorder()
        bus.subscribe("sale", handler)

        bus.broadcast("sale", "created", {"id": 7}, origin_id="view-a")

        event = handler.events[0]
        assert event.payload == {"id": 7}
        assert event.timestamp == T0
        assert event.origin_id == "view-a"

    def test_exclude_origin_skips_sender(self):
        bus = _bus()
        own, other = Recorder(), Recorder()
        bus.subscribe("inventory", own, subscriber_id="view-a")
        bus.subscribe("inventory", other, subscriber_id="view-b")

        bus.broadcast(
            "inventory", "stock_updated", {"id": 1, "stock": 4},
            origin_id="view-a", exclude_origin=True,
        )

        assert own.events == []
        assert len(other.events) == 1

    def test_origin_hears_own_event_by_default(self):
        bus = _bus()
        own = Recorder()
        bus.subscribe("sale", own, subscriber_id="view-a")

        bus.broadcast("sale", "created", {"id": 1}, origin_id="view-a")

        assert len(own.events) == 1

    def test_failing_handler_does_not_block_others(self):
        bus = _bus()
        after = Recorder()

        def broken(event):
            raise RuntimeError("view crashed")

        bus.subscribe("sale", broken)
        bus.subscribe("sale", after)

        report = bus.broadcast("sale", "created", {"id": 1})

        assert len(after.events) == 1
        assert report["subscribers_failed"] == 1
        assert report["subscribers_notified"] == 1
        assert report["failures"][0]["error"] == "view crashed"
        assert report["failures"][0]["error_type"] == "RuntimeError"

    def test_no_subscribers(self):
        report = _bus().broadcast("sale", "created", {"id": 1})
        assert report["subscribers_notified"] == 0
        assert report["failures"] == []

    def test_unsubscribe(self):
        bus = _bus()
        handler = Recorder()
        unsubscribe = bus.subscribe(["product", "sale"], handler)
        unsubscribe()

        bus.broadcast("product", "created", {"id": 1})
        bus.broadcast("sale", "created", {"id": 1})

        assert handler.events == []
        assert bus.registry.keys() == frozenset()

    def test_replay_delivers_same_event_again(self):
        bus = _bus()
        handler = Recorder()
        bus.subscribe("product", handler)
        bus.broadcast("product", "created", {"id": 1})

        bus.replay(handler.events[0])

        assert len(handler.events) == 2
        assert handler.events[0].event_id == handler.events[1].event_id


class TestDeferredDelivery:
    def test_events_wait_for_flush(self):
        bus = _bus(deferred=True)
        handler = Recorder()
        bus.subscribe("product", handler)

        assert bus.broadcast("product", "created", {"id": 1}) is None
        assert bus.broadcast("product", "updated", {"id": 1}) is None
        assert handler.events == []
        assert bus.pending_count == 2

        reports = bus.flush()

        assert [e.action for e in handler.events] == ["created", "updated"]
        assert len(reports) == 2
        assert bus.pending_count == 0

    def test_flush_with_nothing_pending(self):
        assert _bus(deferred=True).flush() == []

"""
POS Sync Bus — Dispatcher
===========================
Routes one sync event to every matching subscription.

Dispatch behavior:
1. Collect subscriptions for 'channel:action', 'channel', '*'
2. Skip the sender's own handlers when the event asks for it
3. Call each distinct handler once, sequentially
4. Catch, log and report handler failures
5. Continue to the next handler

A failing view must NOT stop other views from hearing the event.
"""

from __future__ import annotations

import logging

from core.events.registry import ChannelRegistry

logger = logging.getLogger("pos.sync")


def dispatch(event, registry: ChannelRegistry) -> dict:
    """
    Deliver a SyncEvent to its subscribers.

    Returns:
        {
            'channel': str,
            'action': str,
            'event_id': str,
            'subscribers_notified': int,
            'subscribers_failed': int,
            'failures': list[dict]
        }

    This function NEVER raises exceptions.
    """
    result = {
        "channel": event.channel,
        "action": event.action,
        "event_id": str(event.event_id),
        "subscribers_notified": 0,
        "subscribers_failed": 0,
        "failures": [],
    }

    subscriptions = registry.matching(event.channel, event.action)
    if not subscriptions:
        logger.debug(
            f"No subscribers for {event.channel}:{event.action} "
            f"(event_id: {event.event_id})"
        )
        return result

    called: list = []
    for subscription in subscriptions:
        if (
            event.exclude_origin
            and event.origin_id is not None
            and subscription.subscriber_id == event.origin_id
        ):
            continue

        # one call per handler even when several keys match
        if subscription.handler in called:
            continue
        called.append(subscription.handler)

        handler_name = subscription.handler_name
        try:
            subscription.handler(event)
            result["subscribers_notified"] += 1
            logger.debug(
                f"Delivered {event.channel}:{event.action} → {handler_name} "
                f"(view: {subscription.subscriber_id})"
            )
        except Exception as exc:
            result["subscribers_failed"] += 1
            result["failures"].append({
                "handler": handler_name,
                "subscriber_id": subscription.subscriber_id,
                "error": str(exc),
                "error_type": type(exc).__name__,
            })
            logger.error(
                f"Sync subscriber failed: {handler_name} for "
                f"{event.channel}:{event.action} "
                f"(event_id: {event.event_id}): {exc}",
                exc_info=True,
            )

    logger.info(
        f"Sync dispatch: {event.channel}:{event.action} "
        f"(event_id: {event.event_id}) — "
        f"{result['subscribers_notified']} notified, "
        f"{result['subscribers_failed']} failed"
    )
    return result

"""
POS Register Engine — Sync Subscriptions
==========================================
What a register view listens to on the sync bus.

Subscriptions:
- product                  → keep the local catalog in step
- inventory:stock_updated  → overwrite stock with the absolute value
- sale                     → feed the sales list

sale:created is NOT applied to stock here. The selling view already
publishes inventory:stock_updated for every line, so decrementing
again on sale:created would count the sale twice.
"""

from __future__ import annotations

from typing import Callable, Dict, List

from core.events import SyncBus, SyncEvent
from engines.register.events import (
    ACTION_STOCK_UPDATED,
    INVENTORY_CHANNEL,
    PRODUCT_CHANNEL,
    SALE_CHANNEL,
)
from projections.catalog import CatalogProjection
from projections.sales import SalesFeedProjection


REGISTER_SUBSCRIPTIONS: Dict[str, str] = {
    PRODUCT_CHANNEL: "handle_product_event",
    f"{INVENTORY_CHANNEL}:{ACTION_STOCK_UPDATED}": "handle_stock_updated",
    SALE_CHANNEL: "handle_sale_event",
}


class RegisterSubscriptionHandler:
    """Applies sync events heard by one view to its read models."""

    def __init__(
        self,
        catalog: CatalogProjection,
        sales: SalesFeedProjection | None = None,
    ):
        self._catalog = catalog
        self._sales = sales

    def handle_product_event(self, event: SyncEvent) -> None:
        self._catalog.apply(event.key, event.payload)

    def handle_stock_updated(self, event: SyncEvent) -> None:
        self._catalog.apply(event.key, event.payload)

    def handle_sale_event(self, event: SyncEvent) -> None:
        if self._sales is not None:
            self._sales.apply(event.key, event.payload)

    def attach(self, bus: SyncBus, subscriber_id: str) -> Callable[[], None]:
        """Subscribe every handler; returns one callable undoing them all."""
        unsubscribes: List[Callable[[], None]] = [
            bus.subscribe(key, getattr(self, method), subscriber_id)
            for key, method in REGISTER_SUBSCRIPTIONS.items()
        ]

        def detach() -> None:
            for unsubscribe in unsubscribes:
                unsubscribe()

        return detach

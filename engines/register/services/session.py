"""
POS Register Engine — Register Session
========================================
Everything one open register view owns, wired together:

  CartLedger             current cart
  CatalogProjection      products/stock as this view knows them
  SalesFeedProjection    sales heard on the bus
  SaleCommitCoordinator  cart → sale
  PrintOrchestrator      invoice / drawer / labels
  AlertQueue             what the cashier is told

The session subscribes its read models to the shared SyncBus under
its own view_id so its broadcasts can skip its own handlers.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from typing import Any, Mapping, Optional

from core.alerts import AlertQueue
from core.config import RegisterSettings
from core.events import SyncBus
from core.time import Clock, SystemClock
from engines.register.cart import CartLedger
from engines.register.events import (
    ACTION_CREATED,
    ACTION_DELETED,
    ACTION_UPDATED,
    PRODUCT_CHANNEL,
    build_product_deleted_payload,
    build_product_payload,
)
from engines.register.models import Product
from engines.register.printing import PrintJob, PrintOrchestrator
from engines.register.services import (
    SALE_LEDGER_SYSTEM_ID,
    CommitOutcome,
    SaleCommitCoordinator,
)
from engines.register.subscriptions import RegisterSubscriptionHandler
from integration import (
    CatalogService,
    MalformedResponseError,
    PrintService,
    SalePersistenceService,
    ServiceResult,
)
from projections.catalog import CatalogProjection
from projections.sales import SalesFeedProjection

logger = logging.getLogger("pos.register")


class RegisterSession:
    """Session-scoped register state and actions for the UI shell."""

    def __init__(
        self,
        *,
        catalog_service: CatalogService,
        sale_service: SalePersistenceService,
        print_service: PrintService,
        bus: SyncBus | None = None,
        settings: RegisterSettings | None = None,
        clock: Clock | None = None,
        view_id: Optional[str] = None,
    ):
        self.settings = settings or RegisterSettings()
        self.clock = clock or SystemClock()
        self.view_id = view_id or f"register-{uuid.uuid4().hex[:8]}"
        self.bus = bus or SyncBus(clock=self.clock)

        self._catalog_service = catalog_service
        self._sale_service = sale_service

        self.alerts = AlertQueue(
            clock=self.clock, ttl_seconds=self.settings.alert_ttl_seconds,
        )
        self.catalog = CatalogProjection(
            clock=self.clock,
            freshness_ttl_seconds=self.settings.freshness_ttl_seconds,
        )
        self.sales = SalesFeedProjection()
        self.ledger = CartLedger(
            catalog=self.catalog,
            warn=self.alerts.warning,
            customer_id=self.settings.default_customer_id,
        )
        self.printer = PrintOrchestrator(
            print_service,
            settings=self.settings,
            warn=self.alerts.warning,
            clock=self.clock,
        )
        self.coordinator = SaleCommitCoordinator(
            ledger=self.ledger,
            sale_service=sale_service,
            catalog=self.catalog,
            bus=self.bus,
            alerts=self.alerts,
            settings=self.settings,
            clock=self.clock,
            view_id=self.view_id,
        )

        handler = RegisterSubscriptionHandler(self.catalog, self.sales)
        self._detach = handler.attach(self.bus, self.view_id)
        logger.info(f"Register session {self.view_id} opened")

    # ── Lifecycle ─────────────────────────────────────────────

    def load_catalog(self) -> int:
        """Fetch products, categories and customers; returns product count."""
        self.catalog.load(
            self._catalog_service.list_products(),
            self._catalog_service.list_categories(),
            self._catalog_service.list_customers(),
        )
        return self.catalog.product_count

    def close(self) -> None:
        self._detach()
        logger.info(f"Register session {self.view_id} closed")

    # ── Cart actions ──────────────────────────────────────────

    def add_product(self, product_id: Any) -> bool:
        product = self.catalog.get(product_id)
        if product is None:
            self.alerts.warning(f"Product {product_id} is not in the catalog.")
            return False
        self.ledger.add(product)
        return True

    def add_by_barcode(self, barcode: str) -> bool:
        return self.ledger.add_by_barcode(barcode) is not None

    def remove_line(self, index: int) -> None:
        self.ledger.remove(index)

    def set_quantity(self, index: int, quantity: int) -> None:
        self.ledger.set_quantity(index, quantity)

    def clear_cart(self) -> None:
        self.ledger.clear()

    def apply_discount(self, amount: float) -> None:
        self.ledger.apply_discount(amount)

    def set_payment(self, method: Any, amount_received: float = 0.0) -> None:
        self.ledger.set_payment(method, amount_received)

    def set_customer(self, customer_id: Any) -> None:
        """Select a loaded customer; None falls back to walk-in on commit."""
        if customer_id is not None:
            if isinstance(customer_id, bool) or not isinstance(customer_id, (int, str)):
                raise ValueError("customer_id must be an integer or string.")
            if self.catalog.customer_name(customer_id) is None:
                raise ValueError(f"Customer {customer_id} is not known to this register.")
        self.ledger.set_customer(customer_id)

    def set_notes(self, notes: str) -> None:
        self.ledger.set_notes(notes)

    # ── Sale actions ──────────────────────────────────────────

    @property
    def can_commit(self) -> bool:
        return self.coordinator.can_commit

    def commit(self) -> CommitOutcome:
        """Commit the cart; print afterwards if the sale went through."""
        outcome = self.coordinator.commit()
        if not outcome.succeeded:
            return outcome
        jobs = self.printer.after_commit(outcome.sale)
        return replace(outcome, print_jobs=tuple(jobs))

    def reprint_last_invoice(self) -> PrintJob:
        return self.printer.print_invoice(self.coordinator.last_sale)

    def cancel_sale(self, sale_id: Any) -> ServiceResult:
        return self.coordinator.cancel_sale(sale_id)

    def print_label(self, item: Mapping[str, Any]) -> PrintJob:
        return self.printer.print_label(item)

    def test_printer(self, name: Optional[str] = None) -> PrintJob:
        return self.printer.test_printer(name)

    # ── Catalog edits ─────────────────────────────────────────

    def publish_product(self, raw: Mapping[str, Any]) -> Product:
        """
        Save a product edit made at this view and tell the others.

        Emits product:created for a new id, product:updated otherwise.
        """
        try:
            product = Product.from_mapping(raw)
            hash(product.id)
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"Malformed product: {exc}") from exc

        action = ACTION_UPDATED if self.catalog.get(product.id) else ACTION_CREATED
        payload = build_product_payload(product)
        self.catalog.apply(f"{PRODUCT_CHANNEL}:{action}", payload)
        self.bus.broadcast(
            PRODUCT_CHANNEL, action, payload,
            origin_id=self.view_id, exclude_origin=True,
        )
        logger.info(f"Product {product.id} {action} at {self.view_id}")
        return product

    def remove_product(self, product_id: Any) -> bool:
        if not isinstance(product_id, (int, str)) or self.catalog.get(product_id) is None:
            return False
        payload = build_product_deleted_payload(product_id)
        self.catalog.apply(f"{PRODUCT_CHANNEL}:{ACTION_DELETED}", payload)
        self.bus.broadcast(
            PRODUCT_CHANNEL, ACTION_DELETED, payload,
            origin_id=self.view_id, exclude_origin=True,
        )
        logger.info(f"Product {product_id} deleted at {self.view_id}")
        return True

    # ── Read side ─────────────────────────────────────────────

    def catalog_view(self, term: str = "", category: Optional[str] = None) -> dict:
        fresh = self.catalog.fresh_ids()
        return {
            "products": [
                {**product.to_dict(), "fresh": product.id in fresh}
                for product in self.catalog.search(term, category)
            ],
            "categories": self.catalog.categories(),
            "customers": [
                {"id": c.id, "name": c.name} for c in self.catalog.customers()
            ],
        }

    def sales_feed(self) -> dict:
        """Sales heard on the bus since this view opened."""
        return {
            "sales": [summary.to_dict() for summary in self.sales.sales()],
            "completed_total": self.sales.completed_total(),
        }

    def sale_history(self, filters: Optional[Mapping[str, Any]] = None) -> dict:
        """Sales as the ledger records them."""
        reply = self._sale_service.get_sales(dict(filters or {}))
        if not isinstance(reply, Mapping) or not isinstance(reply.get("data"), list):
            raise MalformedResponseError(
                "get_sales reply must carry a 'data' list.",
                system_id=SALE_LEDGER_SYSTEM_ID,
            )
        data = list(reply["data"])
        return {"data": data, "total": reply.get("total", len(data))}

    def sale_details(self, sale_id: Any) -> Optional[dict]:
        reply = self._sale_service.get_sale_details(sale_id)
        if reply is None:
            return None
        if not isinstance(reply, Mapping):
            raise MalformedResponseError(
                f"get_sale_details reply for sale {sale_id} is not a mapping.",
                system_id=SALE_LEDGER_SYSTEM_ID,
            )
        return dict(reply)

    def state(self) -> dict:
        snapshot = self.ledger.to_dict()
        snapshot.update({
            "view_id": self.view_id,
            "commit_state": self.coordinator.state.value,
            "can_commit": self.coordinator.can_commit,
            "last_sale_id": (
                self.coordinator.last_sale.id
                if self.coordinator.last_sale else None
            ),
        })
        return snapshot

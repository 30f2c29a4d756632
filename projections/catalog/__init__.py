"""
POS Projections — Catalog Read Model
======================================
The register's local copy of products, categories and customers,
kept current by sync events from other views.

Built from:
- CatalogService.list_products / list_categories / list_customers
- product:created / product:updated / product:deleted
- inventory:stock_updated

Rules:
- Idempotent: a product is identified by its id, so a replayed
  'created' updates the existing row instead of adding a second one
- Last writer wins for concurrent edits
- Stock updates carry the absolute value and simply overwrite
- Rows changed by sync are marked fresh for a short while; the marker
  lives beside the product, never inside it
"""

from __future__ import annotations

import logging
from datetime import datetime
from threading import Lock
from typing import Any, Dict, Iterable, List, Mapping, Optional

from core.time import Clock, SystemClock, is_expired
from engines.register.events import (
    ACTION_CREATED,
    ACTION_DELETED,
    ACTION_STOCK_UPDATED,
    ACTION_UPDATED,
    INVENTORY_CHANNEL,
    PRODUCT_CHANNEL,
)
from engines.register.models import Customer, Product

logger = logging.getLogger("pos.catalog")

DEFAULT_FRESHNESS_TTL_SECONDS = 3.0

PRODUCT_CREATED = f"{PRODUCT_CHANNEL}:{ACTION_CREATED}"
PRODUCT_UPDATED = f"{PRODUCT_CHANNEL}:{ACTION_UPDATED}"
PRODUCT_DELETED = f"{PRODUCT_CHANNEL}:{ACTION_DELETED}"
STOCK_UPDATED = f"{INVENTORY_CHANNEL}:{ACTION_STOCK_UPDATED}"


class CatalogProjection:
    """In-memory catalog for one register view."""

    projection_name = "catalog"

    def __init__(
        self,
        *,
        clock: Clock | None = None,
        freshness_ttl_seconds: float = DEFAULT_FRESHNESS_TTL_SECONDS,
    ) -> None:
        self._clock = clock or SystemClock()
        self._freshness_ttl = freshness_ttl_seconds
        self._products: Dict[Any, Product] = {}
        self._categories: List[dict] = []
        self._customers: Dict[Any, Customer] = {}
        # product_id → when it was last changed by sync
        self._fresh: Dict[Any, datetime] = {}
        self._lock = Lock()

    # ── Loading ───────────────────────────────────────────────

    def load(
        self,
        products: Iterable[Mapping[str, Any]],
        categories: Iterable[Mapping[str, Any]] = (),
        customers: Iterable[Mapping[str, Any]] = (),
    ) -> None:
        """Replace the whole catalog with a fresh listing."""
        loaded = {}
        for raw in products:
            product = Product.from_mapping(raw)
            loaded[product.id] = product
        with self._lock:
            self._products = loaded
            self._categories = [dict(c) for c in categories]
            self._customers = {
                c.id: c for c in (Customer.from_mapping(raw) for raw in customers)
            }
            self._fresh = {}
        logger.info(
            f"Catalog loaded: {len(loaded)} products, "
            f"{len(self._categories)} categories, "
            f"{len(self._customers)} customers"
        )

    # ── Sync events ───────────────────────────────────────────

    def apply(self, event_key: str, payload: Dict[str, Any]) -> None:
        if event_key in (PRODUCT_CREATED, PRODUCT_UPDATED):
            self._upsert(payload)

        elif event_key == PRODUCT_DELETED:
            product_id = payload.get("id")
            with self._lock:
                self._products.pop(product_id, None)
                self._fresh.pop(product_id, None)

        elif event_key == STOCK_UPDATED:
            product_id = payload.get("id")
            if product_id not in self._products:
                logger.debug(f"Stock update for unknown product {product_id}")
                return
            self.set_stock(product_id, payload["stock"])
            self._mark_fresh(product_id)

    def _upsert(self, payload: Dict[str, Any]) -> None:
        try:
            product = Product.from_mapping(payload)
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"Malformed product payload: {exc}") from exc

        with self._lock:
            existed = product.id in self._products
            self._products[product.id] = product
        logger.debug(
            f"Product {product.id} {'updated' if existed else 'added'} by sync"
        )
        self._mark_fresh(product.id)

    def set_stock(self, product_id: Any, stock: int) -> Optional[int]:
        """Overwrite stock; returns the previous value (None if unknown)."""
        with self._lock:
            product = self._products.get(product_id)
            if product is None:
                return None
            self._products[product_id] = product.with_stock(stock)
            return product.stock

    # ── Freshness ─────────────────────────────────────────────

    def _mark_fresh(self, product_id: Any) -> None:
        with self._lock:
            self._fresh[product_id] = self._clock.now_utc()

    def is_fresh(self, product_id: Any) -> bool:
        marked_at = self._fresh.get(product_id)
        if marked_at is None:
            return False
        return not is_expired(
            marked_at, self._freshness_ttl, self._clock.now_utc(),
        )

    def fresh_ids(self) -> frozenset:
        now = self._clock.now_utc()
        with self._lock:
            self._fresh = {
                pid: at for pid, at in self._fresh.items()
                if not is_expired(at, self._freshness_ttl, now)
            }
            return frozenset(self._fresh)

    # ── Queries ───────────────────────────────────────────────

    def get(self, product_id: Any) -> Optional[Product]:
        return self._products.get(product_id)

    def products(self) -> tuple[Product, ...]:
        with self._lock:
            return tuple(self._products.values())

    def stock_of(self, product_id: Any) -> Optional[int]:
        product = self._products.get(product_id)
        return product.stock if product is not None else None

    def find_by_barcode(self, barcode: str) -> Optional[Product]:
        for product in self.products():
            if product.barcode and product.barcode == barcode:
                return product
        return None

    def search(
        self,
        term: str = "",
        category: Optional[str] = None,
    ) -> list[Product]:
        """Case-insensitive match on name or barcode, optionally by category."""
        term = (term or "").strip().lower()
        found = []
        for product in self.products():
            if category and product.category != category:
                continue
            if term and term not in product.name.lower() and (
                not product.barcode or term not in product.barcode.lower()
            ):
                continue
            found.append(product)
        return found

    def categories(self) -> list[dict]:
        return list(self._categories)

    def customers(self) -> tuple[Customer, ...]:
        return tuple(self._customers.values())

    def customer_name(self, customer_id: Any) -> Optional[str]:
        customer = self._customers.get(customer_id)
        return customer.name if customer is not None else None

    @property
    def product_count(self) -> int:
        return len(self._products)

"""
POS Django Adapter Wiring
=========================
Builds the process-wide RegisterSession behind the HTTP views.

This module is adapter-only glue:
- register settings come from settings.POS_REGISTER
- catalog, sale ledger and printer are in-memory development
  stand-ins for the desktop bridge
"""

from __future__ import annotations

import copy
import logging
import threading
from typing import Any

from django.conf import settings

from core.config import load_register_settings
from core.events import SyncBus
from engines.register.services.session import RegisterSession

logger = logging.getLogger("pos.register")

LOW_STOCK_THRESHOLD = 5

DEV_PRODUCTS = (
    {"id": 1, "name": "Arroz Selecto 5lb", "price": 118.0, "tax_rate": 0.18,
     "stock": 40, "barcode": "7460001000011", "category": "Groceries"},
    {"id": 2, "name": "Habichuelas Rojas", "price": 59.0, "tax_rate": 0.18,
     "stock": 25, "barcode": "7460001000028", "category": "Groceries"},
    {"id": 3, "name": "Plátano Verde", "price": 15.0, "tax_rate": 0.0,
     "stock": 120, "barcode": "7460001000035", "category": "Produce"},
    {"id": 4, "name": "Café Molido 1lb", "price": 236.0, "tax_rate": 0.18,
     "stock": 3, "barcode": "7460001000042", "category": "Groceries"},
    {"id": 5, "name": "Leche Entera 1L", "price": 72.0, "tax_rate": 0.0,
     "stock": 0, "barcode": "7460001000059", "category": "Dairy"},
)
DEV_CATEGORIES = (
    {"id": 1, "name": "Groceries"},
    {"id": 2, "name": "Produce"},
    {"id": 3, "name": "Dairy"},
)
DEV_CUSTOMERS = (
    {"id": 1, "name": "Walk-in Customer"},
    {"id": 2, "name": "Ana Pérez"},
)

_SESSION_LOCK = threading.Lock()
_SESSION: RegisterSession | None = None


class InMemoryCatalog:
    """Catalog listing shared with the in-memory sale ledger."""

    def __init__(self, products=DEV_PRODUCTS, categories=DEV_CATEGORIES,
                 customers=DEV_CUSTOMERS):
        self._products = {p["id"]: dict(p) for p in products}
        self._categories = [dict(c) for c in categories]
        self._customers = [dict(c) for c in customers]
        self._lock = threading.Lock()

    def list_products(self) -> list[dict[str, Any]]:
        with self._lock:
            return copy.deepcopy(list(self._products.values()))

    def list_categories(self) -> list[dict[str, Any]]:
        return copy.deepcopy(self._categories)

    def list_customers(self) -> list[dict[str, Any]]:
        return copy.deepcopy(self._customers)

    def product(self, product_id: Any) -> dict[str, Any] | None:
        return self._products.get(product_id)

    def adjust_stock(self, product_id: Any, delta: int) -> int:
        with self._lock:
            product = self._products[product_id]
            product["stock"] = max(0, product["stock"] + delta)
            return product["stock"]


class InMemorySaleLedger:
    """Sale ledger that checks and moves stock on the shared catalog."""

    def __init__(self, catalog: InMemoryCatalog):
        self._catalog = catalog
        self._sales: dict[int, dict[str, Any]] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def create_sale(self, sale: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            details = sale.get("details") or []
            for line in details:
                product = self._catalog.product(line["product_id"])
                if product is None:
                    return {
                        "success": False,
                        "error": f"Product {line['product_id']} does not exist.",
                    }
                if line["quantity"] > product["stock"]:
                    return {
                        "success": False,
                        "error": f"Insufficient stock for {product['name']}.",
                    }

            stock = {}
            warnings = []
            for line in details:
                remaining = self._catalog.adjust_stock(
                    line["product_id"], -line["quantity"],
                )
                stock[line["product_id"]] = remaining
                if remaining < LOW_STOCK_THRESHOLD:
                    name = self._catalog.product(line["product_id"])["name"]
                    warnings.append(f"Low stock: {name} ({remaining} left).")

            sale_id = self._next_id
            self._next_id += 1
            self._sales[sale_id] = {
                **copy.deepcopy(sale), "id": sale_id, "status": "COMPLETED",
            }
            return {
                "success": True,
                "id": sale_id,
                "warnings": warnings,
                "stock": stock,
            }

    def get_sales(self, filters: dict[str, Any] | None = None) -> dict[str, Any]:
        filters = filters or {}
        with self._lock:
            data = [
                copy.deepcopy(s) for s in self._sales.values()
                if "status" not in filters or s["status"] == filters["status"]
            ]
        return {"data": data, "total": len(data)}

    def get_sale_details(self, sale_id: Any) -> dict[str, Any] | None:
        with self._lock:
            sale = self._sales.get(sale_id)
            return copy.deepcopy(sale) if sale else None

    def cancel_sale(self, sale_id: Any) -> dict[str, Any]:
        with self._lock:
            sale = self._sales.get(sale_id)
            if sale is None:
                return {"success": False, "error": f"Sale {sale_id} not found."}
            if sale["status"] == "CANCELLED":
                return {
                    "success": False,
                    "error": f"Sale {sale_id} is already cancelled.",
                }
            sale["status"] = "CANCELLED"
            stock = {
                line["product_id"]: self._catalog.adjust_stock(
                    line["product_id"], line["quantity"],
                )
                for line in sale["details"]
            }
            return {"success": True, "stock": stock}


class LoggingPrintService:
    """Printer stand-in: records every request and reports success."""

    def __init__(self):
        self.requests: list[tuple[str, Any]] = []

    def _record(self, kind: str, payload: Any) -> dict[str, Any]:
        self.requests.append((kind, payload))
        logger.info(f"[dev printer] {kind}")
        return {"success": True}

    def print_invoice(self, sale):
        return self._record("invoice", sale)

    def print_label(self, item):
        return self._record("label", item)

    def print_barcode(self, value):
        return self._record("barcode", value)

    def print_qr(self, value):
        return self._record("qr", value)

    def test_printer(self, name):
        return self._record("test", name)

    def open_cash_drawer(self):
        return self._record("drawer", None)


def _create_session() -> RegisterSession:
    register_settings = load_register_settings(
        getattr(settings, "POS_REGISTER", None)
    )
    catalog = InMemoryCatalog()
    session = RegisterSession(
        catalog_service=catalog,
        sale_service=InMemorySaleLedger(catalog),
        print_service=LoggingPrintService(),
        bus=SyncBus(),
        settings=register_settings,
        view_id="http-register",
    )
    session.load_catalog()
    return session


def build_register_session() -> RegisterSession:
    """
    Lazy singleton wiring for adapter runtime.
    """
    global _SESSION
    with _SESSION_LOCK:
        if _SESSION is None:
            _SESSION = _create_session()
        return _SESSION


def reset_register_session() -> None:
    """Drop the singleton; the next request builds a fresh session."""
    global _SESSION
    with _SESSION_LOCK:
        if _SESSION is not None:
            _SESSION.close()
        _SESSION = None

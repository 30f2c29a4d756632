"""
POS Integration — Collaborator Ports
======================================
Interfaces the register core consumes. Implementations live
outside the core (desktop bridge, HTTP client, in-memory dev
wiring, test stubs).

Every write-style call answers {success, error?, ...}; see
integration.adapters.coerce_service_result.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Protocol


class CatalogService(Protocol):
    """Product, category and customer source for stock checks."""

    def list_products(self) -> List[Mapping[str, Any]]:
        ...

    def list_categories(self) -> List[Mapping[str, Any]]:
        ...

    def list_customers(self) -> List[Mapping[str, Any]]:
        ...


class SalePersistenceService(Protocol):
    """Authoritative sale ledger."""

    def create_sale(self, sale: Dict[str, Any]) -> Mapping[str, Any]:
        """{success, id?, error?, warnings?, stock?}"""
        ...

    def get_sales(self, filters: Optional[Dict[str, Any]] = None) -> Mapping[str, Any]:
        """{data, total}"""
        ...

    def get_sale_details(self, sale_id: Any) -> Optional[Mapping[str, Any]]:
        ...

    def cancel_sale(self, sale_id: Any) -> Mapping[str, Any]:
        """{success, error?}"""
        ...


class PrintService(Protocol):
    """Receipt/label printer and cash drawer bridge."""

    def print_invoice(self, sale: Dict[str, Any]) -> Mapping[str, Any]:
        ...

    def print_label(self, item: Dict[str, Any]) -> Mapping[str, Any]:
        ...

    def print_barcode(self, value: Dict[str, Any]) -> Mapping[str, Any]:
        ...

    def print_qr(self, value: Dict[str, Any]) -> Mapping[str, Any]:
        ...

    def test_printer(self, name: str) -> Mapping[str, Any]:
        ...

    def open_cash_drawer(self) -> Mapping[str, Any]:
        ...

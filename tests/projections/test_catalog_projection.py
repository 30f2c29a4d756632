"""
Tests for projections.catalog and projections.sales.
"""

import pytest
from datetime import datetime, timezone

from core.time import FixedClock
from projections.catalog import CatalogProjection
from projections.sales import SalesFeedProjection


T0 = datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)

PRODUCTS = [
    {"id": 1, "name": "Arroz Selecto", "price": 118.0, "tax_rate": 0.18,
     "stock": 10, "barcode": "111", "category": "Groceries"},
    {"id": 2, "name": "Plátano", "price": 15.0, "tax_rate": 0, "stock": 50,
     "barcode": "222", "category": "Produce"},
]


@pytest.fixture
def clock():
    return FixedClock(T0)


@pytest.fixture
def catalog(clock):
    projection = CatalogProjection(clock=clock)
    projection.load(
        PRODUCTS,
        categories=[{"id": 1, "name": "Groceries"}],
        customers=[{"id": 1, "name": "Walk-in Customer"}],
    )
    return projection


class TestCatalogLoad:
    def test_load(self, catalog):
        assert catalog.product_count == 2
        assert catalog.get(1).name == "Arroz Selecto"
        assert catalog.categories() == [{"id": 1, "name": "Groceries"}]
        assert catalog.customer_name(1) == "Walk-in Customer"
        assert catalog.customer_name(99) is None

    def test_reload_replaces(self, catalog):
        catalog.load(PRODUCTS[:1])
        assert catalog.product_count == 1
        assert catalog.get(2) is None


class TestCatalogSync:
    def test_created_adds_product(self, catalog):
        catalog.apply("product:created", {"id": 3, "name": "Café", "price": 236.0, "stock": 4})
        assert catalog.get(3).stock == 4

    def test_replayed_created_does_not_duplicate(self, catalog):
        payload = {"id": 3, "name": "Café", "price": 236.0, "stock": 4}
        catalog.apply("product:created", payload)
        catalog.apply("product:created", payload)
        assert catalog.product_count == 3
        assert [p.id for p in catalog.products()].count(3) == 1

    def test_created_for_existing_id_updates(self, catalog):
        catalog.apply("product:created", {"id": 1, "name": "Arroz Premium", "price": 130.0})
        assert catalog.product_count == 2
        assert catalog.get(1).name == "Arroz Premium"

    def test_last_writer_wins(self, catalog):
        catalog.apply("product:updated", {"id": 2, "name": "Plátano", "price": 16.0})
        catalog.apply("product:updated", {"id": 2, "name": "Plátano", "price": 17.0})
        assert catalog.get(2).price == 17.0

    def test_deleted(self, catalog):
        catalog.apply("product:deleted", {"id": 2})
        assert catalog.get(2) is None
        catalog.apply("product:deleted", {"id": 2})
        assert catalog.product_count == 1

    def test_stock_updated_is_absolute(self, catalog):
        payload = {"id": 1, "stock": 7}
        catalog.apply("inventory:stock_updated", payload)
        catalog.apply("inventory:stock_updated", payload)
        assert catalog.stock_of(1) == 7

    def test_stock_for_unknown_product_ignored(self, catalog):
        catalog.apply("inventory:stock_updated", {"id": 42, "stock": 3})
        assert catalog.stock_of(42) is None

    def test_malformed_product_payload(self, catalog):
        with pytest.raises(ValueError, match="Malformed"):
            catalog.apply("product:created", {"name": "No id"})


class TestFreshness:
    def test_synced_product_is_fresh_for_three_seconds(self, catalog, clock):
        catalog.apply("product:updated", {"id": 1, "name": "Arroz", "price": 120.0})
        assert catalog.is_fresh(1)
        assert catalog.fresh_ids() == frozenset({1})
        clock.advance(3)
        assert not catalog.is_fresh(1)
        assert catalog.fresh_ids() == frozenset()

    def test_loaded_products_are_not_fresh(self, catalog):
        assert not catalog.is_fresh(1)

    def test_freshness_does_not_affect_equality(self, catalog):
        before = catalog.get(1)
        catalog.apply("product:updated", before.to_dict())
        assert catalog.get(1) == before

    def test_local_set_stock_is_not_marked(self, catalog):
        assert catalog.set_stock(1, 4) == 10
        assert not catalog.is_fresh(1)


class TestCatalogQueries:
    def test_find_by_barcode(self, catalog):
        assert catalog.find_by_barcode("222").id == 2
        assert catalog.find_by_barcode("999") is None

    def test_search_by_name(self, catalog):
        assert [p.id for p in catalog.search("arroz")] == [1]

    def test_search_by_barcode(self, catalog):
        assert [p.id for p in catalog.search("22")] == [2]

    def test_search_by_category(self, catalog):
        assert [p.id for p in catalog.search(category="Produce")] == [2]

    def test_empty_search_returns_everything(self, catalog):
        assert len(catalog.search()) == 2


class TestSalesFeed:
    def test_created_and_replayed(self):
        feed = SalesFeedProjection()
        payload = {"id": 5, "total": 236.0, "payment_method": "CASH",
                   "products": [{"id": 1, "quantity": 2}]}
        feed.apply("sale:created", payload)
        feed.apply("sale:created", payload)
        assert feed.sale_count == 1
        assert feed.get(5).item_count == 2
        assert feed.completed_total() == 236.0

    def test_cancelled(self):
        feed = SalesFeedProjection()
        feed.apply("sale:created", {"id": 5, "total": 100.0})
        feed.apply("sale:cancelled", {"id": 5})
        assert feed.get(5).status == "CANCELLED"
        assert feed.completed_total() == 0

    def test_cancel_heard_before_create(self):
        feed = SalesFeedProjection()
        feed.apply("sale:cancelled", {"id": 8})
        feed.apply("sale:created", {"id": 8, "total": 50.0})
        assert feed.get(8).status == "CANCELLED"
        assert feed.get(8).total == 50.0

    def test_missing_id_ignored(self):
        feed = SalesFeedProjection()
        feed.apply("sale:created", {"total": 1.0})
        assert feed.sale_count == 0

"""
Tests for engines.register.cart — reducers and CartLedger.
"""

import threading

import pytest

from engines.register.cart import (
    CartLedger,
    add_product,
    apply_discount,
    clear_cart,
    compute_change,
    compute_totals,
    remove_line,
    set_payment,
    set_quantity,
)
from engines.register.models import Cart, LineItem, PaymentMethod, Product


RICE = Product(id=1, name="Rice", price=118.0, tax_rate=0.18, stock=10, barcode="111")
PLANTAIN = Product(id=2, name="Plantain", price=15.0, tax_rate=0.0, stock=50, barcode="222")
COFFEE = Product(id=3, name="Coffee", price=236.0, tax_rate=0.18, stock=0)


class StubCatalog:
    def __init__(self, *products):
        self._products = {p.id: p for p in products}

    def stock_of(self, product_id):
        product = self._products.get(product_id)
        return product.stock if product else None

    def find_by_barcode(self, barcode):
        for product in self._products.values():
            if product.barcode == barcode:
                return product
        return None


def _cart(*products):
    cart = Cart()
    for product in products:
        cart = add_product(cart, product)
    return cart


# ── Reducers ─────────────────────────────────────────────────

class TestAddProduct:
    def test_new_line_freezes_tax_split(self):
        cart = _cart(RICE)
        line = cart.lines[0]
        assert line.quantity == 1
        assert line.unit_price_with_tax == 118.0
        assert line.unit_price_without_tax == pytest.approx(100.0)
        assert line.is_exempt is False
        assert line.line_subtotal == 118.0

    def test_same_product_twice_is_one_line(self):
        cart = _cart(RICE, RICE)
        assert len(cart.lines) == 1
        assert cart.lines[0].quantity == 2
        assert cart.lines[0].line_subtotal == 236.0

    def test_exempt_product(self):
        line = _cart(PLANTAIN).lines[0]
        assert line.is_exempt is True
        assert line.unit_price_without_tax == 15.0

    def test_previous_snapshot_untouched(self):
        before = _cart(RICE)
        after = add_product(before, RICE)
        assert before.lines[0].quantity == 1
        assert after.lines[0].quantity == 2

    def test_duplicate_lines_rejected_by_cart(self):
        line = _cart(RICE).lines[0]
        with pytest.raises(ValueError, match="Duplicate"):
            Cart(lines=(line, line))


class TestRemoveLine:
    def test_remove(self):
        cart = remove_line(_cart(RICE, PLANTAIN), 0)
        assert [l.product_id for l in cart.lines] == [2]

    def test_remove_last_leaves_empty_cart(self):
        assert remove_line(_cart(RICE), 0).is_empty

    @pytest.mark.parametrize("index", [-1, 1, 5])
    def test_out_of_range(self, index):
        with pytest.raises(IndexError):
            remove_line(_cart(RICE), index)


class TestSetQuantity:
    def test_set_within_stock(self):
        cart, warning = set_quantity(_cart(RICE), 0, 4, stock=10)
        assert cart.lines[0].quantity == 4
        assert cart.lines[0].line_subtotal == 4 * 118.0
        assert warning is None

    @pytest.mark.parametrize("quantity", [0, -3])
    def test_below_one_is_noop(self, quantity):
        before = _cart(RICE, RICE)
        cart, warning = set_quantity(before, 0, quantity, stock=10)
        assert cart == before
        assert warning is None

    def test_above_stock_is_capped(self):
        cart, warning = set_quantity(_cart(RICE), 0, 25, stock=10)
        assert cart.lines[0].quantity == 10
        assert "10" in warning

    def test_no_stock_leaves_line_unchanged(self):
        before = _cart(COFFEE)
        cart, warning = set_quantity(before, 0, 2, stock=0)
        assert cart == before
        assert "out of stock" in warning

    def test_unknown_stock_is_not_clamped(self):
        cart, warning = set_quantity(_cart(RICE), 0, 500, stock=None)
        assert cart.lines[0].quantity == 500
        assert warning is None

    def test_out_of_range(self):
        with pytest.raises(IndexError):
            set_quantity(_cart(RICE), 3, 2)

    def test_repeated_edits_do_not_drift(self):
        cart = _cart(RICE)
        for quantity in (3, 7, 2, 9, 1):
            cart, _ = set_quantity(cart, 0, quantity, stock=None)
        line = cart.lines[0]
        assert line.unit_price_with_tax == 118.0
        assert line.line_subtotal == 118.0


class TestTotals:
    def test_reference_cart(self):
        cart = _cart(RICE, RICE)
        totals = compute_totals(cart)
        assert totals.subtotal_ex_tax == pytest.approx(200)
        assert totals.tax_amount == pytest.approx(36)
        assert totals.grand_total == pytest.approx(236)

    def test_discount(self):
        cart = apply_discount(_cart(RICE, RICE), 36)
        assert compute_totals(cart).grand_total == pytest.approx(200)

    def test_discount_clamped_to_subtotal(self):
        cart = apply_discount(_cart(RICE), 1000)
        totals = compute_totals(cart)
        assert totals.discount == pytest.approx(118)
        assert totals.grand_total == pytest.approx(0)

    def test_negative_discount_clamped_to_zero(self):
        cart = apply_discount(_cart(RICE), -5)
        assert cart.discount == 0
        assert compute_totals(cart).grand_total == pytest.approx(118)

    def test_exempt_lines_count_full_price(self):
        totals = compute_totals(_cart(PLANTAIN, PLANTAIN, RICE))
        assert totals.subtotal_ex_tax == pytest.approx(30 + 100)
        assert totals.tax_amount == pytest.approx(18)
        assert totals.grand_total == pytest.approx(148)

    def test_grand_total_identity(self):
        cart = apply_discount(_cart(RICE, PLANTAIN, PLANTAIN), 12.5)
        totals = compute_totals(cart)
        assert totals.grand_total == pytest.approx(
            totals.subtotal_ex_tax + totals.tax_amount - totals.discount
        )

    def test_empty_cart(self):
        totals = compute_totals(Cart())
        assert totals.grand_total == 0


class TestChange:
    def test_cash_change(self):
        cart = set_payment(
            Cart(lines=(LineItem(
                product_id=9, name="Box", unit_price_with_tax=80.0,
                unit_price_without_tax=80.0, quantity=1, tax_rate=0.0,
                is_exempt=True,
            ),)),
            PaymentMethod.CASH,
            100,
        )
        assert compute_change(cart) == pytest.approx(20)

    def test_cash_underpayment_is_negative(self):
        cart = set_payment(_cart(RICE), "CASH", 100)
        assert compute_change(cart) == pytest.approx(-18)

    @pytest.mark.parametrize("method", [PaymentMethod.CARD, PaymentMethod.TRANSFER, "card"])
    def test_non_cash_has_no_change(self, method):
        cart = set_payment(_cart(RICE), method, 500)
        assert compute_change(cart) == 0

    def test_negative_amount_rejected(self):
        with pytest.raises(ValueError):
            set_payment(_cart(RICE), PaymentMethod.CASH, -1)


class TestClearCart:
    def test_clear_resets_inputs(self):
        cart = apply_discount(_cart(RICE), 10)
        cart = set_payment(cart, PaymentMethod.CARD, 50)
        cleared = clear_cart(cart)
        assert cleared.is_empty
        assert cleared.discount == 0
        assert cleared.amount_received == 0
        assert cleared.payment_method is PaymentMethod.CARD


# ── Ledger ───────────────────────────────────────────────────

class TestCartLedger:
    def _ledger(self):
        warnings = []
        ledger = CartLedger(
            catalog=StubCatalog(RICE, PLANTAIN, COFFEE),
            warn=warnings.append,
            customer_id=1,
        )
        return ledger, warnings

    def test_add_and_totals(self):
        ledger, _ = self._ledger()
        ledger.add(RICE)
        ledger.add(RICE)
        assert ledger.totals().grand_total == pytest.approx(236)
        assert ledger.cart.customer_id == 1

    def test_add_by_barcode(self):
        ledger, _ = self._ledger()
        assert ledger.add_by_barcode("222") is not None
        assert ledger.cart.lines[0].product_id == 2

    def test_unknown_barcode_warns(self):
        ledger, warnings = self._ledger()
        assert ledger.add_by_barcode("999") is None
        assert ledger.cart.is_empty
        assert "999" in warnings[0]

    def test_set_quantity_caps_and_warns(self):
        ledger, warnings = self._ledger()
        ledger.add(RICE)
        ledger.set_quantity(0, 40)
        assert ledger.cart.lines[0].quantity == 10
        assert len(warnings) == 1

    def test_set_quantity_out_of_stock_warns(self):
        ledger, warnings = self._ledger()
        ledger.add(COFFEE)
        ledger.set_quantity(0, 3)
        assert ledger.cart.lines[0].quantity == 1
        assert "out of stock" in warnings[0]

    def test_set_quantity_zero_is_silent_noop(self):
        ledger, warnings = self._ledger()
        ledger.add(RICE)
        ledger.set_quantity(0, 0)
        assert ledger.cart.lines[0].quantity == 1
        assert warnings == []

    def test_remove_out_of_range(self):
        ledger, _ = self._ledger()
        with pytest.raises(IndexError):
            ledger.remove(0)

    def test_change(self):
        ledger, _ = self._ledger()
        ledger.add(RICE)
        ledger.set_payment(PaymentMethod.CASH, 200)
        assert ledger.change() == pytest.approx(82)

    def test_to_dict(self):
        ledger, _ = self._ledger()
        ledger.add(PLANTAIN)
        ledger.set_payment(PaymentMethod.TRANSFER, 0)
        data = ledger.to_dict()
        assert data["payment_method"] == "TRANSFER"
        assert data["totals"]["grand_total"] == pytest.approx(15)
        assert data["lines"][0]["name"] == "Plantain"
        assert data["change"] == 0

    def test_concurrent_adds_are_not_lost(self):
        ledger, _ = self._ledger()

        def worker():
            for _ in range(200):
                ledger.add(PLANTAIN)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(ledger.cart.lines) == 1
        assert ledger.cart.lines[0].quantity == 1600

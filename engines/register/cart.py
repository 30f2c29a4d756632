"""
POS Register Engine — Cart Ledger
===================================
Pure reducers over an immutable Cart snapshot, plus the CartLedger
holder that owns the snapshot for one register session.

Reducers never touch alerts or the catalog; they take the facts they
need as arguments and return a new Cart (and, where a cashier should
be told something, a warning string). CartLedger is the only place
that looks up stock and pushes warnings.

RULES:
- One line per product_id; adding again bumps quantity by one
- The tax split is computed once, in add_product, and frozen
- set_quantity below 1 is ignored
- set_quantity above known stock is capped to stock
- Totals are recomputed from the snapshot on every read
"""

from __future__ import annotations

import logging
from dataclasses import replace
from threading import Lock
from typing import Any, Callable, Optional, Protocol, Tuple

from engines.register.models import (
    Cart,
    CartTotals,
    LineItem,
    PaymentMethod,
    Product,
)
from engines.register.tax import split_tax

logger = logging.getLogger("pos.register")


# ══════════════════════════════════════════════════════════════
# REDUCERS
# ══════════════════════════════════════════════════════════════

def add_product(cart: Cart, product: Product) -> Cart:
    index = cart.index_of(product.id)
    if index is not None:
        line = cart.lines[index]
        lines = list(cart.lines)
        lines[index] = line.with_quantity(line.quantity + 1)
        return replace(cart, lines=tuple(lines))

    split = split_tax(product.price, product.tax_rate)
    line = LineItem(
        product_id=product.id,
        name=product.name,
        unit_price_with_tax=split.price_with_tax,
        unit_price_without_tax=split.price_without_tax,
        quantity=1,
        tax_rate=split.tax_rate,
        is_exempt=split.is_exempt,
    )
    return replace(cart, lines=cart.lines + (line,))


def _check_index(cart: Cart, index: int) -> None:
    if not isinstance(index, int) or not 0 <= index < len(cart.lines):
        raise IndexError(
            f"Cart line index {index!r} out of range "
            f"(cart has {len(cart.lines)} lines)."
        )


def remove_line(cart: Cart, index: int) -> Cart:
    _check_index(cart, index)
    return replace(cart, lines=cart.lines[:index] + cart.lines[index + 1:])


def set_quantity(
    cart: Cart,
    index: int,
    quantity: int,
    stock: Optional[int] = None,
) -> Tuple[Cart, Optional[str]]:
    """
    Change the quantity of one line.

    `stock` is the last known stock for the line's product, or None
    when the catalog does not know the product (no clamp then).

    Returns (cart, warning). The cart is returned unchanged when
    quantity < 1 or when stock is known to be exhausted.
    """
    _check_index(cart, index)
    quantity = int(quantity)
    if quantity < 1:
        return cart, None

    line = cart.lines[index]
    warning = None
    if stock is not None:
        if stock < 1:
            return cart, f"{line.name} is out of stock."
        if quantity > stock:
            warning = (
                f"Only {stock} units of {line.name} in stock; "
                f"quantity capped to {stock}."
            )
            quantity = stock

    if quantity == line.quantity:
        return cart, warning

    lines = list(cart.lines)
    lines[index] = line.with_quantity(quantity)
    return replace(cart, lines=tuple(lines)), warning


def clear_cart(cart: Cart) -> Cart:
    """Empty the cart. Customer and payment method selection survive."""
    return Cart(
        customer_id=cart.customer_id,
        payment_method=cart.payment_method,
    )


def apply_discount(cart: Cart, amount: float) -> Cart:
    """Set the sale discount; negative amounts count as no discount."""
    return replace(cart, discount=max(0.0, float(amount)))


def set_notes(cart: Cart, notes: str) -> Cart:
    return replace(cart, notes=str(notes or ""))


def set_customer(cart: Cart, customer_id: Any) -> Cart:
    return replace(cart, customer_id=customer_id)


def set_payment(cart: Cart, method: Any, amount_received: float = 0.0) -> Cart:
    """
    Record the cashier's payment choice as given.

    The method is not validated here; a malformed value is dealt with
    when the sale is validated.
    """
    amount_received = float(amount_received or 0)
    if amount_received < 0:
        raise ValueError("amount_received must be non-negative.")
    return replace(cart, payment_method=method, amount_received=amount_received)


def compute_totals(cart: Cart) -> CartTotals:
    subtotal_ex_tax = sum(line.line_subtotal_ex_tax for line in cart.lines)
    tax_amount = sum(line.line_tax for line in cart.lines)
    subtotal_with_tax = subtotal_ex_tax + tax_amount
    discount = min(max(cart.discount, 0.0), subtotal_with_tax)
    return CartTotals(
        subtotal_ex_tax=subtotal_ex_tax,
        tax_amount=tax_amount,
        discount=discount,
        grand_total=subtotal_ex_tax + tax_amount - discount,
    )


def compute_change(cart: Cart, totals: Optional[CartTotals] = None) -> float:
    """Cash change owed; may be negative. Non-cash payments give 0."""
    if PaymentMethod.parse(cart.payment_method) is not PaymentMethod.CASH:
        return 0.0
    totals = totals or compute_totals(cart)
    return cart.amount_received - totals.grand_total


# ══════════════════════════════════════════════════════════════
# LEDGER
# ══════════════════════════════════════════════════════════════

class StockCatalog(Protocol):
    def stock_of(self, product_id: Any) -> Optional[int]:
        ...

    def find_by_barcode(self, barcode: str) -> Optional[Product]:
        ...


class CartLedger:
    """
    Holds the current Cart for one register session.

    Every mutation reads, reduces and swaps the snapshot under one
    lock, so concurrent requests on a shared session never lose an
    update. Readers always see a complete cart.
    """

    def __init__(
        self,
        *,
        catalog: StockCatalog | None = None,
        warn: Callable[[str], Any] | None = None,
        customer_id: Any = None,
    ):
        self._catalog = catalog
        self._warn = warn
        self._cart = Cart(customer_id=customer_id)
        self._lock = Lock()

    @property
    def cart(self) -> Cart:
        return self._cart

    def _update(self, reducer: Callable[..., Cart], *args: Any) -> Cart:
        with self._lock:
            self._cart = reducer(self._cart, *args)
            return self._cart

    def _warning(self, message: str) -> None:
        logger.info(f"Cart warning: {message}")
        if self._warn is not None:
            self._warn(message)

    # ── Lines ─────────────────────────────────────────────────

    def add(self, product: Product) -> Cart:
        return self._update(add_product, product)

    def add_by_barcode(self, barcode: str) -> Optional[Cart]:
        """Add the product with this barcode; None if nothing matches."""
        product = None
        if self._catalog is not None and barcode:
            product = self._catalog.find_by_barcode(str(barcode).strip())
        if product is None:
            self._warning(f"No product found for barcode '{barcode}'.")
            return None
        return self.add(product)

    def remove(self, index: int) -> Cart:
        return self._update(remove_line, index)

    def set_quantity(self, index: int, quantity: int) -> Cart:
        with self._lock:
            cart = self._cart
            _check_index(cart, index)
            stock = None
            if self._catalog is not None:
                stock = self._catalog.stock_of(cart.lines[index].product_id)
            cart, warning = set_quantity(cart, index, quantity, stock)
            self._cart = cart
        if warning:
            self._warning(warning)
        return cart

    def clear(self) -> Cart:
        return self._update(clear_cart)

    # ── Sale inputs ───────────────────────────────────────────

    def apply_discount(self, amount: float) -> Cart:
        return self._update(apply_discount, amount)

    def set_notes(self, notes: str) -> Cart:
        return self._update(set_notes, notes)

    def set_customer(self, customer_id: Any) -> Cart:
        return self._update(set_customer, customer_id)

    def set_payment(self, method: Any, amount_received: float = 0.0) -> Cart:
        return self._update(set_payment, method, amount_received)

    # ── Derived ───────────────────────────────────────────────

    def totals(self) -> CartTotals:
        return compute_totals(self._cart)

    def change(self) -> float:
        return compute_change(self._cart)

    def to_dict(self) -> dict:
        cart = self._cart
        totals = compute_totals(cart)
        method = cart.payment_method
        return {
            "lines": [line.to_dict() for line in cart.lines],
            "totals": totals.to_dict(),
            "customer_id": cart.customer_id,
            "notes": cart.notes,
            "payment_method": (
                method.value if isinstance(method, PaymentMethod) else method
            ),
            "amount_received": cart.amount_received,
            "change": compute_change(cart, totals),
        }

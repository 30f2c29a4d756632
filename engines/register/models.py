"""
POS Register Engine — Domain Records
======================================
Immutable snapshots used by the register:

  Product   → catalog entry as last seen by this view
  LineItem  → one product in the cart, tax split frozen at add time
  Cart      → ordered lines + discount/notes/payment inputs
  Sale      → what is sent to the ledger, immutable once built

RULES:
- Prices are tax-inclusive floats in the register currency
- At most one LineItem per product_id
- line_subtotal is always unit_price_with_tax × quantity
- Non-cash sales: amount_received == total and change == 0
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional, Tuple


# ══════════════════════════════════════════════════════════════
# ENUMS
# ══════════════════════════════════════════════════════════════

class PaymentMethod(Enum):
    CASH = "CASH"
    CARD = "CARD"
    TRANSFER = "TRANSFER"

    @classmethod
    def parse(cls, raw: Any) -> Optional["PaymentMethod"]:
        """Return the matching method, or None when `raw` is malformed."""
        if isinstance(raw, cls):
            return raw
        if not isinstance(raw, str):
            return None
        try:
            return cls(raw.strip().upper())
        except ValueError:
            return None


class SaleStatus(Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


# ══════════════════════════════════════════════════════════════
# PRODUCT / CUSTOMER
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Product:
    id: Any
    name: str
    price: float
    tax_rate: float = 0.0
    stock: int = 0
    barcode: Optional[str] = None
    category: Optional[str] = None

    def __post_init__(self):
        if self.id is None or self.id == "":
            raise ValueError("product id must be set.")
        if not self.name or not str(self.name).strip():
            raise ValueError("product name must be non-empty.")
        if self.price < 0:
            raise ValueError("price must be non-negative.")
        if not 0 <= self.tax_rate <= 1:
            raise ValueError("tax_rate must be between 0 and 1.")

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "Product":
        barcode = raw.get("barcode")
        return cls(
            id=raw["id"],
            name=str(raw["name"]),
            price=float(raw["price"]),
            tax_rate=float(raw.get("tax_rate") or 0),
            stock=int(raw.get("stock") or 0),
            barcode=str(barcode) if barcode not in (None, "") else None,
            category=raw.get("category"),
        )

    def with_stock(self, stock: int) -> "Product":
        return replace(self, stock=int(stock))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "tax_rate": self.tax_rate,
            "stock": self.stock,
            "barcode": self.barcode,
            "category": self.category,
        }


@dataclass(frozen=True)
class Customer:
    id: Any
    name: str

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "Customer":
        return cls(id=raw["id"], name=str(raw.get("name") or ""))


# ══════════════════════════════════════════════════════════════
# LINE ITEM
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class LineItem:
    """
    One cart line. The tax split is frozen here at add time.
    """

    product_id: Any
    name: str
    unit_price_with_tax: float
    unit_price_without_tax: float
    quantity: int
    tax_rate: float
    is_exempt: bool
    line_discount: float = 0.0

    def __post_init__(self):
        # quantity >= 1 is kept by the cart reducers and checked again
        # by the commit policies; records built elsewhere may violate it
        if not isinstance(self.quantity, int):
            raise ValueError("quantity must be an integer.")
        if self.unit_price_with_tax < 0 or self.unit_price_without_tax < 0:
            raise ValueError("unit prices must be non-negative.")

    @property
    def line_subtotal(self) -> float:
        return self.unit_price_with_tax * self.quantity

    @property
    def line_subtotal_ex_tax(self) -> float:
        if self.is_exempt:
            return self.unit_price_with_tax * self.quantity
        return self.unit_price_without_tax * self.quantity

    @property
    def line_tax(self) -> float:
        if self.is_exempt:
            return 0.0
        return (self.unit_price_with_tax - self.unit_price_without_tax) * self.quantity

    def with_quantity(self, quantity: int) -> "LineItem":
        return replace(self, quantity=quantity)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "unit_price_with_tax": self.unit_price_with_tax,
            "unit_price_without_tax": self.unit_price_without_tax,
            "quantity": self.quantity,
            "line_subtotal": self.line_subtotal,
            "tax_rate": self.tax_rate,
            "is_exempt": self.is_exempt,
            "line_discount": self.line_discount,
        }

    def to_detail_payload(self) -> dict:
        """Line as the sale ledger expects it."""
        return {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price": self.unit_price_with_tax,
            "discount": self.line_discount,
            "tax_rate": self.tax_rate,
            "subtotal": self.line_subtotal,
        }


# ══════════════════════════════════════════════════════════════
# CART
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CartTotals:
    subtotal_ex_tax: float
    tax_amount: float
    discount: float
    grand_total: float

    @property
    def subtotal_with_tax(self) -> float:
        return self.subtotal_ex_tax + self.tax_amount

    def to_dict(self) -> dict:
        return {
            "subtotal_ex_tax": self.subtotal_ex_tax,
            "tax_amount": self.tax_amount,
            "subtotal_with_tax": self.subtotal_with_tax,
            "discount": self.discount,
            "grand_total": self.grand_total,
        }


@dataclass(frozen=True)
class Cart:
    """
    Register cart snapshot.

    payment_method holds whatever the cashier selected; it is only
    normalized when the sale is validated.
    """

    lines: Tuple[LineItem, ...] = ()
    discount: float = 0.0
    notes: str = ""
    customer_id: Optional[Any] = None
    payment_method: Any = PaymentMethod.CASH
    amount_received: float = 0.0

    def __post_init__(self):
        seen = set()
        for line in self.lines:
            if line.product_id in seen:
                raise ValueError(
                    f"Duplicate cart line for product {line.product_id!r}."
                )
            seen.add(line.product_id)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def index_of(self, product_id: Any) -> Optional[int]:
        for index, line in enumerate(self.lines):
            if line.product_id == product_id:
                return index
        return None


# ══════════════════════════════════════════════════════════════
# SALE
# ══════════════════════════════════════════════════════════════

def settle_payment(
    method: PaymentMethod, amount_received: float, total: float,
) -> Tuple[float, float]:
    """
    Return (amount_received, change).

    Cash change may be negative (under-payment); the caller decides
    whether to allow it.
    """
    if method is PaymentMethod.CASH:
        return float(amount_received), float(amount_received) - total
    return total, 0.0


@dataclass(frozen=True)
class Sale:
    customer_id: Any
    total: float
    discount: float
    tax_amount: float
    subtotal_ex_tax: float
    payment_method: PaymentMethod
    amount_received: float
    change: float
    details: Tuple[LineItem, ...]
    created_at: datetime
    status: SaleStatus = SaleStatus.PENDING
    id: Optional[Any] = None
    customer_name: str = ""
    notes: str = ""
    completed_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.details:
            raise ValueError("sale must contain at least one line.")
        if not isinstance(self.payment_method, PaymentMethod):
            raise ValueError("payment_method must be PaymentMethod.")
        if not isinstance(self.status, SaleStatus):
            raise ValueError("status must be SaleStatus.")
        if self.payment_method is not PaymentMethod.CASH:
            if self.change != 0 or not math.isclose(
                self.amount_received, self.total, abs_tol=1e-9,
            ):
                raise ValueError(
                    "non-cash sale must have amount_received == total "
                    "and change == 0."
                )

    def completed(self, sale_id: Any, completed_at: datetime) -> "Sale":
        return replace(
            self,
            id=sale_id,
            status=SaleStatus.COMPLETED,
            completed_at=completed_at,
        )

    def to_payload(self) -> dict:
        """Wire shape sent to SalePersistenceService.create_sale."""
        return {
            "customer_id": self.customer_id,
            "total": self.total,
            "discount": self.discount,
            "tax_amount": self.tax_amount,
            "payment_method": self.payment_method.value,
            "status": self.status.value,
            "notes": self.notes or None,
            "amount_received": self.amount_received,
            "change": self.change,
            "details": [line.to_detail_payload() for line in self.details],
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "total": self.total,
            "subtotal_ex_tax": self.subtotal_ex_tax,
            "discount": self.discount,
            "tax_amount": self.tax_amount,
            "payment_method": self.payment_method.value,
            "status": self.status.value,
            "notes": self.notes,
            "amount_received": self.amount_received,
            "change": self.change,
            "details": [line.to_dict() for line in self.details],
            "created_at": self.created_at.isoformat(),
            "completed_at": (
                self.completed_at.isoformat() if self.completed_at else None
            ),
        }

"""
POS Register Engine — Tax Split
=================================
Pure functions; no state, no clock, no I/O.

Catalog prices are tax-inclusive. The pre-tax unit price is derived
exactly once, when a product enters the cart, and frozen on the line.
Quantity edits multiply the frozen values and never divide again, so
repeated edits cannot drift away from the displayed price.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TaxSplit:
    price_with_tax: float
    price_without_tax: float
    tax_rate: float
    is_exempt: bool

    @property
    def tax_per_unit(self) -> float:
        return self.price_with_tax - self.price_without_tax


def is_exempt_rate(tax_rate: float) -> bool:
    return tax_rate == 0


def split_tax(price_with_tax: float, tax_rate: float) -> TaxSplit:
    """
    Split a tax-inclusive unit price.

    exempt (rate == 0):  price_without_tax = price_with_tax
    otherwise:           price_without_tax = price_with_tax / (1 + rate)

    Raises ValueError for a negative price or a rate outside [0, 1].
    """
    price_with_tax = float(price_with_tax)
    tax_rate = float(tax_rate)

    if price_with_tax < 0:
        raise ValueError("price_with_tax must be non-negative.")
    if not 0 <= tax_rate <= 1:
        raise ValueError(f"tax_rate must be between 0 and 1, got {tax_rate}.")

    exempt = is_exempt_rate(tax_rate)
    price_without_tax = (
        price_with_tax if exempt else price_with_tax / (1 + tax_rate)
    )
    return TaxSplit(
        price_with_tax=price_with_tax,
        price_without_tax=price_without_tax,
        tax_rate=tax_rate,
        is_exempt=exempt,
    )

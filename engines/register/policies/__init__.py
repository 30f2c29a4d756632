"""
POS Register Engine — Commit Policies
=======================================
Checks run while a sale is VALIDATING. Each returns None to allow
or a RejectionReason to stop the commit before the backend is
called.
"""

from __future__ import annotations

import logging
from typing import Optional

from core.commands.rejection import ReasonCode, RejectionReason
from engines.register.models import Cart, PaymentMethod

logger = logging.getLogger("pos.register")


def cart_must_not_be_empty_policy(cart: Cart) -> Optional[RejectionReason]:
    if cart.is_empty:
        return RejectionReason(
            code=ReasonCode.EMPTY_CART,
            message="Add at least one product before completing the sale.",
            policy_name="cart_must_not_be_empty_policy",
        )
    return None


def lines_must_be_valid_policy(cart: Cart) -> Optional[RejectionReason]:
    """Every line needs a product id and a positive quantity."""
    for index, line in enumerate(cart.lines):
        if line.product_id is None or line.product_id == "":
            return RejectionReason(
                code=ReasonCode.INVALID_LINE,
                message=f"Line {index + 1} has no product.",
                policy_name="lines_must_be_valid_policy",
            )
        if line.quantity <= 0:
            return RejectionReason(
                code=ReasonCode.INVALID_LINE,
                message=(
                    f"Line {index + 1} ({line.name}) has quantity "
                    f"{line.quantity}."
                ),
                policy_name="lines_must_be_valid_policy",
            )
    return None


def payment_method_policy(
    cart: Cart,
    strict: bool = False,
) -> Optional[RejectionReason]:
    """
    Reject a payment method outside CASH/CARD/TRANSFER.

    Only enforced in strict mode; otherwise the coordinator falls back
    to CASH (see resolve_payment_method).
    """
    if not strict:
        return None
    if PaymentMethod.parse(cart.payment_method) is None:
        return RejectionReason(
            code=ReasonCode.INVALID_PAYMENT_METHOD,
            message=f"Unknown payment method '{cart.payment_method}'.",
            policy_name="payment_method_policy",
        )
    return None


def resolve_payment_method(raw) -> tuple[PaymentMethod, bool]:
    """
    Return (method, normalized). A malformed value becomes CASH and
    normalized is True.
    """
    method = PaymentMethod.parse(raw)
    if method is not None:
        return method, False
    logger.warning(
        f"Payment method anomaly: {raw!r} is not a known method, "
        f"treating the sale as CASH"
    )
    return PaymentMethod.CASH, True


COMMIT_POLICIES = (
    cart_must_not_be_empty_policy,
    lines_must_be_valid_policy,
)

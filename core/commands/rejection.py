"""
POS Command Layer — Rejection Model
======================================
Structured reasons for register actions refused locally.

A rejection never reaches the backend. It is surfaced to the
operator as a warning alert and recorded on the commit outcome.

Every rejection must be:
- Machine-readable (code)
- Human-readable (message)
- Traceable to the policy that produced it
"""

from __future__ import annotations

from dataclasses import dataclass


# ══════════════════════════════════════════════════════════════
# REJECTION REASON (frozen explanation structure)
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RejectionReason:
    """
    Structured reason for a refused register action.

    Fields:
        code:        Machine-readable code (e.g. 'EMPTY_CART').
        message:     Human-readable explanation shown to the cashier.
        policy_name: Name of the policy that refused the action.
    """

    code: str
    message: str
    policy_name: str

    def __post_init__(self):
        if not self.code or not isinstance(self.code, str):
            raise ValueError("code must be a non-empty string.")

        if not self.message or not isinstance(self.message, str):
            raise ValueError("message must be a non-empty string.")

        if not self.policy_name or not isinstance(self.policy_name, str):
            raise ValueError("policy_name must be a non-empty string.")

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "policy_name": self.policy_name,
        }


# ══════════════════════════════════════════════════════════════
# STANDARD REJECTION CODES
# ══════════════════════════════════════════════════════════════

class ReasonCode:
    """
    Known rejection codes.

    Convention: SCREAMING_SNAKE_CASE.
    """

    # ── Cart ──────────────────────────────────────────────────
    EMPTY_CART = "EMPTY_CART"
    INVALID_LINE = "INVALID_LINE"

    # ── Payment ───────────────────────────────────────────────
    INVALID_PAYMENT_METHOD = "INVALID_PAYMENT_METHOD"

    # ── Printing ──────────────────────────────────────────────
    INVALID_PRINT_PAYLOAD = "INVALID_PRINT_PAYLOAD"

"""
POS Core Config — Register Settings
=====================================
Operator-tunable register behaviour.

Values come from the POS_REGISTER dict in the Django settings
module (or any mapping in tests), never from engine code.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional


# ══════════════════════════════════════════════════════════════
# REGISTER SETTINGS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RegisterSettings:
    """
    Register configuration snapshot.

    alert_ttl_seconds:      lifetime of each alert in the queue.
    freshness_ttl_seconds:  how long a synced row stays highlighted.
    print_after_sale:       print the invoice automatically after commit.
    open_cash_drawer:       pulse the drawer after a printed cash sale.
    strict_payment_method:  reject (instead of normalizing) a bad method.
    """

    alert_ttl_seconds: float = 5.0
    freshness_ttl_seconds: float = 3.0
    print_after_sale: bool = True
    open_cash_drawer: bool = False
    strict_payment_method: bool = False
    default_customer_id: int = 1
    default_customer_name: str = "Walk-in Customer"
    invoice_printer: str = ""

    def __post_init__(self) -> None:
        if self.alert_ttl_seconds <= 0:
            raise ValueError("alert_ttl_seconds must be positive.")
        if self.freshness_ttl_seconds <= 0:
            raise ValueError("freshness_ttl_seconds must be positive.")
        if not self.default_customer_name:
            raise ValueError("default_customer_name must be non-empty.")


_BOOL_FIELDS = frozenset({
    "print_after_sale",
    "open_cash_drawer",
    "strict_payment_method",
})


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def load_register_settings(
    source: Optional[Mapping[str, Any]] = None,
) -> RegisterSettings:
    """
    Build RegisterSettings from a mapping.

    Keys are matched case-insensitively; unknown keys are rejected so
    a typo in settings.py does not silently fall back to a default.
    """
    if not source:
        return RegisterSettings()

    known = {f.name: f for f in fields(RegisterSettings)}
    values: dict[str, Any] = {}
    for raw_key, value in source.items():
        key = str(raw_key).lower()
        if key not in known:
            raise ValueError(f"Unknown register setting '{raw_key}'.")
        if key in _BOOL_FIELDS:
            value = _coerce_bool(value)
        elif key in ("alert_ttl_seconds", "freshness_ttl_seconds"):
            value = float(value)
        elif key == "default_customer_id":
            value = int(value)
        else:
            value = str(value)
        values[key] = value
    return RegisterSettings(**values)

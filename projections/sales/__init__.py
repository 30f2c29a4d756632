"""
POS Projections — Sales Feed
==============================
Reporting view of sales seen on the sync bus, for dashboards and
the sales list.

Built from:
- sale:created
- sale:cancelled

A sale is keyed by its id; replayed events overwrite, never append.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from engines.register.events import ACTION_CANCELLED, ACTION_CREATED, SALE_CHANNEL

SALE_CREATED = f"{SALE_CHANNEL}:{ACTION_CREATED}"
SALE_CANCELLED = f"{SALE_CHANNEL}:{ACTION_CANCELLED}"


@dataclass
class SaleSummary:
    sale_id: Any
    total: float
    payment_method: str
    status: str  # COMPLETED | CANCELLED
    customer_id: Any = None
    customer_name: str = ""
    created_at: Optional[str] = None
    item_count: int = 0

    def to_dict(self) -> dict:
        return {
            "id": self.sale_id,
            "total": self.total,
            "payment_method": self.payment_method,
            "status": self.status,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "created_at": self.created_at,
            "item_count": self.item_count,
        }


class SalesFeedProjection:
    """Sales seen by this view, most recent last."""

    projection_name = "sales_feed"

    def __init__(self) -> None:
        self._sales: Dict[Any, SaleSummary] = {}

    def apply(self, event_key: str, payload: Dict[str, Any]) -> None:
        sale_id = payload.get("id")
        if sale_id is None:
            return

        if event_key == SALE_CREATED:
            existing = self._sales.get(sale_id)
            status = "COMPLETED"
            # a cancellation heard before the creation still wins
            if existing is not None and existing.status == "CANCELLED":
                status = "CANCELLED"
            self._sales[sale_id] = SaleSummary(
                sale_id=sale_id,
                total=float(payload.get("total", 0)),
                payment_method=str(payload.get("payment_method", "")),
                status=status,
                customer_id=payload.get("customer_id"),
                customer_name=str(payload.get("customer_name") or ""),
                created_at=payload.get("created_at"),
                item_count=sum(
                    int(p.get("quantity", 0)) for p in payload.get("products", [])
                ),
            )

        elif event_key == SALE_CANCELLED:
            summary = self._sales.get(sale_id)
            if summary is None:
                self._sales[sale_id] = SaleSummary(
                    sale_id=sale_id,
                    total=0.0,
                    payment_method="",
                    status="CANCELLED",
                )
            else:
                summary.status = "CANCELLED"

    def get(self, sale_id: Any) -> Optional[SaleSummary]:
        return self._sales.get(sale_id)

    def sales(self) -> list[SaleSummary]:
        return list(self._sales.values())

    @property
    def sale_count(self) -> int:
        return len(self._sales)

    def completed_total(self) -> float:
        return sum(
            s.total for s in self._sales.values() if s.status == "COMPLETED"
        )

"""
POS Register Engine — Sync Channels and Payload Builders
==========================================================
Channels the register broadcasts on and listens to.

  product:created / updated / deleted   catalog edits from any view
  inventory:stock_updated               absolute stock after a sale
  sale:created / cancelled              ledger changes for reports

Stock payloads carry the new absolute stock, never a delta, so a
duplicated delivery is harmless.
"""

from __future__ import annotations

from typing import Any, Optional

from engines.register.models import Product, Sale


# ══════════════════════════════════════════════════════════════
# CHANNELS AND ACTIONS
# ══════════════════════════════════════════════════════════════

PRODUCT_CHANNEL = "product"
INVENTORY_CHANNEL = "inventory"
SALE_CHANNEL = "sale"

ACTION_CREATED = "created"
ACTION_UPDATED = "updated"
ACTION_DELETED = "deleted"
ACTION_STOCK_UPDATED = "stock_updated"
ACTION_CANCELLED = "cancelled"


# ══════════════════════════════════════════════════════════════
# PAYLOAD BUILDERS
# ══════════════════════════════════════════════════════════════

def build_product_payload(product: Product) -> dict:
    return product.to_dict()


def build_product_deleted_payload(product_id: Any) -> dict:
    return {"id": product_id}


def build_stock_updated_payload(
    product_id: Any,
    stock: int,
    *,
    previous_stock: Optional[int] = None,
    quantity_sold: int = 0,
    authoritative: bool = False,
    reason: str = "sale",
) -> dict:
    return {
        "id": product_id,
        "stock": int(stock),
        "previous_stock": previous_stock,
        "quantity_sold": int(quantity_sold),
        "authoritative": authoritative,
        "reason": reason,
    }


def build_sale_created_payload(sale: Sale) -> dict:
    return {
        "id": sale.id,
        "customer_id": sale.customer_id,
        "customer_name": sale.customer_name,
        "total": sale.total,
        "payment_method": sale.payment_method.value,
        "status": sale.status.value,
        "created_at": sale.created_at.isoformat(),
        "products": [
            {"id": line.product_id, "quantity": line.quantity}
            for line in sale.details
        ],
    }


def build_sale_cancelled_payload(sale_id: Any) -> dict:
    return {"id": sale_id}

# Overview: Service-layer operations for purchase receipts; goods received from suppliers.

"""
Purchase Receipt Service

LIFECYCLE:
1. pending: ordered / in transit, ignored by stock calculations
2. received: on the shelf, counted toward stock

Receiving is one-way and idempotent: receiving an already received receipt
returns it unchanged. Each change that affects stock is followed by a
synchronization of the product.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Product, PurchaseReceipt
from ..models.inventory import RECEIPT_PENDING, RECEIPT_RECEIVED, RECEIPT_STATUSES
from ..validation import NotFoundError, ValidationError
from stockcore.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .stock_service import sync_products_stock


def create_purchase_receipt(
    *,
    product_id: int,
    quantity: int,
    supplier_name: str | None = None,
    unit_cost_cents: int | None = None,
    status: str = RECEIPT_PENDING,
    notes: str | None = None,
) -> PurchaseReceipt:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("quantity must be > 0")
    if status not in RECEIPT_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(RECEIPT_STATUSES)}")

    if db.session.get(Product, product_id) is None:
        raise NotFoundError(f"product {product_id} not found")

    receipt = PurchaseReceipt(
        product_id=product_id,
        quantity=quantity,
        supplier_name=supplier_name,
        unit_cost_cents=unit_cost_cents,
        status=status,
        received_at=utcnow() if status == RECEIPT_RECEIVED else None,
        notes=notes,
    )
    db.session.add(receipt)
    db.session.commit()

    if status == RECEIPT_RECEIVED:
        sync_products_stock([product_id])
    return receipt


def mark_receipt_received(receipt_id: int) -> PurchaseReceipt:
    def _op() -> tuple[PurchaseReceipt, bool]:
        receipt = lock_for_update(
            db.session.query(PurchaseReceipt).filter_by(id=receipt_id)
        ).first()
        if receipt is None:
            raise NotFoundError(f"purchase receipt {receipt_id} not found")
        if receipt.status == RECEIPT_RECEIVED:
            return receipt, False
        receipt.status = RECEIPT_RECEIVED
        receipt.received_at = utcnow()
        db.session.commit()
        return receipt, True

    receipt, changed = run_with_retry(_op)
    if changed:
        sync_products_stock([receipt.product_id])
    return receipt

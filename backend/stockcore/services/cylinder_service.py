# Overview: Service-layer operations for cylinder deposit, refill and return events.

from __future__ import annotations

from ..extensions import db
from ..models import CylinderTransaction, Product
from ..models.inventory import CYLINDER_REFILL, CYLINDER_SIZES, CYLINDER_TYPES
from ..validation import NotFoundError, ValidationError
from .stock_service import sync_products_stock

CYLINDER_STATUSES = ("pending", "cleared", "overdue")


def record_cylinder_transaction(
    *,
    type: str,
    quantity: int,
    cylinder_size: str,
    product_id: int | None = None,
    customer_name: str | None = None,
    supplier_name: str | None = None,
    amount_cents: int = 0,
    status: str = "pending",
    notes: str | None = None,
) -> CylinderTransaction:
    """
    Record a cylinder event. Refills go to a supplier; deposits and returns
    involve a customer.
    """
    if type not in CYLINDER_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(CYLINDER_TYPES)}")
    if cylinder_size not in CYLINDER_SIZES:
        raise ValidationError(f"cylinder_size must be one of: {', '.join(CYLINDER_SIZES)}")
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError("quantity must be >= 1")
    if amount_cents is None or amount_cents < 0:
        raise ValidationError("amount_cents must be >= 0")
    if status not in CYLINDER_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(CYLINDER_STATUSES)}")
    if type == CYLINDER_REFILL and not supplier_name:
        raise ValidationError("supplier_name is required for refill")
    if type != CYLINDER_REFILL and not customer_name:
        raise ValidationError(f"customer_name is required for {type}")

    if product_id is not None and db.session.get(Product, product_id) is None:
        raise NotFoundError(f"product {product_id} not found")

    tx = CylinderTransaction(
        type=type,
        product_id=product_id,
        quantity=quantity,
        cylinder_size=cylinder_size,
        customer_name=customer_name,
        supplier_name=supplier_name,
        amount_cents=amount_cents,
        status=status,
        notes=notes,
    )
    db.session.add(tx)
    db.session.commit()

    if product_id is not None:
        sync_products_stock([product_id])
    return tx

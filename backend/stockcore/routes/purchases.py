# Overview: Flask API routes for purchase receipts.

# backend/stockcore/routes/purchases.py
from flask import Blueprint, request

from ..models import PurchaseReceipt
from ..services import receive_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_purchase_receipt,
    ValidationError,
    NotFoundError,
)


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")

PURCHASE_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "quantity", "supplier_name", "unit_cost_cents", "status", "notes"},
    required_on_create={"product_id", "quantity"},
)


@purchases_bp.post("")
def create_purchase_route():
    """
    Create a purchase receipt. status defaults to 'pending'; pass
    "status": "received" when the goods arrive with the paperwork.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=PurchaseReceipt,
            payload=payload,
            policy=PURCHASE_POLICY,
            partial=False,
        )
        enforce_rules_purchase_receipt(patch)
        receipt = receive_service.create_purchase_receipt(**patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return {"receipt": receipt.to_dict()}, 201


@purchases_bp.post("/<int:receipt_id>/receive")
def receive_purchase_route(receipt_id: int):
    try:
        receipt = receive_service.mark_receipt_received(receipt_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"receipt": receipt.to_dict()}

# Overview: Flask API routes for cylinder deposit, refill and return events.

# backend/stockcore/routes/cylinders.py
from flask import Blueprint, request

from ..models import CylinderTransaction
from ..services import cylinder_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_cylinder_transaction,
    ValidationError,
    NotFoundError,
)


cylinders_bp = Blueprint("cylinders", __name__, url_prefix="/api/cylinders")

CYLINDER_POLICY = ModelValidationPolicy(
    writable_fields={
        "type",
        "product_id",
        "quantity",
        "cylinder_size",
        "customer_name",
        "supplier_name",
        "amount_cents",
        "status",
        "notes",
    },
    required_on_create={"type", "quantity", "cylinder_size"},
)


@cylinders_bp.post("")
def record_cylinder_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=CylinderTransaction,
            payload=payload,
            policy=CYLINDER_POLICY,
            partial=False,
        )
        enforce_rules_cylinder_transaction(patch)
        tx = cylinder_service.record_cylinder_transaction(**patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return {"transaction": tx.to_dict()}, 201

# Overview: Flask API routes for stock assignments (employee custody lifecycle).

# backend/stockcore/routes/assignments.py
"""
Stock assignment routes.

LIFECYCLE: assigned -> received -> returned
- POST /api/stock-assignments              hand stock to an employee
- GET  /api/stock-assignments              list (employee_id, product_id, status filters)
- POST /api/stock-assignments/<id>/receive employee acknowledges custody
- POST /api/stock-assignments/<id>/deplete record units sold against it
- POST /api/stock-assignments/<id>/return  hand back unsold units
"""
from flask import Blueprint, current_app, request

from ..models import StockAssignment
from ..services import assignment_service
from ..services.stock_sources import StockComputationError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_assignment,
    require_positive_int,
    ValidationError,
    NotFoundError,
    ConflictError,
    InsufficientStockError,
)


assignments_bp = Blueprint("stock_assignments", __name__, url_prefix="/api/stock-assignments")

ASSIGNMENT_POLICY = ModelValidationPolicy(
    writable_fields={"employee_id", "product_id", "quantity", "assigned_by_id", "notes"},
    required_on_create={"employee_id", "product_id", "quantity"},
)


@assignments_bp.post("")
def create_assignment_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=StockAssignment,
            payload=payload,
            policy=ASSIGNMENT_POLICY,
            partial=False,
        )
        enforce_rules_assignment(patch)
        assignment = assignment_service.create_assignment(**patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except InsufficientStockError as e:
        return {"error": str(e), "details": e.details}, 409
    except ConflictError as e:
        return {"error": str(e)}, 409
    except StockComputationError:
        current_app.logger.exception("Failed to create stock assignment")
        return {"error": "Stock could not be computed"}, 500

    return {"assignment": assignment.to_dict()}, 201


@assignments_bp.get("")
def list_assignments_route():
    assignments = assignment_service.list_assignments(
        employee_id=request.args.get("employee_id", type=int),
        product_id=request.args.get("product_id", type=int),
        status=request.args.get("status"),
    )
    return {"assignments": [a.to_dict() for a in assignments]}


@assignments_bp.post("/<int:assignment_id>/receive")
def receive_assignment_route(assignment_id: int):
    try:
        assignment = assignment_service.receive_assignment(assignment_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    return {"assignment": assignment.to_dict()}


@assignments_bp.post("/<int:assignment_id>/deplete")
def deplete_assignment_route(assignment_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        quantity = require_positive_int("quantity", payload.get("quantity"))
        assignment = assignment_service.deplete_assignment(assignment_id, quantity)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except InsufficientStockError as e:
        return {"error": str(e), "details": e.details}, 409
    except ConflictError as e:
        return {"error": str(e)}, 409
    return {"assignment": assignment.to_dict()}


@assignments_bp.post("/<int:assignment_id>/return")
def return_assignment_route(assignment_id: int):
    try:
        result = assignment_service.return_assignment(assignment_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    return result

# Overview: Flask API routes for stock reconciliation; parses input and returns JSON responses.

# backend/stockcore/routes/stock.py
"""
Stock reconciliation routes.

- GET  /api/stock/<product_id>             recalculated stock (pure read)
- POST /api/stock/<product_id>/sync        refresh one product's cached stock
- POST /api/stock/sync                     refresh every product
- POST /api/stock/<product_id>/validate    can a quantity be satisfied now?
- GET  /api/stock/<product_id>/breakdown   per-source contribution (drift diagnosis)

Error mapping:
- 400 invalid input, 404 unknown product/employee
- 500 when a transaction source could not be read (never reported as zero)
"""
from flask import Blueprint, current_app, request

from ..services import stock_service
from ..services.stock_sources import StockComputationError
from ..validation import NotFoundError, ValidationError, require_non_negative_int, require_positive_int


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


def _computation_failed(e: StockComputationError):
    current_app.logger.exception("Stock computation failed for product %s", e.product_id)
    return {"error": "Stock could not be computed", "source": e.source}, 500


@stock_bp.get("/<int:product_id>")
def calculate_stock_route(product_id: int):
    try:
        calculated = stock_service.calculate_current_stock(product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except StockComputationError as e:
        return _computation_failed(e)
    return {"product_id": product_id, "calculated_stock": calculated}


@stock_bp.post("/<int:product_id>/sync")
def sync_product_route(product_id: int):
    try:
        result = stock_service.sync_product_stock(product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except StockComputationError as e:
        return _computation_failed(e)
    return {"result": result}


@stock_bp.post("/sync")
def sync_all_route():
    """
    Synchronize all products. Per-product failures are reported in the
    results list; the request itself succeeds.
    """
    return stock_service.sync_all_products_stock()


@stock_bp.post("/<int:product_id>/validate")
def validate_stock_route(product_id: int):
    """
    Body: {"quantity": int, "operation": str?, "employee_id": int?}

    An insufficient quantity is a normal 200 response with valid=false and
    the shortfall; it is a business answer, not an error.
    """
    payload = request.get_json(silent=True) or {}

    try:
        quantity = require_non_negative_int("quantity", payload.get("quantity"))
        employee_id = payload.get("employee_id")
        if employee_id is not None:
            employee_id = require_positive_int("employee_id", employee_id)
        operation = str(payload.get("operation") or "check")
        validation = stock_service.validate_stock_operation(
            product_id, quantity, operation, employee_id=employee_id
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except StockComputationError as e:
        return _computation_failed(e)

    return {"validation": validation}


@stock_bp.get("/<int:product_id>/breakdown")
def breakdown_route(product_id: int):
    try:
        breakdown = stock_service.get_stock_breakdown(product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except StockComputationError as e:
        return _computation_failed(e)
    return {"breakdown": breakdown}

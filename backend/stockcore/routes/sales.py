# Overview: Flask API routes for direct sales, employee sales and invoice numbers.

# backend/stockcore/routes/sales.py
"""
Sales API routes.

Both sale routes validate stock, allocate an invoice number with conflict
retry, insert the sale and resynchronize the products sold.
- 409 with shortfall details when stock (or employee custody) is insufficient
- 500 when no unique invoice number could be allocated
"""

from flask import Blueprint, current_app, request

from ..services import sales_service
from ..services.invoice_service import InvoiceAllocationError, peek_next_invoice_number
from ..services.stock_sources import StockComputationError
from ..validation import (
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
    require_positive_int,
)
from stockcore.time_utils import current_year


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")
employee_sales_bp = Blueprint("employee_sales", __name__, url_prefix="/api/employee-sales")
invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


def _sale_options(data: dict) -> dict:
    return {
        "customer_name": data.get("customer_name"),
        "payment_method": data.get("payment_method") or "cash",
        "payment_status": data.get("payment_status") or "paid",
        "notes": data.get("notes"),
    }


@sales_bp.post("")
def create_sale_route():
    """
    Body: {"items": [{"product_id", "quantity", "price_cents"?}], "customer_name"?, ...}
    """
    data = request.get_json(silent=True) or {}

    try:
        sale = sales_service.create_direct_sale(data.get("items"), **_sale_options(data))
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except InsufficientStockError as e:
        return {"error": str(e), "details": e.details}, 409
    except ConflictError as e:
        return {"error": str(e)}, 409
    except (InvoiceAllocationError, StockComputationError):
        current_app.logger.exception("Failed to create sale")
        return {"error": "Failed to create sale"}, 500

    return {"sale": sale.to_dict()}, 201


@employee_sales_bp.post("")
def create_employee_sale_route():
    """
    Body: {"employee_id", "items": [...], "customer_name"?, ...}
    """
    data = request.get_json(silent=True) or {}

    try:
        employee_id = require_positive_int("employee_id", data.get("employee_id"))
        sale = sales_service.create_employee_sale(employee_id, data.get("items"), **_sale_options(data))
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except InsufficientStockError as e:
        return {"error": str(e), "details": e.details}, 409
    except ConflictError as e:
        return {"error": str(e)}, 409
    except (InvoiceAllocationError, StockComputationError):
        current_app.logger.exception("Failed to create employee sale")
        return {"error": "Failed to create employee sale"}, 500

    return {"employee_sale": sale.to_dict()}, 201


@invoices_bp.get("/next")
def next_invoice_route():
    """
    Preview the next invoice number. Nothing is reserved.

    Query params: prefix (default INVOICE_PREFIX), year (default current year)
    """
    prefix = request.args.get("prefix") or current_app.config["INVOICE_PREFIX"]
    year = request.args.get("year", type=int) or current_year()
    try:
        return peek_next_invoice_number(prefix, year)
    except ValidationError as e:
        return {"error": str(e)}, 400

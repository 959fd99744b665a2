# Overview: Service-layer stock reconciliation; calculates, synchronizes, validates and explains derived product stock.

# backend/stockcore/services/stock_service.py

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import Employee, Product
from ..models.staff import ASSIGNMENT_RECEIVED
from ..validation import InsufficientStockError, NotFoundError, ValidationError
from stockcore.time_utils import utcnow, to_utc_z
from . import stock_sources
from .concurrency import run_with_retry
"""
Stock Reconciliation Invariants (authoritative)

Derived stock:
- current_stock = max(0, received + cylinder_returns
                         - direct_sold - employee_sold - cylinder_outflow)
- received counts purchase receipts with status='received' only.
- cylinder 'return' adds; 'deposit' and 'refill' subtract.
- Stock assignments are NOT a term: assigned units leave central stock when the
  employee sale that consumes them is recorded.

Materialized value:
- Product.current_stock is a cache of the last synchronization result.
- sync_product_stock() is the only writer. It writes only when the value
  changed, so a second consecutive sync always reports difference == 0.

Validation:
- validate_stock_operation() reads a snapshot. It is advisory: two concurrent
  validations can both pass before either sale commits (transient oversell).
  The next synchronization self-corrects the cached value; the logs are the
  truth either way.
"""


def _get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"product {product_id} not found")
    return product


def _collect_terms(product_id: int) -> dict:
    cylinder_returns, cylinder_outflow = stock_sources.sum_cylinder_flows_by_product(product_id)
    return {
        "total_received": stock_sources.sum_received_by_product(product_id),
        "total_direct_sold": stock_sources.sum_direct_sold_by_product(product_id),
        "total_employee_sold": stock_sources.sum_employee_sold_by_product(product_id),
        "cylinder_returns": cylinder_returns,
        "cylinder_outflow": cylinder_outflow,
    }


def _raw_total(terms: dict) -> int:
    return (
        terms["total_received"]
        + terms["cylinder_returns"]
        - terms["total_direct_sold"]
        - terms["total_employee_sold"]
        - terms["cylinder_outflow"]
    )


def _apply_formula(terms: dict) -> int:
    return max(0, _raw_total(terms))


def calculate_current_stock(product_id: int) -> int:
    """
    Recompute a product's stock from the transaction logs.

    Pure read: deterministic for a given state of the sources.
    Raises NotFoundError for unknown products and StockComputationError when
    a source cannot be read.
    """
    _get_product(product_id)
    return _apply_formula(_collect_terms(product_id))


def sync_product_stock(product_id: int) -> dict:
    """
    Refresh Product.current_stock from the logs and report the drift.

    Optimistic version conflicts (another sync of the same product) are
    retried from scratch; the recomputation makes that safe.
    """
    def _op() -> dict:
        product = _get_product(product_id)
        previous = product.current_stock or 0
        calculated = _apply_formula(_collect_terms(product_id))
        difference = calculated - previous

        if difference != 0:
            product.current_stock = calculated
            db.session.commit()
            current_app.logger.info(
                "Stock drift corrected for product %s (%s): %s -> %s (%+d)",
                product.id, product.name, previous, calculated, difference,
            )
        else:
            # end the read transaction
            db.session.commit()

        return {
            "product_id": product.id,
            "product_name": product.name,
            "previous_stock": previous,
            "calculated_stock": calculated,
            "difference": difference,
            "synchronized": True,
        }

    return run_with_retry(_op)


def sync_products_stock(product_ids) -> list[dict]:
    """
    Refresh the products touched by a workflow that has already committed.

    The committed rows are the record; the cached stock is not. A failed
    refresh is logged and reported as synchronized=False, and the next sync
    of that product corrects the cache. It never turns a stored write into
    an error.
    """
    results = []
    for pid in sorted(set(product_ids)):
        try:
            results.append(sync_product_stock(pid))
        except (stock_sources.StockComputationError, OperationalError, StaleDataError) as exc:
            db.session.rollback()
            current_app.logger.exception("Stock refresh after commit failed for product %s", pid)
            results.append({
                "product_id": pid,
                "error": str(exc),
                "error_type": exc.__class__.__name__,
                "synchronized": False,
            })
    return results


def _sync_isolated(product_id: int) -> dict:
    try:
        return sync_product_stock(product_id)
    except Exception as exc:
        db.session.rollback()
        current_app.logger.exception("Stock sync failed for product %s", product_id)
        return {
            "product_id": product_id,
            "error": str(exc),
            "error_type": exc.__class__.__name__,
            "synchronized": False,
        }


def sync_all_products_stock(*, workers: int | None = None) -> dict:
    """
    Synchronize every product.

    One product's failure is recorded in its result row and never aborts the
    batch. With workers > 1 products are synced on a thread pool, each task in
    its own application context (and therefore its own DB session).
    """
    product_ids = [pid for (pid,) in db.session.query(Product.id).order_by(Product.id).all()]
    workers = workers if workers is not None else int(current_app.config.get("STOCK_SYNC_WORKERS", 1))

    current_app.logger.info("Starting stock synchronization for %d products", len(product_ids))

    if workers > 1 and len(product_ids) > 1:
        app = current_app._get_current_object()

        def _task(pid: int) -> dict:
            with app.app_context():
                return _sync_isolated(pid)

        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(_task, product_ids))
    else:
        results = [_sync_isolated(pid) for pid in product_ids]

    successful = sum(1 for r in results if r["synchronized"])
    failed = len(results) - successful

    current_app.logger.info(
        "Stock synchronization complete: %d successful, %d failed", successful, failed
    )

    return {
        "total_products": len(product_ids),
        "successful": successful,
        "failed": failed,
        "results": results,
        "timestamp": to_utc_z(utcnow()),
    }


def _available_for(product_id: int, employee_id: int | None) -> int:
    if employee_id is None:
        return _apply_formula(_collect_terms(product_id))

    if db.session.get(Employee, employee_id) is None:
        raise NotFoundError(f"employee {employee_id} not found")
    # Employees can only sell what they have acknowledged holding
    return stock_sources.sum_assigned_outstanding_by_product(
        product_id,
        employee_id=employee_id,
        statuses=(ASSIGNMENT_RECEIVED,),
    )


def validate_stock_operation(
    product_id: int,
    requested_quantity: int,
    operation: str = "operation",
    *,
    employee_id: int | None = None,
) -> dict:
    """
    Pre-flight check: can requested_quantity be satisfied right now?

    Central scope compares against the recalculated stock; employee scope
    (employee_id given) compares against that employee's received custody.
    """
    if isinstance(requested_quantity, bool) or not isinstance(requested_quantity, int):
        raise ValidationError("requested quantity must be an integer")
    if requested_quantity < 0:
        raise ValidationError("requested quantity must be >= 0")

    product = _get_product(product_id)
    available = _available_for(product_id, employee_id)
    valid = available >= requested_quantity

    return {
        "product_id": product.id,
        "product_name": product.name,
        "operation": operation,
        "scope": "employee" if employee_id is not None else "central",
        "employee_id": employee_id,
        "requested_quantity": requested_quantity,
        "available": available,
        "valid": valid,
        "shortfall": max(0, requested_quantity - available),
    }


def require_stock(
    product_id: int,
    requested_quantity: int,
    operation: str,
    *,
    employee_id: int | None = None,
) -> dict:
    """validate_stock_operation() that raises InsufficientStockError on failure."""
    result = validate_stock_operation(
        product_id, requested_quantity, operation, employee_id=employee_id
    )
    if not result["valid"]:
        raise InsufficientStockError(
            f"Insufficient stock for {result['product_name']}: "
            f"available {result['available']}, requested {requested_quantity}",
            product_id=product_id,
            requested=requested_quantity,
            available=result["available"],
        )
    return result


def get_stock_breakdown(product_id: int) -> dict:
    """
    Every term of the stock formula, the stored vs recalculated value and a
    consistency flag. Pure read; never writes.
    """
    product = _get_product(product_id)
    terms = _collect_terms(product_id)
    assigned_outstanding = stock_sources.sum_assigned_outstanding_by_product(product_id)
    raw_total = _raw_total(terms)
    calculated = max(0, raw_total)
    stored = product.current_stock or 0

    return {
        "product_id": product.id,
        "product_name": product.name,
        "current_stock_in_db": stored,
        "calculated_stock": calculated,
        "drift": calculated - stored,
        "is_consistent": stored == calculated,
        "breakdown": {
            **terms,
            "total_assigned_outstanding": assigned_outstanding,
            "cylinder_net_effect": terms["cylinder_returns"] - terms["cylinder_outflow"],
            "unclamped_total": raw_total,
        },
        "transactions": stock_sources.count_source_rows(product_id),
        "timestamp": to_utc_z(utcnow()),
    }

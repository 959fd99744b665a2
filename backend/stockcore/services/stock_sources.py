# Overview: Read-only repository over the five stock transaction sources; one aggregate query per source.

from __future__ import annotations

from typing import Iterable

from sqlalchemy import case, func
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import (
    CylinderTransaction,
    EmployeeSaleLine,
    PurchaseReceipt,
    SaleLine,
    StockAssignment,
)
from ..models.inventory import CYLINDER_OUTFLOW_TYPES, CYLINDER_RETURN, RECEIPT_RECEIVED
from ..models.staff import ASSIGNMENT_OPEN_STATUSES

"""
Transaction source invariants:

- Sources are append-mostly logs written by the purchase, sales, assignment
  and cylinder workflows. Nothing in here writes.
- Every function filters on an indexed product_id column and aggregates in
  the database (no joins across collections are needed).
- A failing read raises StockComputationError naming the source. It is never
  coerced to a zero contribution, so callers can tell "zero stock" from
  "could not compute".
"""

SOURCE_RECEIVED = "purchase_receipts"
SOURCE_DIRECT_SALES = "sales"
SOURCE_EMPLOYEE_SALES = "employee_sales"
SOURCE_ASSIGNMENTS = "stock_assignments"
SOURCE_CYLINDERS = "cylinder_transactions"


class StockComputationError(Exception):
    """Raised when a transaction source cannot be read."""

    def __init__(self, source: str, product_id: int):
        super().__init__(f"could not read {source} for product {product_id}")
        self.source = source
        self.product_id = product_id


def _scalar_sum(source: str, product_id: int, query) -> int:
    try:
        return int(query.scalar() or 0)
    except SQLAlchemyError as exc:
        raise StockComputationError(source, product_id) from exc


def sum_received_by_product(product_id: int) -> int:
    """Units on received purchase receipts. Pending receipts do not count."""
    q = db.session.query(
        func.coalesce(func.sum(PurchaseReceipt.quantity), 0)
    ).filter(
        PurchaseReceipt.product_id == product_id,
        PurchaseReceipt.status == RECEIPT_RECEIVED,
    )
    return _scalar_sum(SOURCE_RECEIVED, product_id, q)


def sum_direct_sold_by_product(product_id: int) -> int:
    """Units on every direct sale line referencing the product."""
    q = db.session.query(
        func.coalesce(func.sum(SaleLine.quantity), 0)
    ).filter(SaleLine.product_id == product_id)
    return _scalar_sum(SOURCE_DIRECT_SALES, product_id, q)


def sum_employee_sold_by_product(product_id: int) -> int:
    """Units on every employee sale line referencing the product."""
    q = db.session.query(
        func.coalesce(func.sum(EmployeeSaleLine.quantity), 0)
    ).filter(EmployeeSaleLine.product_id == product_id)
    return _scalar_sum(SOURCE_EMPLOYEE_SALES, product_id, q)


def sum_assigned_outstanding_by_product(
    product_id: int,
    *,
    employee_id: int | None = None,
    statuses: Iterable[str] = ASSIGNMENT_OPEN_STATUSES,
) -> int:
    """
    Remaining custody on assignments still held by employees.

    Informational for the central formula (assigned units leave central stock
    only when an employee sale records them); authoritative for
    employee-scoped validation.
    """
    q = db.session.query(
        func.coalesce(func.sum(StockAssignment.remaining_quantity), 0)
    ).filter(
        StockAssignment.product_id == product_id,
        StockAssignment.status.in_(tuple(statuses)),
    )
    if employee_id is not None:
        q = q.filter(StockAssignment.employee_id == employee_id)
    return _scalar_sum(SOURCE_ASSIGNMENTS, product_id, q)


def sum_cylinder_flows_by_product(product_id: int) -> tuple[int, int]:
    """
    Returns (returns_in, deposits_and_refills_out) for the product.
    """
    returns_in = func.coalesce(
        func.sum(case((CylinderTransaction.type == CYLINDER_RETURN, CylinderTransaction.quantity), else_=0)),
        0,
    )
    outflow = func.coalesce(
        func.sum(
            case(
                (CylinderTransaction.type.in_(CYLINDER_OUTFLOW_TYPES), CylinderTransaction.quantity),
                else_=0,
            )
        ),
        0,
    )
    q = db.session.query(returns_in, outflow).filter(CylinderTransaction.product_id == product_id)
    try:
        row = q.one()
    except SQLAlchemyError as exc:
        raise StockComputationError(SOURCE_CYLINDERS, product_id) from exc
    return int(row[0] or 0), int(row[1] or 0)


def count_source_rows(product_id: int) -> dict:
    """Row counts per source touching the product (diagnostics only)."""
    counts = {}
    queries = {
        "received_purchases": (
            SOURCE_RECEIVED,
            db.session.query(func.count(PurchaseReceipt.id)).filter(
                PurchaseReceipt.product_id == product_id,
                PurchaseReceipt.status == RECEIPT_RECEIVED,
            ),
        ),
        "direct_sale_lines": (
            SOURCE_DIRECT_SALES,
            db.session.query(func.count(SaleLine.id)).filter(SaleLine.product_id == product_id),
        ),
        "employee_sale_lines": (
            SOURCE_EMPLOYEE_SALES,
            db.session.query(func.count(EmployeeSaleLine.id)).filter(EmployeeSaleLine.product_id == product_id),
        ),
        "open_assignments": (
            SOURCE_ASSIGNMENTS,
            db.session.query(func.count(StockAssignment.id)).filter(
                StockAssignment.product_id == product_id,
                StockAssignment.status.in_(ASSIGNMENT_OPEN_STATUSES),
            ),
        ),
        "cylinder_transactions": (
            SOURCE_CYLINDERS,
            db.session.query(func.count(CylinderTransaction.id)).filter(
                CylinderTransaction.product_id == product_id
            ),
        ),
    }
    for key, (source, query) in queries.items():
        counts[key] = _scalar_sum(source, product_id, query)
    return counts

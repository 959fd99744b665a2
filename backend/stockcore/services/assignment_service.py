# Overview: Service-layer stock assignments; custody handed to employees and its depletion.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Employee, Product, StockAssignment
from ..models.staff import (
    ASSIGNMENT_ASSIGNED,
    ASSIGNMENT_OPEN_STATUSES,
    ASSIGNMENT_RECEIVED,
    ASSIGNMENT_RETURNED,
)
from ..validation import ConflictError, InsufficientStockError, NotFoundError, ValidationError
from stockcore.time_utils import utcnow
from . import stock_sources
from .concurrency import lock_for_update, run_with_retry
from .stock_service import calculate_current_stock, sync_products_stock


def _get_employee(employee_id: int) -> Employee:
    employee = db.session.get(Employee, employee_id)
    if employee is None:
        raise NotFoundError(f"employee {employee_id} not found")
    return employee


def _get_assignment(assignment_id: int, *, lock: bool = False) -> StockAssignment:
    query = db.session.query(StockAssignment).filter_by(id=assignment_id)
    if lock:
        query = lock_for_update(query)
    assignment = query.first()
    if assignment is None:
        raise NotFoundError(f"assignment {assignment_id} not found")
    return assignment


def unassigned_stock(product_id: int) -> int:
    """Central stock not already held in open employee custody."""
    calculated = calculate_current_stock(product_id)
    outstanding = stock_sources.sum_assigned_outstanding_by_product(product_id)
    return max(0, calculated - outstanding)


def create_assignment(
    *,
    employee_id: int,
    product_id: int,
    quantity: int,
    assigned_by_id: int | None = None,
    notes: str | None = None,
) -> StockAssignment:
    """
    Hand quantity units of a product to an employee (status 'assigned').

    The same units cannot be handed out twice: the request is checked against
    recalculated stock minus custody already outstanding.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("quantity must be > 0")

    def _op() -> StockAssignment:
        employee = _get_employee(employee_id)
        if not employee.is_active:
            raise ConflictError("employee is inactive")
        if assigned_by_id is not None:
            _get_employee(assigned_by_id)
        product = db.session.get(Product, product_id)
        if product is None:
            raise NotFoundError(f"product {product_id} not found")

        available = unassigned_stock(product_id)
        if quantity > available:
            raise InsufficientStockError(
                f"Insufficient stock for {product.name}: available {available}, requested {quantity}",
                product_id=product_id,
                requested=quantity,
                available=available,
            )

        assignment = StockAssignment(
            employee_id=employee_id,
            product_id=product_id,
            assigned_by_id=assigned_by_id,
            quantity=quantity,
            remaining_quantity=quantity,
            status=ASSIGNMENT_ASSIGNED,
            notes=notes,
        )
        db.session.add(assignment)
        db.session.commit()
        current_app.logger.info(
            "Assigned %d x product %s to employee %s (assignment %s)",
            quantity, product_id, employee_id, assignment.id,
        )
        return assignment

    return run_with_retry(_op)


def receive_assignment(assignment_id: int) -> StockAssignment:
    """Employee acknowledges custody: assigned -> received."""
    def _op() -> StockAssignment:
        assignment = _get_assignment(assignment_id, lock=True)
        if assignment.status != ASSIGNMENT_ASSIGNED:
            raise ConflictError(f"cannot receive an assignment in status '{assignment.status}'")
        assignment.status = ASSIGNMENT_RECEIVED
        assignment.received_at = utcnow()
        db.session.commit()
        return assignment

    return run_with_retry(_op)


def _deplete_locked(assignment: StockAssignment, quantity: int) -> None:
    if assignment.status != ASSIGNMENT_RECEIVED:
        raise ConflictError(f"cannot deplete an assignment in status '{assignment.status}'")
    if quantity > assignment.remaining_quantity:
        raise InsufficientStockError(
            f"assignment {assignment.id} holds {assignment.remaining_quantity}, requested {quantity}",
            product_id=assignment.product_id,
            requested=quantity,
            available=assignment.remaining_quantity,
        )
    assignment.remaining_quantity -= quantity


def deplete_assignment(assignment_id: int, quantity: int) -> StockAssignment:
    """
    Record quantity units sold against one received assignment.

    Overdrawing is a validation failure, never a clamp.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("quantity must be > 0")

    def _op() -> StockAssignment:
        assignment = _get_assignment(assignment_id, lock=True)
        _deplete_locked(assignment, quantity)
        db.session.commit()
        return assignment

    return run_with_retry(_op)


def consume_custody(employee_id: int, product_id: int, quantity: int) -> list[tuple[int, int]]:
    """
    Deplete an employee's received assignments for a product, oldest first.

    Stages the changes without committing so the caller can commit them with
    the sale that consumed the units. Returns [(assignment_id, taken), ...].
    """
    assignments = lock_for_update(
        db.session.query(StockAssignment).filter(
            StockAssignment.employee_id == employee_id,
            StockAssignment.product_id == product_id,
            StockAssignment.status == ASSIGNMENT_RECEIVED,
            StockAssignment.remaining_quantity > 0,
        ).order_by(StockAssignment.assigned_at, StockAssignment.id)
    ).all()

    held = sum(a.remaining_quantity for a in assignments)
    if held < quantity:
        raise InsufficientStockError(
            f"employee {employee_id} holds {held} of product {product_id}, requested {quantity}",
            product_id=product_id,
            requested=quantity,
            available=held,
        )

    taken: list[tuple[int, int]] = []
    left = quantity
    for assignment in assignments:
        if left == 0:
            break
        take = min(left, assignment.remaining_quantity)
        _deplete_locked(assignment, take)
        taken.append((assignment.id, take))
        left -= take
    return taken


def return_assignment(assignment_id: int) -> dict:
    """
    Employee hands back unsold units: assigned|received -> returned.

    The assignment stops holding custody; the product is resynchronized so
    the cached stock reflects the release.
    """
    def _op() -> StockAssignment:
        assignment = _get_assignment(assignment_id, lock=True)
        if assignment.status not in ASSIGNMENT_OPEN_STATUSES:
            raise ConflictError(f"cannot return an assignment in status '{assignment.status}'")
        assignment.status = ASSIGNMENT_RETURNED
        assignment.returned_at = utcnow()
        db.session.commit()
        return assignment

    assignment = run_with_retry(_op)
    current_app.logger.info(
        "Assignment %s returned with %d unsold units", assignment.id, assignment.remaining_quantity
    )
    (sync,) = sync_products_stock([assignment.product_id])
    return {
        "assignment": assignment.to_dict(),
        "returned_quantity": assignment.remaining_quantity,
        "sync": sync,
    }


def list_assignments(
    *,
    employee_id: int | None = None,
    product_id: int | None = None,
    status: str | None = None,
) -> list[StockAssignment]:
    q = db.session.query(StockAssignment)
    if employee_id is not None:
        q = q.filter(StockAssignment.employee_id == employee_id)
    if product_id is not None:
        q = q.filter(StockAssignment.product_id == product_id)
    if status is not None:
        q = q.filter(StockAssignment.status == status)
    return q.order_by(StockAssignment.assigned_at.desc(), StockAssignment.id.desc()).all()

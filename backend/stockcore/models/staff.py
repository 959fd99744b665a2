from __future__ import annotations

from ..extensions import db
from stockcore.time_utils import to_utc_z

ASSIGNMENT_ASSIGNED = "assigned"
ASSIGNMENT_RECEIVED = "received"
ASSIGNMENT_RETURNED = "returned"
ASSIGNMENT_STATUSES = (ASSIGNMENT_ASSIGNED, ASSIGNMENT_RECEIVED, ASSIGNMENT_RETURNED)
# Assignments that still hold custody of their remaining quantity
ASSIGNMENT_OPEN_STATUSES = (ASSIGNMENT_ASSIGNED, ASSIGNMENT_RECEIVED)


class Employee(db.Model):
    __tablename__ = "employees"
    __table_args__ = (
        db.UniqueConstraint("email", name="uq_employees_email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(16), nullable=False, default="employee")
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class StockAssignment(db.Model):
    """
    Custody of stock handed from central inventory to an employee.

    LIFECYCLE: assigned -> received -> returned

    remaining_quantity is decremented as the employee sells against the
    assignment and can never go below zero (DB CHECK + service validation).
    Once returned, the assignment no longer holds custody.
    """
    __tablename__ = "stock_assignments"
    __table_args__ = (
        db.Index("ix_stock_assignments_product_status", "product_id", "status"),
        db.Index("ix_stock_assignments_employee_product_status", "employee_id", "product_id", "status"),
        db.CheckConstraint("quantity > 0", name="ck_stock_assignments_quantity_pos"),
        db.CheckConstraint("remaining_quantity >= 0", name="ck_stock_assignments_remaining_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    assigned_by_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    remaining_quantity = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default=ASSIGNMENT_ASSIGNED, index=True)

    assigned_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    received_at = db.Column(db.DateTime(timezone=True), nullable=True)
    returned_at = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.String(255), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    employee = db.relationship("Employee", foreign_keys=[employee_id], backref=db.backref("assignments", lazy=True))
    assigned_by = db.relationship("Employee", foreign_keys=[assigned_by_id])
    product = db.relationship("Product", backref=db.backref("assignments", lazy=True))

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "product_id": self.product_id,
            "assigned_by_id": self.assigned_by_id,
            "quantity": self.quantity,
            "remaining_quantity": self.remaining_quantity,
            "status": self.status,
            "assigned_at": to_utc_z(self.assigned_at),
            "received_at": to_utc_z(self.received_at),
            "returned_at": to_utc_z(self.returned_at),
            "notes": self.notes,
        }

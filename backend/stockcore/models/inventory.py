from __future__ import annotations

from ..extensions import db
from stockcore.time_utils import to_utc_z

PRODUCT_CATEGORIES = ("gas", "cylinder")
CYLINDER_SIZES = ("large", "small")

RECEIPT_PENDING = "pending"
RECEIPT_RECEIVED = "received"
RECEIPT_STATUSES = (RECEIPT_PENDING, RECEIPT_RECEIVED)

CYLINDER_DEPOSIT = "deposit"
CYLINDER_REFILL = "refill"
CYLINDER_RETURN = "return"
CYLINDER_TYPES = (CYLINDER_DEPOSIT, CYLINDER_REFILL, CYLINDER_RETURN)
CYLINDER_OUTFLOW_TYPES = (CYLINDER_DEPOSIT, CYLINDER_REFILL)


class Product(db.Model):
    """
    Product master data.

    CURRENT STOCK DESIGN DECISION:
    Product.current_stock is a MATERIALIZED value, not the source of truth.
    - The authoritative quantity is derived from the transaction logs
      (purchase receipts, sales, employee sales, cylinder transactions).
    - Only the stock synchronizer writes current_stock.
    - Every other code path treats it as read-only; API payloads never accept it.

    version_id gives optimistic locking so two concurrent syncs of the same
    product cannot silently clobber each other; the loser retries and recomputes.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category_active", "category", "is_active"),
        db.CheckConstraint("current_stock >= 0", name="ck_products_current_stock_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(16), nullable=False, index=True)
    # Required when category == "cylinder"
    cylinder_type = db.Column(db.String(16), nullable=True)

    # Authoritative storage in cents
    cost_price_cents = db.Column(db.Integer, nullable=False)
    least_price_cents = db.Column(db.Integer, nullable=False)

    # Materialized by the stock synchronizer only
    current_stock = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} category={self.category!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "cylinder_type": self.cylinder_type,
            "cost_price_cents": self.cost_price_cents,
            "least_price_cents": self.least_price_cents,
            "current_stock": self.current_stock,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class PurchaseReceipt(db.Model):
    """
    Goods received from a supplier.

    Only status='received' rows count toward stock; pending receipts are
    ordered but not yet on the shelf.
    """
    __tablename__ = "purchase_receipts"
    __table_args__ = (
        db.Index("ix_purchase_receipts_product_status", "product_id", "status"),
        db.CheckConstraint("quantity > 0", name="ck_purchase_receipts_quantity_pos"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    supplier_name = db.Column(db.String(255), nullable=True)
    quantity = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=RECEIPT_PENDING, index=True)
    received_at = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("purchase_receipts", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "supplier_name": self.supplier_name,
            "quantity": self.quantity,
            "unit_cost_cents": self.unit_cost_cents,
            "status": self.status,
            "received_at": to_utc_z(self.received_at),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }


class CylinderTransaction(db.Model):
    """
    Cylinder deposit / refill / return events.

    'return' brings the asset back (stock in); 'deposit' and 'refill' send it
    out (stock out). Rows without a product never affect any product's stock.
    """
    __tablename__ = "cylinder_transactions"
    __table_args__ = (
        db.Index("ix_cylinder_tx_product_type", "product_id", "type"),
        db.CheckConstraint("quantity >= 1", name="ck_cylinder_tx_quantity_pos"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(16), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)

    customer_name = db.Column(db.String(255), nullable=True)
    supplier_name = db.Column(db.String(255), nullable=True)
    cylinder_size = db.Column(db.String(16), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default="pending")
    notes = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("cylinder_transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "product_id": self.product_id,
            "customer_name": self.customer_name,
            "supplier_name": self.supplier_name,
            "cylinder_size": self.cylinder_size,
            "quantity": self.quantity,
            "amount_cents": self.amount_cents,
            "status": self.status,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }

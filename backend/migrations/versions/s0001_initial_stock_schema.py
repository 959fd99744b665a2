"""initial stock schema

Revision ID: s0001
Revises:
Create Date: 2026-10-16 00:00:00.000000

Creates the stock reconciliation schema:
- products: catalog with the materialized current_stock
- purchase_receipts, sales/sale_lines, employee_sales/employee_sale_lines,
  cylinder_transactions: the transaction logs stock is derived from
- employees, stock_assignments: employee custody

Invoice numbers are unique per table; numbering retries on collision
instead of using a counter table.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 's0001'
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name, nullable=False):
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable,
                     server_default=sa.text('CURRENT_TIMESTAMP'))


def upgrade():
    # ============================================================================
    # products
    # ============================================================================
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=16), nullable=False),
        sa.Column('cylinder_type', sa.String(length=16), nullable=True),
        sa.Column('cost_price_cents', sa.Integer(), nullable=False),
        sa.Column('least_price_cents', sa.Integer(), nullable=False),
        sa.Column('current_stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('current_stock >= 0', name='ck_products_current_stock_nonneg'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_category', 'products', ['category'])
    op.create_index('ix_products_category_active', 'products', ['category', 'is_active'])

    # ============================================================================
    # employees
    # ============================================================================
    op.create_table(
        'employees',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False, server_default='employee'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp('created_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', name='uq_employees_email'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # purchase_receipts: only status='received' counts toward stock
    # ============================================================================
    op.create_table(
        'purchase_receipts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('supplier_name', sa.String(length=255), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_cost_cents', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('received_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.String(length=255), nullable=True),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity > 0', name='ck_purchase_receipts_quantity_pos'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_purchase_receipts_product_id', 'purchase_receipts', ['product_id'])
    op.create_index('ix_purchase_receipts_status', 'purchase_receipts', ['status'])
    op.create_index('ix_purchase_receipts_product_status', 'purchase_receipts', ['product_id', 'status'])

    # ============================================================================
    # cylinder_transactions: return adds, deposit/refill subtract
    # ============================================================================
    op.create_table(
        'cylinder_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.Column('customer_name', sa.String(length=255), nullable=True),
        sa.Column('supplier_name', sa.String(length=255), nullable=True),
        sa.Column('cylinder_size', sa.String(length=16), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('notes', sa.String(length=255), nullable=True),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity >= 1', name='ck_cylinder_tx_quantity_pos'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_cylinder_transactions_type', 'cylinder_transactions', ['type'])
    op.create_index('ix_cylinder_transactions_product_id', 'cylinder_transactions', ['product_id'])
    op.create_index('ix_cylinder_tx_product_type', 'cylinder_transactions', ['product_id', 'type'])

    # ============================================================================
    # sales + sale_lines
    # ============================================================================
    op.create_table(
        'sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_number', sa.String(length=64), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=True),
        sa.Column('payment_method', sa.String(length=16), nullable=False, server_default='cash'),
        sa.Column('payment_status', sa.String(length=16), nullable=False, server_default='paid'),
        sa.Column('total_amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('notes', sa.String(length=255), nullable=True),
        _timestamp('created_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('invoice_number', name='uq_sales_invoice_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sales_created', 'sales', ['created_at'])

    op.create_table(
        'sale_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('total_cents', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity > 0', name='ck_sale_lines_quantity_pos'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sale_lines_sale_id', 'sale_lines', ['sale_id'])
    op.create_index('ix_sale_lines_product_id', 'sale_lines', ['product_id'])

    # ============================================================================
    # employee_sales + employee_sale_lines
    # ============================================================================
    op.create_table(
        'employee_sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_number', sa.String(length=64), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=True),
        sa.Column('payment_method', sa.String(length=16), nullable=False, server_default='cash'),
        sa.Column('payment_status', sa.String(length=16), nullable=False, server_default='paid'),
        sa.Column('total_amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('notes', sa.String(length=255), nullable=True),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('invoice_number', name='uq_employee_sales_invoice_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_employee_sales_employee_id', 'employee_sales', ['employee_id'])
    op.create_index('ix_employee_sales_employee_created', 'employee_sales', ['employee_id', 'created_at'])

    op.create_table(
        'employee_sale_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('employee_sale_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('total_cents', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['employee_sale_id'], ['employee_sales.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity > 0', name='ck_employee_sale_lines_quantity_pos'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_employee_sale_lines_employee_sale_id', 'employee_sale_lines', ['employee_sale_id'])
    op.create_index('ix_employee_sale_lines_product_id', 'employee_sale_lines', ['product_id'])

    # ============================================================================
    # stock_assignments: custody lifecycle assigned -> received -> returned
    # ============================================================================
    op.create_table(
        'stock_assignments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('assigned_by_id', sa.Integer(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('remaining_quantity', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='assigned'),
        _timestamp('assigned_at'),
        sa.Column('received_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('returned_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.String(length=255), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.ForeignKeyConstraint(['assigned_by_id'], ['employees.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity > 0', name='ck_stock_assignments_quantity_pos'),
        sa.CheckConstraint('remaining_quantity >= 0', name='ck_stock_assignments_remaining_nonneg'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stock_assignments_employee_id', 'stock_assignments', ['employee_id'])
    op.create_index('ix_stock_assignments_product_id', 'stock_assignments', ['product_id'])
    op.create_index('ix_stock_assignments_status', 'stock_assignments', ['status'])
    op.create_index('ix_stock_assignments_product_status', 'stock_assignments', ['product_id', 'status'])
    op.create_index(
        'ix_stock_assignments_employee_product_status',
        'stock_assignments',
        ['employee_id', 'product_id', 'status'],
    )


def downgrade():
    op.drop_table('stock_assignments')
    op.drop_table('employee_sale_lines')
    op.drop_table('employee_sales')
    op.drop_table('sale_lines')
    op.drop_table('sales')
    op.drop_table('cylinder_transactions')
    op.drop_table('purchase_receipts')
    op.drop_table('employees')
    op.drop_table('products')

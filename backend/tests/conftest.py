"""
Pytest fixtures for stockcore backend tests.

Provides test database setup, entity fixtures, direct writers for the
transaction sources (the logs are written by outer workflows, so tests seed
them as rows) and a test client.
"""

import pytest
from stockcore import create_app
from stockcore.extensions import db
from stockcore.models import (
    CylinderTransaction,
    Employee,
    EmployeeSale,
    EmployeeSaleLine,
    Product,
    PurchaseReceipt,
    Sale,
    SaleLine,
    StockAssignment,
)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'INVOICE_PREFIX': 'INV',
        'EMPLOYEE_INVOICE_PREFIX': 'EMP',
        'STOCK_SYNC_WORKERS': 1,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def make_product(session, name="LPG 12kg", *, category="gas", cost=1000, least=1500, current_stock=0):
    product = Product(
        name=name,
        category=category,
        cylinder_type="large" if category == "cylinder" else None,
        cost_price_cents=cost,
        least_price_cents=least,
        current_stock=current_stock,
    )
    session.add(product)
    session.commit()
    return product


def make_employee(session, name="Sam Driver", email=None, *, role="employee"):
    employee = Employee(name=name, email=email or f"{name.lower().replace(' ', '.')}@example.com", role=role)
    session.add(employee)
    session.commit()
    return employee


def add_receipt(session, product, quantity, *, status="received"):
    receipt = PurchaseReceipt(product_id=product.id, quantity=quantity, status=status)
    session.add(receipt)
    session.commit()
    return receipt


def add_direct_sale(session, invoice_number, *lines):
    """lines: (product, quantity) pairs."""
    sale = Sale(invoice_number=invoice_number)
    total = 0
    for product, quantity in lines:
        sale.lines.append(SaleLine(
            product_id=product.id,
            quantity=quantity,
            price_cents=product.least_price_cents,
            total_cents=product.least_price_cents * quantity,
        ))
        total += product.least_price_cents * quantity
    sale.total_amount_cents = total
    session.add(sale)
    session.commit()
    return sale


def add_employee_sale(session, invoice_number, employee, *lines):
    sale = EmployeeSale(invoice_number=invoice_number, employee_id=employee.id)
    for product, quantity in lines:
        sale.lines.append(EmployeeSaleLine(
            product_id=product.id,
            quantity=quantity,
            price_cents=product.cost_price_cents,
            total_cents=product.cost_price_cents * quantity,
        ))
    session.add(sale)
    session.commit()
    return sale


def add_cylinder_tx(session, type, quantity, product=None, *, size="large"):
    tx = CylinderTransaction(
        type=type,
        product_id=product.id if product is not None else None,
        quantity=quantity,
        cylinder_size=size,
        customer_name=None if type == "refill" else "Walk-in",
        supplier_name="Gas Co" if type == "refill" else None,
    )
    session.add(tx)
    session.commit()
    return tx


def add_assignment(session, employee, product, quantity, *, status="assigned", remaining=None):
    assignment = StockAssignment(
        employee_id=employee.id,
        product_id=product.id,
        quantity=quantity,
        remaining_quantity=quantity if remaining is None else remaining,
        status=status,
    )
    session.add(assignment)
    session.commit()
    return assignment


@pytest.fixture(scope='function')
def product(db_session):
    """A gas product with no transactions."""
    return make_product(db_session)


@pytest.fixture(scope='function')
def employee(db_session):
    return make_employee(db_session)

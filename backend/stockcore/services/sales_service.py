"""
Sales Service - direct and employee sale creation

Both flows:
1. validate the requested quantities (snapshot check, see stock_service)
2. allocate an invoice number and insert the sale with conflict retry
3. resynchronize every product the sale touched

Validation and commit are not one transaction. Two sales validated against
the same snapshot can both commit (transient oversell); the stock formula
clamps at zero and the next sync reports the drift.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Employee, EmployeeSale, EmployeeSaleLine, Product, Sale, SaleLine
from ..validation import ConflictError, NotFoundError, ValidationError, parse_sale_items
from stockcore.time_utils import current_year
from .assignment_service import consume_custody
from .invoice_service import insert_with_invoice_number
from .stock_service import require_stock, sync_products_stock

PAYMENT_METHODS = ("cash", "cheque", "card", "credit")
PAYMENT_STATUSES = ("paid", "pending", "partial")


def _aggregate(lines: list[dict]) -> dict[int, int]:
    totals: dict[int, int] = {}
    for line in lines:
        totals[line["product_id"]] = totals.get(line["product_id"], 0) + line["quantity"]
    return totals


def _load_products(product_ids) -> dict[int, Product]:
    products = {}
    for pid in product_ids:
        product = db.session.get(Product, pid)
        if product is None:
            raise NotFoundError(f"product {pid} not found")
        if not product.is_active:
            raise ConflictError(f"product {pid} is inactive")
        products[pid] = product
    return products


def _check_payment(payment_method: str, payment_status: str) -> None:
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")
    if payment_status not in PAYMENT_STATUSES:
        raise ValidationError(f"payment_status must be one of: {', '.join(PAYMENT_STATUSES)}")


def _direct_price(product: Product, line: dict) -> int:
    price = line.get("price_cents", product.least_price_cents)
    if price < product.least_price_cents:
        raise ValidationError(
            f"price_cents {price} for {product.name} is below the floor price {product.least_price_cents}"
        )
    return price


def create_direct_sale(
    items,
    *,
    customer_name: str | None = None,
    payment_method: str = "cash",
    payment_status: str = "paid",
    notes: str | None = None,
    year: int | None = None,
) -> Sale:
    """Create a counter sale; lines default to the product's floor price."""
    lines = parse_sale_items(items)
    _check_payment(payment_method, payment_status)

    totals = _aggregate(lines)
    products = _load_products(totals)
    for line in lines:
        _direct_price(products[line["product_id"]], line)
    for pid, qty in totals.items():
        require_stock(pid, qty, "sale")

    def _build(invoice_number: str) -> Sale:
        sale = Sale(
            invoice_number=invoice_number,
            customer_name=customer_name,
            payment_method=payment_method,
            payment_status=payment_status,
            notes=notes,
        )
        total = 0
        for line in lines:
            product = db.session.get(Product, line["product_id"])
            price = _direct_price(product, line)
            line_total = price * line["quantity"]
            total += line_total
            sale.lines.append(SaleLine(
                product_id=product.id,
                quantity=line["quantity"],
                price_cents=price,
                total_cents=line_total,
            ))
        sale.total_amount_cents = total
        db.session.add(sale)
        return sale

    sale = insert_with_invoice_number(
        current_app.config["INVOICE_PREFIX"], year or current_year(), _build
    )
    current_app.logger.info("Sale %s created (%d lines)", sale.invoice_number, len(lines))

    sync_products_stock(totals)
    return sale


def create_employee_sale(
    employee_id: int,
    items,
    *,
    customer_name: str | None = None,
    payment_method: str = "cash",
    payment_status: str = "paid",
    notes: str | None = None,
    year: int | None = None,
) -> EmployeeSale:
    """
    Create a sale recorded by an employee against the stock they hold.

    Availability is the employee's received custody; the matching assignments
    are depleted oldest-first in the same transaction as the sale insert.
    Lines are priced at cost unless a price is given.
    """
    employee = db.session.get(Employee, employee_id)
    if employee is None:
        raise NotFoundError(f"employee {employee_id} not found")

    lines = parse_sale_items(items)
    _check_payment(payment_method, payment_status)

    totals = _aggregate(lines)
    _load_products(totals)
    for pid, qty in totals.items():
        require_stock(pid, qty, "employee_sale", employee_id=employee_id)

    def _build(invoice_number: str) -> EmployeeSale:
        for pid, qty in totals.items():
            consume_custody(employee_id, pid, qty)

        sale = EmployeeSale(
            invoice_number=invoice_number,
            employee_id=employee_id,
            customer_name=customer_name,
            payment_method=payment_method,
            payment_status=payment_status,
            notes=notes,
        )
        total = 0
        for line in lines:
            product = db.session.get(Product, line["product_id"])
            price = line.get("price_cents", product.cost_price_cents)
            line_total = price * line["quantity"]
            total += line_total
            sale.lines.append(EmployeeSaleLine(
                product_id=product.id,
                quantity=line["quantity"],
                price_cents=price,
                total_cents=line_total,
            ))
        sale.total_amount_cents = total
        db.session.add(sale)
        return sale

    sale = insert_with_invoice_number(
        current_app.config["EMPLOYEE_INVOICE_PREFIX"], year or current_year(), _build
    )
    current_app.logger.info(
        "Employee sale %s created by employee %s (%d lines)", sale.invoice_number, employee_id, len(lines)
    )

    sync_products_stock(totals)
    return sale

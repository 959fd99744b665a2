# Overview: Flask CLI command groups for schema bootstrap and stock reconciliation.

# backend/stockcore/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to stockcore (PowerShell: $env:FLASK_APP="stockcore").
# - Use: python -m flask <group> <command> [options]
#
# Schema:
# - python -m flask system init-db
#   Create all tables that do not exist yet.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Stock reconciliation:
# - python -m flask stock calc 12
#   Recalculate product 12's stock from the transaction logs (no write).
# - python -m flask stock sync [--product-id 12] [--workers 4]
#   Refresh cached stock for one product or all of them; prints the drift.
# - python -m flask stock breakdown 12
#   Per-source contributions and stored vs recalculated value.
# - python -m flask stock validate 12 5 [--employee-id 3]
#   Can 5 units of product 12 be taken right now?

import json

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import stock_service
from .services.stock_sources import StockComputationError
from .validation import NotFoundError


@click.group('system')
def system_group():
    """Schema bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables (idempotent)."""
    db.create_all()
    click.echo("PASS Tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete.")


@click.group('stock')
def stock_group():
    """Stock reconciliation commands."""


def _fail(exc: Exception):
    raise click.ClickException(str(exc))


@stock_group.command('calc')
@click.argument('product_id', type=int)
@with_appcontext
def calc_stock(product_id):
    """Recalculate stock for PRODUCT_ID without writing it."""
    try:
        calculated = stock_service.calculate_current_stock(product_id)
    except (NotFoundError, StockComputationError) as exc:
        _fail(exc)
    click.echo(f"Product {product_id}: {calculated}")


@stock_group.command('sync')
@click.option('--product-id', type=int, help='Only synchronize this product')
@click.option('--workers', type=int, default=None, help='Thread pool size for a full sync')
@with_appcontext
def sync_stock(product_id, workers):
    """Refresh cached stock from the transaction logs."""
    if product_id is not None:
        try:
            r = stock_service.sync_product_stock(product_id)
        except (NotFoundError, StockComputationError) as exc:
            _fail(exc)
        click.echo(
            f"{r['product_name']}: {r['previous_stock']} -> {r['calculated_stock']} ({r['difference']:+d})"
        )
        return

    summary = stock_service.sync_all_products_stock(workers=workers)
    for r in summary["results"]:
        if r["synchronized"]:
            marker = "OK  " if r["difference"] == 0 else "FIX "
            click.echo(
                f"{marker}{r['product_id']:>6}  {r['product_name']}: "
                f"{r['previous_stock']} -> {r['calculated_stock']} ({r['difference']:+d})"
            )
        else:
            click.echo(f"FAIL{r['product_id']:>6}  {r['error_type']}: {r['error']}")

    click.echo(
        f"\n{summary['total_products']} products: "
        f"{summary['successful']} synchronized, {summary['failed']} failed"
    )
    if summary["failed"]:
        raise SystemExit(1)


@stock_group.command('breakdown')
@click.argument('product_id', type=int)
@with_appcontext
def breakdown_stock(product_id):
    """Show every term of the stock formula for PRODUCT_ID."""
    try:
        breakdown = stock_service.get_stock_breakdown(product_id)
    except (NotFoundError, StockComputationError) as exc:
        _fail(exc)
    click.echo(json.dumps(breakdown, indent=2))


@stock_group.command('validate')
@click.argument('product_id', type=int)
@click.argument('quantity', type=click.IntRange(min=0))
@click.option('--employee-id', type=int, help="Check against this employee's custody")
@click.option('--operation', default='check', show_default=True)
@with_appcontext
def validate_stock(product_id, quantity, employee_id, operation):
    """Check whether QUANTITY units of PRODUCT_ID are available."""
    try:
        v = stock_service.validate_stock_operation(
            product_id, quantity, operation, employee_id=employee_id
        )
    except (NotFoundError, StockComputationError) as exc:
        _fail(exc)
    status = "PASS" if v["valid"] else "FAIL"
    click.echo(
        f"{status} {v['product_name']} ({v['scope']}): requested {v['requested_quantity']}, "
        f"available {v['available']}, shortfall {v['shortfall']}"
    )
    if not v["valid"]:
        raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(stock_group)

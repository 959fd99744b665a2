# Overview: Pytest coverage for concurrent sales, invoice numbering and synchronization.

"""
These tests use a file-backed SQLite database so each thread gets its own
connection and session, like concurrent requests would.
"""

import threading

import pytest

from stockcore import create_app
from stockcore.extensions import db
from stockcore.models import Product, Sale
from stockcore.services import sales_service, stock_service
from tests.conftest import add_receipt, make_product


@pytest.fixture
def file_app(tmp_path):
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'concurrency.db'}",
        "INVOICE_MAX_ATTEMPTS": 20,
        "DB_RETRY_ATTEMPTS": 20,
    })
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.session.remove()
        db.engine.dispose()


def _run_threads(app, count, target, *args):
    results = []
    errors = []
    lock = threading.Lock()

    def worker():
        with app.app_context():
            try:
                value = target(*args)
                with lock:
                    results.append(value)
            except Exception as exc:
                with lock:
                    errors.append(exc)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker) for _ in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results, errors


class TestConcurrentSales:

    def test_invoice_numbers_are_unique(self, file_app):
        with file_app.app_context():
            product = make_product(db.session, "LPG 12kg")
            add_receipt(db.session, product, 100)
            product_id = product.id

        def sell():
            sale = sales_service.create_direct_sale(
                [{"product_id": product_id, "quantity": 1}], year=2026
            )
            return sale.invoice_number

        created, errors = _run_threads(file_app, 8, sell)

        assert not errors
        assert len(created) == 8
        assert len(set(created)) == 8
        assert all(number.startswith("INV-2026-") for number in created)

        with file_app.app_context():
            assert db.session.query(Sale).count() == 8
            # whatever order the syncs finished in, a final sync settles the cache
            stock_service.sync_product_stock(product_id)
            assert db.session.get(Product, product_id).current_stock == 92


class TestConcurrentSync:

    def test_same_product_synced_in_parallel(self, file_app):
        with file_app.app_context():
            product = make_product(db.session, "Regulator", current_stock=3)
            add_receipt(db.session, product, 40)
            product_id = product.id

        results, errors = _run_threads(file_app, 5, stock_service.sync_product_stock, product_id)

        assert not errors
        assert all(r["calculated_stock"] == 40 for r in results)
        with file_app.app_context():
            assert db.session.get(Product, product_id).current_stock == 40

    def test_sync_all_on_thread_pool(self, file_app):
        with file_app.app_context():
            ids = []
            for n in range(6):
                product = make_product(db.session, f"Product {n}")
                add_receipt(db.session, product, n + 1)
                ids.append(product.id)

            summary = stock_service.sync_all_products_stock(workers=4)

            assert summary["total_products"] == 6
            assert summary["successful"] == 6
            assert [r["product_id"] for r in summary["results"]] == ids
            db.session.expire_all()
            stored = {p.id: p.current_stock for p in db.session.query(Product).all()}
            assert stored == {pid: n + 1 for n, pid in enumerate(ids)}

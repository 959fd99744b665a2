# Overview: Pytest coverage for writing recalculated stock back to products.

import pytest

from stockcore.extensions import db
from stockcore.models import Product
from stockcore.services import stock_service, stock_sources
from stockcore.services.stock_sources import StockComputationError
from stockcore.validation import NotFoundError
from tests.conftest import add_direct_sale, add_receipt, make_product


class TestSyncProduct:

    def test_first_sync_writes_value(self, db_session, product):
        add_receipt(db_session, product, 50)

        result = stock_service.sync_product_stock(product.id)

        assert result["previous_stock"] == 0
        assert result["calculated_stock"] == 50
        assert result["difference"] == 50
        assert result["synchronized"] is True
        assert db_session.get(Product, product.id).current_stock == 50

    def test_second_sync_reports_no_difference(self, db_session, product):
        """Sync is idempotent: the second run finds nothing to correct."""
        add_receipt(db_session, product, 12)
        stock_service.sync_product_stock(product.id)

        again = stock_service.sync_product_stock(product.id)

        assert again["difference"] == 0
        assert again["previous_stock"] == again["calculated_stock"] == 12

    def test_corrects_manual_drift(self, db_session):
        product = make_product(db_session, "Burner", current_stock=99)
        add_receipt(db_session, product, 10)
        add_direct_sale(db_session, "INV-2026-01", (product, 4))

        result = stock_service.sync_product_stock(product.id)

        assert result["previous_stock"] == 99
        assert result["calculated_stock"] == 6
        assert result["difference"] == -93
        db_session.refresh(product)
        assert product.current_stock == 6

    def test_unchanged_value_keeps_version(self, db_session, product):
        add_receipt(db_session, product, 3)
        stock_service.sync_product_stock(product.id)
        db_session.refresh(product)
        version = product.version_id

        stock_service.sync_product_stock(product.id)

        db_session.refresh(product)
        assert product.version_id == version

    def test_unknown_product(self, db_session):
        with pytest.raises(NotFoundError):
            stock_service.sync_product_stock(999)

    def test_source_failure_leaves_stored_value(self, db_session, monkeypatch):
        product = make_product(db_session, "Hose", current_stock=7)

        def _boom(product_id):
            raise StockComputationError(stock_sources.SOURCE_RECEIVED, product_id)

        monkeypatch.setattr(stock_sources, "sum_received_by_product", _boom)
        with pytest.raises(StockComputationError):
            stock_service.sync_product_stock(product.id)

        db_session.refresh(product)
        assert product.current_stock == 7


class TestSyncAll:

    def test_counts_every_product(self, db_session):
        a = make_product(db_session, "A")
        b = make_product(db_session, "B", current_stock=5)
        make_product(db_session, "C")
        add_receipt(db_session, a, 8)

        summary = stock_service.sync_all_products_stock()

        assert summary["total_products"] == 3
        assert summary["successful"] == 3
        assert summary["failed"] == 0
        assert summary["timestamp"].endswith("Z")
        by_id = {r["product_id"]: r for r in summary["results"]}
        assert by_id[a.id]["calculated_stock"] == 8
        assert by_id[b.id]["difference"] == -5

    def test_one_failure_does_not_abort_batch(self, db_session, monkeypatch):
        good = make_product(db_session, "Good")
        bad = make_product(db_session, "Bad")
        add_receipt(db_session, good, 4)
        add_receipt(db_session, bad, 4)
        bad_id = bad.id

        real = stock_sources.sum_received_by_product

        def _flaky(product_id):
            if product_id == bad_id:
                raise StockComputationError(stock_sources.SOURCE_RECEIVED, product_id)
            return real(product_id)

        monkeypatch.setattr(stock_sources, "sum_received_by_product", _flaky)

        summary = stock_service.sync_all_products_stock()

        assert summary["total_products"] == 2
        assert summary["successful"] == 1
        assert summary["failed"] == 1
        failed = [r for r in summary["results"] if not r["synchronized"]]
        assert failed[0]["product_id"] == bad_id
        assert failed[0]["error_type"] == "StockComputationError"
        assert db_session.get(Product, good.id).current_stock == 4

    def test_empty_catalog(self, db_session):
        summary = stock_service.sync_all_products_stock()
        assert summary["total_products"] == 0
        assert summary["results"] == []

    def test_sync_after_sync_all_is_clean(self, db_session):
        for name in ("X", "Y"):
            add_receipt(db_session, make_product(db_session, name), 2)
        stock_service.sync_all_products_stock()

        again = stock_service.sync_all_products_stock()

        assert all(r["difference"] == 0 for r in again["results"])


class TestRefreshAfterWrite:

    def test_failure_reported_not_raised(self, db_session, monkeypatch):
        good = make_product(db_session, "Good")
        bad = make_product(db_session, "Bad")
        add_receipt(db_session, good, 6)
        bad_id = bad.id
        real = stock_sources.sum_received_by_product

        def _flaky(product_id):
            if product_id == bad_id:
                raise StockComputationError(stock_sources.SOURCE_RECEIVED, product_id)
            return real(product_id)

        monkeypatch.setattr(stock_sources, "sum_received_by_product", _flaky)

        results = stock_service.sync_products_stock([bad_id, good.id, bad_id])

        assert [r["product_id"] for r in results] == sorted({good.id, bad_id})
        by_id = {r["product_id"]: r for r in results}
        assert by_id[good.id]["calculated_stock"] == 6
        assert by_id[bad_id]["synchronized"] is False
        assert by_id[bad_id]["error_type"] == "StockComputationError"

    def test_unknown_product_still_raises(self, db_session):
        with pytest.raises(NotFoundError):
            stock_service.sync_products_stock([4242])

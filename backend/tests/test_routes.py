# Overview: Pytest coverage for the HTTP API.

from sqlalchemy.exc import OperationalError

from stockcore.models import PurchaseReceipt, Sale
from stockcore.services import stock_service, stock_sources
from stockcore.services.stock_sources import StockComputationError
from stockcore.time_utils import current_year
from tests.conftest import add_assignment, add_receipt, make_product


class TestHealth:

    def test_health(self, client, db_session):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.get_json()["checks"]["database"]["status"] == "healthy"


class TestStockRoutes:

    def test_calculate(self, client, db_session, product):
        add_receipt(db_session, product, 50)
        resp = client.get(f"/api/stock/{product.id}")
        assert resp.status_code == 200
        assert resp.get_json() == {"product_id": product.id, "calculated_stock": 50}

    def test_unknown_product_is_404(self, client, db_session):
        assert client.get("/api/stock/9999").status_code == 404
        assert client.post("/api/stock/9999/sync").status_code == 404
        assert client.get("/api/stock/9999/breakdown").status_code == 404

    def test_sync_one(self, client, db_session, product):
        add_receipt(db_session, product, 5)
        resp = client.post(f"/api/stock/{product.id}/sync")
        assert resp.status_code == 200
        assert resp.get_json()["result"]["difference"] == 5

    def test_sync_all(self, client, db_session, product):
        add_receipt(db_session, product, 5)
        resp = client.post("/api/stock/sync")
        body = resp.get_json()
        assert resp.status_code == 200
        assert body["successful"] == 1
        assert body["failed"] == 0

    def test_validate_insufficient_is_200(self, client, db_session, product):
        add_receipt(db_session, product, 2)
        resp = client.post(f"/api/stock/{product.id}/validate", json={"quantity": 3, "operation": "sale"})
        assert resp.status_code == 200
        validation = resp.get_json()["validation"]
        assert validation["valid"] is False
        assert validation["shortfall"] == 1

    def test_validate_zero_quantity(self, client, db_session, product):
        resp = client.post(f"/api/stock/{product.id}/validate", json={"quantity": 0})
        assert resp.status_code == 200
        assert resp.get_json()["validation"]["valid"] is True

    def test_validate_negative_quantity(self, client, db_session, product):
        resp = client.post(f"/api/stock/{product.id}/validate", json={"quantity": -1})
        assert resp.status_code == 400

    def test_validate_bad_quantity(self, client, db_session, product):
        resp = client.post(f"/api/stock/{product.id}/validate", json={"quantity": "lots"})
        assert resp.status_code == 400

    def test_validate_unknown_employee(self, client, db_session, product):
        resp = client.post(f"/api/stock/{product.id}/validate", json={"quantity": 1, "employee_id": 77})
        assert resp.status_code == 404

    def test_breakdown(self, client, db_session, product):
        add_receipt(db_session, product, 8)
        resp = client.get(f"/api/stock/{product.id}/breakdown")
        body = resp.get_json()["breakdown"]
        assert body["calculated_stock"] == 8
        assert body["is_consistent"] is False

    def test_computation_failure_is_500(self, client, db_session, product, monkeypatch):
        def _boom(product_id):
            raise StockComputationError(stock_sources.SOURCE_CYLINDERS, product_id)

        monkeypatch.setattr(stock_sources, "sum_cylinder_flows_by_product", _boom)
        resp = client.get(f"/api/stock/{product.id}")
        assert resp.status_code == 500
        assert resp.get_json()["source"] == "cylinder_transactions"


class TestSalesRoutes:

    def test_create_sale(self, client, db_session, product):
        add_receipt(db_session, product, 10)
        resp = client.post("/api/sales", json={
            "items": [{"product_id": product.id, "quantity": 2}],
            "customer_name": "Walk-in",
        })
        assert resp.status_code == 201
        sale = resp.get_json()["sale"]
        assert sale["invoice_number"] == f"INV-{current_year()}-01"
        assert sale["total_amount_cents"] == 2 * product.least_price_cents
        db_session.refresh(product)
        assert product.current_stock == 8

    def test_insufficient_stock_is_409(self, client, db_session, product):
        add_receipt(db_session, product, 1)
        resp = client.post("/api/sales", json={"items": [{"product_id": product.id, "quantity": 2}]})
        assert resp.status_code == 409
        assert resp.get_json()["details"]["shortfall"] == 1

    def test_price_below_floor_is_400(self, client, db_session, product):
        add_receipt(db_session, product, 5)
        resp = client.post("/api/sales", json={
            "items": [{"product_id": product.id, "quantity": 1, "price_cents": product.least_price_cents - 1}],
        })
        assert resp.status_code == 400

    def test_empty_items_is_400(self, client, db_session):
        assert client.post("/api/sales", json={"items": []}).status_code == 400

    def test_unknown_product_is_404(self, client, db_session):
        resp = client.post("/api/sales", json={"items": [{"product_id": 404, "quantity": 1}]})
        assert resp.status_code == 404

    def test_employee_sale(self, client, db_session, product, employee):
        add_receipt(db_session, product, 10)
        add_assignment(db_session, employee, product, 4, status="received")
        resp = client.post("/api/employee-sales", json={
            "employee_id": employee.id,
            "items": [{"product_id": product.id, "quantity": 3}],
        })
        assert resp.status_code == 201
        assert resp.get_json()["employee_sale"]["invoice_number"] == f"EMP-{current_year()}-01"

    def test_employee_sale_without_custody_is_409(self, client, db_session, product, employee):
        add_receipt(db_session, product, 10)
        resp = client.post("/api/employee-sales", json={
            "employee_id": employee.id,
            "items": [{"product_id": product.id, "quantity": 1}],
        })
        assert resp.status_code == 409

    def test_next_invoice_preview(self, client, db_session):
        resp = client.get("/api/invoices/next?prefix=emp&year=2026")
        assert resp.status_code == 200
        assert resp.get_json()["next_invoice_number"] == "EMP-2026-01"

    def test_next_invoice_bad_prefix(self, client, db_session):
        assert client.get("/api/invoices/next?prefix=1-2").status_code == 400


class TestAssignmentRoutes:

    def test_full_lifecycle(self, client, db_session, product, employee):
        add_receipt(db_session, product, 10)

        resp = client.post("/api/stock-assignments", json={
            "employee_id": employee.id, "product_id": product.id, "quantity": 6,
        })
        assert resp.status_code == 201
        assignment_id = resp.get_json()["assignment"]["id"]

        assert client.post(f"/api/stock-assignments/{assignment_id}/receive").status_code == 200

        resp = client.post(f"/api/stock-assignments/{assignment_id}/deplete", json={"quantity": 7})
        assert resp.status_code == 409
        assert resp.get_json()["details"]["available"] == 6

        resp = client.post(f"/api/stock-assignments/{assignment_id}/deplete", json={"quantity": 2})
        assert resp.get_json()["assignment"]["remaining_quantity"] == 4

        resp = client.post(f"/api/stock-assignments/{assignment_id}/return")
        assert resp.status_code == 200
        assert resp.get_json()["returned_quantity"] == 4

        listed = client.get(f"/api/stock-assignments?employee_id={employee.id}&status=returned")
        assert [a["id"] for a in listed.get_json()["assignments"]] == [assignment_id]

    def test_unknown_field_is_400(self, client, db_session, product, employee):
        resp = client.post("/api/stock-assignments", json={
            "employee_id": employee.id, "product_id": product.id, "quantity": 1, "status": "received",
        })
        assert resp.status_code == 400

    def test_over_assignment_is_409(self, client, db_session, product, employee):
        resp = client.post("/api/stock-assignments", json={
            "employee_id": employee.id, "product_id": product.id, "quantity": 1,
        })
        assert resp.status_code == 409

    def test_receive_unknown_is_404(self, client, db_session):
        assert client.post("/api/stock-assignments/999/receive").status_code == 404


class TestPurchaseAndCylinderRoutes:

    def test_received_purchase_updates_stock(self, client, db_session, product):
        resp = client.post("/api/purchases", json={
            "product_id": product.id, "quantity": 12, "status": "received", "supplier_name": "Gas Co",
        })
        assert resp.status_code == 201
        db_session.refresh(product)
        assert product.current_stock == 12

    def test_pending_purchase_then_receive(self, client, db_session, product):
        resp = client.post("/api/purchases", json={"product_id": product.id, "quantity": 5})
        receipt_id = resp.get_json()["receipt"]["id"]
        assert resp.get_json()["receipt"]["status"] == "pending"

        resp = client.post(f"/api/purchases/{receipt_id}/receive")
        assert resp.status_code == 200
        db_session.refresh(product)
        assert product.current_stock == 5

        # receiving twice changes nothing
        client.post(f"/api/purchases/{receipt_id}/receive")
        db_session.refresh(product)
        assert product.current_stock == 5

    def test_purchase_bad_status(self, client, db_session, product):
        resp = client.post("/api/purchases", json={"product_id": product.id, "quantity": 5, "status": "lost"})
        assert resp.status_code == 400

    def test_cylinder_return(self, client, db_session):
        cylinder = make_product(db_session, "Cylinder 12kg", category="cylinder")
        resp = client.post("/api/cylinders", json={
            "type": "return",
            "product_id": cylinder.id,
            "quantity": 2,
            "cylinder_size": "large",
            "customer_name": "Hotel Lagoon",
        })
        assert resp.status_code == 201
        db_session.refresh(cylinder)
        assert cylinder.current_stock == 2

    def test_refill_requires_supplier(self, client, db_session):
        resp = client.post("/api/cylinders", json={
            "type": "refill", "quantity": 1, "cylinder_size": "small",
        })
        assert resp.status_code == 400


def _failing_cylinder_source(product_id):
    raise StockComputationError(stock_sources.SOURCE_CYLINDERS, product_id)


def _locked_sync(product_id):
    raise OperationalError("UPDATE products", {}, Exception("database is locked"))


class TestRefreshFailureAfterCommit:
    """A stored write is reported as created even when the stock refresh fails."""

    def test_received_purchase(self, client, db_session, product, monkeypatch):
        monkeypatch.setattr(stock_sources, "sum_cylinder_flows_by_product", _failing_cylinder_source)

        resp = client.post("/api/purchases", json={
            "product_id": product.id, "quantity": 5, "status": "received",
        })

        assert resp.status_code == 201
        assert db_session.query(PurchaseReceipt).count() == 1
        db_session.refresh(product)
        assert product.current_stock == 0

        # the next sync settles the cache
        monkeypatch.undo()
        assert stock_service.sync_product_stock(product.id)["difference"] == 5

    def test_pending_purchase_received_later(self, client, db_session, product, monkeypatch):
        receipt_id = client.post(
            "/api/purchases", json={"product_id": product.id, "quantity": 4}
        ).get_json()["receipt"]["id"]
        monkeypatch.setattr(stock_sources, "sum_cylinder_flows_by_product", _failing_cylinder_source)

        resp = client.post(f"/api/purchases/{receipt_id}/receive")

        assert resp.status_code == 200
        assert resp.get_json()["receipt"]["status"] == "received"

    def test_direct_sale(self, client, db_session, product, monkeypatch):
        add_receipt(db_session, product, 10)
        monkeypatch.setattr(stock_service, "sync_product_stock", _locked_sync)

        resp = client.post("/api/sales", json={"items": [{"product_id": product.id, "quantity": 2}]})

        assert resp.status_code == 201
        assert db_session.query(Sale).count() == 1

    def test_employee_sale(self, client, db_session, product, employee, monkeypatch):
        add_receipt(db_session, product, 10)
        add_assignment(db_session, employee, product, 4, status="received")
        monkeypatch.setattr(stock_service, "sync_product_stock", _locked_sync)

        resp = client.post("/api/employee-sales", json={
            "employee_id": employee.id,
            "items": [{"product_id": product.id, "quantity": 1}],
        })

        assert resp.status_code == 201

    def test_cylinder_transaction(self, client, db_session, product, monkeypatch):
        monkeypatch.setattr(stock_sources, "sum_cylinder_flows_by_product", _failing_cylinder_source)

        resp = client.post("/api/cylinders", json={
            "type": "return",
            "product_id": product.id,
            "quantity": 1,
            "cylinder_size": "large",
            "customer_name": "Hotel Lagoon",
        })

        assert resp.status_code == 201

    def test_assignment_return(self, client, db_session, product, employee, monkeypatch):
        assignment = add_assignment(db_session, employee, product, 3, status="received")
        monkeypatch.setattr(stock_sources, "sum_cylinder_flows_by_product", _failing_cylinder_source)

        resp = client.post(f"/api/stock-assignments/{assignment.id}/return")

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["assignment"]["status"] == "returned"
        assert body["sync"]["synchronized"] is False
        assert body["sync"]["error_type"] == "StockComputationError"

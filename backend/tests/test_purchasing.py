# Overview: Pytest coverage for suppliers and the purchase receive/cancel lifecycle.

"""
Purchasing tests

Receiving a purchase credits stock and overwrites each ingredient's unit
cost with the purchase price (last-write-wins). A purchase is received at
most once; partial receipts keep it open until every line is complete.
"""

import re

from comanda.extensions import db
from comanda.models import StockMovement
from comanda.services import purchase_service

from conftest import auth_headers, create_ingredient, fail_commits


PURCHASE_NUMBER = re.compile(r"^COMP-\d{4}-\d{4}$")


def _supplier(client, token, **overrides):
    payload = {"name": "Molino Central", "payment_terms": "30_dias", "rating": 4}
    payload.update(overrides)
    response = client.post("/api/purchasing/suppliers", json=payload, headers=auth_headers(token))
    assert response.status_code == 201, response.get_json()
    return response.get_json()["data"]


def _purchase(client, token, supplier_id, ingredient_id, quantity=20, cost=1.20):
    response = client.post(
        "/api/purchasing/purchases",
        json={
            "supplier_id": supplier_id,
            "items": [{"ingredient_id": ingredient_id, "quantity": quantity, "unit_cost": cost}],
        },
        headers=auth_headers(token),
    )
    assert response.status_code == 201, response.get_json()
    return response.get_json()["data"]


def _ingredient(client, token, ingredient_id):
    return client.get(
        f"/api/inventory/ingredients/{ingredient_id}", headers=auth_headers(token),
    ).get_json()["data"]


class TestSuppliers:

    def test_rating_out_of_range(self, client, admin_token):
        response = client.post(
            "/api/purchasing/suppliers",
            json={"name": "Bad Rating", "rating": 7},
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 400

    def test_name_required(self, client, admin_token):
        response = client.post(
            "/api/purchasing/suppliers", json={"phone": "555"}, headers=auth_headers(admin_token),
        )
        assert response.status_code == 400

    def test_suppliers_are_tenant_scoped(self, client, admin_token, other_admin_token):
        supplier = _supplier(client, admin_token)
        response = client.get(
            f"/api/purchasing/suppliers/{supplier['id']}", headers=auth_headers(other_admin_token),
        )
        assert response.status_code == 404


class TestPurchaseLifecycle:

    def test_create_computes_totals_and_number(self, client, admin_token):
        supplier = _supplier(client, admin_token)
        flour = create_ingredient(client, admin_token)
        purchase = _purchase(client, admin_token, supplier["id"], flour["id"])
        assert purchase["status"] == "pending"
        assert purchase["total"] == 24.0
        assert PURCHASE_NUMBER.match(purchase["number"])
        assert _ingredient(client, admin_token, flour["id"])["current_stock"] == 10.0

    def test_receive_credits_stock_and_overwrites_cost(self, client, admin_token):
        supplier = _supplier(client, admin_token)
        flour = create_ingredient(client, admin_token)
        purchase = _purchase(client, admin_token, supplier["id"], flour["id"])

        response = client.post(
            f"/api/purchasing/purchases/{purchase['id']}/receive", headers=auth_headers(admin_token),
        )
        assert response.status_code == 200, response.get_json()
        assert response.get_json()["data"]["status"] == "received"

        updated = _ingredient(client, admin_token, flour["id"])
        assert updated["current_stock"] == 30.0
        assert updated["unit_cost"] == 1.2

    def test_receive_twice_rejected(self, client, admin_token):
        supplier = _supplier(client, admin_token)
        flour = create_ingredient(client, admin_token)
        purchase = _purchase(client, admin_token, supplier["id"], flour["id"])
        client.post(f"/api/purchasing/purchases/{purchase['id']}/receive", headers=auth_headers(admin_token))

        response = client.post(
            f"/api/purchasing/purchases/{purchase['id']}/receive", headers=auth_headers(admin_token),
        )
        assert response.status_code == 400
        assert response.get_json()["message"] == "Purchase already received"
        assert _ingredient(client, admin_token, flour["id"])["current_stock"] == 30.0

    def test_receive_reruns_after_lock_error(self, client, admin_token, tenant_a, monkeypatch):
        restaurant, admin = tenant_a
        supplier = _supplier(client, admin_token)
        flour = create_ingredient(client, admin_token)
        purchase = _purchase(client, admin_token, supplier["id"], flour["id"])
        calls = fail_commits(monkeypatch, failures=1)

        received = purchase_service.receive_purchase(restaurant.id, purchase["id"], user_id=admin.id)
        assert len(calls) == 2
        assert received.status == "received"
        monkeypatch.undo()

        assert _ingredient(client, admin_token, flour["id"])["current_stock"] == 30.0
        receipts = db.session.query(StockMovement).filter_by(
            ingredient_id=flour["id"], reason="purchase_receive",
        ).count()
        assert receipts == 1

    def test_partial_receipt(self, client, admin_token):
        supplier = _supplier(client, admin_token)
        flour = create_ingredient(client, admin_token)
        purchase = _purchase(client, admin_token, supplier["id"], flour["id"])
        line_id = purchase["lines"][0]["id"]

        response = client.post(
            f"/api/purchasing/purchases/{purchase['id']}/receive",
            json={"lines": [{"line_id": line_id, "received_quantity": 5}]},
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 200
        assert response.get_json()["data"]["status"] == "partial"
        assert _ingredient(client, admin_token, flour["id"])["current_stock"] == 15.0

        response = client.post(
            f"/api/purchasing/purchases/{purchase['id']}/receive", headers=auth_headers(admin_token),
        )
        assert response.get_json()["data"]["status"] == "received"
        assert _ingredient(client, admin_token, flour["id"])["current_stock"] == 30.0

    def test_partial_receipt_cannot_exceed_outstanding(self, client, admin_token):
        supplier = _supplier(client, admin_token)
        flour = create_ingredient(client, admin_token)
        purchase = _purchase(client, admin_token, supplier["id"], flour["id"])
        response = client.post(
            f"/api/purchasing/purchases/{purchase['id']}/receive",
            json={"lines": [{"line_id": purchase["lines"][0]["id"], "received_quantity": 21}]},
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 400

    def test_cancel_pending_then_receive_rejected(self, client, admin_token):
        supplier = _supplier(client, admin_token)
        flour = create_ingredient(client, admin_token)
        purchase = _purchase(client, admin_token, supplier["id"], flour["id"])

        response = client.post(
            f"/api/purchasing/purchases/{purchase['id']}/cancel", headers=auth_headers(admin_token),
        )
        assert response.status_code == 200
        assert response.get_json()["data"]["status"] == "cancelled"

        response = client.post(
            f"/api/purchasing/purchases/{purchase['id']}/receive", headers=auth_headers(admin_token),
        )
        assert response.status_code == 400

    def test_cannot_cancel_received(self, client, admin_token):
        supplier = _supplier(client, admin_token)
        flour = create_ingredient(client, admin_token)
        purchase = _purchase(client, admin_token, supplier["id"], flour["id"])
        client.post(f"/api/purchasing/purchases/{purchase['id']}/receive", headers=auth_headers(admin_token))
        response = client.post(
            f"/api/purchasing/purchases/{purchase['id']}/cancel", headers=auth_headers(admin_token),
        )
        assert response.status_code == 400

    def test_supplier_required(self, client, admin_token):
        flour = create_ingredient(client, admin_token)
        response = client.post(
            "/api/purchasing/purchases",
            json={"items": [{"ingredient_id": flour["id"], "quantity": 1, "unit_cost": 1}]},
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 400

    def test_summary_counts_received_purchases(self, client, admin_token):
        supplier = _supplier(client, admin_token)
        flour = create_ingredient(client, admin_token)
        purchase = _purchase(client, admin_token, supplier["id"], flour["id"])
        client.post(f"/api/purchasing/purchases/{purchase['id']}/receive", headers=auth_headers(admin_token))

        response = client.get("/api/purchasing/purchases/summary", headers=auth_headers(admin_token))
        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["summary"]["total_purchases"] == 1
        assert data["summary"]["total_amount"] == 24.0
        assert data["top_suppliers"][0]["supplier_id"] == supplier["id"]

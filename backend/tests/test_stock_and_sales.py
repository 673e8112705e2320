# Overview: Pytest coverage for sale stock posting, alerts, cancellation and numbering.

"""
Sales and stock tests

Selling a recipe debits the ingredients it consumes, expanding
semifinished components through their yield. Stock clamps at zero and the
sale carries any LOW_STOCK / OUT_OF_STOCK alerts its debit produced.
"""

import re

import pytest
from sqlalchemy.exc import OperationalError

from comanda.extensions import db
from comanda.models import DocumentSequence, Ingredient, StockMovement
from comanda.services import sales_service

from conftest import auth_headers, create_dough, create_ingredient, create_pizza, fail_commits


SALE_NUMBER = re.compile(r"^VENTA-\d{8}-\d{3}$")


def _sell(client, token, recipe_id, quantity, **extra):
    payload = {"items": [{"item_type": "recipe", "item_id": recipe_id, "quantity": quantity}]}
    payload.update(extra)
    return client.post("/api/sales", json=payload, headers=auth_headers(token))


def _flour_stock(client, token, flour_id):
    response = client.get(f"/api/inventory/ingredients/{flour_id}", headers=auth_headers(token))
    return response.get_json()["data"]["current_stock"]


class TestSaleStockPosting:

    def test_sale_debits_through_semifinished(self, client, admin_token, pizza_menu):
        response = _sell(client, admin_token, pizza_menu["pizza"]["id"], 3)
        assert response.status_code == 201, response.get_json()
        sale = response.get_json()["data"]
        assert sale["status"] == "completed"
        assert sale["stock_updated"] is True
        assert sale["low_stock_alerts"] == []
        assert sale["total"] == 30.0
        assert _flour_stock(client, admin_token, pizza_menu["flour"]["id"]) == 4.0

    def test_sale_that_empties_stock_reports_out_of_stock(self, client, admin_token, pizza_menu):
        _sell(client, admin_token, pizza_menu["pizza"]["id"], 3)
        response = _sell(client, admin_token, pizza_menu["pizza"]["id"], 2)
        assert response.status_code == 201
        alerts = response.get_json()["data"]["low_stock_alerts"]
        assert len(alerts) == 1
        assert alerts[0]["ingredient_name"] == "FLOUR"
        assert alerts[0]["alert_type"] == "OUT_OF_STOCK"
        assert alerts[0]["current_stock"] == 0.0
        assert _flour_stock(client, admin_token, pizza_menu["flour"]["id"]) == 0.0

    def test_low_stock_alert_at_minimum(self, client, admin_token, pizza_menu):
        response = _sell(client, admin_token, pizza_menu["pizza"]["id"], 4)
        alerts = response.get_json()["data"]["low_stock_alerts"]
        assert [a["alert_type"] for a in alerts] == ["LOW_STOCK"]

    def test_stock_clamps_at_zero(self, client, admin_token, pizza_menu):
        response = _sell(client, admin_token, pizza_menu["pizza"]["id"], 8)
        assert response.status_code == 201
        assert _flour_stock(client, admin_token, pizza_menu["flour"]["id"]) == 0.0

        movement = db.session.query(StockMovement).filter_by(
            ingredient_id=pizza_menu["flour"]["id"], reason="sale",
        ).one()
        assert float(movement.quantity_requested) == 16.0
        assert float(movement.quantity_delta) == -10.0

    def test_waiter_can_record_sales(self, client, waiter_token, admin_token, pizza_menu):
        response = _sell(client, waiter_token, pizza_menu["pizza"]["id"], 1)
        assert response.status_code == 201
        assert response.get_json()["data"]["created_by_name"] == "Ana"

    def test_active_sale_defers_stock(self, client, admin_token, pizza_menu):
        response = _sell(client, admin_token, pizza_menu["pizza"]["id"], 2, status="active")
        sale = response.get_json()["data"]
        assert sale["stock_updated"] is False
        assert _flour_stock(client, admin_token, pizza_menu["flour"]["id"]) == 10.0

        response = client.post(f"/api/sales/{sale['id']}/complete", headers=auth_headers(admin_token))
        assert response.status_code == 200
        assert response.get_json()["data"]["status"] == "completed"
        assert _flour_stock(client, admin_token, pizza_menu["flour"]["id"]) == 6.0

    def test_complete_is_idempotent(self, client, admin_token, pizza_menu):
        sale = _sell(client, admin_token, pizza_menu["pizza"]["id"], 1).get_json()["data"]
        for _ in range(2):
            response = client.post(f"/api/sales/{sale['id']}/complete", headers=auth_headers(admin_token))
            assert response.status_code == 200
        assert _flour_stock(client, admin_token, pizza_menu["flour"]["id"]) == 8.0

    def test_empty_sale_rejected(self, client, admin_token):
        response = client.post("/api/sales", json={"items": []}, headers=auth_headers(admin_token))
        assert response.status_code == 400


class TestSaleCancellation:

    def test_cancel_restores_stock(self, client, admin_token, pizza_menu):
        sale = _sell(client, admin_token, pizza_menu["pizza"]["id"], 3).get_json()["data"]
        response = client.delete(f"/api/sales/{sale['id']}", headers=auth_headers(admin_token))
        assert response.status_code == 200
        assert response.get_json()["data"]["status"] == "cancelled"
        assert _flour_stock(client, admin_token, pizza_menu["flour"]["id"]) == 10.0

    def test_cancel_restores_only_what_was_debited(self, client, admin_token, pizza_menu):
        sale = _sell(client, admin_token, pizza_menu["pizza"]["id"], 8).get_json()["data"]
        client.delete(f"/api/sales/{sale['id']}", headers=auth_headers(admin_token))
        assert _flour_stock(client, admin_token, pizza_menu["flour"]["id"]) == 10.0

    def test_double_cancel_rejected(self, client, admin_token, pizza_menu):
        sale = _sell(client, admin_token, pizza_menu["pizza"]["id"], 1).get_json()["data"]
        client.delete(f"/api/sales/{sale['id']}", headers=auth_headers(admin_token))
        response = client.delete(f"/api/sales/{sale['id']}", headers=auth_headers(admin_token))
        assert response.status_code == 400
        assert _flour_stock(client, admin_token, pizza_menu["flour"]["id"]) == 10.0

    def test_cancelled_sale_cannot_complete(self, client, admin_token, pizza_menu):
        sale = _sell(client, admin_token, pizza_menu["pizza"]["id"], 1, status="active").get_json()["data"]
        client.delete(f"/api/sales/{sale['id']}", headers=auth_headers(admin_token))
        response = client.post(f"/api/sales/{sale['id']}/complete", headers=auth_headers(admin_token))
        assert response.status_code == 400

    def test_reversal_ignores_other_restaurants_movements(
        self, client, admin_token, other_admin_token, tenant_b, pizza_menu,
    ):
        restaurant_b, _ = tenant_b
        sale = _sell(client, admin_token, pizza_menu["pizza"]["id"], 1).get_json()["data"]
        rice = create_ingredient(client, other_admin_token, name="rice")
        db.session.add(StockMovement(
            restaurant_id=restaurant_b.id,
            ingredient_id=rice["id"],
            reason="sale",
            quantity_requested=1,
            quantity_delta=-1,
            resulting_stock=9,
            source_type="sale",
            source_id=sale["id"],
        ))
        db.session.commit()

        response = client.delete(f"/api/sales/{sale['id']}", headers=auth_headers(admin_token))
        assert response.status_code == 200
        assert _flour_stock(client, admin_token, pizza_menu["flour"]["id"]) == 10.0
        assert _flour_stock(client, other_admin_token, rice["id"]) == 10.0

    def test_waiter_cannot_cancel(self, client, waiter_token, admin_token, pizza_menu):
        sale = _sell(client, admin_token, pizza_menu["pizza"]["id"], 1).get_json()["data"]
        response = client.delete(f"/api/sales/{sale['id']}", headers=auth_headers(waiter_token))
        assert response.status_code == 403


class TestManualAdjustment:

    def test_subtract_clamps_and_add_credits(self, client, admin_token, pizza_menu):
        flour_id = pizza_menu["flour"]["id"]
        response = client.patch(
            f"/api/inventory/ingredients/{flour_id}/stock",
            json={"quantity": 25, "operation": "subtract"},
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 200
        assert response.get_json()["data"]["resulting_stock"] == 0.0

        client.patch(
            f"/api/inventory/ingredients/{flour_id}/stock",
            json={"quantity": 5, "operation": "add"},
            headers=auth_headers(admin_token),
        )
        assert _flour_stock(client, admin_token, flour_id) == 5.0

    def test_bad_operation_rejected(self, client, admin_token, pizza_menu):
        response = client.patch(
            f"/api/inventory/ingredients/{pizza_menu['flour']['id']}/stock",
            json={"quantity": 1, "operation": "multiply"},
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 400

    def test_opening_stock_is_recorded(self, client, admin_token):
        flour = create_ingredient(client, admin_token)
        response = client.get(
            f"/api/inventory/ingredients/{flour['id']}/movements", headers=auth_headers(admin_token),
        )
        movements = response.get_json()["data"]["movements"]
        assert len(movements) == 1
        assert movements[0]["reason"] == "adjustment"
        assert movements[0]["quantity_delta"] == 10.0
        assert movements[0]["resulting_stock"] == 10.0

    def test_ingredient_without_stock_has_no_opening_movement(self, client, admin_token):
        salt = create_ingredient(client, admin_token, name="salt", current_stock=0)
        assert db.session.query(StockMovement).filter_by(ingredient_id=salt["id"]).count() == 0

    def test_update_cannot_change_stock(self, client, admin_token, pizza_menu):
        flour_id = pizza_menu["flour"]["id"]
        response = client.put(
            f"/api/inventory/ingredients/{flour_id}",
            json={"current_stock": 50},
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 400
        assert _flour_stock(client, admin_token, flour_id) == 10.0
        assert db.session.query(StockMovement).filter_by(ingredient_id=flour_id).count() == 1

    def test_movements_are_listed(self, client, admin_token, pizza_menu):
        _sell(client, admin_token, pizza_menu["pizza"]["id"], 1)
        response = client.get(
            f"/api/inventory/ingredients/{pizza_menu['flour']['id']}/movements",
            headers=auth_headers(admin_token),
        )
        movements = response.get_json()["data"]["movements"]
        assert movements[0]["reason"] == "sale"
        assert movements[0]["quantity_delta"] == -2.0


class TestNumbering:

    def test_sale_numbers_are_sequential_and_unique(self, client, admin_token, pizza_menu):
        numbers = [
            _sell(client, admin_token, pizza_menu["pizza"]["id"], 1).get_json()["data"]["number"]
            for _ in range(3)
        ]
        assert all(SALE_NUMBER.match(n) for n in numbers)
        assert len(set(numbers)) == 3
        assert [int(n.rsplit("-", 1)[1]) for n in numbers] == [1, 2, 3]

    def test_numbering_is_per_restaurant(self, client, admin_token, other_admin_token, pizza_menu):
        flour = create_ingredient(client, other_admin_token)
        dough = create_dough(client, other_admin_token, flour["id"])
        pizza = create_pizza(client, other_admin_token, dough["id"])

        first_a = _sell(client, admin_token, pizza_menu["pizza"]["id"], 1).get_json()["data"]["number"]
        first_b = _sell(client, other_admin_token, pizza["id"], 1).get_json()["data"]["number"]
        assert first_a.endswith("-001")
        assert first_b.endswith("-001")

    def test_foreign_recipe_cannot_be_sold(self, client, other_admin_token, pizza_menu):
        response = _sell(client, other_admin_token, pizza_menu["pizza"]["id"], 1)
        assert response.status_code == 400
        stock = db.session.get(Ingredient, pizza_menu["flour"]["id"]).current_stock
        assert float(stock) == 10.0

    def test_duplicate_sale_number_is_rejected(self, client, admin_token, tenant_a, pizza_menu):
        restaurant, _ = tenant_a
        _sell(client, admin_token, pizza_menu["pizza"]["id"], 1)

        sequence = db.session.query(DocumentSequence).filter_by(
            restaurant_id=restaurant.id, document_type="SALE",
        ).one()
        sequence.next_number = 1
        db.session.commit()

        response = _sell(client, admin_token, pizza_menu["pizza"]["id"], 1)
        assert response.status_code == 400
        assert response.get_json()["message"].startswith("Duplicate sale number")
        assert _flour_stock(client, admin_token, pizza_menu["flour"]["id"]) == 8.0


class TestProductSales:

    def _product(self, client, token, flour_id):
        response = client.post(
            "/api/products",
            json={
                "name": "focaccia",
                "base_price": 5,
                "recipe": [{"ingredient_id": flour_id, "gross_quantity": 2.5, "waste_percentage": 20}],
            },
            headers=auth_headers(token),
        )
        assert response.status_code == 201, response.get_json()
        return response.get_json()["data"]

    def test_product_sale_debits_gross_quantity(self, client, admin_token, pizza_menu):
        product = self._product(client, admin_token, pizza_menu["flour"]["id"])
        response = client.post(
            "/api/sales",
            json={"items": [{"item_type": "product", "item_id": product["id"], "quantity": 2}]},
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 201, response.get_json()
        sale = response.get_json()["data"]
        assert sale["lines"][0]["item_type"] == "product"
        assert _flour_stock(client, admin_token, pizza_menu["flour"]["id"]) == 5.0

        client.delete(f"/api/sales/{sale['id']}", headers=auth_headers(admin_token))
        assert _flour_stock(client, admin_token, pizza_menu["flour"]["id"]) == 10.0


class TestTransientLockRetry:

    def test_create_sale_reruns_after_lock_error(self, monkeypatch, tenant_a, pizza_menu):
        restaurant, admin = tenant_a
        calls = fail_commits(monkeypatch, failures=1)

        sale = sales_service.create_sale(
            restaurant.id,
            {"items": [{"item_type": "recipe", "item_id": pizza_menu["pizza"]["id"], "quantity": 3}]},
            user_id=admin.id,
        )
        assert len(calls) == 2
        assert sale.number.endswith("-001")
        assert sale.stock_updated is True
        assert float(db.session.get(Ingredient, pizza_menu["flour"]["id"]).current_stock) == 4.0
        assert db.session.query(StockMovement).filter_by(reason="sale").count() == 1

    def test_cancel_sale_reruns_after_lock_error(self, client, admin_token, monkeypatch, tenant_a, pizza_menu):
        restaurant, admin = tenant_a
        sale = _sell(client, admin_token, pizza_menu["pizza"]["id"], 2).get_json()["data"]
        calls = fail_commits(monkeypatch, failures=1)

        cancelled = sales_service.cancel_sale(restaurant.id, sale["id"], user_id=admin.id)
        assert len(calls) == 2
        assert cancelled.status == "cancelled"
        assert float(db.session.get(Ingredient, pizza_menu["flour"]["id"]).current_stock) == 10.0
        assert db.session.query(StockMovement).filter_by(reason="sale_cancel").count() == 1

    def test_persistent_lock_error_propagates(self, monkeypatch, tenant_a, pizza_menu):
        restaurant, admin = tenant_a
        calls = fail_commits(monkeypatch, failures=10)

        with pytest.raises(OperationalError):
            sales_service.create_sale(
                restaurant.id,
                {"items": [{"item_type": "recipe", "item_id": pizza_menu["pizza"]["id"], "quantity": 1}]},
                user_id=admin.id,
            )
        assert len(calls) == 3
        monkeypatch.undo()
        assert float(db.session.get(Ingredient, pizza_menu["flour"]["id"]).current_stock) == 10.0

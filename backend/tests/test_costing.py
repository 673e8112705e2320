# Overview: Pytest coverage for the ingredient -> semifinished -> recipe -> product cost roll-up.

"""
Cost roll-up tests

Costs are stored on write and only move when something that defines them
moves. An ingredient price change stays invisible downstream until
recalculate-dependents (or a calculate-cost call) pushes it through.
"""

from conftest import auth_headers, create_ingredient


class TestRollUp:

    def test_names_are_uppercased(self, client, admin_token, pizza_menu):
        assert pizza_menu["flour"]["name"] == "FLOUR"
        assert pizza_menu["dough"]["name"] == "DOUGH"
        assert pizza_menu["pizza"]["name"] == "PIZZA"

    def test_semifinished_cost_and_unit_cost(self, pizza_menu):
        dough = pizza_menu["dough"]
        assert dough["calculated_cost"] == 2.0
        assert dough["unit_cost"] == 2.0

    def test_recipe_cost_profit_and_percentage(self, pizza_menu):
        pizza = pizza_menu["pizza"]
        assert pizza["calculated_cost"] == 2.0
        assert pizza["profit"] == 8.0
        assert pizza["profit_percentage"] == 80.0
        assert [c["semifinished_id"] for c in pizza["semifinished"]] == [pizza_menu["dough"]["id"]]
        assert pizza["ingredients"] == []

    def test_yield_divides_unit_cost(self, client, admin_token):
        sugar = create_ingredient(client, admin_token, name="sugar", unit_cost=3.00)
        response = client.post(
            "/api/inventory/semifinished",
            json={
                "name": "syrup",
                "category": "salsas",
                "yield_quantity": 4,
                "ingredients": [{"ingredient_id": sugar["id"], "quantity": 2}],
            },
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 201
        data = response.get_json()["data"]
        assert data["calculated_cost"] == 6.0
        assert data["unit_cost"] == 1.5

    def test_product_final_price_and_waste(self, client, admin_token, pizza_menu):
        response = client.post(
            "/api/products",
            json={
                "name": "pizza box",
                "base_price": 10,
                "margin_percentage": 50,
                "recipe": [
                    {"ingredient_id": pizza_menu["flour"]["id"], "gross_quantity": 1, "waste_percentage": 10},
                ],
            },
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 201, response.get_json()
        product = response.get_json()["data"]
        assert product["final_price"] == 15.0
        assert product["total_cost"] == 1.0
        assert product["profit"] == 14.0

    def test_product_margin_defaults_to_thirty(self, client, admin_token):
        response = client.post(
            "/api/products",
            json={"name": "water", "base_price": 2},
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 201
        product = response.get_json()["data"]
        assert product["margin_percentage"] == 30.0
        assert product["final_price"] == 2.6

    def test_profit_percentage_is_clamped(self, client, admin_token):
        saffron = create_ingredient(client, admin_token, name="saffron", unit_cost=1000)
        response = client.post(
            "/api/recipes",
            json={
                "name": "risotto",
                "selling_price": 0.01,
                "ingredients": [{"ingredient_id": saffron["id"], "quantity": 1}],
            },
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 201, response.get_json()
        recipe = response.get_json()["data"]
        assert recipe["profit"] == -999.99
        assert recipe["profit_percentage"] == -99999.99


class TestValidation:

    def test_semifinished_rejects_semifinished_components(self, client, admin_token, pizza_menu):
        response = client.post(
            "/api/inventory/semifinished",
            json={
                "name": "double dough",
                "yield_quantity": 1,
                "ingredients": [{"semifinished_id": pizza_menu["dough"]["id"], "quantity": 1}],
            },
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 400

    def test_unknown_field_rejected(self, client, admin_token):
        response = client.post(
            "/api/inventory/ingredients",
            json={"name": "salt", "unit": "kg", "colour": "white"},
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 400
        assert "Field not allowed" in response.get_json()["message"]

    def test_unit_must_be_known(self, client, admin_token):
        response = client.post(
            "/api/inventory/ingredients",
            json={"name": "salt", "unit": "bucket"},
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 400

    def test_duplicate_name_in_same_restaurant(self, client, admin_token):
        create_ingredient(client, admin_token, name="salt")
        response = client.post(
            "/api/inventory/ingredients",
            json={"name": "SALT", "unit": "kg"},
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 400

    def test_same_name_allowed_in_other_restaurant(self, client, admin_token, other_admin_token):
        create_ingredient(client, admin_token, name="salt")
        create_ingredient(client, other_admin_token, name="salt")

    def test_foreign_ingredient_reference_rejected(self, client, admin_token, other_admin_token):
        foreign = create_ingredient(client, other_admin_token, name="saffron")
        response = client.post(
            "/api/inventory/semifinished",
            json={
                "name": "risotto base",
                "yield_quantity": 1,
                "ingredients": [{"ingredient_id": foreign["id"], "quantity": 1}],
            },
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 400


class TestStaleness:

    def test_ingredient_cost_change_does_not_propagate(self, client, admin_token, pizza_menu):
        flour_id = pizza_menu["flour"]["id"]
        response = client.put(
            f"/api/inventory/ingredients/{flour_id}",
            json={"unit_cost": 1.50},
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 200

        pizza = client.get(
            f"/api/recipes/{pizza_menu['pizza']['id']}", headers=auth_headers(admin_token),
        ).get_json()["data"]
        assert pizza["calculated_cost"] == 2.0

    def test_recalculate_dependents_pushes_new_cost(self, client, admin_token, pizza_menu):
        flour_id = pizza_menu["flour"]["id"]
        client.put(
            f"/api/inventory/ingredients/{flour_id}",
            json={"unit_cost": 1.50},
            headers=auth_headers(admin_token),
        )
        response = client.post(
            f"/api/inventory/ingredients/{flour_id}/recalculate-dependents",
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 200
        touched = response.get_json()["data"]
        assert touched["semifinished"] == [pizza_menu["dough"]["id"]]
        assert touched["recipes"] == [pizza_menu["pizza"]["id"]]

        dough = client.get(
            f"/api/inventory/semifinished/{pizza_menu['dough']['id']}", headers=auth_headers(admin_token),
        ).get_json()["data"]
        pizza = client.get(
            f"/api/recipes/{pizza_menu['pizza']['id']}", headers=auth_headers(admin_token),
        ).get_json()["data"]
        assert dough["unit_cost"] == 3.0
        assert pizza["calculated_cost"] == 3.0
        assert pizza["profit"] == 7.0

    def test_recipe_price_change_recomputes_profit(self, client, admin_token, pizza_menu):
        response = client.put(
            f"/api/recipes/{pizza_menu['pizza']['id']}/price",
            json={"selling_price": 4},
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 200
        pizza = response.get_json()["data"]
        assert pizza["profit"] == 2.0
        assert pizza["profit_percentage"] == 50.0

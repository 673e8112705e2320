# Overview: Pytest coverage for registration, login, sessions, role gates and tenant isolation.

"""
Authentication and isolation tests

SECURITY TESTS:
1. Missing token is 401, bad token is 403, wrong role is 403
2. Every read and write is scoped to the caller's restaurant; foreign ids
   look exactly like missing ones (404)
"""

import pytest

from comanda.services.auth_service import (
    PasswordValidationError,
    validate_password_strength,
)
from comanda.services.session_service import revoke_session, validate_session

from conftest import PASSWORD, auth_headers, create_ingredient, login


class TestRegistration:

    def test_register_returns_token_and_admin(self, client):
        response = client.post("/api/auth/register", json={
            "restaurant_name": "La Trattoria",
            "name": "Giulia",
            "email": "Giulia@Trattoria.test",
            "password": PASSWORD,
        })
        assert response.status_code == 201, response.get_json()
        data = response.get_json()["data"]
        assert data["token"]
        assert data["user"]["role"] == "admin"
        assert data["user"]["email"] == "giulia@trattoria.test"
        assert data["restaurant"]["name"] == "La Trattoria"

        me = client.get("/api/auth/me", headers=auth_headers(data["token"]))
        assert me.status_code == 200
        assert me.get_json()["data"]["role"] == "admin"

    def test_duplicate_email_rejected(self, client, tenant_a):
        response = client.post("/api/auth/register", json={
            "restaurant_name": "Copycat",
            "name": "Someone",
            "email": "owner@casaroma.test",
            "password": PASSWORD,
        })
        assert response.status_code == 400

    def test_weak_password_rejected(self, client):
        response = client.post("/api/auth/register", json={
            "restaurant_name": "Weak",
            "name": "Someone",
            "email": "weak@weak.test",
            "password": "password",
        })
        assert response.status_code == 400

    def test_missing_fields(self, client):
        response = client.post("/api/auth/register", json={"name": "Only name"})
        assert response.status_code == 400

    @pytest.mark.parametrize("password", ["Short1!", "alllowercase1!", "ALLUPPER1!", "NoDigits!!", "NoSpecial12"])
    def test_password_strength_rules(self, password):
        with pytest.raises(PasswordValidationError):
            validate_password_strength(password)


class TestLoginAndSessions:

    def test_login_and_logout(self, client, tenant_a):
        token = login(client, "owner@casaroma.test")
        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 200

        assert client.post("/api/auth/logout", headers=auth_headers(token)).status_code == 200
        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 403

    def test_wrong_password(self, client, tenant_a):
        response = client.post("/api/auth/login", json={"email": "owner@casaroma.test", "password": "Wrong123!"})
        assert response.status_code == 401
        assert response.get_json()["message"] == "Invalid credentials"

    def test_unknown_email_looks_the_same(self, client, tenant_a):
        response = client.post("/api/auth/login", json={"email": "ghost@nowhere.test", "password": PASSWORD})
        assert response.status_code == 401
        assert response.get_json()["message"] == "Invalid credentials"

    def test_renew_rotates_token(self, client, admin_token):
        response = client.post("/api/auth/renew", headers=auth_headers(admin_token))
        assert response.status_code == 200
        new_token = response.get_json()["data"]["token"]
        assert new_token != admin_token
        assert validate_session(new_token) is not None

    def test_revoked_session_is_invalid(self, admin_token):
        assert validate_session(admin_token) is not None
        assert revoke_session(admin_token)
        assert validate_session(admin_token) is None


class TestAccessGates:

    def test_missing_token_is_401(self, client):
        response = client.get("/api/inventory/ingredients")
        assert response.status_code == 401
        assert response.get_json()["message"] == "Access token required"

    def test_bad_token_is_403(self, client):
        response = client.get("/api/inventory/ingredients", headers=auth_headers("not-a-token"))
        assert response.status_code == 403

    def test_waiter_can_read(self, client, waiter_token):
        assert client.get("/api/inventory/ingredients", headers=auth_headers(waiter_token)).status_code == 200

    def test_waiter_cannot_write_catalog(self, client, waiter_token):
        response = client.post(
            "/api/inventory/ingredients",
            json={"name": "salt", "unit": "kg"},
            headers=auth_headers(waiter_token),
        )
        assert response.status_code == 403
        assert response.get_json()["message"] == "Insufficient permissions"

    def test_waiter_cannot_adjust_stock(self, client, admin_token, waiter_token):
        ingredient = create_ingredient(client, admin_token)
        response = client.patch(
            f"/api/inventory/ingredients/{ingredient['id']}/stock",
            json={"quantity": 1, "operation": "add"},
            headers=auth_headers(waiter_token),
        )
        assert response.status_code == 403


class TestTenantIsolation:

    def test_foreign_ingredient_is_not_found(self, client, admin_token, other_admin_token):
        ingredient = create_ingredient(client, admin_token)
        response = client.get(
            f"/api/inventory/ingredients/{ingredient['id']}", headers=auth_headers(other_admin_token),
        )
        assert response.status_code == 404

    def test_foreign_ingredient_cannot_be_updated(self, client, admin_token, other_admin_token):
        ingredient = create_ingredient(client, admin_token)
        response = client.put(
            f"/api/inventory/ingredients/{ingredient['id']}",
            json={"unit_cost": 99},
            headers=auth_headers(other_admin_token),
        )
        assert response.status_code == 404
        mine = client.get(
            f"/api/inventory/ingredients/{ingredient['id']}", headers=auth_headers(admin_token),
        ).get_json()["data"]
        assert mine["unit_cost"] == 1.0

    def test_lists_only_show_own_rows(self, client, admin_token, other_admin_token):
        create_ingredient(client, admin_token, name="basil")
        create_ingredient(client, other_admin_token, name="cumin")
        response = client.get("/api/inventory/ingredients", headers=auth_headers(other_admin_token))
        names = [i["name"] for i in response.get_json()["data"]["ingredients"]]
        assert names == ["CUMIN"]

    def test_restaurant_id_in_payload_is_rejected(self, client, admin_token, tenant_b):
        restaurant_b, _ = tenant_b
        response = client.post(
            "/api/inventory/ingredients",
            json={"name": "smuggled", "unit": "kg", "restaurant_id": restaurant_b.id},
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 400

    def test_archive_hides_from_default_list(self, client, admin_token):
        ingredient = create_ingredient(client, admin_token)
        response = client.delete(
            f"/api/inventory/ingredients/{ingredient['id']}", headers=auth_headers(admin_token),
        )
        assert response.status_code == 200
        assert response.get_json()["data"]["record_status"] == "archived"

        listed = client.get("/api/inventory/ingredients", headers=auth_headers(admin_token)).get_json()["data"]
        assert listed["ingredients"] == []
        assert listed["pagination"]["total"] == 0

    def test_pagination(self, client, admin_token):
        for name in ("anise", "basil", "chive"):
            create_ingredient(client, admin_token, name=name)
        response = client.get("/api/inventory/ingredients?page=2&limit=2", headers=auth_headers(admin_token))
        data = response.get_json()["data"]
        assert [i["name"] for i in data["ingredients"]] == ["CHIVE"]
        assert data["pagination"] == {"page": 2, "limit": 2, "total": 3, "pages": 2}

# Overview: Pytest coverage for client records and production areas.

from conftest import auth_headers


def _client_record(client, token, **overrides):
    payload = {"name": "Lucia Perez", "phone": "555-0101", "email": "lucia@example.test"}
    payload.update(overrides)
    response = client.post("/api/clients", json=payload, headers=auth_headers(token))
    assert response.status_code == 201, response.get_json()
    return response.get_json()["data"]


def _area(client, token, name="grill", **extra):
    payload = {"name": name}
    payload.update(extra)
    response = client.post("/api/production-areas", json=payload, headers=auth_headers(token))
    assert response.status_code == 201, response.get_json()
    return response.get_json()["data"]


class TestClients:

    def test_create_get_update(self, client, admin_token):
        record = _client_record(client, admin_token)
        assert record["name"] == "Lucia Perez"
        assert record["record_status"] == "active"

        response = client.put(
            f"/api/clients/{record['id']}",
            json={"address": "Calle Mayor 1"},
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 200
        assert response.get_json()["data"]["address"] == "Calle Mayor 1"

        fetched = client.get(f"/api/clients/{record['id']}", headers=auth_headers(admin_token))
        assert fetched.get_json()["data"]["phone"] == "555-0101"

    def test_name_required(self, client, admin_token):
        response = client.post("/api/clients", json={"phone": "555"}, headers=auth_headers(admin_token))
        assert response.status_code == 400

    def test_unknown_field_rejected(self, client, admin_token):
        response = client.post(
            "/api/clients", json={"name": "Bob", "vip": True}, headers=auth_headers(admin_token),
        )
        assert response.status_code == 400

    def test_search_and_archive(self, client, admin_token):
        lucia = _client_record(client, admin_token)
        _client_record(client, admin_token, name="Marco Rossi")

        response = client.get("/api/clients?search=marco", headers=auth_headers(admin_token))
        assert [c["name"] for c in response.get_json()["data"]["clients"]] == ["Marco Rossi"]

        response = client.delete(f"/api/clients/{lucia['id']}", headers=auth_headers(admin_token))
        assert response.get_json()["data"]["record_status"] == "archived"

        listed = client.get("/api/clients", headers=auth_headers(admin_token)).get_json()["data"]
        assert [c["name"] for c in listed["clients"]] == ["Marco Rossi"]
        listed = client.get(
            "/api/clients?include_archived=true", headers=auth_headers(admin_token),
        ).get_json()["data"]
        assert len(listed["clients"]) == 2

    def test_waiter_reads_but_cannot_write(self, client, admin_token, waiter_token):
        record = _client_record(client, admin_token)
        assert client.get("/api/clients", headers=auth_headers(waiter_token)).status_code == 200
        response = client.put(
            f"/api/clients/{record['id']}", json={"notes": "x"}, headers=auth_headers(waiter_token),
        )
        assert response.status_code == 403

    def test_clients_are_tenant_scoped(self, client, admin_token, other_admin_token):
        record = _client_record(client, admin_token)
        response = client.get(f"/api/clients/{record['id']}", headers=auth_headers(other_admin_token))
        assert response.status_code == 404


class TestProductionAreas:

    def test_create_uppercases_name(self, client, admin_token):
        area = _area(client, admin_token, description="Charcoal grill")
        assert area["name"] == "GRILL"
        assert area["description"] == "Charcoal grill"

    def test_duplicate_name_rejected(self, client, admin_token):
        _area(client, admin_token)
        response = client.post(
            "/api/production-areas", json={"name": "Grill"}, headers=auth_headers(admin_token),
        )
        assert response.status_code == 400

    def test_same_name_in_other_restaurant(self, client, admin_token, other_admin_token):
        _area(client, admin_token)
        assert _area(client, other_admin_token)["name"] == "GRILL"

    def test_update_and_archive(self, client, admin_token):
        area = _area(client, admin_token)
        response = client.put(
            f"/api/production-areas/{area['id']}",
            json={"name": "bar"},
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 200
        assert response.get_json()["data"]["name"] == "BAR"

        response = client.delete(f"/api/production-areas/{area['id']}", headers=auth_headers(admin_token))
        assert response.status_code == 200
        listed = client.get("/api/production-areas", headers=auth_headers(admin_token)).get_json()["data"]
        assert listed["production_areas"] == []

    def test_foreign_area_is_not_found(self, client, admin_token, other_admin_token):
        area = _area(client, admin_token)
        response = client.put(
            f"/api/production-areas/{area['id']}",
            json={"description": "taken"},
            headers=auth_headers(other_admin_token),
        )
        assert response.status_code == 404

# Overview: Pytest coverage for the order lifecycle and the dining table status it drives.

"""
Order and table tests

LIFECYCLE: an order occupies its table on creation; completing it leaves
the table in cleaning, cancelling makes it available. Completed and
cancelled are terminal.
"""

import json
import re

from comanda.extensions import db
from comanda.models import DocumentSequence
from comanda.realtime import hub

from conftest import auth_headers


ORDER_NUMBER = re.compile(r"^ORD-\d{8}-\d{3}$")


class RecordingSocket:
    def __init__(self):
        self.sent = []

    def send(self, message):
        self.sent.append(json.loads(message))


def _table(client, token, number=1, **extra):
    payload = {"number": number, "capacity": 4}
    payload.update(extra)
    response = client.post("/api/tables", json=payload, headers=auth_headers(token))
    assert response.status_code == 201, response.get_json()
    return response.get_json()["data"]


def _product(client, token, name="burger", base_price=10):
    response = client.post(
        "/api/products",
        json={"name": name, "base_price": base_price, "margin_percentage": 0},
        headers=auth_headers(token),
    )
    assert response.status_code == 201, response.get_json()
    return response.get_json()["data"]


def _order(client, token, product_id, table_id=None, quantity=2, **extra):
    payload = {"lines": [{"product_id": product_id, "quantity": quantity}]}
    if table_id is not None:
        payload["table_id"] = table_id
    payload.update(extra)
    return client.post("/api/orders", json=payload, headers=auth_headers(token))


def _get_table(client, token, table_id):
    return client.get(f"/api/tables/{table_id}", headers=auth_headers(token)).get_json()["data"]


class TestTables:

    def test_defaults(self, client, admin_token):
        table = _table(client, admin_token)
        assert table["status"] == "available"
        assert table["location"] == "interior"

    def test_number_must_be_positive(self, client, admin_token):
        response = client.post("/api/tables", json={"number": 0}, headers=auth_headers(admin_token))
        assert response.status_code == 400

    def test_duplicate_number_rejected(self, client, admin_token):
        _table(client, admin_token, number=5)
        response = client.post("/api/tables", json={"number": 5}, headers=auth_headers(admin_token))
        assert response.status_code == 400

    def test_unknown_location_rejected(self, client, admin_token):
        response = client.post(
            "/api/tables", json={"number": 2, "location": "roof"}, headers=auth_headers(admin_token),
        )
        assert response.status_code == 400

    def test_status_summary(self, client, admin_token):
        first = _table(client, admin_token, number=1)
        _table(client, admin_token, number=2)
        client.patch(
            f"/api/tables/{first['id']}/status", json={"status": "reserved"}, headers=auth_headers(admin_token),
        )
        response = client.get("/api/tables/status", headers=auth_headers(admin_token))
        summary = response.get_json()["data"]
        assert summary["total"] == 2
        assert summary["reserved"] == 1
        assert summary["available"] == 1
        assert summary["occupancy_rate"] == 0.0


class TestOrderLifecycle:

    def test_create_occupies_table(self, client, admin_token):
        table = _table(client, admin_token)
        product = _product(client, admin_token)
        response = _order(client, admin_token, product["id"], table["id"])
        assert response.status_code == 201, response.get_json()
        order = response.get_json()["data"]
        assert ORDER_NUMBER.match(order["number"])
        assert order["status"] == "active"
        assert order["subtotal"] == 20.0
        assert order["total"] == 20.0

        table = _get_table(client, admin_token, table["id"])
        assert table["status"] == "occupied"
        assert table["current_order_id"] == order["id"]

    def test_explicit_tax(self, client, admin_token):
        product = _product(client, admin_token)
        order = _order(client, admin_token, product["id"], tax_amount=2.5).get_json()["data"]
        assert order["tax_amount"] == 2.5
        assert order["total"] == 22.5

    def test_occupied_table_rejects_second_order(self, client, admin_token):
        table = _table(client, admin_token)
        product = _product(client, admin_token)
        _order(client, admin_token, product["id"], table["id"])
        response = _order(client, admin_token, product["id"], table["id"])
        assert response.status_code == 400

    def test_table_with_active_order_cannot_be_reserved(self, client, admin_token):
        table = _table(client, admin_token)
        product = _product(client, admin_token)
        order = _order(client, admin_token, product["id"], table["id"]).get_json()["data"]

        patched = client.patch(
            f"/api/tables/{table['id']}/status", json={"status": "reserved"}, headers=auth_headers(admin_token),
        )
        put = client.put(
            f"/api/tables/{table['id']}", json={"status": "reserved"}, headers=auth_headers(admin_token),
        )
        assert patched.status_code == 400
        assert put.status_code == 400
        assert _order(client, admin_token, product["id"], table["id"]).status_code == 400

        current = _get_table(client, admin_token, table["id"])
        assert current["status"] == "occupied"
        assert current["current_order_id"] == order["id"]

    def test_freed_table_keeps_its_new_order(self, client, admin_token):
        table = _table(client, admin_token)
        product = _product(client, admin_token)
        first = _order(client, admin_token, product["id"], table["id"]).get_json()["data"]
        client.patch(
            f"/api/tables/{table['id']}/status", json={"status": "available"}, headers=auth_headers(admin_token),
        )
        second = _order(client, admin_token, product["id"], table["id"])
        assert second.status_code == 201
        second = second.get_json()["data"]

        client.post(f"/api/orders/{first['id']}/complete", headers=auth_headers(admin_token))
        current = _get_table(client, admin_token, table["id"])
        assert current["status"] == "occupied"
        assert current["current_order_id"] == second["id"]

    def test_duplicate_order_number_is_rejected(self, client, admin_token, tenant_a):
        restaurant, _ = tenant_a
        product = _product(client, admin_token)
        _order(client, admin_token, product["id"])

        sequence = db.session.query(DocumentSequence).filter_by(
            restaurant_id=restaurant.id, document_type="ORDER",
        ).one()
        sequence.next_number = 1
        db.session.commit()

        response = _order(client, admin_token, product["id"])
        assert response.status_code == 400
        assert response.get_json()["message"].startswith("Duplicate order number")

    def test_complete_leaves_table_cleaning(self, client, admin_token):
        table = _table(client, admin_token)
        product = _product(client, admin_token)
        order = _order(client, admin_token, product["id"], table["id"]).get_json()["data"]

        response = client.post(f"/api/orders/{order['id']}/complete", headers=auth_headers(admin_token))
        assert response.status_code == 200
        assert response.get_json()["data"]["status"] == "completed"
        table = _get_table(client, admin_token, table["id"])
        assert table["status"] == "cleaning"
        assert table["current_order_id"] is None

    def test_cancel_frees_table(self, client, admin_token):
        table = _table(client, admin_token)
        product = _product(client, admin_token)
        order = _order(client, admin_token, product["id"], table["id"]).get_json()["data"]

        response = client.post(f"/api/orders/{order['id']}/cancel", headers=auth_headers(admin_token))
        assert response.status_code == 200
        assert _get_table(client, admin_token, table["id"])["status"] == "available"

    def test_terminal_states_are_final(self, client, admin_token):
        product = _product(client, admin_token)
        order = _order(client, admin_token, product["id"]).get_json()["data"]
        client.post(f"/api/orders/{order['id']}/complete", headers=auth_headers(admin_token))

        again = client.post(f"/api/orders/{order['id']}/complete", headers=auth_headers(admin_token))
        cancel = client.post(f"/api/orders/{order['id']}/cancel", headers=auth_headers(admin_token))
        assert again.status_code == 400
        assert cancel.status_code == 400

    def test_line_status_update(self, client, waiter_token, admin_token):
        product = _product(client, admin_token)
        order = _order(client, admin_token, product["id"]).get_json()["data"]
        line_id = order["lines"][0]["id"]

        response = client.patch(
            f"/api/orders/{order['id']}/lines/{line_id}/status",
            json={"status": "ready"},
            headers=auth_headers(waiter_token),
        )
        assert response.status_code == 200
        assert response.get_json()["data"]["lines"][0]["status"] == "ready"

        response = client.patch(
            f"/api/orders/{order['id']}/lines/{line_id}/status",
            json={"status": "burnt"},
            headers=auth_headers(waiter_token),
        )
        assert response.status_code == 400

    def test_waiter_cannot_cancel(self, client, waiter_token, admin_token):
        product = _product(client, admin_token)
        order = _order(client, admin_token, product["id"]).get_json()["data"]
        response = client.post(f"/api/orders/{order['id']}/cancel", headers=auth_headers(waiter_token))
        assert response.status_code == 403

    def test_quantity_must_be_whole(self, client, admin_token):
        product = _product(client, admin_token)
        response = _order(client, admin_token, product["id"], quantity=0)
        assert response.status_code == 400

    def test_active_orders_listing(self, client, admin_token):
        product = _product(client, admin_token)
        first = _order(client, admin_token, product["id"]).get_json()["data"]
        second = _order(client, admin_token, product["id"]).get_json()["data"]
        client.post(f"/api/orders/{first['id']}/complete", headers=auth_headers(admin_token))

        response = client.get("/api/orders/actives", headers=auth_headers(admin_token))
        ids = [o["id"] for o in response.get_json()["data"]["orders"]]
        assert ids == [second["id"]]


class TestOrderBroadcasts:

    def test_order_and_table_events_reach_the_room(self, client, admin_token, tenant_a):
        restaurant, _ = tenant_a
        socket = RecordingSocket()
        hub.join(restaurant.id, socket)

        table = _table(client, admin_token)
        product = _product(client, admin_token)
        _order(client, admin_token, product["id"], table["id"])

        events = [message["event"] for message in socket.sent]
        assert events == ["order-created", "table-updated"]
        assert socket.sent[1]["data"]["status"] == "occupied"

    def test_other_restaurants_hear_nothing(self, client, admin_token, tenant_b):
        restaurant_b, _ = tenant_b
        socket = RecordingSocket()
        hub.join(restaurant_b.id, socket)

        product = _product(client, admin_token)
        _order(client, admin_token, product["id"])
        assert socket.sent == []

# Overview: Pytest coverage for cash register open/transaction/close and its summary.

from conftest import auth_headers


def _open(client, token, amount=100):
    return client.post("/api/cash-register/open", json={"opening_amount": amount}, headers=auth_headers(token))


class TestCashRegister:

    def test_open_assigns_number(self, client, admin_token):
        response = _open(client, admin_token)
        assert response.status_code == 201, response.get_json()
        register = response.get_json()["data"]
        assert register["status"] == "active"
        assert register["register_number"].startswith("CAJA-")
        assert register["opening_amount"] == 100.0

    def test_one_active_register_per_day(self, client, admin_token):
        _open(client, admin_token)
        response = _open(client, admin_token, 50)
        assert response.status_code == 400
        assert response.get_json()["message"] == "An active cash register already exists for today"

    def test_other_restaurant_may_open_its_own(self, client, admin_token, other_admin_token):
        _open(client, admin_token)
        assert _open(client, other_admin_token).status_code == 201

    def test_close_computes_expected_and_difference(self, client, admin_token):
        register = _open(client, admin_token).get_json()["data"]
        for tx_type, amount in (("sale", 250), ("sale", 50), ("expense", 30)):
            response = client.post(
                f"/api/cash-register/{register['id']}/transaction",
                json={"type": tx_type, "amount": amount},
                headers=auth_headers(admin_token),
            )
            assert response.status_code == 201, response.get_json()

        response = client.post(
            f"/api/cash-register/{register['id']}/close",
            json={"closing_amount": 365},
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 200, response.get_json()
        closed = response.get_json()["data"]
        assert closed["status"] == "closed"
        assert closed["expected_amount"] == 370.0
        assert closed["difference"] == -5.0

    def test_close_requires_amount(self, client, admin_token):
        register = _open(client, admin_token).get_json()["data"]
        response = client.post(
            f"/api/cash-register/{register['id']}/close", json={}, headers=auth_headers(admin_token),
        )
        assert response.status_code == 400

    def test_closed_register_rejects_transactions(self, client, admin_token):
        register = _open(client, admin_token).get_json()["data"]
        client.post(
            f"/api/cash-register/{register['id']}/close",
            json={"closing_amount": 100},
            headers=auth_headers(admin_token),
        )
        response = client.post(
            f"/api/cash-register/{register['id']}/transaction",
            json={"type": "sale", "amount": 10},
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 400

    def test_reopen_after_close(self, client, admin_token):
        register = _open(client, admin_token).get_json()["data"]
        client.post(
            f"/api/cash-register/{register['id']}/close",
            json={"closing_amount": 100},
            headers=auth_headers(admin_token),
        )
        assert _open(client, admin_token).status_code == 201

    def test_transaction_amount_must_be_positive(self, client, admin_token):
        register = _open(client, admin_token).get_json()["data"]
        response = client.post(
            f"/api/cash-register/{register['id']}/transaction",
            json={"type": "expense", "amount": 0},
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 400

    def test_waiter_cannot_close(self, client, admin_token, waiter_token):
        register = _open(client, admin_token).get_json()["data"]
        response = client.post(
            f"/api/cash-register/{register['id']}/close",
            json={"closing_amount": 100},
            headers=auth_headers(waiter_token),
        )
        assert response.status_code == 403

    def test_summary(self, client, admin_token):
        register = _open(client, admin_token).get_json()["data"]
        client.post(
            f"/api/cash-register/{register['id']}/transaction",
            json={"type": "sale", "amount": 40},
            headers=auth_headers(admin_token),
        )
        client.post(
            f"/api/cash-register/{register['id']}/close",
            json={"closing_amount": 150},
            headers=auth_headers(admin_token),
        )
        _open(client, admin_token, 20)

        summary = client.get("/api/cash-register/summary", headers=auth_headers(admin_token)).get_json()["data"]
        assert summary["register_count"] == 2
        assert summary["active_count"] == 1
        assert summary["total_opening"] == 120.0
        assert summary["total_sales"] == 40.0
        assert summary["total_difference"] == 10.0

        history = client.get("/api/cash-register/history", headers=auth_headers(admin_token)).get_json()["data"]
        assert history["pagination"]["total"] == 2

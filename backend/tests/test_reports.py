# Overview: Pytest coverage for sales summaries, stock alerts and the reporting endpoints.

"""
Reporting tests

Every grouping partitions the same set of completed sales, so each
breakdown must add up to the summary totals.
"""

import pytest

from comanda.realtime import hub

from conftest import auth_headers


def _sell(client, token, recipe_id, quantity, **extra):
    payload = {"items": [{"item_type": "recipe", "item_id": recipe_id, "quantity": quantity}]}
    payload.update(extra)
    response = client.post("/api/sales", json=payload, headers=auth_headers(token))
    assert response.status_code == 201, response.get_json()
    return response.get_json()["data"]


@pytest.fixture
def sold_pizzas(client, admin_token, pizza_menu):
    pizza_id = pizza_menu["pizza"]["id"]
    _sell(client, admin_token, pizza_id, 1, payment_method="cash")
    _sell(client, admin_token, pizza_id, 2, payment_method="card", order_type="takeout")
    cancelled = _sell(client, admin_token, pizza_id, 1, payment_method="card")
    client.delete(f"/api/sales/{cancelled['id']}", headers=auth_headers(admin_token))
    return pizza_menu


def _total(rows):
    return round(sum(row["total_sales"] for row in rows), 2)


class TestSalesSummaries:

    def test_daily_summary_breakdowns_add_up(self, client, admin_token, sold_pizzas):
        response = client.get("/api/sales/daily", headers=auth_headers(admin_token))
        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["summary"]["sale_count"] == 2
        assert data["summary"]["total_sales"] == 30.0
        assert data["summary"]["average_ticket"] == 15.0
        assert _total(data["by_payment_method"]) == data["summary"]["total_sales"]
        assert _total(data["by_hour"]) == data["summary"]["total_sales"]
        assert data["top_items"][0]["item_name"] == "PIZZA"
        assert data["top_items"][0]["quantity"] == 3.0

    def test_sales_report_grouping(self, client, admin_token, sold_pizzas):
        response = client.get("/api/sales/report?group_by=month", headers=auth_headers(admin_token))
        data = response.get_json()["data"]
        assert data["group_by"] == "month"
        assert _total(data["report"]) == data["summary"]["total_sales"]
        assert _total(data["payment_breakdown"]) == data["summary"]["total_sales"]
        assert _total(data["order_type_breakdown"]) == data["summary"]["total_sales"]
        methods = {row["payment_method"]: row["total_sales"] for row in data["payment_breakdown"]}
        assert methods == {"card": 20.0, "cash": 10.0}

    def test_unknown_grouping_rejected(self, client, admin_token):
        response = client.get("/api/sales/report?group_by=fortnight", headers=auth_headers(admin_token))
        assert response.status_code == 400

    def test_close_cash_register_summary(self, client, admin_token, sold_pizzas):
        response = client.get("/api/sales/close-cash-register", headers=auth_headers(admin_token))
        data = response.get_json()["data"]
        assert _total(data["by_payment_method"]) == data["summary"]["total_sales"] == 30.0


class TestStockAlerts:

    def test_low_stock_scan(self, client, admin_token, pizza_menu):
        _sell(client, admin_token, pizza_menu["pizza"]["id"], 5)
        response = client.get("/api/stock/alerts/low-stock", headers=auth_headers(admin_token))
        data = response.get_json()["data"]
        assert data["summary"]["out_of_stock"] == 1
        assert data["summary"]["critical_items"] == ["FLOUR"]
        assert data["alerts"][0]["shortage"] == 2.0

    def test_alert_history_lists_sales_with_alerts(self, client, admin_token, pizza_menu):
        _sell(client, admin_token, pizza_menu["pizza"]["id"], 1)
        alerted = _sell(client, admin_token, pizza_menu["pizza"]["id"], 4)
        response = client.get(
            "/api/stock/alerts/history?end_date=2999-12-31",
            headers=auth_headers(admin_token),
        )
        history = response.get_json()["data"]["history"]
        assert [h["sale_id"] for h in history] == [alerted["id"]]

    def test_manual_alert_is_broadcast(self, client, admin_token, tenant_a, pizza_menu):
        restaurant, _ = tenant_a
        sent = []

        class Socket:
            def send(self, message):
                sent.append(message)

        hub.join(restaurant.id, Socket())
        response = client.post(
            "/api/stock/alerts",
            json={"ingredient_id": pizza_menu["flour"]["id"], "message": "Check the flour delivery"},
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 201
        assert response.get_json()["data"]["alert_type"] == "MANUAL"
        assert len(sent) == 1
        assert '"stock-alert"' in sent[0]

    def test_stock_analysis(self, client, admin_token, pizza_menu):
        response = client.get("/api/stock/analysis", headers=auth_headers(admin_token))
        data = response.get_json()["data"]
        assert data["total_ingredients"] == 1
        assert data["in_stock"] == 1
        assert data["total_value"] == 10.0


class TestReports:

    def test_inventory_valuation(self, client, admin_token, pizza_menu):
        response = client.get("/api/reports/inventory-valuation", headers=auth_headers(admin_token))
        data = response.get_json()["data"]
        assert data["total_value"] == 10.0
        assert data["rows"][0]["value"] == 10.0

    def test_financial_summary(self, client, admin_token, sold_pizzas):
        response = client.get("/api/reports/financial-summary", headers=auth_headers(admin_token))
        data = response.get_json()["data"]
        assert data["revenue"]["total"] == 30.0
        assert data["revenue"]["count"] == 2
        assert _total(data["sales_breakdown"]["by_order_type"]) == 30.0

    def test_profitability_uses_recipe_cost(self, client, admin_token, sold_pizzas):
        response = client.get("/api/reports/profitability", headers=auth_headers(admin_token))
        data = response.get_json()["data"]
        assert data["revenue"]["total"] == 30.0
        assert data["costs"]["cogs"] == 6.0
        assert data["profitability"]["gross_profit"] == 24.0
        assert data["profitability"]["net_profit"] == 24.0

    def test_ingredient_usage_nets_out_cancellations(self, client, admin_token, sold_pizzas):
        response = client.get("/api/reports/ingredient-usage", headers=auth_headers(admin_token))
        usage = response.get_json()["data"]["usage"]
        assert len(usage) == 1
        assert usage[0]["ingredient_name"] == "FLOUR"
        assert usage[0]["total_quantity_used"] == 6.0
        assert usage[0]["total_cost"] == 6.0

    def test_cost_analysis(self, client, admin_token, pizza_menu):
        response = client.get("/api/reports/cost-analysis?type=recipes", headers=auth_headers(admin_token))
        data = response.get_json()["data"]
        assert data["type"] == "recipes"
        assert data["summary"]["total_items"] == 1
        assert data["summary"]["average_cost"] == 2.0

    def test_sales_performance(self, client, admin_token, sold_pizzas):
        response = client.get("/api/reports/sales-performance", headers=auth_headers(admin_token))
        data = response.get_json()["data"]
        assert _total(data["performance"]) == data["summary"]["total_sales"]
        assert data["top_items"][0]["revenue"] == 30.0

    def test_dashboard(self, client, admin_token, sold_pizzas):
        response = client.get("/api/reports/dashboard", headers=auth_headers(admin_token))
        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["sales"]["today"]["revenue"] == 30.0
        assert data["sales"]["today"]["count"] == 2
        assert data["inventory"]["total"] == 1
        assert data["recipes"]["total"] == 1
        assert data["recipes"]["average_cost"] == 2.0
        assert data["cash_register"] is None

    def test_reports_are_tenant_scoped(self, client, other_admin_token, sold_pizzas):
        response = client.get("/api/sales/daily", headers=auth_headers(other_admin_token))
        assert response.get_json()["data"]["summary"]["sale_count"] == 0

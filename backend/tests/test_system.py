# Overview: Pytest coverage for health/version endpoints, error envelopes and CLI commands.

from comanda.cli import create_restaurant_cli, list_restaurants
from comanda.extensions import db
from comanda.models import Restaurant

from conftest import PASSWORD


class TestHealth:

    def test_health_is_public_and_healthy(self, client):
        response = client.get("/api/system/health")
        assert response.status_code == 200
        data = response.get_json()
        assert data["status"] == "healthy"
        assert data["checks"]["database"]["status"] == "healthy"
        assert data["checks"]["session_service"]["status"] == "healthy"

    def test_version(self, client):
        response = client.get("/api/system/version")
        assert response.status_code == 200
        data = response.get_json()
        assert data["api_version"] == "1.0.0"
        assert data["environment"] == "testing"


class TestErrorEnvelope:

    def test_unknown_route_is_json_404(self, client):
        response = client.get("/api/nope")
        assert response.status_code == 404
        assert response.get_json()["success"] is False

    def test_cors_header_for_allowed_origin(self, client):
        response = client.get("/api/system/version", headers={"Origin": "http://localhost:5173"})
        assert response.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"

    def test_cors_header_absent_for_other_origin(self, client):
        response = client.get("/api/system/version", headers={"Origin": "http://evil.test"})
        assert "Access-Control-Allow-Origin" not in response.headers


class TestCli:

    def test_create_and_list_restaurants(self, app):
        runner = app.test_cli_runner()
        result = runner.invoke(create_restaurant_cli, [
            "--name", "Casa Cli",
            "--email", "cli@casa.test",
            "--admin-name", "Cli Owner",
            "--password", PASSWORD,
        ])
        assert "PASS Created restaurant: Casa Cli" in result.output
        assert db.session.query(Restaurant).filter_by(name="Casa Cli").count() == 1

        result = runner.invoke(list_restaurants)
        assert "Casa Cli" in result.output

    def test_weak_password_reports_failure(self, app):
        runner = app.test_cli_runner()
        result = runner.invoke(create_restaurant_cli, [
            "--name", "Weak",
            "--email", "weak@casa.test",
            "--admin-name", "Weak Owner",
            "--password", "weak",
        ])
        assert "FAIL" in result.output
        assert db.session.query(Restaurant).count() == 0

"""Tests for the health check endpoint."""

from unittest.mock import patch


class TestHealthEndpoint:
    def test_healthy(self, client, db_session):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.get_json()
        assert data["status"] == "healthy"
        assert data["database"] == "connected"
        assert "version" in data

    def test_degraded_when_database_down(self, client):
        with patch(
            "orgchart.routes.health.check_database_health",
            return_value=(False, "OperationalError: connection refused"),
        ):
            data = client.get("/health").get_json()

        assert data["status"] == "degraded"
        assert data["database"] == "disconnected"
        assert data["database_error"].startswith("OperationalError")

    def test_unknown_route_is_json_404(self, client):
        response = client.get("/no-such-page")

        assert response.status_code == 404
        assert response.get_json()["code"] == "not_found"

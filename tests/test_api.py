"""
Tests for the JSON control API.
"""

import pytest
from fastapi.testclient import TestClient

from woo_pnl.auth import hash_password, verify_password
from woo_pnl.config import settings
from woo_pnl.main import app
from woo_pnl.routes import auth as auth_routes

PASSWORD = "correct horse battery staple"


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "database_path", str(tmp_path / "api.db"))
    monkeypatch.setattr(settings, "admin_password_hash", hash_password(PASSWORD))
    monkeypatch.setattr(settings, "woo_url", "")
    auth_routes.failed_attempts.clear()

    with TestClient(app) as test_client:
        yield test_client


def login(client: TestClient) -> None:
    response = client.post("/api/auth/login", json={"password": PASSWORD})
    assert response.status_code == 200


class TestPassword:
    """Tests for password hashing."""

    def test_hash_verifies(self):
        hashed = hash_password("secret")

        assert verify_password("secret", hashed)
        assert not verify_password("wrong", hashed)

    def test_empty_or_malformed_hash_never_matches(self):
        assert not verify_password("secret", "")
        assert not verify_password("secret", "not-a-bcrypt-hash")


class TestAuthRoutes:
    """Tests for login and session protection."""

    def test_health_needs_no_session(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_protected_route_requires_session(self, client):
        assert client.get("/api/sync/status").status_code == 401

    def test_wrong_password_is_rejected(self, client):
        response = client.post("/api/auth/login", json={"password": "nope"})

        assert response.status_code == 401

    def test_login_then_logout(self, client):
        login(client)
        assert client.get("/api/sync/status").status_code == 200

        client.post("/api/auth/logout")
        client.cookies.clear()
        assert client.get("/api/sync/status").status_code == 401


class TestControlRoutes:
    """Tests for sync, settings and report routes."""

    def test_status_reports_idle_orchestrator(self, client):
        login(client)

        status = client.get("/api/sync/status").json()

        assert status["state"] == "idle"
        assert status["running"] is False
        assert status["last_sync"] == {"products": None, "orders": None, "inventory": None}

    def test_sync_without_credentials_is_rejected(self, client):
        login(client)

        response = client.post("/api/sync")

        assert response.status_code == 400

    def test_overhead_costs_round_trip(self, client):
        login(client)
        costs = [{"name": "Packaging", "type": "per_order", "value": 1.5}]

        assert client.put("/api/settings/overhead-costs", json=costs).status_code == 200
        stored = client.get("/api/settings/overhead-costs").json()

        assert stored[0]["type"] == "per_order"
        assert stored[0]["value"] == 1.5

    def test_pnl_report_includes_expenses(self, client):
        login(client)
        client.put("/api/settings/expenses", json=[
            {"date": "2024-01-01T00:00:00Z", "category": "rent", "amount": 300, "period": "monthly"}
        ])

        response = client.get("/api/reports/pnl", params={"start": "2024-01-01", "end": "2024-01-10"})

        assert response.status_code == 200
        summary = response.json()["summary"]
        assert summary["total_expenses"] == 300
        assert summary["net_profit"] == -300
        assert summary["order_count"] == 0

    def test_pnl_report_rejects_reversed_range(self, client):
        login(client)

        response = client.get("/api/reports/pnl", params={"start": "2024-02-01", "end": "2024-01-01"})

        assert response.status_code == 400

"""Tests for the health endpoint."""

from unittest.mock import AsyncMock

from fastapi.testclient import TestClient

from feed_aggregator.api.dependencies import get_database
from feed_aggregator.config.settings import get_settings


def _mock_db(healthy: bool = True):
    db = AsyncMock()
    if healthy:
        db.health_check = AsyncMock(return_value=True)
    else:
        db.health_check = AsyncMock(side_effect=Exception("Connection refused"))
    return db


class TestHealth:
    """GET /health"""

    def test_healthy_without_optional_sinks(self, client, store, make_item, seed_feed):
        seed_feed(store, [make_item("twitter_1")])

        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["feed_size"] == 1
        assert data["components"]["database"]["status"] == "disabled"
        assert data["components"]["slack"]["status"] == "disabled"
        assert data["scheduler"]["started"] is False
        assert data["scheduler"]["cycle_running"] is False
        assert data["scheduler"]["interval_seconds"] == 600.0
        assert data["sources"] == {"twitter": False, "reddit": False, "github": False}

    def test_database_healthy(self, app):
        app.dependency_overrides[get_database] = lambda: _mock_db(True)

        data = TestClient(app).get("/health").json()

        assert data["components"]["database"]["status"] == "healthy"
        assert data["components"]["database"]["latency_ms"] is not None

    def test_database_failure_degrades(self, app):
        app.dependency_overrides[get_database] = lambda: _mock_db(False)

        data = TestClient(app).get("/health").json()

        assert data["status"] == "degraded"
        assert data["components"]["database"]["details"]["error"] == "Connection refused"

    def test_last_cycle_error_degrades(self, client, scheduler):
        scheduler.last_error = "PersistenceError: disk full"

        data = client.get("/health").json()

        assert data["status"] == "degraded"
        assert data["scheduler"]["last_error"] == "PersistenceError: disk full"

    def test_configured_sources_reported(self, client, monkeypatch):
        monkeypatch.setenv("APIFY_TOKEN", "apify")
        monkeypatch.setenv("SLACK_WEBHOOK_URL", "https://hooks.slack.com/services/T/B/X")
        get_settings.cache_clear()

        data = client.get("/health").json()

        assert data["sources"] == {"twitter": True, "reddit": True, "github": False}
        assert data["components"]["slack"]["status"] == "healthy"

    def test_request_id_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-42"})

        assert response.headers["X-Request-ID"] == "req-42"

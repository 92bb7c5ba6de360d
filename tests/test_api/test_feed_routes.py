"""Tests for the feed read and refresh endpoints."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

from fastapi.testclient import TestClient

from feed_aggregator.api.dependencies import get_scheduler
from feed_aggregator.config.settings import get_settings
from feed_aggregator.services.feed_service import CycleResult
from feed_aggregator.services.scheduler import FeedScheduler, TriggerResult, TriggerStatus


def _stub_scheduler(result: TriggerResult) -> MagicMock:
    scheduler = MagicMock()
    scheduler.trigger = MagicMock(return_value=result)
    return scheduler


class TestGetFeed:
    """GET /api/feed"""

    def test_empty_feed(self, client):
        response = client.get("/api/feed")

        assert response.status_code == 200
        assert response.json() == []

    def test_returns_feed_in_stored_order(self, client, store, make_item, seed_feed):
        seed_feed(store, [make_item("reddit_2", minutes=2), make_item("twitter_1", minutes=1)])

        data = client.get("/api/feed").json()

        assert [i["id"] for i in data] == ["reddit_2", "twitter_1"]
        assert set(data[0]) >= {"id", "source", "author", "content", "url", "timestamp"}

    def test_source_filter_and_limit(self, client, store, make_item, seed_feed):
        seed_feed(
            store,
            [
                make_item("twitter_3", minutes=3),
                make_item("reddit_2", minutes=2),
                make_item("twitter_1", minutes=1),
            ],
        )

        by_source = client.get("/api/feed", params={"source": "Twitter"}).json()
        limited = client.get("/api/feed", params={"limit": 1}).json()

        assert [i["id"] for i in by_source] == ["twitter_3", "twitter_1"]
        assert [i["id"] for i in limited] == ["twitter_3"]

    def test_invalid_limit(self, client):
        assert client.get("/api/feed", params={"limit": 0}).status_code == 422


class TestRefresh:
    """POST /api/refresh"""

    def test_accepted(self, app):
        app.dependency_overrides[get_scheduler] = lambda: _stub_scheduler(
            TriggerResult(TriggerStatus.ACCEPTED)
        )

        response = TestClient(app).post("/api/refresh")

        assert response.status_code == 202
        assert response.json()["status"] == "accepted"

    def test_throttled(self, app):
        app.dependency_overrides[get_scheduler] = lambda: _stub_scheduler(
            TriggerResult(TriggerStatus.THROTTLED, retry_after_seconds=24.2)
        )

        response = TestClient(app).post("/api/refresh")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "25"
        body = response.json()
        assert body["error"] == "throttled"
        assert body["retry_after_seconds"] == 25

    def test_busy(self, app):
        app.dependency_overrides[get_scheduler] = lambda: _stub_scheduler(
            TriggerResult(TriggerStatus.BUSY)
        )

        response = TestClient(app).post("/api/refresh")

        assert response.status_code == 429
        assert response.json()["error"] == "busy"
        assert response.json()["retry_after_seconds"] == 0
        assert response.headers["Retry-After"] == "1"

    def test_wait_returns_cycle_summary(self, app, metrics):
        async def run_cycle():
            return CycleResult(
                cycle_id="abc123def456",
                started_at=datetime(2026, 3, 1, tzinfo=timezone.utc),
                fetched={"reddit": 2},
                admitted_ids=["reddit_1"],
                feed_size=1,
            )

        scheduler = FeedScheduler(run_cycle, metrics=metrics)
        app.dependency_overrides[get_scheduler] = lambda: scheduler

        response = TestClient(app).post("/api/refresh", params={"wait": "true"})

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "completed"
        assert body["cycle"]["admitted_ids"] == ["reddit_1"]
        assert body["cycle"]["fetched"] == {"reddit": 2}

    def test_wait_reports_failed_cycle(self, app, metrics):
        async def run_cycle():
            raise RuntimeError("disk full")

        scheduler = FeedScheduler(run_cycle, metrics=metrics)
        app.dependency_overrides[get_scheduler] = lambda: scheduler

        response = TestClient(app).post("/api/refresh", params={"wait": "true"})

        assert response.status_code == 500
        assert response.json()["detail"] == "Refresh failed: RuntimeError: disk full"
        assert not scheduler.is_running

    def test_requires_key_when_configured(self, app, monkeypatch):
        monkeypatch.setenv("API_KEYS", "secret-1,secret-2")
        get_settings.cache_clear()
        app.dependency_overrides[get_scheduler] = lambda: _stub_scheduler(
            TriggerResult(TriggerStatus.ACCEPTED)
        )
        client = TestClient(app)

        missing = client.post("/api/refresh")
        wrong = client.post("/api/refresh", headers={"X-API-KEY": "nope"})
        right = client.post("/api/refresh", headers={"X-API-KEY": "secret-2"})

        assert missing.status_code == 401
        assert wrong.status_code == 401
        assert right.status_code == 202

    def test_feed_read_is_public(self, client, monkeypatch):
        monkeypatch.setenv("API_KEYS", "secret")
        get_settings.cache_clear()

        assert client.get("/api/feed").status_code == 200

"""Pytest fixtures for feed-aggregator tests."""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from prometheus_client import CollectorRegistry

from feed_aggregator.config.settings import get_settings
from feed_aggregator.ingestion.schemas import CONVERSATION_ID_KEY, NormalizedItem
from feed_aggregator.observability.metrics import MetricsCollector

BASE_TIME = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

ISOLATED_ENV_VARS = (
    "APIFY_TOKEN",
    "GITHUB_TOKEN",
    "GITHUB_REPO",
    "DATABASE_URL",
    "SLACK_WEBHOOK_URL",
    "SLACK_CHANNEL",
    "API_KEYS",
    "TEAM_TWITTER_USERNAMES",
    "THREADED_SOURCES",
    "TWITTER_SEARCH_TERMS",
    "REDDIT_URLS",
    "SOURCES_CONFIG_PATH",
    "ENVIRONMENT",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Keep tests independent of the host environment and any .env file."""
    for var in ISOLATED_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def metrics() -> MetricsCollector:
    """Metrics collector on a private registry."""
    return MetricsCollector(registry=CollectorRegistry())


@pytest.fixture
def make_item() -> Callable[..., NormalizedItem]:
    """Factory for feed items; `minutes` is the offset from BASE_TIME."""

    def _make(
        item_id: str,
        minutes: int = 0,
        source: str | None = None,
        author: str = "someone",
        conversation_id: str | None = None,
        **metadata: Any,
    ) -> NormalizedItem:
        if conversation_id is not None:
            metadata[CONVERSATION_ID_KEY] = conversation_id
        return NormalizedItem(
            id=item_id,
            source=source or item_id.split("_", 1)[0],
            author=author,
            content=f"content of {item_id}",
            url=f"https://example.com/{item_id}",
            timestamp=BASE_TIME + timedelta(minutes=minutes),
            metadata=metadata,
        )

    return _make

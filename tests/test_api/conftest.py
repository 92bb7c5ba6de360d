"""Shared fixtures for API tests."""

import json
from collections.abc import Sequence
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from feed_aggregator.api.app import create_app
from feed_aggregator.api.dependencies import (
    get_database,
    get_dispatcher,
    get_feed_store,
    get_scheduler,
)
from feed_aggregator.ingestion.schemas import NormalizedItem
from feed_aggregator.services.scheduler import FeedScheduler
from feed_aggregator.storage.feed_store import FeedStore


def _write_feed(store: FeedStore, items: Sequence[NormalizedItem]) -> None:
    """Write a feed file directly, newest first as given."""
    store.feed_path.parent.mkdir(parents=True, exist_ok=True)
    store.feed_path.write_text(
        json.dumps([item.to_feed_dict() for item in items]),
        encoding="utf-8",
    )


@pytest.fixture
def store(tmp_path):
    return FeedStore(tmp_path / "feed.json", tmp_path / "seen.json")


@pytest.fixture
def mock_dispatcher():
    """Dispatcher with one enabled channel that always succeeds."""
    dispatcher = MagicMock()
    dispatcher.enabled = True
    dispatcher.notify = AsyncMock(return_value=[("slack", True)])
    return dispatcher


@pytest.fixture
def scheduler(metrics):
    """Real scheduler around a no-op cycle; never started."""

    async def run_cycle():
        return None

    return FeedScheduler(run_cycle, metrics=metrics)


@pytest.fixture
def app(store, scheduler, mock_dispatcher):
    """App with services overridden; the lifespan never runs."""
    application = create_app(run_scheduler=False)
    application.dependency_overrides[get_feed_store] = lambda: store
    application.dependency_overrides[get_scheduler] = lambda: scheduler
    application.dependency_overrides[get_dispatcher] = lambda: mock_dispatcher
    application.dependency_overrides[get_database] = lambda: None
    return application


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def seed_feed():
    """Helper writing a feed file for a store."""
    return _write_feed

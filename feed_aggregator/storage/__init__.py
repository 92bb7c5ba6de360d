"""Storage layer - JSON feed store and the optional PostgreSQL mirror."""

from feed_aggregator.storage.database import Database
from feed_aggregator.storage.feed_store import FeedStore, PersistenceError
from feed_aggregator.storage.repository import PostRepository, UpsertResult

__all__ = [
    "Database",
    "FeedStore",
    "PersistenceError",
    "PostRepository",
    "UpsertResult",
]

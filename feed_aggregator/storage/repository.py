"""
Post repository for the relational mirror.

Mirrors feed items into a PostgreSQL ``posts`` table so other tools can
query them. The JSON feed stays the source of truth; the mirror is a
best-effort sink and its write path reports errors instead of raising.
"""

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import asyncpg

from feed_aggregator.ingestion.schemas import NormalizedItem
from feed_aggregator.storage.database import Database

logger = logging.getLogger(__name__)


@dataclass
class UpsertResult:
    """Outcome of a mirror write."""

    success: bool
    count: int = 0
    error: str | None = None


def dedupe_first(items: Sequence[NormalizedItem]) -> list[NormalizedItem]:
    """Keep the first occurrence of each id, preserving order."""
    seen: set[str] = set()
    unique: list[NormalizedItem] = []
    for item in items:
        if item.id in seen:
            continue
        seen.add(item.id)
        unique.append(item)
    return unique


class PostRepository:
    """
    Repository for mirrored feed items.

    Tables:
        - posts: one row per item id
    """

    def __init__(self, database: Database):
        """
        Initialize repository.

        Args:
            database: Connected Database instance
        """
        self._db = database

    async def create_tables(self) -> None:
        """Create the posts table and its indexes if they don't exist."""
        create_sql = """
        CREATE TABLE IF NOT EXISTS posts (
            id TEXT PRIMARY KEY,
            source TEXT NOT NULL,
            author TEXT NOT NULL,
            content TEXT NOT NULL DEFAULT '',
            url TEXT,
            timestamp TIMESTAMPTZ NOT NULL,
            category TEXT,
            metadata JSONB NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );

        CREATE INDEX IF NOT EXISTS idx_posts_timestamp
            ON posts(timestamp DESC);
        CREATE INDEX IF NOT EXISTS idx_posts_source
            ON posts(source);
        CREATE INDEX IF NOT EXISTS idx_posts_category
            ON posts(category);
        """

        async with self._db.acquire() as conn:
            await conn.execute(create_sql)

        logger.info("Posts table created/verified")

    async def upsert(self, items: Sequence[NormalizedItem]) -> UpsertResult:
        """
        Insert or update items by id.

        Items repeating an id within the call collapse to the first
        occurrence. An existing row keeps its category when the incoming
        item has none.

        Returns:
            UpsertResult; database errors are reported, never raised
        """
        unique = dedupe_first(items)
        if not unique:
            return UpsertResult(success=True, count=0)

        sql = """
        INSERT INTO posts (
            id, source, author, content, url, timestamp, category, metadata
        ) VALUES (
            $1, $2, $3, $4, $5, $6, $7, $8
        )
        ON CONFLICT (id) DO UPDATE SET
            source = EXCLUDED.source,
            author = EXCLUDED.author,
            content = EXCLUDED.content,
            url = EXCLUDED.url,
            timestamp = EXCLUDED.timestamp,
            category = COALESCE(EXCLUDED.category, posts.category),
            metadata = EXCLUDED.metadata
        """

        batch_data = [
            (
                item.id,
                item.source,
                item.author,
                item.content,
                item.url,
                item.timestamp,
                item.category,
                item.metadata,
            )
            for item in unique
        ]

        try:
            async with self._db.transaction() as conn:
                await conn.executemany(sql, batch_data)
        except (asyncpg.PostgresError, OSError, RuntimeError) as e:
            logger.error(f"Mirror upsert of {len(unique)} posts failed: {e}")
            return UpsertResult(success=False, count=0, error=str(e))

        logger.info(f"Mirrored {len(unique)} posts")
        return UpsertResult(success=True, count=len(unique))

    async def get_posts(
        self,
        limit: int = 500,
        source: str | None = None,
    ) -> list[NormalizedItem]:
        """
        Get mirrored posts, newest first.

        Args:
            limit: Maximum posts to return
            source: Optional source tag filter
        """
        if source:
            sql = """
                SELECT * FROM posts
                WHERE source = $1
                ORDER BY timestamp DESC
                LIMIT $2
            """
            rows = await self._db.fetch(sql, source.lower(), limit)
        else:
            sql = """
                SELECT * FROM posts
                ORDER BY timestamp DESC
                LIMIT $1
            """
            rows = await self._db.fetch(sql, limit)

        return [self._row_to_item(row) for row in rows]

    async def count(self) -> int:
        return await self._db.fetchval("SELECT COUNT(*) FROM posts") or 0

    async def health_check(self) -> bool:
        return await self._db.health_check()

    def _row_to_item(self, row: asyncpg.Record | dict[str, Any]) -> NormalizedItem:
        """Convert database row to NormalizedItem."""
        metadata = row["metadata"]
        if isinstance(metadata, str):
            metadata = json.loads(metadata)

        return NormalizedItem(
            id=row["id"],
            source=row["source"],
            author=row["author"],
            content=row["content"],
            url=row["url"],
            timestamp=row["timestamp"],
            category=row["category"],
            metadata=metadata or {},
        )

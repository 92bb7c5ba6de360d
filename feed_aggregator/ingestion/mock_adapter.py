"""
Mock adapter for testing and development.

Generates synthetic posts that look like the real sources' output.
Useful for:
- Running the pipeline without Apify or GitHub credentials (scrape --mock)
- Exercising the merge and thread filter in tests
- Simulating a failing source
"""

import random
import uuid
from collections.abc import AsyncIterator
from datetime import datetime, timedelta, timezone
from typing import Any

from feed_aggregator.ingestion.base_adapter import BaseAdapter
from feed_aggregator.ingestion.schemas import CONVERSATION_ID_KEY, NormalizedItem, Source

SAMPLE_POSTS = {
    Source.TWITTER.value: [
        "Just tried @FactoryAI droids on our monorepo, the refactor PR landed in an hour",
        "Anyone else using Factory for code review? Curious how it handles flaky tests",
        "Factory's CLI keeps surprising me. Migration scripts written and tested.",
        "Hot take: agentic coding tools need better diff previews",
    ],
    Source.REDDIT.value: [
        "Experience report: a month with an AI coding agent on a legacy Rails app",
        "How do you review agent-authored pull requests?",
        "Comparing coding agents for large TypeScript codebases",
    ],
    Source.GITHUB.value: [
        "[Issue] Droid stalls when the repo has git submodules",
        "[Discussion] Feature request: per-directory instructions",
        "[Issue] CLI crashes on Windows paths with spaces",
    ],
}

SAMPLE_AUTHORS = [
    "devtools_dana",
    "rustacean_ravi",
    "infra_ines",
    "frontend_fox",
    "staff_eng_sam",
    "oss_oliver",
]


class MockAdapter(BaseAdapter):
    """
    Mock adapter that generates synthetic feed items.

    Twitter-shaped items carry a conversation_id, and a share of them
    reply to a conversation started earlier in the same batch so the
    thread filter has something to collapse.
    """

    def __init__(
        self,
        source: str = Source.TWITTER.value,
        items_per_fetch: int = 5,
        reply_ratio: float = 0.2,
        error: str | None = None,
        seed: int | None = None,
    ):
        """
        Initialize mock adapter.

        Args:
            source: Source tag to mimic
            items_per_fetch: Number of items generated per fetch
            reply_ratio: Share of threaded items that reuse a conversation
            error: When set, every fetch fails with this message
            seed: Seed for reproducible output
        """
        super().__init__()
        self._source = source
        self._items_per_fetch = items_per_fetch
        self._reply_ratio = reply_ratio
        self._error = error
        self._random = random.Random(seed)

    @property
    def source(self) -> str:
        return self._source

    async def _fetch_raw(self) -> AsyncIterator[dict[str, Any]]:
        if self._error:
            raise RuntimeError(self._error)

        now = datetime.now(timezone.utc)
        templates = SAMPLE_POSTS.get(self._source, SAMPLE_POSTS[Source.TWITTER.value])
        conversations: list[str] = []

        for _ in range(self._items_per_fetch):
            native_id = uuid.UUID(int=self._random.getrandbits(128)).hex[:12]

            conversation_id = native_id
            if conversations and self._random.random() < self._reply_ratio:
                conversation_id = self._random.choice(conversations)
            conversations.append(conversation_id)

            yield {
                "id": native_id,
                "author": self._random.choice(SAMPLE_AUTHORS),
                "content": self._random.choice(templates),
                "timestamp": now - timedelta(minutes=self._random.randint(0, 180)),
                "conversation_id": conversation_id,
            }

    def _transform(self, raw: dict[str, Any]) -> NormalizedItem | None:
        metadata: dict[str, Any] = {"mock": True}
        if self._source == Source.TWITTER.value:
            metadata[CONVERSATION_ID_KEY] = raw["conversation_id"]

        return NormalizedItem(
            id=f"{self._source}_mock_{raw['id']}",
            source=self._source,
            author=raw["author"],
            content=raw["content"],
            url=f"https://example.com/{self._source}/{raw['id']}",
            timestamp=raw["timestamp"],
            metadata=metadata,
        )

"""
Feed service - runs one merge cycle end to end.

A cycle:
1. Loads the persisted feed and seen ledger
2. Fetches every source concurrently (a failed source contributes nothing)
3. Collapses reply chains in threaded sources
4. Merges, then persists feed and ledger
5. Hands only the newly admitted items to the optional sinks

Sink failures are logged and reported in the CycleResult; they never
fail the cycle. A persistence failure does.
"""

import asyncio
import time
import uuid
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog

from feed_aggregator.config.settings import Settings, get_settings
from feed_aggregator.config.sources import load_source_config, parse_usernames, split_csv
from feed_aggregator.feed.merge import DEFAULT_MAX_ITEMS, merge_results
from feed_aggregator.feed.seen import SeenState
from feed_aggregator.feed.threads import filter_threads
from feed_aggregator.ingestion.apify_client import ApifyClient
from feed_aggregator.ingestion.base_adapter import BaseAdapter
from feed_aggregator.ingestion.github_adapter import GitHubAdapter
from feed_aggregator.ingestion.mock_adapter import MockAdapter
from feed_aggregator.ingestion.reddit_adapter import RedditAdapter
from feed_aggregator.ingestion.schemas import NormalizedItem, Source, SourceResult
from feed_aggregator.ingestion.twitter_adapter import TwitterAdapter
from feed_aggregator.notifications.dispatcher import NotificationDispatcher
from feed_aggregator.observability.logging import log_context
from feed_aggregator.observability.metrics import MetricsCollector, get_metrics
from feed_aggregator.storage.feed_store import FeedStore
from feed_aggregator.storage.repository import PostRepository, UpsertResult

logger = structlog.get_logger(__name__)

DEFAULT_THREADED_SOURCES = frozenset({Source.TWITTER.value})


@dataclass
class CycleResult:
    """Summary of one merge cycle."""

    cycle_id: str
    started_at: datetime
    fetched: dict[str, int] = field(default_factory=dict)
    source_errors: dict[str, str] = field(default_factory=dict)
    admitted_ids: list[str] = field(default_factory=list)
    feed_size: int = 0
    evicted: int = 0
    mirror: UpsertResult | None = None
    notified: list[tuple[str, bool]] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def admitted(self) -> int:
        return len(self.admitted_ids)

    def to_dict(self) -> dict[str, Any]:
        return {
            "cycle_id": self.cycle_id,
            "started_at": self.started_at.isoformat(),
            "duration_seconds": round(self.duration_seconds, 3),
            "fetched": self.fetched,
            "source_errors": self.source_errors,
            "admitted": self.admitted,
            "admitted_ids": self.admitted_ids,
            "feed_size": self.feed_size,
            "evicted": self.evicted,
            "mirror": (
                {
                    "success": self.mirror.success,
                    "count": self.mirror.count,
                    "error": self.mirror.error,
                }
                if self.mirror is not None
                else None
            ),
            "notified": [
                {"channel": name, "success": ok} for name, ok in self.notified
            ],
        }


def create_adapters(
    settings: Settings | None = None,
    use_mock: bool = False,
) -> list[BaseAdapter]:
    """
    Create source adapters from configuration.

    Unconfigured adapters are still returned; they report a failed
    result with reason "not configured" on every fetch.
    """
    if use_mock:
        return [MockAdapter(source=source.value) for source in Source]

    settings = settings or get_settings()
    sources = load_source_config(
        settings.sources_config_path,
        twitter_search_terms=settings.twitter_search_terms,
        reddit_urls=settings.reddit_urls,
    )
    apify = ApifyClient()

    return [
        RedditAdapter(urls=sources.reddit_urls, apify_client=apify),
        GitHubAdapter(),
        TwitterAdapter(search_terms=sources.twitter_search_terms, apify_client=apify),
    ]


class FeedService:
    """
    Orchestrates fetch, filter, merge, persist and sinks for one cycle.

    Usage:
        service = FeedService.from_settings()
        result = await service.run_cycle()
    """

    def __init__(
        self,
        store: FeedStore,
        adapters: Sequence[BaseAdapter],
        repository: PostRepository | None = None,
        dispatcher: NotificationDispatcher | None = None,
        team_usernames: Iterable[str] = (),
        threaded_sources: Iterable[str] = DEFAULT_THREADED_SOURCES,
        max_items: int = DEFAULT_MAX_ITEMS,
        metrics: MetricsCollector | None = None,
    ):
        self._store = store
        self._adapters = list(adapters)
        self._repository = repository
        self._dispatcher = dispatcher
        self._team_usernames = list(team_usernames)
        self._threaded_sources = frozenset(threaded_sources)
        self._max_items = max_items
        self._metrics = metrics or get_metrics()

        logger.info(
            "Feed service initialized",
            sources=[adapter.source for adapter in self._adapters],
            mirror=repository is not None,
            notifications=dispatcher is not None and dispatcher.enabled,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        use_mock: bool = False,
        repository: PostRepository | None = None,
        dispatcher: NotificationDispatcher | None = None,
    ) -> "FeedService":
        settings = settings or get_settings()
        store = FeedStore(
            settings.feed_path,
            settings.seen_path,
            max_items=settings.feed_max_items,
            max_seen_ids=settings.seen_max_ids,
            max_seen_conversations=settings.seen_max_conversations,
        )
        if dispatcher is None and settings.slack_configured:
            dispatcher = NotificationDispatcher.from_settings()

        return cls(
            store=store,
            adapters=create_adapters(settings, use_mock=use_mock),
            repository=repository,
            dispatcher=dispatcher,
            team_usernames=parse_usernames(settings.team_twitter_usernames),
            threaded_sources=[s.lower() for s in split_csv(settings.threaded_sources)],
            max_items=settings.feed_max_items,
        )

    @property
    def store(self) -> FeedStore:
        return self._store

    @property
    def repository(self) -> PostRepository | None:
        return self._repository

    @property
    def threaded_sources(self) -> frozenset[str]:
        return self._threaded_sources

    @property
    def dispatcher(self) -> NotificationDispatcher | None:
        return self._dispatcher

    async def run_cycle(self) -> CycleResult:
        """
        Run one full cycle.

        Raises:
            PersistenceError: If the feed or ledger cannot be written
        """
        cycle_id = uuid.uuid4().hex[:12]
        started = time.monotonic()
        result = CycleResult(cycle_id=cycle_id, started_at=datetime.now(timezone.utc))

        with log_context(cycle_id=cycle_id):
            try:
                await self._run(result)
            finally:
                result.duration_seconds = time.monotonic() - started

        return result

    async def _run(self, result: CycleResult) -> None:
        logger.info("Cycle started")
        feed, seen = await self._store.load()

        source_results = await self._fetch_all()
        for source_result in source_results:
            result.fetched[source_result.source] = len(source_result.items)
            if not source_result.ok:
                result.source_errors[source_result.source] = source_result.error or ""

        source_results, thread_conversations = self._filter_threads(source_results, seen)

        merged = merge_results(feed, seen.ids, source_results, max_items=self._max_items)
        new_seen = SeenState(ids=merged.seen_ids, conversations=seen.conversations).remember(
            conversations=thread_conversations
        )

        saved = await self._store.save(merged.feed, new_seen)

        result.admitted_ids = [item.id for item in merged.admitted]
        result.feed_size = len(merged.feed)
        result.evicted = merged.evicted

        self._metrics.set_state_size(len(merged.feed), len(saved.ids))
        for source, count in Counter(item.source for item in merged.admitted).items():
            self._metrics.record_admitted(source, count)

        logger.info(
            "Feed saved",
            admitted=result.admitted,
            feed_size=result.feed_size,
            evicted=result.evicted,
            failed_sources=sorted(result.source_errors),
        )

        if merged.admitted:
            result.mirror = await self._mirror(merged.admitted)
            result.notified = await self._notify(merged.admitted)

    async def _fetch_one(self, adapter: BaseAdapter) -> SourceResult:
        start = time.monotonic()
        try:
            source_result = await adapter.fetch()
        except Exception as e:
            # fetch() should not raise; contain it anyway
            logger.error("Adapter raised", source=adapter.source, error=str(e))
            source_result = SourceResult.failure(adapter.source, str(e))

        self._metrics.record_fetch(
            source_result.source,
            len(source_result.items),
            latency=time.monotonic() - start,
            failed=not source_result.ok,
        )
        if not source_result.ok:
            logger.warning(
                "Source failed", source=source_result.source, reason=source_result.error
            )
        return source_result

    async def _fetch_all(self) -> list[SourceResult]:
        outcomes = await asyncio.gather(
            *(self._fetch_one(adapter) for adapter in self._adapters),
            return_exceptions=True,
        )

        results: list[SourceResult] = []
        for adapter, outcome in zip(self._adapters, outcomes):
            if isinstance(outcome, BaseException):
                results.append(SourceResult.failure(adapter.source, str(outcome)))
            else:
                results.append(outcome)
        return results

    def _filter_threads(
        self,
        source_results: list[SourceResult],
        seen: SeenState,
    ) -> tuple[list[SourceResult], list[str]]:
        """Apply the thread filter to threaded sources; return new conversations."""
        conversations = seen.conversation_set()
        recorded: list[str] = []
        filtered: list[SourceResult] = []

        for source_result in source_results:
            if not source_result.ok or source_result.source not in self._threaded_sources:
                filtered.append(source_result)
                continue

            kept = filter_threads(source_result.items, self._team_usernames, conversations)
            recorded.extend(item.conversation_id for item in kept if item.conversation_id)
            filtered.append(SourceResult.success(source_result.source, kept))

        return filtered, recorded

    async def _mirror(self, items: list[NormalizedItem]) -> UpsertResult | None:
        if self._repository is None:
            return None
        try:
            upsert = await self._repository.upsert(items)
        except Exception as e:
            logger.error("Mirror upsert raised", error=str(e))
            return UpsertResult(success=False, error=str(e))

        if not upsert.success:
            logger.warning("Mirror upsert failed", error=upsert.error)
        return upsert

    async def _notify(self, items: list[NormalizedItem]) -> list[tuple[str, bool]]:
        if self._dispatcher is None:
            return []
        try:
            return await self._dispatcher.notify(items)
        except Exception as e:
            logger.error("Notification dispatch raised", error=str(e))
            return []

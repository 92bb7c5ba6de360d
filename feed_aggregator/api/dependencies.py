"""
Dependency injection for FastAPI endpoints.

Services are process-wide singletons created on first use. The app
lifespan calls init_dependencies() to connect the optional mirror and
cleanup_dependencies() to stop the scheduler and release connections.
"""

import structlog

from feed_aggregator.config.settings import get_settings
from feed_aggregator.notifications.dispatcher import NotificationDispatcher
from feed_aggregator.services.feed_service import FeedService
from feed_aggregator.services.scheduler import FeedScheduler
from feed_aggregator.storage.database import Database
from feed_aggregator.storage.feed_store import FeedStore
from feed_aggregator.storage.repository import PostRepository

logger = structlog.get_logger(__name__)

# Global service instances (initialized on first request)
_database: Database | None = None
_repository: PostRepository | None = None
_dispatcher: NotificationDispatcher | None = None
_feed_service: FeedService | None = None
_scheduler: FeedScheduler | None = None


async def init_dependencies() -> None:
    """Connect the relational mirror when configured.

    A connection failure disables the mirror instead of failing startup.
    """
    global _database, _repository

    settings = get_settings()
    if not settings.database_configured or _repository is not None:
        return

    database = Database()
    try:
        await database.connect()
        repository = PostRepository(database)
        await repository.create_tables()
    except Exception as e:
        logger.warning("Mirror unavailable, continuing without it", error=str(e))
        await database.close()
        return

    _database = database
    _repository = repository


def get_database() -> Database | None:
    """Get the mirror database, or None when not connected."""
    return _database


def get_repository() -> PostRepository | None:
    """Get the mirror repository, or None when not connected."""
    return _repository


def get_dispatcher() -> NotificationDispatcher:
    """Get the notification dispatcher (may have no channels)."""
    global _dispatcher

    if _dispatcher is None:
        _dispatcher = NotificationDispatcher.from_settings()

    return _dispatcher


def get_feed_service() -> FeedService:
    """Get the feed service singleton."""
    global _feed_service

    if _feed_service is None:
        _feed_service = FeedService.from_settings(
            repository=_repository,
            dispatcher=get_dispatcher(),
        )

    return _feed_service


def get_feed_store() -> FeedStore:
    return get_feed_service().store


def get_scheduler() -> FeedScheduler:
    """Get the scheduler singleton driving the feed service."""
    global _scheduler

    if _scheduler is None:
        settings = get_settings()
        _scheduler = FeedScheduler(
            get_feed_service().run_cycle,
            interval_seconds=settings.poll_interval_seconds,
            manual_cooldown_seconds=settings.manual_refresh_cooldown_seconds,
        )

    return _scheduler


async def cleanup_dependencies() -> None:
    """Stop the scheduler and close connections."""
    global _database, _repository, _dispatcher, _feed_service, _scheduler

    if _scheduler is not None:
        await _scheduler.stop()
        _scheduler = None

    if _database is not None:
        await _database.close()
        _database = None

    _repository = None
    _dispatcher = None
    _feed_service = None

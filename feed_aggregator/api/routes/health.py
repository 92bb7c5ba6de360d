"""
Health check endpoint covering the scheduler, the feed and the mirror.
"""

import time

import structlog
from fastapi import APIRouter, Depends

from feed_aggregator.api.dependencies import get_database, get_feed_store, get_scheduler
from feed_aggregator.api.models import ComponentHealth, HealthResponse, SchedulerHealth
from feed_aggregator.config.settings import get_settings
from feed_aggregator.services.scheduler import FeedScheduler
from feed_aggregator.storage.database import Database
from feed_aggregator.storage.feed_store import FeedStore

router = APIRouter()
logger = structlog.get_logger(__name__)


async def _check_database(db: Database | None) -> ComponentHealth:
    """Check mirror connectivity and measure latency."""
    if db is None:
        status = "unhealthy" if get_settings().database_configured else "disabled"
        return ComponentHealth(status=status)

    start = time.perf_counter()
    try:
        healthy = await db.health_check()
        latency_ms = (time.perf_counter() - start) * 1000
        return ComponentHealth(
            status="healthy" if healthy else "unhealthy",
            latency_ms=round(latency_ms, 2),
        )
    except Exception as e:
        latency_ms = (time.perf_counter() - start) * 1000
        return ComponentHealth(
            status="unhealthy",
            latency_ms=round(latency_ms, 2),
            details={"error": str(e)},
        )


def _scheduler_health(scheduler: FeedScheduler) -> SchedulerHealth:
    last_cycle = None
    if scheduler.last_result is not None and hasattr(scheduler.last_result, "to_dict"):
        last_cycle = scheduler.last_result.to_dict()

    return SchedulerHealth(
        started=scheduler.started,
        cycle_running=scheduler.is_running,
        interval_seconds=scheduler.interval_seconds,
        last_finished_at=scheduler.last_finished_at,
        last_error=scheduler.last_error,
        last_cycle=last_cycle,
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description="Report scheduler state, the last cycle and sink connectivity.",
)
async def health_check(
    scheduler: FeedScheduler = Depends(get_scheduler),
    store: FeedStore = Depends(get_feed_store),
    db: Database | None = Depends(get_database),
) -> HealthResponse:
    settings = get_settings()
    feed = await store.load_feed()

    components = {
        "database": await _check_database(db),
        "slack": ComponentHealth(
            status="healthy" if settings.slack_configured else "disabled"
        ),
    }

    degraded = scheduler.last_error is not None or any(
        c.status == "unhealthy" for c in components.values()
    )

    return HealthResponse(
        status="degraded" if degraded else "healthy",
        feed_size=len(feed),
        scheduler=_scheduler_health(scheduler),
        components=components,
        sources={
            "twitter": settings.apify_configured,
            "reddit": settings.apify_configured,
            "github": settings.github_configured,
        },
    )

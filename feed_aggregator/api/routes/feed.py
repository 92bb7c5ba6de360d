"""
Feed read and manual refresh endpoints.
"""

import asyncio

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse

from feed_aggregator.api.auth import verify_api_key
from feed_aggregator.api.dependencies import get_feed_store, get_scheduler
from feed_aggregator.api.models import (
    ErrorResponse,
    RefreshRejectedResponse,
    RefreshResponse,
)
from feed_aggregator.ingestion.schemas import NormalizedItem
from feed_aggregator.services.scheduler import FeedScheduler, TriggerStatus
from feed_aggregator.storage.feed_store import FeedStore

router = APIRouter()
logger = structlog.get_logger(__name__)

REJECTION_MESSAGES = {
    TriggerStatus.BUSY: "A refresh is already in progress. Please wait.",
    TriggerStatus.THROTTLED: "Manual refresh was triggered recently. Please wait.",
}


@router.get(
    "/api/feed",
    response_model=list[NormalizedItem],
    summary="Get the feed",
    description="Return the persisted feed, newest first.",
)
async def get_feed(
    source: str | None = Query(default=None, description="Only items from this source"),
    limit: int | None = Query(default=None, ge=1, description="Maximum items to return"),
    store: FeedStore = Depends(get_feed_store),
) -> list[NormalizedItem]:
    feed = await store.load_feed()
    if source:
        feed = [item for item in feed if item.source == source.lower()]
    if limit is not None:
        feed = feed[:limit]
    return feed


@router.post(
    "/api/refresh",
    response_model=RefreshResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Trigger a refresh",
    description=(
        "Start a merge cycle now. Rejected with 429 while a cycle runs or "
        "within the manual cool-down. With wait=true the response is sent "
        "once the cycle has finished."
    ),
    responses={
        200: {"model": RefreshResponse, "description": "Cycle finished (wait=true)"},
        401: {"model": ErrorResponse, "description": "Missing or invalid API key"},
        429: {"model": RefreshRejectedResponse, "description": "Busy or throttled"},
        500: {"model": ErrorResponse, "description": "Cycle failed (wait=true)"},
    },
)
async def refresh(
    wait: bool = Query(default=False, description="Wait for the cycle to finish"),
    scheduler: FeedScheduler = Depends(get_scheduler),
    _api_key: str = Depends(verify_api_key),
):
    result = scheduler.trigger(manual=True)

    if not result.accepted:
        body = RefreshRejectedResponse(
            error=result.status.value,
            message=REJECTION_MESSAGES[result.status],
            retry_after_seconds=result.wait_seconds,
        )
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content=body.model_dump(),
            headers={"Retry-After": str(max(1, result.wait_seconds))},
        )

    if not wait:
        return RefreshResponse(status="accepted")

    # A dropped client connection must not cancel the cycle
    cycle = await asyncio.shield(result.task)
    if cycle is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Refresh failed: {scheduler.last_error or 'unknown error'}",
        )

    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content=RefreshResponse(status="completed", cycle=cycle.to_dict()).model_dump(),
    )

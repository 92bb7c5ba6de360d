"""
Operator-driven Slack delivery of selected feed items.
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from feed_aggregator.api.auth import verify_api_key
from feed_aggregator.api.dependencies import get_dispatcher, get_feed_store
from feed_aggregator.api.models import ErrorResponse, SlackSendRequest, SlackSendResponse
from feed_aggregator.notifications.dispatcher import NotificationDispatcher
from feed_aggregator.storage.feed_store import FeedStore

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.post(
    "/api/slack/send",
    response_model=SlackSendResponse,
    summary="Send feed items to Slack",
    description="Send the selected feed items, in feed order, to Slack.",
    responses={
        400: {"model": ErrorResponse, "description": "No item ids given"},
        401: {"model": ErrorResponse, "description": "Missing or invalid API key"},
        404: {"model": ErrorResponse, "description": "No matching feed items"},
        502: {"model": ErrorResponse, "description": "Slack rejected the message"},
        503: {"model": ErrorResponse, "description": "Slack not configured"},
    },
)
async def send_to_slack(
    request: SlackSendRequest,
    store: FeedStore = Depends(get_feed_store),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    _api_key: str = Depends(verify_api_key),
) -> SlackSendResponse:
    if not request.item_ids:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="item_ids must be a non-empty array",
        )

    wanted = set(request.item_ids)
    feed = await store.load_feed()
    items = [item for item in feed if item.id in wanted]

    if not items:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No matching feed items found",
        )

    if not dispatcher.enabled:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Slack is not configured",
        )

    logger.info("Sending items to Slack", count=len(items), channel=request.channel)
    results = await dispatcher.notify(items, channel=request.channel)

    if not any(ok for _, ok in results):
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to send items to Slack",
        )

    return SlackSendResponse(success=True, count=len(items))

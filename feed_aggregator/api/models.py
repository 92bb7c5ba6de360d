"""
Pydantic models for API request/response schemas.
"""

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, Field


class RefreshResponse(BaseModel):
    """Response model for an accepted refresh."""

    status: str = Field(
        ...,
        description="accepted (cycle started) or completed (cycle finished, wait=true)",
    )
    cycle: dict[str, Any] | None = Field(
        default=None,
        description="Cycle summary when the request waited for completion",
    )


class RefreshRejectedResponse(BaseModel):
    """Response model for a rejected refresh (HTTP 429)."""

    error: str = Field(..., description="busy or throttled")
    message: str = Field(..., description="Human-readable reason")
    retry_after_seconds: int = Field(
        default=0,
        ge=0,
        description="Whole seconds until a manual refresh can be accepted",
    )


class SlackSendRequest(BaseModel):
    """Request model for sending selected feed items to Slack."""

    item_ids: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("item_ids", "itemIds"),
        description="Feed item ids to send",
    )
    channel: str | None = Field(
        default=None,
        description="Slack channel override",
    )


class SlackSendResponse(BaseModel):
    """Response model for a Slack send."""

    success: bool
    count: int = Field(..., description="Number of items sent")


class ComponentHealth(BaseModel):
    """Health status of an individual component."""

    status: str = Field(..., description="healthy, unhealthy, or disabled")
    latency_ms: float | None = Field(default=None, description="Check latency")
    details: dict[str, Any] | None = Field(default=None)


class SchedulerHealth(BaseModel):
    """Scheduler state for health reporting."""

    started: bool
    cycle_running: bool
    interval_seconds: float
    last_finished_at: datetime | None = None
    last_error: str | None = None
    last_cycle: dict[str, Any] | None = None


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str = Field(
        ...,
        description="Overall service status: healthy or degraded",
    )
    feed_size: int = Field(default=0, description="Items in the persisted feed")
    scheduler: SchedulerHealth
    components: dict[str, ComponentHealth] = Field(default_factory=dict)
    sources: dict[str, bool] = Field(
        default_factory=dict,
        description="Which source integrations are configured",
    )


class ErrorResponse(BaseModel):
    """Response model for errors."""

    detail: str = Field(
        ...,
        description="Error message",
    )
    error_type: str = Field(
        default="error",
        description="Error type",
    )

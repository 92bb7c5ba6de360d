"""Fans a batch of feed items out to every configured channel.

Each channel sits behind its own CircuitBreaker and gets a bounded number
of attempts. Delivery problems end up in the returned results and the
log; notify() never raises into the merge cycle.
"""

import asyncio
import logging
from collections.abc import Sequence

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from feed_aggregator.config.settings import get_settings
from feed_aggregator.ingestion.schemas import NormalizedItem
from feed_aggregator.notifications.channels import (
    CircuitBreaker,
    NotificationChannel,
    SlackChannel,
)

logger = logging.getLogger(__name__)


class NotificationConfig(BaseSettings):
    """Retry and breaker tuning, read from NOTIFICATIONS_* variables."""

    model_config = SettingsConfigDict(
        env_prefix="NOTIFICATIONS_",
        case_sensitive=False,
        extra="ignore",
    )

    retry_max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Send attempts per channel per batch",
    )
    retry_delays: list[float] = Field(
        default=[1.0, 5.0, 30.0],
        description="Pause before retry n; the last entry repeats",
    )
    circuit_breaker_threshold: int = Field(
        default=5,
        ge=1,
        description="Consecutive failed batches before a channel is short-circuited",
    )
    circuit_breaker_recovery_seconds: float = Field(
        default=60.0,
        ge=0.0,
        description="Seconds an open breaker waits before letting a probe through",
    )

    def delay_before_retry(self, attempt: int) -> float:
        """Pause after failed attempt number `attempt` (0-indexed)."""
        if not self.retry_delays:
            return 0.0
        return self.retry_delays[min(attempt, len(self.retry_delays) - 1)]


class NotificationDispatcher:
    """Delivers items to all channels and reports per-channel success."""

    def __init__(
        self,
        channels: list[NotificationChannel],
        config: NotificationConfig | None = None,
    ) -> None:
        self._config = config or NotificationConfig()
        self._channels = [self._guard(ch) for ch in channels]

    def _guard(self, channel: NotificationChannel) -> CircuitBreaker:
        if isinstance(channel, CircuitBreaker):
            return channel
        return CircuitBreaker(
            channel=channel,
            failure_threshold=self._config.circuit_breaker_threshold,
            recovery_timeout=self._config.circuit_breaker_recovery_seconds,
        )

    @classmethod
    def from_settings(cls) -> "NotificationDispatcher":
        settings = get_settings()
        channels: list[NotificationChannel] = []
        if settings.slack_webhook_url:
            channels.append(
                SlackChannel(settings.slack_webhook_url, channel=settings.slack_channel)
            )
        return cls(channels)

    @property
    def channels(self) -> list[CircuitBreaker]:
        return self._channels

    @property
    def enabled(self) -> bool:
        return bool(self._channels)

    async def notify(
        self,
        items: Sequence[NormalizedItem],
        channel: str | None = None,
    ) -> list[tuple[str, bool]]:
        """Send items everywhere.

        Args:
            items: Newly admitted items, or an operator's selection.
            channel: Destination override handed to each channel.

        Returns:
            (channel_name, success) per channel in configuration order;
            empty when there is nothing to send or nowhere to send it.
        """
        if not items or not self._channels:
            return []

        outcomes = await asyncio.gather(
            *(self._deliver(ch, items, channel) for ch in self._channels),
            return_exceptions=True,
        )

        results: list[tuple[str, bool]] = []
        for ch, outcome in zip(self._channels, outcomes):
            if isinstance(outcome, BaseException):
                logger.error("Unexpected error notifying %s: %s", ch.name, outcome)
                outcome = False
            results.append((ch.name, outcome))

        failed = [name for name, ok in results if not ok]
        if failed:
            logger.warning(
                "%d items not delivered to %s (%d/%d channels ok)",
                len(items), failed, len(results) - len(failed), len(results),
            )
        else:
            logger.debug("%d items delivered to %d channels", len(items), len(results))
        return results

    async def _deliver(
        self,
        ch: CircuitBreaker,
        items: Sequence[NormalizedItem],
        channel: str | None,
    ) -> bool:
        attempts = self._config.retry_max_attempts

        for attempt in range(attempts):
            try:
                if await ch.send(items, channel):
                    if attempt:
                        logger.info(
                            "%s accepted %d items on attempt %d",
                            ch.name, len(items), attempt + 1,
                        )
                    return True
            except Exception as e:
                logger.warning("%s send raised on attempt %d: %s", ch.name, attempt + 1, e)

            if attempt + 1 < attempts:
                await asyncio.sleep(self._config.delay_before_retry(attempt))

        logger.warning("%s gave up on %d items after %d attempts", ch.name, len(items), attempts)
        return False

"""Notification channel implementations for feed item delivery.

Provides an ABC for notification channels plus a Slack implementation.
A CircuitBreaker decorator wraps any channel to stop hammering a
downstream service that keeps failing.

Pattern: Decorator (CircuitBreaker wraps any NotificationChannel).
"""

import enum
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence

import httpx

from feed_aggregator.ingestion.schemas import NormalizedItem

logger = logging.getLogger(__name__)

# Slack caps a message at 50 blocks; each item takes three
MAX_ITEMS_PER_MESSAGE = 15

# Characters of content shown per item
PREVIEW_LENGTH = 280

SOURCE_EMOJI = {
    "twitter": ":bird:",
    "reddit": ":large_orange_circle:",
    "github": ":octocat:",
}


class NotificationChannel(ABC):
    """Abstract base for notification delivery channels."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this channel (e.g. 'slack')."""

    @abstractmethod
    async def send(
        self, items: Sequence[NormalizedItem], channel: str | None = None
    ) -> bool:
        """Deliver a batch of feed items through this channel.

        Args:
            items: Items to deliver.
            channel: Optional destination override (e.g. a Slack channel).

        Returns:
            True if every message was accepted, False otherwise.
        """


def chunked(items: Sequence[NormalizedItem], size: int) -> list[list[NormalizedItem]]:
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


class SlackChannel(NotificationChannel):
    """Delivers feed items to Slack via incoming webhook.

    Formats items using Slack Block Kit, at most MAX_ITEMS_PER_MESSAGE
    items per message.
    """

    def __init__(
        self,
        webhook_url: str,
        channel: str | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._webhook_url = webhook_url
        self._channel = channel
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "slack"

    def _format_item(self, item: NormalizedItem) -> list[dict]:
        emoji = SOURCE_EMOJI.get(item.source, ":newspaper:")
        preview = item.content
        if len(preview) > PREVIEW_LENGTH:
            preview = preview[:PREVIEW_LENGTH].rstrip() + "..."

        text = f"{emoji} *{item.author}*\n{preview}"
        if item.url:
            text += f"\n<{item.url}|View on {item.source}>"

        return [
            {"type": "section", "text": {"type": "mrkdwn", "text": text}},
            {
                "type": "context",
                "elements": [
                    {
                        "type": "mrkdwn",
                        "text": (
                            f"*Source:* {item.source} | "
                            f"*Posted:* {item.timestamp.strftime('%Y-%m-%d %H:%M UTC')}"
                        ),
                    },
                ],
            },
            {"type": "divider"},
        ]

    def _format_message(
        self, items: Sequence[NormalizedItem], channel: str | None = None
    ) -> dict:
        """Build Slack Block Kit payload for one batch of items."""
        noun = "item" if len(items) == 1 else "items"
        blocks: list[dict] = [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": f"{len(items)} new feed {noun}"},
            },
        ]
        for item in items:
            blocks.extend(self._format_item(item))

        payload: dict = {
            "text": f"{len(items)} new feed {noun}",
            "blocks": blocks,
        }
        target = channel or self._channel
        if target:
            payload["channel"] = target
        return payload

    async def send(
        self, items: Sequence[NormalizedItem], channel: str | None = None
    ) -> bool:
        if not items:
            return True

        delivered = True
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            for batch in chunked(items, MAX_ITEMS_PER_MESSAGE):
                payload = self._format_message(batch, channel)
                try:
                    resp = await client.post(self._webhook_url, json=payload)
                except httpx.TimeoutException:
                    logger.warning("Slack webhook timed out for %d items", len(batch))
                    delivered = False
                    continue
                except httpx.HTTPError as e:
                    logger.warning("Slack webhook failed for %d items: %s", len(batch), e)
                    delivered = False
                    continue

                if not resp.is_success:
                    logger.warning(
                        "Slack webhook returned %d for %d items",
                        resp.status_code, len(batch),
                    )
                    delivered = False

        return delivered


class CircuitState(enum.Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker(NotificationChannel):
    """Stops calling a channel that keeps failing.

    After `failure_threshold` consecutive failed sends the breaker opens
    and rejects batches without touching the wrapped channel. Once
    `recovery_timeout` seconds have passed, the next batch goes through
    as a probe: success closes the breaker, failure reopens it.
    """

    def __init__(
        self,
        channel: NotificationChannel,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._channel = channel
        self._failure_threshold = failure_threshold
        self._recovery_timeout = recovery_timeout
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._opened_at = 0.0

    @property
    def name(self) -> str:
        return self._channel.name

    @property
    def state(self) -> CircuitState:
        return self._state

    def _move_to(self, state: CircuitState, reason: str) -> None:
        if state is self._state:
            return
        log = logger.info if state is not CircuitState.OPEN else logger.warning
        log(
            "Slack breaker %s: %s -> %s (%s)",
            self.name, self._state.value, state.value, reason,
        )
        self._state = state

    def _allows_send(self) -> bool:
        if self._state is not CircuitState.OPEN:
            return True
        if self._clock() - self._opened_at < self._recovery_timeout:
            return False
        self._move_to(CircuitState.HALF_OPEN, "recovery probe")
        return True

    def _record(self, success: bool) -> None:
        if success:
            self._failures = 0
            self._move_to(CircuitState.CLOSED, "send succeeded")
            return

        self._failures += 1
        probing = self._state is CircuitState.HALF_OPEN
        if probing or self._failures >= self._failure_threshold:
            self._opened_at = self._clock()
            reason = "probe failed" if probing else f"{self._failures} failures"
            self._move_to(CircuitState.OPEN, reason)

    async def send(
        self, items: Sequence[NormalizedItem], channel: str | None = None
    ) -> bool:
        if not self._allows_send():
            logger.debug("Breaker %s open, dropping %d items", self.name, len(items))
            return False

        success = await self._channel.send(items, channel)
        self._record(success)
        return success

"""
Base adapter interface and shared functionality for source adapters.

Each source adapter implements _fetch_raw() and _transform(). The base
class turns those into a single fetch() call that:
- Never raises: any failure becomes SourceResult.failure
- Skips unusable rows instead of failing the whole batch
- Tracks per-run statistics
"""

import logging
import re
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from feed_aggregator.ingestion.schemas import NormalizedItem, SourceResult

logger = logging.getLogger(__name__)

# Body characters kept per item
MAX_BODY_LENGTH = 500

NOT_CONFIGURED = "not configured"


@dataclass
class AdapterStats:
    """Statistics for an adapter run."""

    items_fetched: int = 0
    items_filtered: int = 0
    errors: int = 0
    start_time: float = field(default_factory=time.monotonic)

    @property
    def elapsed_seconds(self) -> float:
        return time.monotonic() - self.start_time


class BaseAdapter(ABC):
    """
    Abstract base class for source adapters.

    Subclasses must implement:
        - source: Source tag for produced items
        - _fetch_raw(): Async generator yielding raw source rows
        - _transform(): Convert one raw row to a NormalizedItem

    Subclasses may override:
        - is_configured: False when credentials are missing
        - has_work: False when there is nothing to scrape (quiet skip)
    """

    def __init__(self) -> None:
        self._stats = AdapterStats()

    @property
    @abstractmethod
    def source(self) -> str:
        """Return the source tag this adapter produces."""
        ...

    @property
    def name(self) -> str:
        """Human-readable adapter name."""
        return f"{self.source}_adapter"

    @property
    def is_configured(self) -> bool:
        return True

    @property
    def has_work(self) -> bool:
        return True

    @abstractmethod
    async def _fetch_raw(self) -> AsyncIterator[dict[str, Any]]:
        """
        Fetch raw rows from the source.

        May raise; fetch() converts the exception into a failed result.
        """
        ...

    @abstractmethod
    def _transform(self, raw: dict[str, Any]) -> NormalizedItem | None:
        """
        Transform one raw row to a NormalizedItem.

        Returns None for rows that should be dropped. Exceptions are
        caught by fetch() and counted as errors for that row only.
        """
        ...

    async def fetch(self) -> SourceResult:
        """
        Fetch and transform this source's batch.

        This is the main entry point called by the feed service.
        """
        self._stats = AdapterStats()

        if not self.is_configured:
            logger.warning(f"{self.name} skipped: {NOT_CONFIGURED}")
            return SourceResult.failure(self.source, NOT_CONFIGURED)

        if not self.has_work:
            logger.info(f"{self.name} has nothing to fetch, skipping")
            return SourceResult.success(self.source, [])

        logger.info(f"Starting fetch for {self.name}")
        items: list[NormalizedItem] = []

        try:
            async for raw in self._fetch_raw():
                try:
                    item = self._transform(raw)
                except Exception as e:
                    self._stats.errors += 1
                    logger.warning(f"Error transforming row in {self.name}: {e}")
                    continue

                if item is None:
                    self._stats.items_filtered += 1
                    continue

                self._stats.items_fetched += 1
                items.append(item)

        except Exception as e:
            self._stats.errors += 1
            logger.error(f"Error in {self.name} fetch: {e}", exc_info=True)
            return SourceResult.failure(self.source, f"{type(e).__name__}: {e}")

        finally:
            logger.info(
                f"{self.name} completed: "
                f"fetched={self._stats.items_fetched}, "
                f"filtered={self._stats.items_filtered}, "
                f"errors={self._stats.errors}, "
                f"elapsed={self._stats.elapsed_seconds:.2f}s"
            )

        return SourceResult.success(self.source, items)

    @property
    def stats(self) -> AdapterStats:
        """Get current adapter statistics."""
        return self._stats


# Common preprocessing utilities used across adapters

def clean_text(text: str) -> str:
    """
    Remove control characters and trailing whitespace.

    Line breaks are kept since post bodies are shown as written.
    """
    text = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]", "", text)
    return text.strip()


def truncate(text: str | None, limit: int = MAX_BODY_LENGTH) -> str:
    """Cut text to at most `limit` characters."""
    if not text:
        return ""
    return text[:limit]


def parse_timestamp(value: Any) -> datetime | None:
    """
    Parse a source timestamp into an aware UTC datetime.

    Accepts ISO-8601 (with or without a trailing Z), the classic Twitter
    format ("Wed Oct 10 20:19:24 +0000 2018") and epoch seconds.
    Returns None when the value cannot be parsed.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    else:
        text = str(value).strip()
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            try:
                parsed = datetime.strptime(text, "%a %b %d %H:%M:%S %z %Y")
            except ValueError:
                return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def first_present(raw: dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first truthy value among `keys`."""
    for key in keys:
        value = raw.get(key)
        if value:
            return value
    return default

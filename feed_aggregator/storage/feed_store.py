"""
JSON persistence for the feed and the seen-set ledger.

The feed file doubles as the public read API, so it is written
pretty-printed and newest-first. Both files are replaced atomically
(temp file + rename) with the feed written before the ledger.

Loading is forgiving: a missing or corrupt artifact yields the empty
state and a warning, so the pipeline heals itself on the next save.
"""

import asyncio
import json
import logging
import os
import tempfile
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from feed_aggregator.feed.merge import DEFAULT_MAX_ITEMS
from feed_aggregator.feed.seen import SeenState
from feed_aggregator.ingestion.schemas import NormalizedItem

logger = logging.getLogger(__name__)

DEFAULT_MAX_SEEN = 1000


class PersistenceError(Exception):
    """Raised when the feed or ledger cannot be written."""


class FeedStore:
    """
    Load/save contract for the feed + seen-set pair.

    Usage:
        store = FeedStore(Path("data/feed.json"), Path("data/seen.json"))
        feed, seen = await store.load()
        ...
        await store.save(new_feed, new_seen)
    """

    def __init__(
        self,
        feed_path: Path,
        seen_path: Path,
        max_items: int = DEFAULT_MAX_ITEMS,
        max_seen_ids: int = DEFAULT_MAX_SEEN,
        max_seen_conversations: int = DEFAULT_MAX_SEEN,
    ):
        self._feed_path = Path(feed_path)
        self._seen_path = Path(seen_path)
        self._max_items = max_items
        self._max_seen_ids = max_seen_ids
        self._max_seen_conversations = max_seen_conversations

    @property
    def feed_path(self) -> Path:
        return self._feed_path

    @property
    def seen_path(self) -> Path:
        return self._seen_path

    # Loading

    async def load(self) -> tuple[list[NormalizedItem], SeenState]:
        """Load feed and ledger, falling back to empty state on any problem."""
        return await asyncio.to_thread(self._load_sync)

    async def load_feed(self) -> list[NormalizedItem]:
        return await asyncio.to_thread(self._read_feed)

    def _load_sync(self) -> tuple[list[NormalizedItem], SeenState]:
        return self._read_feed(), self._read_seen()

    def _read_json(self, path: Path) -> Any | None:
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            logger.info(f"No existing {path.name} found, starting fresh")
            return None
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(
                f"Degraded start: could not read {path}, using empty state: {e}"
            )
            return None

    def _read_feed(self) -> list[NormalizedItem]:
        data = self._read_json(self._feed_path)
        if data is None:
            return []
        if not isinstance(data, list):
            logger.warning(
                f"Degraded start: {self._feed_path} is not a JSON array, using empty feed"
            )
            return []

        feed: list[NormalizedItem] = []
        seen_ids: set[str] = set()
        skipped = 0
        for entry in data:
            try:
                item = NormalizedItem.model_validate(entry)
            except ValidationError:
                skipped += 1
                continue
            if item.id in seen_ids:
                skipped += 1
                continue
            seen_ids.add(item.id)
            feed.append(item)

        if skipped:
            logger.warning(f"Skipped {skipped} invalid or duplicate feed entries")
        return feed

    def _read_seen(self) -> SeenState:
        data = self._read_json(self._seen_path)
        if data is None:
            return SeenState()
        if isinstance(data, list):
            # Bare id array from older deployments
            return SeenState(ids=[str(v) for v in data])
        try:
            return SeenState.model_validate(
                {
                    "ids": data.get("ids") or [],
                    "conversations": data.get("conversations") or [],
                }
            )
        except (AttributeError, ValidationError) as e:
            logger.warning(
                f"Degraded start: {self._seen_path} has unexpected shape, "
                f"using empty ledger: {e}"
            )
            return SeenState()

    # Saving

    async def save(self, feed: Sequence[NormalizedItem], seen: SeenState) -> SeenState:
        """
        Persist feed then ledger.

        Applies ledger retention against the feed being written and
        returns the trimmed ledger that was saved.

        Raises:
            PersistenceError: If either write fails. Files already on disk
                are left as they were before the failing write.
        """
        to_write = list(feed[: self._max_items])
        trimmed = seen.trimmed(
            to_write,
            max_ids=self._max_seen_ids,
            max_conversations=self._max_seen_conversations,
        )
        feed_payload = [item.to_feed_dict() for item in to_write]
        seen_payload = trimmed.model_dump(mode="json")

        await asyncio.to_thread(self._write_json, self._feed_path, feed_payload)
        await asyncio.to_thread(self._write_json, self._seen_path, seen_payload)
        return trimmed

    def _write_json(self, path: Path, payload: Any) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            text = json.dumps(payload, indent=2, ensure_ascii=False)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
            )
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"Failed to prepare {path}: {e}") from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(text)
                fh.write("\n")
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, path)
        except OSError as e:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise PersistenceError(f"Failed to write {path}: {e}") from e

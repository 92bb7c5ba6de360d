"""
Conversation thread filter for sources with reply chains.

Keeps at most one item per conversation across cycles, and drops posts
from operator-excluded accounts (typically the product's own team).
"""

import logging
from collections.abc import Iterable

from feed_aggregator.ingestion.schemas import NormalizedItem

logger = logging.getLogger(__name__)


def _normalize_author(name: str) -> str:
    return name.strip().lstrip("@").lower()


def filter_threads(
    items: Iterable[NormalizedItem],
    excluded_authors: Iterable[str],
    seen_conversation_ids: set[str],
) -> list[NormalizedItem]:
    """
    Filter a threaded source's batch.

    Drops items by excluded authors (case-insensitive) and items whose
    conversation is already in `seen_conversation_ids`. Each surviving
    item's conversation is added to `seen_conversation_ids` in place, so a
    second post from the same thread later in the batch is dropped too.
    The caller folds the updated set back into the durable ledger.

    Items without a conversation_id are only subject to the author check.
    Input order is preserved.
    """
    excluded = {_normalize_author(a) for a in excluded_authors if a.strip()}
    kept: list[NormalizedItem] = []
    dropped_authors = 0
    dropped_threads = 0

    for item in items:
        if _normalize_author(item.author) in excluded:
            dropped_authors += 1
            continue

        conversation_id = item.conversation_id
        if conversation_id is not None:
            if conversation_id in seen_conversation_ids:
                dropped_threads += 1
                continue
            seen_conversation_ids.add(conversation_id)

        kept.append(item)

    if dropped_authors or dropped_threads:
        logger.debug(
            f"Thread filter kept {len(kept)} items "
            f"(excluded_authors={dropped_authors}, seen_threads={dropped_threads})"
        )
    return kept

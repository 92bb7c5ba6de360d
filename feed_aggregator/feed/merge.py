"""
Feed merge engine.

Combines freshly fetched batches with the persisted feed:
1. Concatenate batches in arrival order
2. Admit candidates whose id has never been seen
3. Append admitted items and stable-sort newest first
4. Truncate to the retention window

Pure function over its inputs; persistence and sinks belong to the caller.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from feed_aggregator.ingestion.schemas import NormalizedItem, SourceResult

DEFAULT_MAX_ITEMS = 500


@dataclass
class MergeResult:
    """Output of one merge pass."""

    feed: list[NormalizedItem]
    admitted: list[NormalizedItem] = field(default_factory=list)
    seen_ids: list[str] = field(default_factory=list)
    evicted: int = 0


def merge(
    current_feed: Sequence[NormalizedItem],
    seen_ids: Iterable[str],
    incoming_batches: Iterable[Sequence[NormalizedItem]],
    max_items: int = DEFAULT_MAX_ITEMS,
) -> MergeResult:
    """
    Merge incoming batches into the feed.

    Args:
        current_feed: Persisted feed, newest first (may be empty)
        seen_ids: Every identifier already admitted, oldest first
        incoming_batches: Per-source batches, already thread-filtered but
            not deduplicated across or within batches
        max_items: Retention window

    Returns:
        MergeResult with the truncated feed, the admitted items in arrival
        order, and the seen ids extended with the admitted ids. Items
        evicted by truncation stay in seen_ids.
    """
    if max_items < 1:
        raise ValueError("max_items must be at least 1")

    seen_order = list(dict.fromkeys(seen_ids))
    # Items already in the feed count as seen even if the ledger lost them
    known = set(seen_order)
    known.update(item.id for item in current_feed)

    admitted: list[NormalizedItem] = []
    for batch in incoming_batches:
        for candidate in batch:
            if candidate.id in known:
                continue
            known.add(candidate.id)
            admitted.append(candidate)

    combined = list(current_feed) + admitted
    # Stable under reverse=True: equal timestamps keep concatenation order.
    # Runs with nothing admitted too; a loaded feed may be unsorted or over the cap.
    combined.sort(key=lambda item: item.timestamp, reverse=True)

    return MergeResult(
        feed=combined[:max_items],
        admitted=admitted,
        seen_ids=seen_order + [item.id for item in admitted],
        evicted=max(0, len(combined) - max_items),
    )


def merge_results(
    current_feed: Sequence[NormalizedItem],
    seen_ids: Iterable[str],
    results: Iterable[SourceResult],
    max_items: int = DEFAULT_MAX_ITEMS,
) -> MergeResult:
    """Merge only the successful source results; failures contribute nothing."""
    batches = [result.items for result in results if result.ok]
    return merge(current_feed, seen_ids, batches, max_items=max_items)

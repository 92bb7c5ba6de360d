"""
Seen-set ledger: identifiers and conversations already processed.

The ledger outlives the feed's retention window so that an item evicted
from the feed is still rejected if a source returns it again. Both lists
are kept in insertion order (oldest first) so retention can drop the
least recently added entries.
"""

from collections.abc import Iterable, Sequence

from pydantic import BaseModel, Field

from feed_aggregator.ingestion.schemas import NormalizedItem


def _append_unique(existing: list[str], new: Iterable[str]) -> list[str]:
    """Append values not already present, preserving order."""
    ordered = dict.fromkeys(existing)
    for value in new:
        if value and value not in ordered:
            ordered[value] = None
    return list(ordered)


def _keep_recent(values: list[str], limit: int, pinned: set[str]) -> list[str]:
    """
    Keep the last `limit` values plus every pinned value.

    Pinned values survive even when that pushes the result past `limit`.
    """
    if len(values) <= limit:
        return list(values)
    recent = set(values[-limit:])
    return [v for v in values if v in recent or v in pinned]


class SeenState(BaseModel):
    """Durable dedup ledger persisted as ``{ids: [...], conversations: [...]}``."""

    ids: list[str] = Field(default_factory=list)
    conversations: list[str] = Field(default_factory=list)

    def id_set(self) -> set[str]:
        return set(self.ids)

    def conversation_set(self) -> set[str]:
        return set(self.conversations)

    def remember(
        self,
        ids: Iterable[str] = (),
        conversations: Iterable[str] = (),
    ) -> "SeenState":
        """Return a new state with the given values appended."""
        return SeenState(
            ids=_append_unique(self.ids, ids),
            conversations=_append_unique(self.conversations, conversations),
        )

    def trimmed(
        self,
        feed: Sequence[NormalizedItem],
        max_ids: int,
        max_conversations: int,
    ) -> "SeenState":
        """
        Apply most-recent-N retention to both lists.

        Identifiers of items still in `feed`, and the conversations those
        items belong to, are never dropped: feed retention bounds ledger
        retention, not the reverse.
        """
        feed_ids = {item.id for item in feed}
        feed_conversations = {
            item.conversation_id for item in feed if item.conversation_id
        }
        # Feed ids must be present even if the caller forgot to record them
        ids = _append_unique(self.ids, (item.id for item in feed))
        return SeenState(
            ids=_keep_recent(ids, max_ids, feed_ids),
            conversations=_keep_recent(
                self.conversations, max_conversations, feed_conversations
            ),
        )

"""Feed core - merge engine, seen-set ledger, and thread filter."""

from feed_aggregator.feed.merge import MergeResult, merge, merge_results
from feed_aggregator.feed.seen import SeenState
from feed_aggregator.feed.threads import filter_threads

__all__ = ["MergeResult", "merge", "merge_results", "SeenState", "filter_threads"]

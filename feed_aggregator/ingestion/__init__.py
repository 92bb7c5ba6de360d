"""Data ingestion module - source adapters, Apify runner, and item schema."""

from feed_aggregator.ingestion.schemas import (
    NormalizedItem,
    Source,
    SourceResult,
)

__all__ = [
    "Source",
    "NormalizedItem",
    "SourceResult",
]

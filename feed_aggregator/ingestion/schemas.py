"""
Canonical item schema for the feed pipeline.

CRITICAL: This schema is the persisted feed format and the public read API.
Do not rename fields without updating the frontend and the mirror table.
All source adapters MUST output this exact structure.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

UNKNOWN_AUTHOR = "unknown"

# Reserved metadata key read by the conversation thread filter
CONVERSATION_ID_KEY = "conversation_id"


class Source(str, Enum):
    """Known item sources. The feed accepts other tags as well."""

    TWITTER = "twitter"
    REDDIT = "reddit"
    GITHUB = "github"


class NormalizedItem(BaseModel):
    """
    CANONICAL ITEM SCHEMA

    The feed is a set of these keyed by ``id``, materialized as a list
    sorted newest-first by ``timestamp``.
    """

    id: str = Field(
        ...,
        description="Unique ID in format: {source}_{native_id}",
        examples=["twitter_1234567890", "github_issue_42"],
    )
    source: str = Field(..., description="Source tag (twitter, reddit, github, ...)")
    author: str = Field(default=UNKNOWN_AUTHOR, description="Source-native username")
    content: str = Field(default="", description="Free text, possibly truncated")
    url: str | None = Field(default=None, description="Canonical permalink")
    timestamp: datetime = Field(
        ...,
        description="UTC creation time at the source; the feed sort key",
    )
    category: str | None = Field(
        default=None,
        description="Classification label assigned outside the pipeline",
    )
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Source-specific fields (engagement, labels, conversation_id)",
    )

    @field_validator("id")
    @classmethod
    def validate_id_format(cls, v: str) -> str:
        """Ensure ID follows source_nativeid format."""
        if "_" not in v:
            raise ValueError("ID must be in format: {source}_{native_id}")
        return v

    @field_validator("source")
    @classmethod
    def normalize_source(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            raise ValueError("source must not be empty")
        return v

    @field_validator("author", mode="before")
    @classmethod
    def default_author(cls, v: Any) -> str:
        """Substitute the sentinel for missing or blank usernames."""
        if v is None or not str(v).strip():
            return UNKNOWN_AUTHOR
        return str(v).strip()

    @field_validator("content", mode="before")
    @classmethod
    def default_content(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("metadata", mode="before")
    @classmethod
    def default_metadata(cls, v: Any) -> dict[str, Any]:
        return v or {}

    @field_validator("timestamp")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        """Treat naive timestamps as UTC so all items compare."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @property
    def conversation_id(self) -> str | None:
        """Thread identifier used for conversation collapsing, if any."""
        value = self.metadata.get(CONVERSATION_ID_KEY)
        if value is None or value == "":
            return None
        return str(value)

    def to_feed_dict(self) -> dict[str, Any]:
        """JSON-ready dict for the persisted feed artifact."""
        return self.model_dump(mode="json")


@dataclass
class SourceResult:
    """
    Outcome of one source fetch.

    Adapters never raise past their boundary; they return one of these
    so the merge engine only ever sees zero-or-more items per source.
    """

    source: str
    items: list[NormalizedItem] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, source: str, items: list[NormalizedItem]) -> "SourceResult":
        return cls(source=source, items=list(items))

    @classmethod
    def failure(cls, source: str, reason: str) -> "SourceResult":
        return cls(source=source, items=[], error=reason)

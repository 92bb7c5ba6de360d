"""
Twitter adapter backed by an Apify tweet-scraper actor.

Runs a live search for the configured terms and maps each tweet to a
NormalizedItem. The conversation id is kept in metadata so the thread
filter can collapse reply chains.

Handles:
- Demo rows returned by Apify when the account is out of credits
- Username fallbacks (author.userName, user.screen_name, tweet URL)
- Engagement counts under both of the actor's field spellings
"""

import logging
import re
from collections.abc import AsyncIterator
from datetime import datetime, timezone
from typing import Any

from feed_aggregator.config.settings import get_settings
from feed_aggregator.ingestion.apify_client import ApifyClient
from feed_aggregator.ingestion.base_adapter import (
    BaseAdapter,
    clean_text,
    first_present,
    parse_timestamp,
)
from feed_aggregator.ingestion.schemas import (
    CONVERSATION_ID_KEY,
    UNKNOWN_AUTHOR,
    NormalizedItem,
    Source,
)

logger = logging.getLogger(__name__)

TWITTER_ACTOR_ID = "61RPP7dywgiy0JPD0"

_USERNAME_FROM_URL = re.compile(r"(?:twitter\.com|x\.com)/([^/]+)/")


def username_from_url(url: str | None) -> str | None:
    """Extract the account name from a tweet permalink."""
    if not url:
        return None
    match = _USERNAME_FROM_URL.search(url)
    return match.group(1) if match else None


class TwitterAdapter(BaseAdapter):
    """
    Fetch recent tweets matching the search terms.

    Example:
        adapter = TwitterAdapter(search_terms=["@FactoryAI", "factory.ai"])
        result = await adapter.fetch()
    """

    def __init__(
        self,
        search_terms: list[str] | None = None,
        apify_client: ApifyClient | None = None,
        max_items: int | None = None,
    ):
        super().__init__()
        settings = get_settings()
        self._search_terms = search_terms or ["@FactoryAI"]
        self._apify = apify_client or ApifyClient()
        self._max_items = max_items or settings.apify_max_items

    @property
    def source(self) -> str:
        return Source.TWITTER.value

    @property
    def is_configured(self) -> bool:
        return self._apify.is_configured

    def build_input(self) -> dict[str, Any]:
        return {
            "searchMode": "live",
            "searchTerms": list(self._search_terms),
            "maxItems": self._max_items,
            "addUserInfo": True,
        }

    async def _fetch_raw(self) -> AsyncIterator[dict[str, Any]]:
        preview = ", ".join(self._search_terms[:5])
        if len(self._search_terms) > 5:
            preview += "..."
        logger.info(f"Searching Twitter for {len(self._search_terms)} terms: {preview}")

        rows = await self._apify.run_actor(TWITTER_ACTOR_ID, self.build_input())
        real = [row for row in rows if not row.get("demo")]

        if rows and not real:
            logger.warning(
                "Apify returned only demo tweets; check the account's remaining credits"
            )

        for row in real:
            yield row

    def _transform(self, raw: dict[str, Any]) -> NormalizedItem | None:
        tweet_id = raw.get("id")
        text = first_present(raw, "text", "fullText")
        if not tweet_id or not text:
            return None
        tweet_id = str(tweet_id)

        author = raw.get("author") or {}
        user = raw.get("user") or {}
        username = author.get("userName") or user.get("screen_name")
        if not username:
            username = username_from_url(first_present(raw, "twitterUrl", "url"))
        username = username or UNKNOWN_AUTHOR

        timestamp = parse_timestamp(raw.get("createdAt")) or datetime.now(timezone.utc)

        url = first_present(
            raw,
            "url",
            "twitterUrl",
            default=f"https://x.com/{username}/status/{tweet_id}",
        )

        return NormalizedItem(
            id=f"twitter_{tweet_id}",
            source=self.source,
            author=username,
            content=clean_text(text),
            url=url,
            timestamp=timestamp,
            metadata={
                CONVERSATION_ID_KEY: str(raw.get("conversationId") or tweet_id),
                "likes": first_present(raw, "likeCount", "likes", default=0),
                "retweets": first_present(raw, "retweetCount", "retweets", default=0),
                "replies": first_present(raw, "replyCount", "replies", default=0),
                "quotes": raw.get("quoteCount") or 0,
            },
        )

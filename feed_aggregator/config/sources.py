"""
Source selection for the scraping adapters.

Search terms and subreddit URLs live in a JSON file shared with the
frontend (``{"twitter": {"searchTerms": [...]}, "reddit": {"urls": [...]}}``).
Comma-separated environment values take precedence over the file.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_TWITTER_SEARCH_TERMS = ["@FactoryAI"]


@dataclass
class SourceConfig:
    """What each adapter should scrape."""

    twitter_search_terms: list[str] = field(
        default_factory=lambda: DEFAULT_TWITTER_SEARCH_TERMS.copy()
    )
    reddit_urls: list[str] = field(default_factory=list)


def split_csv(value: str | None) -> list[str]:
    """Split a comma-separated string, dropping blanks."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def parse_usernames(usernames_str: str | None) -> list[str]:
    """
    Parse comma-separated usernames string into a list.

    Args:
        usernames_str: Comma-separated usernames (e.g., "user1,@user2")

    Returns:
        Lower-cased usernames without @ prefix (empty list if unset)
    """
    return [u.lstrip("@").lower() for u in split_csv(usernames_str) if u.lstrip("@")]


def load_source_config(
    path: Path | None = None,
    twitter_search_terms: str | None = None,
    reddit_urls: str | None = None,
) -> SourceConfig:
    """
    Build the source config from the JSON file and env overrides.

    A missing or unreadable file is not an error: Twitter falls back to the
    default search terms and Reddit to no URLs.
    """
    config = SourceConfig()

    if path is not None:
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except FileNotFoundError:
            logger.info(f"Sources config {path} not found, using defaults")
            data = {}
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read sources config {path}: {e}")
            data = {}

        if isinstance(data, dict):
            terms = (data.get("twitter") or {}).get("searchTerms") or []
            urls = (data.get("reddit") or {}).get("urls") or []
            if terms:
                config.twitter_search_terms = [str(t) for t in terms]
            config.reddit_urls = [str(u) for u in urls]

    env_terms = split_csv(twitter_search_terms)
    if env_terms:
        config.twitter_search_terms = env_terms

    env_urls = split_csv(reddit_urls)
    if env_urls:
        config.reddit_urls = env_urls

    return config

"""
GitHub adapter for repository discussions and open issues.

One GraphQL request returns the 20 newest discussions and the 20 newest
open issues. Discussions and issues share a number space per repository,
so the item id carries the kind: github_discussion_<n>, github_issue_<n>.
"""

import logging
from collections.abc import AsyncIterator
from typing import Any

from feed_aggregator.config.settings import get_settings
from feed_aggregator.ingestion.base_adapter import (
    BaseAdapter,
    parse_timestamp,
    truncate,
)
from feed_aggregator.ingestion.http_client import HTTPClient, RetryConfig
from feed_aggregator.ingestion.schemas import UNKNOWN_AUTHOR, NormalizedItem, Source

logger = logging.getLogger(__name__)

GITHUB_GRAPHQL_URL = "https://api.github.com/graphql"
PAGE_SIZE = 20

REPOSITORY_QUERY = """
query($owner: String!, $name: String!, $first: Int!) {
  repository(owner: $owner, name: $name) {
    discussions(first: $first, orderBy: {field: CREATED_AT, direction: DESC}) {
      nodes {
        number
        title
        body
        url
        createdAt
        author { login }
        category { name }
      }
    }
    issues(first: $first, orderBy: {field: CREATED_AT, direction: DESC}, states: [OPEN]) {
      nodes {
        number
        title
        body
        url
        createdAt
        author { login }
        labels(first: 5) { nodes { name } }
      }
    }
  }
}
"""


class GitHubQueryError(Exception):
    """Raised when the GraphQL response carries errors or no repository."""


def split_repo(repo: str) -> tuple[str, str] | None:
    """Split "owner/name"; None when the value is malformed."""
    parts = repo.strip().split("/")
    if len(parts) != 2 or not all(parts):
        return None
    return parts[0], parts[1]


class GitHubAdapter(BaseAdapter):
    """Fetch discussions and open issues from one repository."""

    def __init__(
        self,
        token: str | None = None,
        repo: str | None = None,
        retry_config: RetryConfig | None = None,
    ):
        super().__init__()
        settings = get_settings()
        self._token = token or settings.github_token
        self._repo = repo or settings.github_repo
        self._retry_config = retry_config or RetryConfig.from_settings()

    @property
    def source(self) -> str:
        return Source.GITHUB.value

    @property
    def is_configured(self) -> bool:
        return bool(self._token)

    async def _fetch_raw(self) -> AsyncIterator[dict[str, Any]]:
        owner_name = split_repo(self._repo)
        if owner_name is None:
            raise ValueError(f"Invalid GITHUB_REPO {self._repo!r}, expected owner/name")
        owner, name = owner_name

        async with HTTPClient(self._retry_config) as client:
            response = await client.post(
                GITHUB_GRAPHQL_URL,
                headers={
                    "Authorization": f"bearer {self._token}",
                    "User-Agent": "feed-aggregator",
                },
                json_body={
                    "query": REPOSITORY_QUERY,
                    "variables": {"owner": owner, "name": name, "first": PAGE_SIZE},
                },
            )

        payload = response.json()
        if payload.get("errors"):
            messages = "; ".join(e.get("message", "?") for e in payload["errors"])
            raise GitHubQueryError(f"GitHub GraphQL errors: {messages}")

        repository = (payload.get("data") or {}).get("repository")
        if not repository:
            raise GitHubQueryError(f"Repository {self._repo} not found")

        discussions = (repository.get("discussions") or {}).get("nodes") or []
        issues = (repository.get("issues") or {}).get("nodes") or []
        logger.info(
            f"Fetched {len(discussions)} discussions and {len(issues)} issues "
            f"from {self._repo}"
        )

        for node in discussions:
            yield {"kind": "discussion", **node}
        for node in issues:
            yield {"kind": "issue", **node}

    def _transform(self, raw: dict[str, Any]) -> NormalizedItem | None:
        number = raw.get("number")
        timestamp = parse_timestamp(raw.get("createdAt"))
        if number is None or timestamp is None:
            return None

        kind = raw["kind"]
        label = "Discussion" if kind == "discussion" else "Issue"
        author = (raw.get("author") or {}).get("login") or UNKNOWN_AUTHOR

        metadata: dict[str, Any] = {"type": kind, "number": number}
        if kind == "discussion":
            metadata["category"] = (raw.get("category") or {}).get("name")
        else:
            label_nodes = (raw.get("labels") or {}).get("nodes") or []
            metadata["labels"] = [n["name"] for n in label_nodes if n.get("name")]

        return NormalizedItem(
            id=f"github_{kind}_{number}",
            source=self.source,
            author=author,
            content=f"[{label}] {raw.get('title') or ''}\n\n{truncate(raw.get('body'))}",
            url=raw.get("url"),
            timestamp=timestamp,
            metadata=metadata,
        )

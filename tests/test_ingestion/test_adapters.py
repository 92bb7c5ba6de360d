"""Tests for the source adapters."""

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import respx

from feed_aggregator.ingestion.apify_client import ApifyRunError
from feed_aggregator.ingestion.base_adapter import (
    NOT_CONFIGURED,
    clean_text,
    first_present,
    parse_timestamp,
    truncate,
)
from feed_aggregator.ingestion.github_adapter import (
    GITHUB_GRAPHQL_URL,
    GitHubAdapter,
    split_repo,
)
from feed_aggregator.ingestion.http_client import RetryConfig
from feed_aggregator.ingestion.mock_adapter import MockAdapter
from feed_aggregator.ingestion.reddit_adapter import REDDIT_ACTOR_ID, RedditAdapter
from feed_aggregator.ingestion.twitter_adapter import (
    TWITTER_ACTOR_ID,
    TwitterAdapter,
    username_from_url,
)


def fake_apify(rows=None, error=None, configured=True) -> MagicMock:
    apify = MagicMock()
    apify.is_configured = configured
    if error is not None:
        apify.run_actor = AsyncMock(side_effect=error)
    else:
        apify.run_actor = AsyncMock(return_value=rows or [])
    return apify


def tweet(**overrides) -> dict:
    row = {
        "id": "1790000000000000001",
        "text": "Trying @FactoryAI today",
        "createdAt": "Wed Oct 10 20:19:24 +0000 2018",
        "author": {"userName": "dev_dana"},
        "url": "https://x.com/dev_dana/status/1790000000000000001",
        "conversationId": "1790000000000000000",
        "likeCount": 4,
        "retweetCount": 1,
        "replyCount": 2,
        "quoteCount": 0,
    }
    row.update(overrides)
    return row


def reddit_post(**overrides) -> dict:
    row = {
        "dataType": "post",
        "id": "t3_abc",
        "parsedId": "abc",
        "title": "Agents in CI",
        "body": "We tried it.",
        "username": "redditor",
        "url": "https://www.reddit.com/r/programming/comments/abc/",
        "createdAt": "2026-03-01T10:00:00.000Z",
        "upVotes": 12,
        "numberOfComments": 3,
        "parsedCommunityName": "programming",
    }
    row.update(overrides)
    return row


class TestHelpers:
    """Shared preprocessing helpers."""

    def test_parse_timestamp_iso_with_z(self):
        parsed = parse_timestamp("2026-03-01T10:00:00Z")

        assert parsed == datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc)

    def test_parse_timestamp_twitter_format(self):
        parsed = parse_timestamp("Wed Oct 10 20:19:24 +0000 2018")

        assert parsed == datetime(2018, 10, 10, 20, 19, 24, tzinfo=timezone.utc)

    def test_parse_timestamp_epoch(self):
        assert parse_timestamp(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_parse_timestamp_naive_is_utc(self):
        assert parse_timestamp("2026-03-01T10:00:00").tzinfo == timezone.utc

    @pytest.mark.parametrize("value", [None, "", "yesterday"])
    def test_parse_timestamp_invalid(self, value):
        assert parse_timestamp(value) is None

    def test_clean_text_strips_control_characters(self):
        assert clean_text("  hello\x00 world\n\nbye\x07  ") == "hello world\n\nbye"

    def test_truncate(self):
        assert truncate("x" * 600) == "x" * 500
        assert truncate(None) == ""

    def test_first_present(self):
        assert first_present({"a": "", "b": "B"}, "a", "b") == "B"
        assert first_present({}, "a", default=0) == 0


class TestTwitterAdapter:
    """Tweet mapping and demo filtering."""

    async def test_maps_tweet(self):
        adapter = TwitterAdapter(search_terms=["@FactoryAI"], apify_client=fake_apify([tweet()]))

        result = await adapter.fetch()

        assert result.ok
        item = result.items[0]
        assert item.id == "twitter_1790000000000000001"
        assert item.author == "dev_dana"
        assert item.timestamp == datetime(2018, 10, 10, 20, 19, 24, tzinfo=timezone.utc)
        assert item.conversation_id == "1790000000000000000"
        assert item.metadata["likes"] == 4
        assert item.metadata["retweets"] == 1

    async def test_builds_actor_input(self):
        apify = fake_apify([])
        adapter = TwitterAdapter(search_terms=["a", "b"], apify_client=apify, max_items=7)

        await adapter.fetch()

        actor_id, actor_input = apify.run_actor.call_args.args
        assert actor_id == TWITTER_ACTOR_ID
        assert actor_input == {
            "searchMode": "live",
            "searchTerms": ["a", "b"],
            "maxItems": 7,
            "addUserInfo": True,
        }

    async def test_username_fallbacks(self):
        rows = [
            tweet(id="1", author=None, user={"screen_name": "legacy_user"}),
            tweet(id="2", author=None, url="https://twitter.com/from_url/status/2"),
            tweet(id="3", author=None, url=None, twitterUrl=None),
        ]
        adapter = TwitterAdapter(apify_client=fake_apify(rows))

        result = await adapter.fetch()

        assert [i.author for i in result.items] == ["legacy_user", "from_url", "unknown"]
        assert result.items[2].url == "https://x.com/unknown/status/3"

    async def test_conversation_defaults_to_tweet_id(self):
        adapter = TwitterAdapter(apify_client=fake_apify([tweet(conversationId=None)]))

        result = await adapter.fetch()

        assert result.items[0].conversation_id == "1790000000000000001"

    async def test_full_text_and_missing_timestamp(self):
        row = tweet(text=None, fullText="long form", createdAt=None)
        adapter = TwitterAdapter(apify_client=fake_apify([row]))

        result = await adapter.fetch()

        assert result.items[0].content == "long form"
        assert result.items[0].timestamp.tzinfo is not None

    async def test_demo_and_textless_rows_dropped(self):
        rows = [tweet(id="9", demo=True), tweet(id="10", text=None), tweet(id="11")]
        adapter = TwitterAdapter(apify_client=fake_apify(rows))

        result = await adapter.fetch()

        assert [i.id for i in result.items] == ["twitter_11"]

    async def test_not_configured(self):
        adapter = TwitterAdapter(apify_client=fake_apify(configured=False))

        result = await adapter.fetch()

        assert not result.ok
        assert result.error == NOT_CONFIGURED

    async def test_actor_failure_becomes_failed_result(self):
        apify = fake_apify(error=ApifyRunError("run ended with status FAILED"))
        adapter = TwitterAdapter(apify_client=apify)

        result = await adapter.fetch()

        assert result.items == []
        assert result.error == "ApifyRunError: run ended with status FAILED"

    def test_username_from_url(self):
        assert username_from_url("https://x.com/someone/status/1") == "someone"
        assert username_from_url("https://example.com/a/b") is None
        assert username_from_url(None) is None


class TestRedditAdapter:
    """Reddit post mapping."""

    async def test_maps_post(self):
        adapter = RedditAdapter(
            urls=["https://www.reddit.com/r/programming/new/"],
            apify_client=fake_apify([reddit_post()]),
        )

        result = await adapter.fetch()

        item = result.items[0]
        assert item.id == "reddit_abc"
        assert item.content == "Agents in CI\n\nWe tried it."
        assert item.author == "redditor"
        assert item.metadata == {"score": 12, "num_comments": 3, "subreddit": "programming"}

    async def test_builds_actor_input(self):
        apify = fake_apify([])
        adapter = RedditAdapter(urls=["https://r/a"], apify_client=apify, max_items=3)

        await adapter.fetch()

        actor_id, actor_input = apify.run_actor.call_args.args
        assert actor_id == REDDIT_ACTOR_ID
        assert actor_input["startUrls"] == [{"url": "https://r/a"}]
        assert actor_input["skipComments"] is True

    async def test_skips_comments_and_undated_posts(self):
        rows = [
            reddit_post(dataType="comment"),
            reddit_post(id="t3_x", parsedId="x", createdAt="not a date"),
            reddit_post(id="t3_y", parsedId="y", title=""),
            reddit_post(id="t3_z", parsedId="z", body=None),
        ]
        adapter = RedditAdapter(urls=["https://r/a"], apify_client=fake_apify(rows))

        result = await adapter.fetch()

        assert [i.id for i in result.items] == ["reddit_z"]
        assert result.items[0].content == "Agents in CI"

    async def test_body_truncated(self):
        row = reddit_post(body="b" * 900)
        adapter = RedditAdapter(urls=["https://r/a"], apify_client=fake_apify([row]))

        result = await adapter.fetch()

        assert result.items[0].content == "Agents in CI\n\n" + "b" * 500

    async def test_no_urls_is_empty_success(self):
        apify = fake_apify([reddit_post()])
        adapter = RedditAdapter(urls=[], apify_client=apify)

        result = await adapter.fetch()

        assert result.ok
        assert result.items == []
        apify.run_actor.assert_not_called()


def graphql_payload() -> dict:
    return {
        "data": {
            "repository": {
                "discussions": {
                    "nodes": [
                        {
                            "number": 12,
                            "title": "Roadmap",
                            "body": "What is next?",
                            "url": "https://github.com/o/r/discussions/12",
                            "createdAt": "2026-03-01T09:00:00Z",
                            "author": {"login": "maintainer"},
                            "category": {"name": "Ideas"},
                        }
                    ]
                },
                "issues": {
                    "nodes": [
                        {
                            "number": 12,
                            "title": "Crash on start",
                            "body": None,
                            "url": "https://github.com/o/r/issues/12",
                            "createdAt": "2026-03-01T08:00:00Z",
                            "author": None,
                            "labels": {"nodes": [{"name": "bug"}]},
                        }
                    ]
                },
            }
        }
    }


class TestGitHubAdapter:
    """GraphQL discussions and issues."""

    def _adapter(self, **kwargs) -> GitHubAdapter:
        kwargs.setdefault("token", "ghp_test")
        kwargs.setdefault("repo", "o/r")
        return GitHubAdapter(retry_config=RetryConfig(max_retries=0), **kwargs)

    @respx.mock
    async def test_maps_discussions_and_issues(self):
        route = respx.post(GITHUB_GRAPHQL_URL).mock(
            return_value=httpx.Response(200, json=graphql_payload())
        )

        result = await self._adapter().fetch()

        assert [i.id for i in result.items] == ["github_discussion_12", "github_issue_12"]
        discussion, issue = result.items
        assert discussion.content == "[Discussion] Roadmap\n\nWhat is next?"
        assert discussion.metadata == {"type": "discussion", "number": 12, "category": "Ideas"}
        assert issue.author == "unknown"
        assert issue.metadata["labels"] == ["bug"]

        request = route.calls.last.request
        assert request.headers["Authorization"] == "bearer ghp_test"
        body = json.loads(request.content)
        assert body["variables"] == {"owner": "o", "name": "r", "first": 20}

    @respx.mock
    async def test_graphql_errors_fail_source(self):
        respx.post(GITHUB_GRAPHQL_URL).mock(
            return_value=httpx.Response(200, json={"errors": [{"message": "Bad credentials"}]})
        )

        result = await self._adapter().fetch()

        assert not result.ok
        assert "Bad credentials" in result.error

    @respx.mock
    async def test_missing_repository_fails_source(self):
        respx.post(GITHUB_GRAPHQL_URL).mock(
            return_value=httpx.Response(200, json={"data": {"repository": None}})
        )

        result = await self._adapter().fetch()

        assert "not found" in result.error

    async def test_invalid_repo_fails_source(self):
        result = await self._adapter(repo="not-a-repo").fetch()

        assert result.error.startswith("ValueError")

    async def test_not_configured_without_token(self):
        adapter = GitHubAdapter(token=None)

        result = await adapter.fetch()

        assert result.error == NOT_CONFIGURED

    def test_split_repo(self):
        assert split_repo("Factory-AI/factory") == ("Factory-AI", "factory")
        assert split_repo("a/b/c") is None
        assert split_repo("/b") is None


class TestMockAdapter:
    async def test_generates_items(self):
        adapter = MockAdapter(source="reddit", items_per_fetch=4, seed=1)

        result = await adapter.fetch()

        assert len(result.items) == 4
        assert all(i.id.startswith("reddit_mock_") for i in result.items)
        assert all(i.metadata["mock"] is True for i in result.items)

    async def test_twitter_items_carry_conversation(self):
        adapter = MockAdapter(source="twitter", items_per_fetch=3, seed=1)

        result = await adapter.fetch()

        assert all(i.conversation_id for i in result.items)

    async def test_seeded_output_is_reproducible(self):
        first = await MockAdapter(source="github", seed=42).fetch()
        second = await MockAdapter(source="github", seed=42).fetch()

        assert [i.id for i in first.items] == [i.id for i in second.items]

    async def test_error_simulates_failed_source(self):
        result = await MockAdapter(error="simulated outage").fetch()

        assert result.error == "RuntimeError: simulated outage"

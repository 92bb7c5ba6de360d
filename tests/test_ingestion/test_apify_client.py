"""Tests for the Apify actor runner."""

import httpx
import pytest
import respx

from feed_aggregator.ingestion.apify_client import APIFY_API_BASE, ApifyClient, ApifyRunError
from feed_aggregator.ingestion.http_client import RetryConfig

ACTOR = "actor123"
RUNS_URL = f"{APIFY_API_BASE}/acts/{ACTOR}/runs"
RUN_URL = f"{APIFY_API_BASE}/actor-runs/run-1"
DATASET_URL = f"{APIFY_API_BASE}/datasets/ds-1/items"


def run_payload(status: str, dataset: str | None = "ds-1") -> dict:
    return {"data": {"id": "run-1", "status": status, "defaultDatasetId": dataset}}


@pytest.fixture
def client():
    return ApifyClient(
        token="apify-token",
        poll_interval_seconds=0,
        max_polls=3,
        retry_config=RetryConfig(max_retries=0),
    )


class TestRunActor:
    """Start, poll and download."""

    @respx.mock
    async def test_polls_until_succeeded(self, client):
        start = respx.post(RUNS_URL).mock(
            return_value=httpx.Response(201, json=run_payload("READY"))
        )
        poll = respx.get(RUN_URL).mock(
            side_effect=[
                httpx.Response(200, json=run_payload("RUNNING")),
                httpx.Response(200, json=run_payload("SUCCEEDED")),
            ]
        )
        respx.get(DATASET_URL).mock(
            return_value=httpx.Response(200, json=[{"id": "1"}, "junk", {"id": "2"}])
        )

        items = await client.run_actor(ACTOR, {"searchTerms": ["@FactoryAI"]})

        assert items == [{"id": "1"}, {"id": "2"}]
        assert poll.call_count == 2
        request = start.calls.last.request
        assert request.headers["Authorization"] == "Bearer apify-token"
        assert b"@FactoryAI" in request.content

    @respx.mock
    async def test_failed_run_raises(self, client):
        respx.post(RUNS_URL).mock(return_value=httpx.Response(201, json=run_payload("READY")))
        respx.get(RUN_URL).mock(return_value=httpx.Response(200, json=run_payload("ABORTED")))

        with pytest.raises(ApifyRunError) as exc_info:
            await client.run_actor(ACTOR, {})

        assert exc_info.value.status == "ABORTED"
        assert exc_info.value.run_id == "run-1"

    @respx.mock
    async def test_gives_up_after_max_polls(self, client):
        respx.post(RUNS_URL).mock(return_value=httpx.Response(201, json=run_payload("READY")))
        poll = respx.get(RUN_URL).mock(
            return_value=httpx.Response(200, json=run_payload("RUNNING"))
        )

        with pytest.raises(ApifyRunError, match="still RUNNING after 3 polls"):
            await client.run_actor(ACTOR, {})

        assert poll.call_count == 3

    @respx.mock
    async def test_http_error_wrapped(self, client):
        respx.post(RUNS_URL).mock(return_value=httpx.Response(401, text="unauthorized"))

        with pytest.raises(ApifyRunError, match="Apify request failed"):
            await client.run_actor(ACTOR, {})

    @respx.mock
    async def test_dataset_must_be_list(self, client):
        respx.post(RUNS_URL).mock(return_value=httpx.Response(201, json=run_payload("READY")))
        respx.get(RUN_URL).mock(return_value=httpx.Response(200, json=run_payload("SUCCEEDED")))
        respx.get(DATASET_URL).mock(return_value=httpx.Response(200, json={"error": "nope"}))

        with pytest.raises(ApifyRunError, match="did not return a list"):
            await client.run_actor(ACTOR, {})

    async def test_missing_token(self):
        client = ApifyClient(token=None)

        assert client.is_configured is False
        with pytest.raises(ApifyRunError, match="not configured"):
            await client.run_actor(ACTOR, {})

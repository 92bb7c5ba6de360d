"""
Apify actor runner.

Twitter and Reddit are scraped through hosted Apify actors. A run is
started, polled until it reaches a terminal status, and its default
dataset is downloaded. Polling uses asyncio.sleep so other sources keep
fetching while an actor runs.
"""

import asyncio
import logging
from typing import Any

from feed_aggregator.config.settings import get_settings
from feed_aggregator.ingestion.http_client import (
    HTTPClient,
    HTTPClientError,
    RetryConfig,
)

logger = logging.getLogger(__name__)

APIFY_API_BASE = "https://api.apify.com/v2"

STATUS_SUCCEEDED = "SUCCEEDED"
FAILED_STATUSES = frozenset({"FAILED", "ABORTED", "TIMED-OUT"})


class ApifyRunError(Exception):
    """Raised when an actor run fails, times out, or returns an unusable payload."""

    def __init__(self, message: str, run_id: str | None = None, status: str | None = None):
        super().__init__(message)
        self.run_id = run_id
        self.status = status


class ApifyClient:
    """
    Start an actor, wait for it, return its dataset items.

    Example:
        client = ApifyClient(token="apify_api_...")
        items = await client.run_actor("61RPP7dywgiy0JPD0", {"searchTerms": ["@FactoryAI"]})
    """

    def __init__(
        self,
        token: str | None = None,
        poll_interval_seconds: float | None = None,
        max_polls: int | None = None,
        retry_config: RetryConfig | None = None,
        timeout: float = 30.0,
        base_url: str = APIFY_API_BASE,
    ):
        settings = get_settings()
        self._token = token or settings.apify_token
        self._poll_interval = (
            poll_interval_seconds
            if poll_interval_seconds is not None
            else settings.apify_poll_interval_seconds
        )
        self._max_polls = max_polls or settings.apify_max_polls
        self._retry_config = retry_config or RetryConfig.from_settings()
        self._timeout = timeout
        self._base_url = base_url.rstrip("/")

    @property
    def is_configured(self) -> bool:
        return bool(self._token)

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._token}"}

    async def run_actor(
        self, actor_id: str, actor_input: dict[str, Any]
    ) -> list[dict[str, Any]]:
        """
        Run an actor to completion and return its dataset items.

        Raises:
            ApifyRunError: On a failed/aborted/timed-out run, on exhausting
                max_polls, or on any HTTP error talking to Apify.
        """
        if not self._token:
            raise ApifyRunError("Apify token not configured")

        try:
            async with HTTPClient(self._retry_config, timeout=self._timeout) as client:
                run_id = await self._start_run(client, actor_id, actor_input)
                dataset_id = await self._wait_for_run(client, run_id)
                return await self._fetch_dataset(client, dataset_id)
        except HTTPClientError as e:
            raise ApifyRunError(f"Apify request failed for actor {actor_id}: {e}") from e

    async def _start_run(
        self, client: HTTPClient, actor_id: str, actor_input: dict[str, Any]
    ) -> str:
        response = await client.post(
            f"{self._base_url}/acts/{actor_id}/runs",
            headers=self._headers(),
            json_body=actor_input,
        )
        run = self._run_data(response.json())
        run_id = run.get("id")
        if not run_id:
            raise ApifyRunError(f"Apify did not return a run id for actor {actor_id}")

        logger.info(f"Apify run started: actor={actor_id} run={run_id}")
        return str(run_id)

    async def _wait_for_run(self, client: HTTPClient, run_id: str) -> str:
        """Poll until a terminal status; return the default dataset id."""
        status = None
        for attempt in range(1, self._max_polls + 1):
            await asyncio.sleep(self._poll_interval)

            response = await client.get(
                f"{self._base_url}/actor-runs/{run_id}",
                headers=self._headers(),
            )
            run = self._run_data(response.json())
            status = run.get("status")
            logger.debug(f"Apify run {run_id} status: {status} ({attempt}/{self._max_polls})")

            if status == STATUS_SUCCEEDED:
                dataset_id = run.get("defaultDatasetId")
                if not dataset_id:
                    raise ApifyRunError(
                        "Apify run succeeded without a dataset", run_id=run_id, status=status
                    )
                return str(dataset_id)

            if status in FAILED_STATUSES:
                raise ApifyRunError(
                    f"Apify run {run_id} ended with status {status}",
                    run_id=run_id,
                    status=status,
                )

        raise ApifyRunError(
            f"Apify run {run_id} still {status} after {self._max_polls} polls",
            run_id=run_id,
            status=status,
        )

    async def _fetch_dataset(self, client: HTTPClient, dataset_id: str) -> list[dict[str, Any]]:
        response = await client.get(
            f"{self._base_url}/datasets/{dataset_id}/items",
            headers=self._headers(),
            params={"format": "json"},
        )
        items = response.json()
        if not isinstance(items, list):
            raise ApifyRunError(f"Dataset {dataset_id} did not return a list")
        return [item for item in items if isinstance(item, dict)]

    @staticmethod
    def _run_data(payload: Any) -> dict[str, Any]:
        if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
            return payload["data"]
        raise ApifyRunError("Unexpected Apify response shape")

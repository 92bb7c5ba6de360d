"""
Retrying HTTP transport shared by the Apify and GitHub clients.

Adapters only deal with payload shapes; everything about status codes,
transient network failures and backoff lives here.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any

import httpx

from feed_aggregator.config.settings import get_settings

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
RETRYABLE_EXCEPTIONS = (httpx.TimeoutException, httpx.ConnectError, httpx.ReadError)


@dataclass
class RetryConfig:
    """
    Backoff policy.

    Attempt n waits min(max_backoff, base_delay * 2^n) plus up to
    jitter_factor of that again. A Retry-After header on a 429 or 503
    replaces the computed delay, still capped at max_backoff.
    """

    max_retries: int = 3
    max_backoff_seconds: float = 60.0
    base_delay: float = 1.0
    jitter_factor: float = 0.1

    @classmethod
    def from_settings(cls) -> "RetryConfig":
        settings = get_settings()
        return cls(
            max_retries=settings.max_http_retries,
            max_backoff_seconds=settings.max_backoff_seconds,
        )

    def calculate_backoff(self, attempt: int) -> float:
        delay = min(self.base_delay * (2**attempt), self.max_backoff_seconds)
        return delay + delay * self.jitter_factor * random.random()

    def is_retryable_status(self, status_code: int) -> bool:
        return status_code in RETRYABLE_STATUS_CODES

    def is_retryable_exception(self, exc: Exception) -> bool:
        return isinstance(exc, RETRYABLE_EXCEPTIONS)

    def delay_for(self, attempt: int, response: httpx.Response | None = None) -> float:
        """Seconds to wait before retrying after `attempt` failed."""
        if response is not None:
            retry_after = _parse_retry_after(response.headers.get("Retry-After"))
            if retry_after is not None:
                return min(retry_after, self.max_backoff_seconds)
        return self.calculate_backoff(attempt)


def _parse_retry_after(value: str | None) -> float | None:
    # Only the delta-seconds form; HTTP dates fall back to backoff.
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return max(seconds, 0.0)


class HTTPClientError(Exception):
    """Request failed for good: non-retryable status or retries used up."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class RateLimitError(HTTPClientError):
    """Still rate limited (429) after the last retry."""


class HTTPClient:
    """
    Async context manager around httpx.AsyncClient.

    429, 5xx gateway errors, timeouts and dropped connections are retried
    per RetryConfig; any other status >= 400 raises straight away.

    Example:
        async with HTTPClient(RetryConfig(max_retries=2)) as client:
            response = await client.get(
                "https://api.github.com/repos/acme/widgets/issues",
                params={"state": "all"},
            )
    """

    def __init__(
        self,
        retry_config: RetryConfig | None = None,
        timeout: float = 30.0,
    ):
        self.retry_config = retry_config or RetryConfig()
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "HTTPClient":
        self._client = httpx.AsyncClient(timeout=self.timeout)
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        return await self.request("GET", url, params=params, headers=headers)

    async def post(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        json_body: Any = None,
    ) -> httpx.Response:
        return await self.request(
            "POST", url, params=params, headers=headers, json_body=json_body
        )

    async def request(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        json_body: Any = None,
    ) -> httpx.Response:
        """
        Send a request, retrying transient failures.

        Raises:
            RuntimeError: If used outside ``async with``
            RateLimitError: Still 429 after the last retry
            HTTPClientError: Any other failure
        """
        if self._client is None:
            raise RuntimeError("HTTPClient must be used as async context manager")

        config = self.retry_config
        total = config.max_retries + 1
        attempt = 0

        while True:
            attempt += 1
            is_last = attempt == total

            try:
                response = await self._client.request(
                    method,
                    url,
                    params=params or None,
                    headers=headers or None,
                    json=json_body,
                )
            except RETRYABLE_EXCEPTIONS as e:
                if is_last:
                    raise HTTPClientError(
                        f"{method} {url} failed after {attempt} attempts: {e}"
                    ) from e
                await self._pause(attempt, total, url, type(e).__name__)
                continue

            status = response.status_code
            if status < 400:
                return response

            if not config.is_retryable_status(status):
                raise HTTPClientError(
                    f"{method} {url} returned {status}",
                    status_code=status,
                    response_body=response.text,
                )

            if is_last:
                error_cls = RateLimitError if status == 429 else HTTPClientError
                raise error_cls(
                    f"{method} {url} returned {status} after {attempt} attempts",
                    status_code=status,
                    response_body=response.text,
                )
            await self._pause(attempt, total, url, f"status {status}", response)

    async def _pause(
        self,
        attempt: int,
        total: int,
        url: str,
        reason: str,
        response: httpx.Response | None = None,
    ) -> None:
        delay = self.retry_config.delay_for(attempt - 1, response)
        logger.warning(
            f"{reason} from {url} (attempt {attempt}/{total}), retrying in {delay:.2f}s"
        )
        await asyncio.sleep(delay)

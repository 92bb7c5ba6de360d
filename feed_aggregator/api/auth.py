"""
X-API-KEY guard for the state-changing routes (refresh, Slack send).

Read routes stay open. With API_KEYS unset the guard lets everything
through so a local instance needs no setup.
"""

import secrets

from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader

from feed_aggregator.config.settings import get_settings
from feed_aggregator.config.sources import split_csv

api_key_header = APIKeyHeader(name="X-API-KEY", auto_error=False)


def _matches_any(candidate: str, keys: list[str]) -> bool:
    return any(secrets.compare_digest(candidate, key) for key in keys)


async def verify_api_key(api_key: str | None = Security(api_key_header)) -> str:
    """
    Dependency returning the caller's key, or "dev-mode" when no keys are set.

    Raises:
        HTTPException: 401 if the header is missing or the key is unknown
    """
    keys = split_csv(get_settings().api_keys)
    if not keys:
        return "dev-mode"

    if api_key is None:
        detail = "Missing API key. Provide X-API-KEY header."
    elif not _matches_any(api_key, keys):
        detail = "Invalid API key"
    else:
        return api_key

    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)

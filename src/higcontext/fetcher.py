"""HTTP fetcher for guideline page content.

All network I/O for fetching pages goes through a single Fetcher instance
shared across ingestion passes. The Fetcher receives an httpx.AsyncClient via
constructor injection; the lifespan owns the client lifecycle.
"""

from __future__ import annotations

import asyncio
import random
from typing import TYPE_CHECKING

import httpx
import structlog

from higcontext.errors import ErrorCode, HigContextError

if TYPE_CHECKING:
    from higcontext.config import FetcherSettings

log = structlog.get_logger()


def build_http_client(settings: FetcherSettings) -> httpx.AsyncClient:
    """Create the shared httpx client. Called once at startup."""
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=httpx.Timeout(settings.timeout_seconds),
        headers={"User-Agent": settings.user_agent},
        limits=httpx.Limits(
            max_connections=10,
            max_keepalive_connections=5,
        ),
    )


def _jittered_delay(base_seconds: float) -> float:
    return base_seconds * random.uniform(0.8, 1.2)


class Fetcher:
    """Page fetcher with bounded retries for transient failures."""

    def __init__(self, client: httpx.AsyncClient, settings: FetcherSettings) -> None:
        self._client = client
        self._settings = settings

    async def fetch(self, url: str) -> str:
        """Fetch a URL and return its text.

        Transient failures (network errors, 5xx, 429) are retried with
        jittered exponential backoff. Raises HigContextError once retries are
        exhausted, or immediately for a 404.
        """
        backoff = self._settings.initial_backoff_seconds
        attempts = self._settings.max_retries + 1

        for attempt in range(1, attempts + 1):
            try:
                return await self._fetch_once(url)
            except HigContextError as exc:
                if not exc.recoverable or attempt == attempts:
                    raise
                log.info(
                    "fetch_retry",
                    url=url,
                    attempt=attempt,
                    code=exc.code,
                    backoff_seconds=backoff,
                )
            await asyncio.sleep(_jittered_delay(backoff))
            backoff = min(backoff * 2, self._settings.max_backoff_seconds)

        # Unreachable but satisfies the type checker
        raise HigContextError(
            code=ErrorCode.CONTENT_FETCH_FAILED,
            message=f"Failed to fetch {url}",
            suggestion="",
            recoverable=True,
        )

    async def _fetch_once(self, url: str) -> str:
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as exc:
            raise HigContextError(
                code=ErrorCode.CONTENT_FETCH_FAILED,
                message=f"Network error fetching {url}: {exc}",
                suggestion="The guideline source may be temporarily unavailable.",
                recoverable=True,
            ) from exc

        if response.status_code == 404:
            raise HigContextError(
                code=ErrorCode.CONTENT_NOT_FOUND,
                message=f"HTTP 404 fetching {url}",
                suggestion="The guideline page does not exist at this URL.",
                recoverable=False,
            )
        if not response.is_success:
            transient = response.status_code >= 500 or response.status_code == 429
            raise HigContextError(
                code=ErrorCode.CONTENT_FETCH_FAILED,
                message=f"HTTP {response.status_code} fetching {url}",
                suggestion="The guideline source may be temporarily unavailable.",
                recoverable=transient,
            )

        log.info(
            "fetch_complete",
            url=url,
            status_code=response.status_code,
            content_length=len(response.text),
        )
        return response.text

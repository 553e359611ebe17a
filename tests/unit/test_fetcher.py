"""Unit tests for higcontext.fetcher."""

from __future__ import annotations

import httpx
import pytest
import respx

from higcontext.config import FetcherSettings
from higcontext.errors import ErrorCode, HigContextError
from higcontext.fetcher import Fetcher, build_http_client

URL = "https://developer.apple.com/design/human-interface-guidelines/buttons"

# Zero backoff keeps retry tests instant
SETTINGS = FetcherSettings(initial_backoff_seconds=0, max_retries=2)


# ---------------------------------------------------------------------------
# build_http_client
# ---------------------------------------------------------------------------


class TestBuildHttpClient:
    async def test_client_configuration(self) -> None:
        client = build_http_client(FetcherSettings(user_agent="higcontext-test/0.1"))
        try:
            assert isinstance(client, httpx.AsyncClient)
            assert client.follow_redirects is True
            assert client.headers["User-Agent"] == "higcontext-test/0.1"
        finally:
            await client.aclose()


# ---------------------------------------------------------------------------
# Fetcher
# ---------------------------------------------------------------------------


class TestFetcher:
    async def test_successful_fetch(self) -> None:
        with respx.mock:
            respx.get(URL).mock(return_value=httpx.Response(200, text="# Buttons"))
            async with httpx.AsyncClient() as client:
                fetcher = Fetcher(client, SETTINGS)
                assert await fetcher.fetch(URL) == "# Buttons"

    async def test_404_not_retried(self) -> None:
        with respx.mock:
            route = respx.get(URL).mock(return_value=httpx.Response(404))
            async with httpx.AsyncClient() as client:
                fetcher = Fetcher(client, SETTINGS)
                with pytest.raises(HigContextError) as exc_info:
                    await fetcher.fetch(URL)
        assert exc_info.value.code == ErrorCode.CONTENT_NOT_FOUND
        assert exc_info.value.recoverable is False
        assert route.call_count == 1

    async def test_transient_failures_retried(self) -> None:
        with respx.mock:
            route = respx.get(URL).mock(
                side_effect=[
                    httpx.Response(503),
                    httpx.Response(503),
                    httpx.Response(200, text="# Buttons"),
                ]
            )
            async with httpx.AsyncClient() as client:
                fetcher = Fetcher(client, SETTINGS)
                assert await fetcher.fetch(URL) == "# Buttons"
        assert route.call_count == 3

    async def test_retries_exhausted(self) -> None:
        with respx.mock:
            route = respx.get(URL).mock(return_value=httpx.Response(500))
            async with httpx.AsyncClient() as client:
                fetcher = Fetcher(client, SETTINGS)
                with pytest.raises(HigContextError) as exc_info:
                    await fetcher.fetch(URL)
        assert exc_info.value.code == ErrorCode.CONTENT_FETCH_FAILED
        assert exc_info.value.recoverable is True
        assert route.call_count == 3

    async def test_rate_limit_is_transient(self) -> None:
        with respx.mock:
            route = respx.get(URL).mock(
                side_effect=[httpx.Response(429), httpx.Response(200, text="ok")]
            )
            async with httpx.AsyncClient() as client:
                fetcher = Fetcher(client, SETTINGS)
                assert await fetcher.fetch(URL) == "ok"
        assert route.call_count == 2

    async def test_client_error_not_retried(self) -> None:
        with respx.mock:
            route = respx.get(URL).mock(return_value=httpx.Response(403))
            async with httpx.AsyncClient() as client:
                fetcher = Fetcher(client, SETTINGS)
                with pytest.raises(HigContextError) as exc_info:
                    await fetcher.fetch(URL)
        assert exc_info.value.code == ErrorCode.CONTENT_FETCH_FAILED
        assert exc_info.value.recoverable is False
        assert route.call_count == 1

    async def test_network_error(self) -> None:
        with respx.mock:
            respx.get(URL).mock(side_effect=httpx.ConnectError("connection refused"))
            async with httpx.AsyncClient() as client:
                fetcher = Fetcher(client, FetcherSettings(max_retries=0))
                with pytest.raises(HigContextError) as exc_info:
                    await fetcher.fetch(URL)
        assert exc_info.value.code == ErrorCode.CONTENT_FETCH_FAILED
        assert exc_info.value.recoverable is True

    async def test_redirect_followed(self) -> None:
        with respx.mock:
            respx.get(URL).mock(
                return_value=httpx.Response(301, headers={"Location": f"{URL}/"})
            )
            respx.get(f"{URL}/").mock(return_value=httpx.Response(200, text="moved"))
            async with httpx.AsyncClient(follow_redirects=True) as client:
                fetcher = Fetcher(client, SETTINGS)
                assert await fetcher.fetch(URL) == "moved"

"""Tests for the HTTP request guard.

Guard decisions are checked directly on header sets; the ASGI wrapper is
driven through httpx's ASGI transport with a trivial inner app.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest
from mcp.shared.version import SUPPORTED_PROTOCOL_VERSIONS
from starlette.datastructures import Headers

from higcontext.config import Settings
from higcontext.transport import RequestGuard, RequestGuardMiddleware

if TYPE_CHECKING:
    from starlette.types import Receive, Scope, Send


async def _ok_app(scope: Scope, receive: Receive, send: Send) -> None:
    await send({"type": "http.response.start", "status": 200, "headers": []})
    await send({"type": "http.response.body", "body": b"ok"})


@pytest.fixture()
def guard() -> RequestGuard:
    return RequestGuard(Settings().server.allowed_origin_hosts)


# ---------------------------------------------------------------------------
# Origin
# ---------------------------------------------------------------------------


class TestOrigin:
    @pytest.mark.parametrize(
        "origin",
        ["http://localhost", "https://LOCALHOST:9000", "http://127.0.0.1:3000"],
    )
    def test_default_hosts_allowed(self, guard: RequestGuard, origin: str) -> None:
        assert guard.check(Headers({"origin": origin})) is None

    @pytest.mark.parametrize(
        "origin",
        [
            "https://evil.com",
            "http://localhost.evil.com",
            "ftp://localhost",
            "null",
        ],
    )
    def test_foreign_origin_rejected(self, guard: RequestGuard, origin: str) -> None:
        rejection = guard.check(Headers({"origin": origin}))
        assert rejection is not None
        assert rejection.status_code == 403

    def test_missing_origin_allowed(self, guard: RequestGuard) -> None:
        assert guard.check(Headers({})) is None

    def test_configured_host(self) -> None:
        settings = Settings(server={"allowed_origin_hosts": ["hig.internal"]})
        guard = RequestGuard(settings.server.allowed_origin_hosts)
        assert guard.check(Headers({"origin": "https://hig.internal"})) is None
        assert guard.check(Headers({"origin": "http://localhost"})) is not None


# ---------------------------------------------------------------------------
# Protocol version
# ---------------------------------------------------------------------------


class TestProtocolVersion:
    @pytest.mark.parametrize("version", sorted(SUPPORTED_PROTOCOL_VERSIONS))
    def test_sdk_versions_allowed(self, guard: RequestGuard, version: str) -> None:
        assert guard.check(Headers({"mcp-protocol-version": version})) is None

    def test_unknown_version_rejected(self, guard: RequestGuard) -> None:
        rejection = guard.check(Headers({"mcp-protocol-version": "1999-01-01"}))
        assert rejection is not None
        assert rejection.status_code == 400
        assert "1999-01-01" in rejection.message

    def test_origin_decides_first(self, guard: RequestGuard) -> None:
        headers = Headers({"origin": "https://evil.com", "mcp-protocol-version": "1999-01-01"})
        rejection = guard.check(headers)
        assert rejection is not None
        assert rejection.status_code == 403


# ---------------------------------------------------------------------------
# ASGI wrapper
# ---------------------------------------------------------------------------


class TestMiddleware:
    async def test_passes_through(self, guard: RequestGuard) -> None:
        app = RequestGuardMiddleware(_ok_app, guard)
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://localhost") as client:
            response = await client.post("/mcp", headers={"Origin": "http://localhost:8080"})
        assert response.status_code == 200
        assert response.text == "ok"

    async def test_rejection_is_json_rpc_error(self, guard: RequestGuard) -> None:
        app = RequestGuardMiddleware(_ok_app, guard)
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://localhost") as client:
            response = await client.post("/mcp", headers={"Origin": "https://evil.com"})
        assert response.status_code == 403
        body = response.json()
        assert body["jsonrpc"] == "2.0"
        assert body["id"] is None
        assert body["error"]["code"] == -32600
        assert "evil.com" in body["error"]["message"]

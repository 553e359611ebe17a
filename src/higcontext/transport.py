"""Streamable HTTP transport for the MCP server.

Every HTTP request passes a RequestGuard before it reaches the MCP app: a
browser Origin must name an allowed host (DNS rebinding), and an
MCP-Protocol-Version header must be one the installed SDK speaks.
Rejections are JSON-RPC error bodies so MCP clients can surface them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import structlog
import uvicorn
from mcp.shared.version import SUPPORTED_PROTOCOL_VERSIONS
from starlette.datastructures import Headers
from starlette.responses import JSONResponse

if TYPE_CHECKING:
    from collections.abc import Iterable

    from mcp.server.fastmcp import FastMCP
    from starlette.types import ASGIApp, Receive, Scope, Send

    from higcontext.config import Settings

log = structlog.get_logger()

# JSON-RPC "Invalid Request"
_INVALID_REQUEST = -32600


class Rejection:
    __slots__ = ("status_code", "message")

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message

    def to_response(self) -> JSONResponse:
        body = {
            "jsonrpc": "2.0",
            "id": None,
            "error": {"code": _INVALID_REQUEST, "message": self.message},
        }
        return JSONResponse(body, status_code=self.status_code)


class RequestGuard:
    """Origin and protocol-version checks for one HTTP request."""

    def __init__(
        self,
        allowed_hosts: Iterable[str],
        protocol_versions: Iterable[str] = SUPPORTED_PROTOCOL_VERSIONS,
    ) -> None:
        self.allowed_hosts = frozenset(host.lower() for host in allowed_hosts)
        self.protocol_versions = frozenset(protocol_versions)

    def origin_allowed(self, origin: str) -> bool:
        try:
            url = httpx.URL(origin)
        except httpx.InvalidURL:
            return False
        return url.scheme in ("http", "https") and url.host.lower() in self.allowed_hosts

    def check(self, headers: Headers) -> Rejection | None:
        # Non-browser clients send no Origin
        origin = headers.get("origin")
        if origin and not self.origin_allowed(origin):
            log.warning("http_origin_rejected", origin=origin)
            return Rejection(403, f"Origin not allowed: {origin}")

        version = headers.get("mcp-protocol-version")
        if version and version not in self.protocol_versions:
            log.warning("http_protocol_version_rejected", version=version)
            return Rejection(400, f"Unsupported MCP protocol version: {version}")
        return None


class RequestGuardMiddleware:
    """Pure ASGI wrapper so streamed SSE responses pass through unbuffered."""

    def __init__(self, app: ASGIApp, guard: RequestGuard) -> None:
        self.app = app
        self.guard = guard

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http":
            rejection = self.guard.check(Headers(scope=scope))
            if rejection is not None:
                await rejection.to_response()(scope, receive, send)
                return
        await self.app(scope, receive, send)


def run_http_server(mcp: FastMCP, settings: Settings) -> None:
    """Serve the MCP app over Streamable HTTP behind the request guard."""
    server = settings.server
    guard = RequestGuard(server.allowed_origin_hosts)
    log.info(
        "http_server_starting",
        host=server.host,
        port=server.port,
        allowed_origin_hosts=sorted(guard.allowed_hosts),
    )
    uvicorn.run(
        RequestGuardMiddleware(mcp.streamable_http_app(), guard),
        host=server.host,
        port=server.port,
        log_config=None,  # structlog owns logging
    )

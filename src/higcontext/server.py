"""MCP server entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Create AppState via the FastMCP lifespan context manager
- Register tools
- Start the correct transport (stdio or HTTP)
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from contextlib import asynccontextmanager, suppress
from pathlib import Path
from typing import TYPE_CHECKING

import aiosqlite
import structlog
from mcp.server.fastmcp import Context, FastMCP
from mcp.types import CallToolResult, TextContent

import higcontext.tools.compare_platforms as t_compare
import higcontext.tools.get_accessibility_requirements as t_accessibility
import higcontext.tools.get_component_spec as t_component
import higcontext.tools.get_design_tokens as t_tokens
import higcontext.tools.search_guidelines as t_search
from higcontext import __version__
from higcontext.cache import MemoryCacheBackend, ResilientCache, SqliteCacheBackend
from higcontext.config import Settings
from higcontext.errors import HigContextError
from higcontext.fetcher import Fetcher, build_http_client
from higcontext.ingestion import SectionIngestor, load_manifest, seed_fallbacks
from higcontext.lexicon import load_lexicon
from higcontext.reference import load_component_reference
from higcontext.schedulers import run_cache_cleanup_scheduler, run_ingestion_scheduler
from higcontext.search import SearchEngine, build_semantic_scorer
from higcontext.state import AppState
from higcontext.store import SectionStore, load_snapshot
from higcontext.transport import run_http_server

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [*shared_processors, structlog.processors.JSONRenderer()]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        # Logs go to stderr: stdout is reserved for the MCP JSON-RPC stream
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncGenerator[AppState, None]:
    """Create and tear down all shared resources for the server's lifetime."""
    settings = Settings()
    _setup_logging(settings)

    log.info(
        "server_starting",
        version=__version__,
        transport=settings.server.transport,
    )

    # Vocabulary, sources and the in-memory index
    lexicon = load_lexicon(settings.search.lexicon_path)
    reference = load_component_reference(settings.search.components_path)
    sources = load_manifest(settings.ingestion.manifest_path)
    store = SectionStore()

    snapshot_path = Path(settings.ingestion.snapshot_path).expanduser()
    restored = load_snapshot(snapshot_path)
    if restored:
        store.add_many(restored)
    seed_fallbacks(store, sources)

    engine = SearchEngine(
        store,
        lexicon,
        settings.search,
        semantic_scorer=build_semantic_scorer(settings.search),
    )

    # Content cache, fetcher and ingestion
    db: aiosqlite.Connection | None = None
    if settings.cache.backend == "sqlite":
        db_path = Path(settings.cache.db_path).expanduser()
        db_path.parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(str(db_path))
        backend = SqliteCacheBackend(db)
        await backend.init_db()
    else:
        backend = MemoryCacheBackend()
    cache = ResilientCache.from_settings(backend, settings.cache)

    http_client = build_http_client(settings.fetcher)
    fetcher = Fetcher(http_client, settings.fetcher)
    ingestor = SectionIngestor(
        store,
        cache,
        fetcher,
        concurrency=settings.ingestion.concurrency,
        snapshot_path=snapshot_path,
    )

    state = AppState(
        settings=settings,
        lexicon=lexicon,
        store=store,
        engine=engine,
        reference=reference,
        sources=sources,
        cache=cache,
        ingestor=ingestor,
        http_client=http_client,
    )

    ingestion_task = asyncio.create_task(run_ingestion_scheduler(state))
    cache_cleanup_task = asyncio.create_task(run_cache_cleanup_scheduler(state))

    log.info(
        "server_started",
        version=__version__,
        transport=settings.server.transport,
        sections=len(store),
        restored_from_snapshot=len(restored or []),
    )

    try:
        yield state
    finally:
        ingestion_task.cancel()
        cache_cleanup_task.cancel()
        with suppress(asyncio.CancelledError):
            await ingestion_task
        with suppress(asyncio.CancelledError):
            await cache_cleanup_task
        await http_client.aclose()
        if db is not None:
            await db.close()
        log.info("server_stopping")


# ---------------------------------------------------------------------------
# FastMCP instance and tool registration
# ---------------------------------------------------------------------------

mcp = FastMCP("higcontext", lifespan=lifespan)
# FastMCP doesn't expose a version kwarg; set it on the underlying Server
# so the MCP initialize handshake reports our version, not the SDK's.
mcp._mcp_server.version = __version__  # pyright: ignore[reportPrivateUsage]


def _serialise_tool_error(error: HigContextError) -> CallToolResult:
    """Convert a HigContextError to the MCP tool error result envelope."""
    return CallToolResult(
        content=[TextContent(type="text", text=json.dumps(error.to_dict()))],
        isError=True,
    )


def _log_tool_error(tool: str, exc: HigContextError) -> None:
    log.warning(
        "tool_error",
        tool=tool,
        code=exc.code,
        message=exc.message,
        recoverable=exc.recoverable,
    )


@mcp.tool()
async def search_guidelines(
    query: str,
    ctx: Context,
    platform: str | None = None,
    category: str | None = None,
    limit: int | None = None,
) -> object:
    """Search the Human Interface Guidelines.

    Returns ranked sections with a relevance score and snippet. ``method`` is
    ``degraded`` when any result comes from static fallback content, and
    ``no_match`` when nothing scored above the relevance threshold.
    """
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_search.handle(query, state, platform, category, limit)
    except HigContextError as exc:
        _log_tool_error("search_guidelines", exc)
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="search_guidelines", exc_info=True)
        raise


@mcp.tool()
async def get_component_spec(
    component_name: str,
    ctx: Context,
    platform: str | None = None,
) -> object:
    """Get the guideline section for a UI component, plus close alternatives.

    ``best_match`` is null when no section names the component; the closest
    ranked sections are then listed as alternatives.
    """
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_component.handle(component_name, state, platform)
    except HigContextError as exc:
        _log_tool_error("get_component_spec", exc)
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="get_component_spec", exc_info=True)
        raise


@mcp.tool()
async def compare_platforms(component_name: str, platforms: list[str], ctx: Context) -> object:
    """Compare a component's guidance across two to five platforms."""
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_compare.handle(component_name, platforms, state)
    except HigContextError as exc:
        _log_tool_error("compare_platforms", exc)
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="compare_platforms", exc_info=True)
        raise


@mcp.tool()
async def get_design_tokens(
    component: str,
    platform: str,
    ctx: Context,
    token_type: str = "all",
) -> object:
    """Get design token values (colors, spacing, typography, dimensions) for a component.

    ``token_type`` narrows the result to one group. ``matched`` is false when
    the component has no tokens of its own and generic values are returned.
    """
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_tokens.handle(component, platform, state, token_type)
    except HigContextError as exc:
        _log_tool_error("get_design_tokens", exc)
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="get_design_tokens", exc_info=True)
        raise


@mcp.tool()
async def get_accessibility_requirements(component: str, platform: str, ctx: Context) -> object:
    """Get accessibility requirements for a component, with related guideline sections."""
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_accessibility.handle(component, platform, state)
    except HigContextError as exc:
        _log_tool_error("get_accessibility_requirements", exc)
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="get_accessibility_requirements", exc_info=True)
        raise


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main() -> None:
    settings = Settings()

    if settings.server.transport == "http":
        _setup_logging(settings)
        run_http_server(mcp, settings)
        return

    mcp.run()


if __name__ == "__main__":
    main()

"""Tool handler for search_guidelines.

Receives AppState, delegates to the search engine, and returns a structured
dict. No MCP or FastMCP imports; server.py handles the MCP wiring.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from higcontext.errors import ErrorCode, HigContextError
from higcontext.models.tools import SearchGuidelinesInput, SearchGuidelinesOutput, SearchHit
from higcontext.search import build_snippet

if TYPE_CHECKING:
    from higcontext.models.section import Section
    from higcontext.state import AppState


def to_search_hit(section: Section, relevance: float) -> SearchHit:
    return SearchHit(
        id=section.id,
        title=section.title,
        url=section.url,
        platform=section.platform,
        category=section.category,
        relevance=relevance,
        snippet=build_snippet(section),
        is_fallback=section.quality.is_fallback,
    )


async def handle(
    query: str,
    state: AppState,
    platform: str | None = None,
    category: str | None = None,
    limit: int | None = None,
) -> dict:
    """Handle a search_guidelines tool call."""
    log = structlog.get_logger().bind(tool="search_guidelines", query=query)
    log.info("handler_called")

    # Validate input
    try:
        validated = SearchGuidelinesInput(
            query=query,
            platform=platform,
            category=category,
            limit=state.settings.search.default_limit if limit is None else limit,
        )
    except ValueError as exc:
        raise HigContextError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion=(
                "Provide a query of at most 500 chars, a known platform "
                "(iOS, macOS, watchOS, tvOS, visionOS) and a limit between 1 and 50."
            ),
            recoverable=False,
        ) from exc

    response = state.engine.search(
        validated.query,
        platform=validated.platform,
        category=validated.category,
        limit=min(validated.limit, state.settings.search.max_limit),
    )
    log.info(
        "search_guidelines_complete",
        method=response.method,
        result_count=len(response.results),
    )

    output = SearchGuidelinesOutput(
        results=[to_search_hit(r.section, r.score) for r in response.results],
        method=response.method,
        intent=response.diagnostics.intent,
    )
    return output.model_dump(mode="json")

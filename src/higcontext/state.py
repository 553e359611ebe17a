"""Application state container.

AppState is created once at server startup (inside the FastMCP lifespan context
manager) and injected into every tool handler via the MCP Context object.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from higcontext.cache import ResilientCache
    from higcontext.config import Settings
    from higcontext.ingestion import SectionIngestor
    from higcontext.lexicon import Lexicon
    from higcontext.models.section import SectionSource
    from higcontext.reference import ComponentReference
    from higcontext.search import SearchEngine
    from higcontext.store import SectionStore


@dataclass
class AppState:
    """Holds all shared runtime state. Passed to every tool handler."""

    settings: Settings
    lexicon: Lexicon
    store: SectionStore
    engine: SearchEngine
    reference: ComponentReference

    # Ingestion: sources, content cache and origin fetcher
    sources: list[SectionSource] = field(default_factory=list)
    cache: ResilientCache | None = None
    ingestor: SectionIngestor | None = None
    http_client: httpx.AsyncClient | None = None

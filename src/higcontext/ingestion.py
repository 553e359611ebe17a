"""Section ingestion: manifest -> cached page content -> indexed Sections.

Each source's page is read through the resilient cache, so a refresh pass
costs nothing while content is fresh and keeps serving the stale copy while
the origin is down. Only when no usable copy exists does a section fall back
to the static text shipped in the manifest, flagged as degraded content.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from functools import partial
from importlib import resources
from pathlib import Path
from typing import TYPE_CHECKING

import structlog
import yaml
from pydantic import TypeAdapter

from higcontext.errors import HigContextError
from higcontext.models.section import (
    ContentQuality,
    ExtractionMethod,
    Section,
    SectionSource,
    StructuredContent,
)
from higcontext.parser import count_headings, parse_structured_content, strip_markdown
from higcontext.store import save_snapshot

if TYPE_CHECKING:
    from higcontext.cache import ResilientCache
    from higcontext.models.cache import CacheHit
    from higcontext.protocols import FetcherProtocol
    from higcontext.store import SectionStore

log = structlog.get_logger()

FALLBACK_QUALITY = ContentQuality(
    score=0.3,
    confidence=0.1,
    is_fallback=True,
    extraction_method=ExtractionMethod.STATIC_FALLBACK,
)

# Confidence multiplier for content served from the stale tier
STALE_CONFIDENCE_FACTOR = 0.7

_SOURCES_ADAPTER = TypeAdapter(list[SectionSource])


def load_manifest(path: str | Path | None = None) -> list[SectionSource]:
    """Load section sources from ``path`` or from the bundled manifest."""
    if path is None:
        raw = resources.files("higcontext").joinpath("data/sections.yaml").read_text("utf-8")
        origin = "bundled"
    else:
        raw = Path(path).expanduser().read_text(encoding="utf-8")
        origin = str(path)

    document = yaml.safe_load(raw) or {}
    sources = _SOURCES_ADAPTER.validate_python(document.get("sections", []))
    log.debug("manifest_loaded", source=origin, sections=len(sources))
    return sources


def assess_quality(content: str, structured: StructuredContent) -> ContentQuality:
    """Score extracted page content between 0.5 and 1.0.

    Longer pages with a real outline and recognisable guideline structure
    score higher. Anything extracted from the origin outranks static fallback
    text, which is fixed at ``FALLBACK_QUALITY``.
    """
    signal = min(len(content) / 2000, 1.0) * 0.4
    signal += min(count_headings(content) / 5, 1.0) * 0.3
    if structured.guidelines or structured.specifications:
        signal += 0.2
    if structured.overview:
        signal += 0.1
    score = round(0.5 + 0.5 * min(signal, 1.0), 3)
    return ContentQuality(
        score=score,
        confidence=score,
        is_fallback=False,
        extraction_method=ExtractionMethod.ORIGIN,
    )


def build_section(
    source: SectionSource,
    markdown: str,
    quality: ContentQuality,
    **extra,
) -> Section:
    structured = parse_structured_content(markdown)
    return Section(
        id=source.id,
        title=source.title,
        url=source.url,
        platform=source.platform,
        category=source.category,
        content=strip_markdown(markdown),
        structured_content=structured,
        keywords=frozenset(source.keywords),
        quality=quality,
        **extra,
    )


def seed_fallbacks(store: SectionStore, sources: list[SectionSource]) -> int:
    """Index static fallback text for every source the store does not hold yet.

    Gives a cold start something to answer with (flagged as degraded) before
    the first ingestion pass has reached the origin. Returns the number added.
    """
    missing = [s for s in sources if s.id not in store]
    store.add_many(build_section(s, s.fallback, FALLBACK_QUALITY) for s in missing)
    if missing:
        log.info("fallbacks_seeded", sections=len(missing))
    return len(missing)


@dataclass
class IngestionReport:
    indexed: list[str] = field(default_factory=list)
    stale: list[str] = field(default_factory=list)
    fallbacks: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class SectionIngestor:
    """Fetches, parses and indexes sections into one SectionStore."""

    def __init__(
        self,
        store: SectionStore,
        cache: ResilientCache,
        fetcher: FetcherProtocol,
        *,
        concurrency: int = 4,
        snapshot_path: Path | None = None,
    ) -> None:
        self.store = store
        self.cache = cache
        self.fetcher = fetcher
        self.concurrency = concurrency
        self.snapshot_path = snapshot_path

    async def ingest(self, source: SectionSource) -> Section:
        """Index one source. Never raises for origin failures."""
        section, _ = await self._ingest(source)
        return section

    async def _ingest(self, source: SectionSource) -> tuple[Section, str]:
        key = f"content:{source.content_url}"
        try:
            hit = await self.cache.get_with_graceful_fallback(
                key, partial(self.fetcher.fetch, source.content_url)
            )
        except HigContextError as exc:
            log.warning(
                "origin_fetch_failed",
                section_id=source.id,
                url=source.content_url,
                code=exc.code,
                fallback=True,
            )
            section = build_section(source, source.fallback, FALLBACK_QUALITY)
            outcome = "fallback"
        else:
            section = self._from_hit(source, hit)
            outcome = "stale" if hit.stale else "fresh"

        return self.store.add(section), outcome

    def _from_hit(self, source: SectionSource, hit: CacheHit) -> Section:
        markdown = str(hit.value)
        quality = assess_quality(markdown, parse_structured_content(markdown))
        if hit.stale:
            quality = quality.model_copy(
                update={"confidence": round(quality.confidence * STALE_CONFIDENCE_FACTOR, 3)}
            )
        return build_section(source, markdown, quality, last_updated=hit.fetched_at)

    async def ingest_all(self, sources: list[SectionSource]) -> IngestionReport:
        """Ingest every source with bounded concurrency, then save the snapshot."""
        semaphore = asyncio.Semaphore(self.concurrency)
        report = IngestionReport()

        async def _one(source: SectionSource) -> None:
            async with semaphore:
                try:
                    section, outcome = await self._ingest(source)
                except Exception:
                    log.error("section_ingest_error", section_id=source.id, exc_info=True)
                    report.failed.append(source.id)
                    return
            report.indexed.append(section.id)
            if outcome == "fallback":
                report.fallbacks.append(section.id)
            elif outcome == "stale":
                report.stale.append(section.id)

        await asyncio.gather(*(_one(s) for s in sources))

        log.info(
            "ingestion_complete",
            indexed=len(report.indexed),
            stale=len(report.stale),
            fallbacks=len(report.fallbacks),
            failed=len(report.failed),
        )
        if self.snapshot_path is not None and report.indexed:
            try:
                save_snapshot(self.store, self.snapshot_path)
            except OSError:
                log.warning("snapshot_save_error", path=str(self.snapshot_path), exc_info=True)
        return report

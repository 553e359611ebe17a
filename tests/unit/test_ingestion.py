"""Unit tests for section ingestion."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from higcontext.cache import MemoryCacheBackend, ResilientCache
from higcontext.errors import ErrorCode, HigContextError
from higcontext.ingestion import (
    FALLBACK_QUALITY,
    STALE_CONFIDENCE_FACTOR,
    SectionIngestor,
    assess_quality,
    load_manifest,
    seed_fallbacks,
)
from higcontext.models.section import Category, ExtractionMethod, Platform, SectionSource
from higcontext.parser import parse_structured_content
from higcontext.store import SectionStore

if TYPE_CHECKING:
    from pathlib import Path

    from tests.conftest import FakeClock

PAGE = """\
# Toggles

A toggle lets people choose between a pair of opposing states.

## Best practices

- Use a toggle in a list row.
- Clearly identify the setting a toggle affects.

## Specifications

- Minimum hit region: 44x44 pt
"""


class FakeFetcher:
    """Serves pages from a dict; unknown URLs fail like an unreachable origin."""

    def __init__(self, pages: dict[str, str] | None = None, error: Exception | None = None) -> None:
        self.pages = pages or {}
        self.error = error
        self.calls: list[str] = []

    async def fetch(self, url: str) -> str:
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        if url not in self.pages:
            raise HigContextError(
                code=ErrorCode.CONTENT_FETCH_FAILED,
                message=f"unreachable: {url}",
                suggestion="",
                recoverable=True,
            )
        return self.pages[url]


def _source(section_id: str = "toggles", **overrides) -> SectionSource:
    fields = {
        "id": section_id,
        "title": section_id.title(),
        "url": f"https://developer.apple.com/design/human-interface-guidelines/{section_id}",
        "platform": Platform.UNIVERSAL,
        "category": Category.SELECTION_AND_INPUT,
        "keywords": ["switch"],
        "fallback": f"# {section_id.title()}\n\nStatic guidance.",
    }
    return SectionSource(**{**fields, **overrides})


@pytest.fixture()
def cache(clock: FakeClock) -> ResilientCache:
    return ResilientCache(MemoryCacheBackend(), clock=clock)


# ---------------------------------------------------------------------------
# Manifest and quality
# ---------------------------------------------------------------------------


class TestLoadManifest:
    def test_bundled_manifest(self) -> None:
        sources = load_manifest()
        ids = [s.id for s in sources]
        assert len(ids) == len(set(ids))
        assert "buttons-ios" in ids
        assert all(s.fallback for s in sources)

    def test_custom_manifest(self, tmp_path: Path) -> None:
        path = tmp_path / "sections.yaml"
        path.write_text(
            "sections:\n"
            "  - id: menus\n"
            "    title: Menus\n"
            "    url: https://example.com/menus\n"
            "    platform: macOS\n"
            "    category: selection-and-input\n",
            encoding="utf-8",
        )
        (source,) = load_manifest(path)
        assert source.platform is Platform.MACOS
        assert source.keywords == []

    def test_empty_manifest(self, tmp_path: Path) -> None:
        path = tmp_path / "sections.yaml"
        path.write_text("", encoding="utf-8")
        assert load_manifest(path) == []


class TestAssessQuality:
    def test_structured_page_outranks_plain_text(self) -> None:
        rich = assess_quality(PAGE, parse_structured_content(PAGE))
        plain = assess_quality("Just a line.", parse_structured_content("Just a line."))
        assert rich.score > plain.score
        assert 0.5 <= plain.score <= 1.0
        assert rich.extraction_method is ExtractionMethod.ORIGIN
        assert rich.is_fallback is False

    def test_origin_content_outranks_fallback(self) -> None:
        quality = assess_quality("", parse_structured_content(""))
        assert quality.score == 0.5
        assert quality.score > FALLBACK_QUALITY.score


class TestSeedFallbacks:
    def test_seeds_only_missing(self, make_section) -> None:
        store = SectionStore([make_section("toggles", "Toggles")])
        added = seed_fallbacks(store, [_source("toggles"), _source("menus")])

        assert added == 1
        assert store.get("toggles").quality.is_fallback is False
        menus = store.get("menus")
        assert menus.quality == FALLBACK_QUALITY
        assert "Static guidance." in menus.content


# ---------------------------------------------------------------------------
# SectionIngestor
# ---------------------------------------------------------------------------


class TestIngest:
    async def test_origin_content_indexed(self, cache: ResilientCache) -> None:
        source = _source()
        store = SectionStore()
        ingestor = SectionIngestor(store, cache, FakeFetcher({source.url: PAGE}))

        section = await ingestor.ingest(source)

        assert store.get("toggles") is section
        assert section.quality.extraction_method is ExtractionMethod.ORIGIN
        assert section.structured_content.specifications == {"minimum hit region": "44x44 pt"}
        assert "switch" in section.keywords
        assert "#" not in section.content

    async def test_source_url_fetched_when_set(self, cache: ResilientCache) -> None:
        source = _source(source_url="https://raw.example.com/toggles.md")
        fetcher = FakeFetcher({"https://raw.example.com/toggles.md": PAGE})
        section = await SectionIngestor(SectionStore(), cache, fetcher).ingest(source)

        assert fetcher.calls == ["https://raw.example.com/toggles.md"]
        assert section.url == source.url

    async def test_origin_failure_falls_back(self, cache: ResilientCache) -> None:
        section = await SectionIngestor(SectionStore(), cache, FakeFetcher()).ingest(_source())

        assert section.quality == FALLBACK_QUALITY
        assert section.quality.score == 0.3
        assert "Static guidance." in section.content

    async def test_stale_copy_lowers_confidence(
        self, cache: ResilientCache, clock: FakeClock
    ) -> None:
        source = _source()
        fetched_at = clock.now
        await cache.set(f"content:{source.url}", PAGE)
        clock.advance(hours=2)

        section = await SectionIngestor(SectionStore(), cache, FakeFetcher()).ingest(source)

        expected = assess_quality(PAGE, parse_structured_content(PAGE))
        assert section.quality.is_fallback is False
        assert section.quality.score == expected.score
        assert section.quality.confidence == round(expected.confidence * STALE_CONFIDENCE_FACTOR, 3)
        assert section.last_updated == fetched_at

    async def test_fresh_cache_skips_origin(self, cache: ResilientCache) -> None:
        source = _source()
        await cache.set(f"content:{source.url}", PAGE)
        fetcher = FakeFetcher()

        section = await SectionIngestor(SectionStore(), cache, fetcher).ingest(source)

        assert fetcher.calls == []
        assert section.quality.extraction_method is ExtractionMethod.ORIGIN


class TestIngestAll:
    async def test_report_and_snapshot(self, cache: ResilientCache, tmp_path: Path) -> None:
        good = _source("toggles")
        down = _source("menus")
        snapshot_path = tmp_path / "index.json"
        store = SectionStore()
        ingestor = SectionIngestor(
            store, cache, FakeFetcher({good.url: PAGE}), snapshot_path=snapshot_path
        )

        report = await ingestor.ingest_all([good, down])

        assert sorted(report.indexed) == ["menus", "toggles"]
        assert report.fallbacks == ["menus"]
        assert report.stale == []
        assert report.failed == []
        assert len(store) == 2
        document = json.loads(snapshot_path.read_text(encoding="utf-8"))
        assert set(document["sections"]) == {"menus", "toggles"}

    async def test_unexpected_error_recorded_as_failed(
        self, cache: ResilientCache, tmp_path: Path
    ) -> None:
        snapshot_path = tmp_path / "index.json"
        ingestor = SectionIngestor(
            SectionStore(),
            cache,
            FakeFetcher(error=RuntimeError("boom")),
            snapshot_path=snapshot_path,
        )

        report = await ingestor.ingest_all([_source()])

        assert report.failed == ["toggles"]
        assert report.indexed == []
        assert not snapshot_path.exists()

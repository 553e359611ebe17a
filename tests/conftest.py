"""Shared test fixtures for the higcontext test suite."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import pytest

from higcontext.config import SearchSettings
from higcontext.lexicon import Lexicon, load_lexicon
from higcontext.models.section import (
    Category,
    ContentQuality,
    ExtractionMethod,
    Platform,
    Section,
    StructuredContent,
)
from higcontext.search import SearchEngine
from higcontext.store import SectionStore

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


class FakeClock:
    """Injectable clock for the resilient cache."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(scope="session")
def lexicon() -> Lexicon:
    """The bundled vocabulary."""
    return load_lexicon()


@pytest.fixture()
def make_section() -> Callable[..., Section]:
    """Factory for Sections with sensible defaults."""

    def _make(
        section_id: str,
        title: str,
        platform: Platform = Platform.UNIVERSAL,
        category: Category = Category.FOUNDATIONS,
        *,
        content: str = "",
        keywords: tuple[str, ...] = (),
        score: float = 1.0,
        is_fallback: bool = False,
        structured: StructuredContent | None = None,
        last_updated: datetime = T0,
    ) -> Section:
        return Section(
            id=section_id,
            title=title,
            url=f"https://developer.apple.com/design/human-interface-guidelines/{section_id}",
            platform=platform,
            category=category,
            content=content,
            structured_content=structured,
            keywords=frozenset(keywords),
            quality=ContentQuality(
                score=score,
                confidence=score,
                is_fallback=is_fallback,
                extraction_method=(
                    ExtractionMethod.STATIC_FALLBACK if is_fallback else ExtractionMethod.ORIGIN
                ),
            ),
            last_updated=last_updated,
        )

    return _make


@pytest.fixture()
def sample_sections(make_section: Callable[..., Section]) -> list[Section]:
    """Two platform-specific button sections and one universal color section."""
    return [
        make_section(
            "buttons-ios",
            "Buttons",
            Platform.IOS,
            Category.SELECTION_AND_INPUT,
            content="A button initiates an instantaneous action. Make it easy to tap.",
            keywords=("button", "hit region"),
            score=0.85,
        ),
        make_section(
            "buttons-macos",
            "Buttons",
            Platform.MACOS,
            Category.SELECTION_AND_INPUT,
            content="Push buttons perform an action when clicked.",
            keywords=("push button",),
            score=0.9,
        ),
        make_section(
            "color",
            "Color",
            Platform.UNIVERSAL,
            Category.COLOR_AND_MATERIALS,
            content=(
                "Judicious use of color can communicate status and provide visual "
                "continuity. Ensure sufficient contrast in light and dark appearances."
            ),
            keywords=("color", "contrast"),
            score=0.88,
        ),
    ]


@pytest.fixture()
def store(sample_sections: list[Section]) -> SectionStore:
    return SectionStore(sample_sections)


@pytest.fixture()
def engine(store: SectionStore, lexicon: Lexicon) -> SearchEngine:
    return SearchEngine(store, lexicon, SearchSettings())

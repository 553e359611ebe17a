from __future__ import annotations

import re
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Platform(StrEnum):
    IOS = "iOS"
    MACOS = "macOS"
    WATCHOS = "watchOS"
    TVOS = "tvOS"
    VISIONOS = "visionOS"
    UNIVERSAL = "universal"


class Category(StrEnum):
    FOUNDATIONS = "foundations"
    LAYOUT = "layout"
    NAVIGATION = "navigation"
    PRESENTATION = "presentation"
    SELECTION_AND_INPUT = "selection-and-input"
    STATUS = "status"
    SYSTEM_CAPABILITIES = "system-capabilities"
    VISUAL_DESIGN = "visual-design"
    ICONS_AND_IMAGES = "icons-and-images"
    COLOR_AND_MATERIALS = "color-and-materials"
    TYPOGRAPHY = "typography"
    MOTION = "motion"
    TECHNOLOGIES = "technologies"


class ExtractionMethod(StrEnum):
    ORIGIN = "origin"
    SNAPSHOT = "snapshot"
    STATIC_FALLBACK = "static_fallback"
    MANUAL = "manual"


class StructuredContent(BaseModel):
    """Sections of a guideline page recovered from its Markdown outline."""

    model_config = ConfigDict(frozen=True)

    overview: str = ""
    guidelines: tuple[str, ...] = ()
    examples: tuple[str, ...] = ()
    specifications: dict[str, str] = {}
    related_concepts: frozenset[str] = frozenset()


class ContentQuality(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: float = Field(default=1.0, ge=0.0, le=1.0)
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    is_fallback: bool = False
    extraction_method: ExtractionMethod = ExtractionMethod.MANUAL


class Section(BaseModel):
    """One indexed documentation unit.

    Frozen: re-ingestion builds a new Section and the store swaps it in whole.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    title: str = Field(min_length=1)
    url: str
    platform: Platform
    category: Category
    content: str = ""
    structured_content: StructuredContent | None = None
    keywords: frozenset[str] = frozenset()
    quality: ContentQuality = ContentQuality()
    last_updated: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        if not re.match(r"^[a-z0-9][a-z0-9_-]*$", v):
            raise ValueError(f"Invalid section ID: {v!r}")
        return v

    @field_validator("last_updated")
    @classmethod
    def ensure_aware(cls, v: datetime) -> datetime:
        # Naive timestamps from older snapshots are taken as UTC
        return v if v.tzinfo is not None else v.replace(tzinfo=UTC)


class SectionSource(BaseModel):
    """Manifest entry describing where a section's content comes from."""

    id: str
    title: str = Field(min_length=1)
    url: str
    # Raw Markdown location when it differs from the public page
    source_url: str | None = None
    platform: Platform
    category: Category
    keywords: list[str] = []
    fallback: str = ""

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        if not re.match(r"^[a-z0-9][a-z0-9_-]*$", v):
            raise ValueError(f"Invalid section ID: {v!r}")
        return v

    @property
    def content_url(self) -> str:
        return self.source_url or self.url

from __future__ import annotations

from higcontext.models.cache import CacheEntry, CacheHit, CacheTier
from higcontext.models.reference import (
    AccessibilityRequirements,
    ComponentEntry,
    TokenGroups,
    TokenType,
)
from higcontext.models.search import (
    ComponentSpecResult,
    EntityKind,
    EntityMention,
    PlatformComparison,
    QueryPlan,
    RankedSection,
    ScoreBreakdown,
    SearchDiagnostics,
    SearchIntent,
    SearchMethod,
    SearchResponse,
)
from higcontext.models.section import (
    Category,
    ContentQuality,
    ExtractionMethod,
    Platform,
    Section,
    SectionSource,
    StructuredContent,
)
from higcontext.models.tools import (
    ComparePlatformsInput,
    ComparePlatformsOutput,
    ComponentSpec,
    GetAccessibilityRequirementsInput,
    GetAccessibilityRequirementsOutput,
    GetComponentSpecInput,
    GetComponentSpecOutput,
    GetDesignTokensInput,
    GetDesignTokensOutput,
    SearchGuidelinesInput,
    SearchGuidelinesOutput,
    SearchHit,
)

__all__ = [
    # section
    "Platform",
    "Category",
    "ExtractionMethod",
    "StructuredContent",
    "ContentQuality",
    "Section",
    "SectionSource",
    # cache
    "CacheTier",
    "CacheEntry",
    "CacheHit",
    # reference
    "TokenType",
    "TokenGroups",
    "AccessibilityRequirements",
    "ComponentEntry",
    # search
    "SearchIntent",
    "EntityKind",
    "EntityMention",
    "QueryPlan",
    "ScoreBreakdown",
    "RankedSection",
    "SearchMethod",
    "SearchDiagnostics",
    "SearchResponse",
    "ComponentSpecResult",
    "PlatformComparison",
    # tools
    "SearchGuidelinesInput",
    "SearchGuidelinesOutput",
    "SearchHit",
    "GetComponentSpecInput",
    "GetComponentSpecOutput",
    "ComponentSpec",
    "ComparePlatformsInput",
    "ComparePlatformsOutput",
    "GetDesignTokensInput",
    "GetDesignTokensOutput",
    "GetAccessibilityRequirementsInput",
    "GetAccessibilityRequirementsOutput",
]

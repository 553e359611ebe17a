from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from pydantic import BaseModel

from higcontext.models.section import Category, Platform, Section


class SearchIntent(StrEnum):
    FIND_COMPONENT = "find_component"
    FIND_GUIDELINE = "find_guideline"
    FIND_SPECIFICATION = "find_specification"
    COMPARE_PLATFORMS = "compare_platforms"
    GENERIC = "generic"


class EntityKind(StrEnum):
    PLATFORM = "platform"
    CATEGORY = "category"
    COMPONENT = "component"


class SearchMethod(StrEnum):
    MATCHED = "matched"
    NO_MATCH = "no_match"
    DEGRADED = "degraded"


@dataclass(frozen=True)
class EntityMention:
    kind: EntityKind
    text: str  # As written in the query (normalised)
    value: str  # Canonical value: Platform / Category value or component noun


@dataclass(frozen=True)
class QueryPlan:
    """Structured form of one query. Built by analyzer.analyze, never mutated."""

    raw_query: str
    normalized_query: str = ""
    tokens: tuple[str, ...] = ()

    # One group per token: the token, its stem and their synonyms.
    # Relevance ratios count groups, so a token with many synonyms weighs
    # the same as one with none.
    term_groups: tuple[frozenset[str], ...] = ()
    expanded_terms: frozenset[str] = frozenset()

    intent: SearchIntent = SearchIntent.GENERIC
    # Every intent rule the query satisfies, in rule order. Grows as terms are
    # added, so structure credit built from it never drops.
    matched_intents: tuple[SearchIntent, ...] = ()
    entities: tuple[EntityMention, ...] = ()
    platform: Platform | None = None
    category: Category | None = None

    # Every platform named in the query, in mention order (compare_platforms)
    platforms_mentioned: tuple[Platform, ...] = field(default=())

    @property
    def is_empty(self) -> bool:
        return not self.expanded_terms


class ScoreBreakdown(BaseModel):
    keyword: float
    structure: float
    context: float
    semantic: float | None = None
    base: float
    boost: float
    final: float
    pinned: bool = False


class RankedSection(BaseModel):
    section: Section
    score: float
    pinned: bool = False
    breakdown: ScoreBreakdown


class SearchDiagnostics(BaseModel):
    intent: SearchIntent
    expanded_terms: list[str]
    platform: Platform | None
    category: Category | None
    candidates: int
    below_threshold: int
    scoring_scheme: str  # "keyword" | "semantic"


class SearchResponse(BaseModel):
    results: list[RankedSection]
    method: SearchMethod
    diagnostics: SearchDiagnostics


class ComponentSpecResult(BaseModel):
    best_match: Section | None
    alternatives: list[Section]
    method: SearchMethod
    # Section id -> relevance score for every returned section that was ranked
    scores: dict[str, float] = {}


class PlatformComparison(BaseModel):
    """Best section per requested platform; None where nothing matched."""

    by_platform: dict[Platform, Section | None]
    method: SearchMethod

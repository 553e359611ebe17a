"""Search orchestration: analyzer + store + scorer -> ranked results.

The engine owns its SectionStore explicitly (no module-level index), so tests
and callers can run any number of independent indices side by side. The
search path only reads: it takes one store snapshot per query and never
writes to it.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

import structlog
from rapidfuzz import fuzz

from higcontext.analyzer import analyze
from higcontext.config import SearchSettings
from higcontext.models.search import (
    ComponentSpecResult,
    PlatformComparison,
    QueryPlan,
    RankedSection,
    SearchDiagnostics,
    SearchIntent,
    SearchMethod,
    SearchResponse,
)
from higcontext.models.section import Platform
from higcontext.scorer import FuzzySemanticScorer, score_section, sort_key
from higcontext.text import contains_phrase, normalise_text, stem

if TYPE_CHECKING:
    from higcontext.lexicon import Lexicon
    from higcontext.models.section import Category, Section
    from higcontext.protocols import SemanticScorer
    from higcontext.store import SectionStore

log = structlog.get_logger()

SNIPPET_MAX_CHARS = 240


def build_semantic_scorer(settings: SearchSettings) -> SemanticScorer | None:
    """Return the configured semantic scorer, or None when the capability is off."""
    if settings.semantic_scorer == "fuzzy":
        return FuzzySemanticScorer()
    return None


class SearchEngine:
    """Public search API over one SectionStore."""

    def __init__(
        self,
        store: SectionStore,
        lexicon: Lexicon,
        settings: SearchSettings | None = None,
        semantic_scorer: SemanticScorer | None = None,
    ) -> None:
        self.store = store
        self.lexicon = lexicon
        self.settings = settings or SearchSettings()
        self.semantic_scorer = semantic_scorer

    def search(
        self,
        query: str,
        platform: Platform | None = None,
        category: Category | None = None,
        limit: int | None = None,
        *,
        force_intent: SearchIntent | None = None,
        platforms: tuple[Platform, ...] = (),
    ) -> SearchResponse:
        """Rank sections for ``query``. An unanswerable query is ``no_match``, not an error.

        ``platforms`` names the platforms a comparison should cover, in
        addition to any the query mentions.
        """
        limit = self.settings.default_limit if limit is None else limit
        if limit < 1:
            raise ValueError("limit must be >= 1")

        plan = analyze(
            query,
            self.lexicon,
            platform=platform,
            category=category,
            force_intent=force_intent,
            component_fuzzy_cutoff=self.settings.component_fuzzy_cutoff,
        )
        comparing = plan.intent is SearchIntent.COMPARE_PLATFORMS

        if plan.is_empty:
            return self._respond(plan, [], candidates=0, below_threshold=0)

        # Comparisons look across platforms; only the category narrows them
        candidates = self.store.candidates(
            platform=None if comparing else plan.platform,
            category=plan.category,
        )

        ranked: list[RankedSection] = []
        below_threshold = 0
        for section in candidates:
            breakdown = score_section(section, plan, self.settings, self.semantic_scorer)
            if breakdown.final < self.settings.min_relevance_threshold:
                below_threshold += 1
                continue
            ranked.append(
                RankedSection(
                    section=section,
                    score=round(breakdown.final, 4),
                    pinned=breakdown.pinned,
                    breakdown=breakdown,
                )
            )

        ranked.sort(key=lambda r: sort_key(r.section, r.breakdown))
        if comparing:
            requested = list(plan.platforms_mentioned)
            for p in (plan.platform, *platforms):
                if p is not None and p not in requested:
                    requested.append(p)
            ranked = interleave_by_platform(ranked, requested)

        return self._respond(
            plan,
            ranked[:limit],
            candidates=len(candidates),
            below_threshold=below_threshold,
        )

    def get_component_spec(
        self,
        component_name: str,
        platform: Platform | None = None,
    ) -> ComponentSpecResult:
        """Best section for a named component plus near-tie alternatives.

        ``best_match`` is None when no ranked hit actually names the component;
        the ranked hits are then all returned as alternatives.
        """
        response = self.search(
            component_name,
            platform=platform,
            limit=self.settings.max_limit,
            force_intent=SearchIntent.FIND_COMPONENT,
        )
        hits = response.results
        scores = {r.section.id: r.score for r in hits}

        # A literal section id wins outright
        direct = self.store.get(component_name.strip().lower())
        if direct is not None and (platform is None or direct.platform == platform):
            alternatives = [r.section for r in hits if r.section.id != direct.id]
            return ComponentSpecResult(
                best_match=direct,
                alternatives=alternatives[: self.settings.default_limit],
                method=response.method,
                scores=scores,
            )

        if not hits:
            return ComponentSpecResult(best_match=None, alternatives=[], method=response.method)

        top = hits[0]
        if not self._names_component(top.section, component_name):
            log.info("component_not_found", component=component_name, alternatives=len(hits))
            return ComponentSpecResult(
                best_match=None,
                alternatives=[r.section for r in hits[: self.settings.default_limit]],
                method=response.method,
                scores=scores,
            )

        cutoff = top.score * self.settings.near_tie_ratio
        alternatives = [r.section for r in hits[1:] if r.score >= cutoff]
        return ComponentSpecResult(
            best_match=top.section,
            alternatives=alternatives[: self.settings.default_limit],
            method=response.method,
            scores=scores,
        )

    def compare_platforms(
        self,
        component_name: str,
        platforms: list[Platform],
    ) -> PlatformComparison:
        """Pick the best section naming the component for each requested platform.

        A platform without its own section is answered by a universal one
        when available.
        """
        response = self.search(
            component_name,
            limit=self.settings.max_limit,
            force_intent=SearchIntent.COMPARE_PLATFORMS,
            platforms=tuple(platforms),
        )
        named = [
            r.section
            for r in response.results
            if self._names_component(r.section, component_name)
        ]
        universal = next((s for s in named if s.platform is Platform.UNIVERSAL), None)

        by_platform: dict[Platform, Section | None] = {}
        for platform in platforms:
            own = next((s for s in named if s.platform == platform), None)
            by_platform[platform] = own or universal

        chosen = [s for s in by_platform.values() if s is not None]
        if not chosen:
            method = SearchMethod.NO_MATCH
        elif any(s.quality.is_fallback for s in chosen):
            method = SearchMethod.DEGRADED
        else:
            method = SearchMethod.MATCHED
        log.info(
            "platforms_compared",
            component=component_name,
            platforms=[str(p) for p in platforms],
            matched=len(chosen),
        )
        return PlatformComparison(by_platform=by_platform, method=method)

    def _names_component(self, section: Section, component_name: str) -> bool:
        wanted = normalise_text(component_name)
        title = normalise_text(section.title)
        if not wanted:
            return False
        if wanted == title or stem(wanted) == stem(title):
            return True
        # Whole words only: "tab" names "Tab Bars" but not "Tables"
        if contains_phrase(_stem_words(title), _stem_words(wanted)):
            return True
        return fuzz.ratio(stem(wanted), stem(title)) >= self.settings.component_fuzzy_cutoff

    def _respond(
        self,
        plan: QueryPlan,
        results: list[RankedSection],
        *,
        candidates: int,
        below_threshold: int,
    ) -> SearchResponse:
        if not results:
            method = SearchMethod.NO_MATCH
        elif any(r.section.quality.is_fallback for r in results):
            method = SearchMethod.DEGRADED
        else:
            method = SearchMethod.MATCHED

        diagnostics = SearchDiagnostics(
            intent=plan.intent,
            expanded_terms=sorted(plan.expanded_terms),
            platform=plan.platform,
            category=plan.category,
            candidates=candidates,
            below_threshold=below_threshold,
            scoring_scheme="keyword" if self.semantic_scorer is None else "semantic",
        )
        log.info(
            "search_complete",
            query=plan.raw_query,
            intent=plan.intent,
            method=method,
            results=len(results),
            candidates=candidates,
        )
        return SearchResponse(results=results, method=method, diagnostics=diagnostics)


def _stem_words(text: str) -> str:
    return " ".join(stem(word) for word in text.split())


def interleave_by_platform(
    ranked: list[RankedSection],
    requested: list[Platform],
) -> list[RankedSection]:
    """Round-robin across platform buckets so no platform crowds out the others.

    Requested platforms go first, in the order given; remaining platforms
    follow in order of their best-ranked section. Within a bucket the ranked
    order is kept.
    """
    buckets: dict[Platform, list[RankedSection]] = defaultdict(list)
    for item in ranked:
        buckets[item.section.platform].append(item)

    order = [p for p in requested if p in buckets]
    order += [p for p in buckets if p not in order]

    interleaved: list[RankedSection] = []
    depth = 0
    while len(interleaved) < len(ranked):
        for platform in order:
            bucket = buckets[platform]
            if depth < len(bucket):
                interleaved.append(bucket[depth])
        depth += 1
    return interleaved


def build_snippet(section: Section, max_chars: int = SNIPPET_MAX_CHARS) -> str:
    """Short preview: the overview when one was extracted, else the content head."""
    overview = section.structured_content.overview if section.structured_content else ""
    text = " ".join((overview or section.content).split())
    if len(text) <= max_chars:
        return text
    cut = text[:max_chars].rsplit(" ", 1)[0]
    return f"{cut}..."

"""Relevance scoring of one Section against one QueryPlan.

Pure functions: no I/O, no shared state, deterministic for equal inputs.

    keyword   = title_ratio * 1.0 + keyword_ratio * 0.6 + body_ratio * 0.3
    structure = 1.0 if the section has the structured part the intent asks for
    context   = (platform component + category component) / 2
    base      = weighted blend of the above (keyword or semantic scheme)
    final     = base * boosts * quality.score

Each ratio is the fraction of the query's term groups with at least one term
present in the field. Field weights, blend weights and boosts come from
SearchSettings.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rapidfuzz import fuzz

from higcontext.models.search import QueryPlan, ScoreBreakdown, SearchIntent
from higcontext.models.section import Platform
from higcontext.text import contains_phrase, normalise_text, term_set

if TYPE_CHECKING:
    from higcontext.config import SearchSettings
    from higcontext.models.section import Section, StructuredContent
    from higcontext.protocols import SemanticScorer


class _Field:
    """A section field prepared for term matching."""

    __slots__ = ("text", "terms")

    def __init__(self, text: str, extra_terms: frozenset[str] = frozenset()) -> None:
        self.text = normalise_text(text)
        self.terms = term_set(self.text.split()) | term_set(extra_terms)

    def matches(self, term: str) -> bool:
        if " " in term:
            return contains_phrase(self.text, term)
        return term in self.terms


def _match_ratio(plan: QueryPlan, field: _Field) -> float:
    if not plan.term_groups:
        return 0.0
    matched = sum(1 for group in plan.term_groups if any(field.matches(t) for t in group))
    return min(matched / len(plan.term_groups), 1.0)


def keyword_score(section: Section, plan: QueryPlan, settings: SearchSettings) -> float:
    weights = settings.field_weights
    title = _Field(section.title)
    # Keywords always carry the title's words; the body is title plus content
    keywords = _Field(" ".join(sorted(section.keywords)) + " " + section.title)
    body = _Field(section.title + " " + section.content)
    return (
        _match_ratio(plan, title) * weights.title
        + _match_ratio(plan, keywords) * weights.keywords
        + _match_ratio(plan, body) * weights.body
    )


def _has_part(structured: StructuredContent, intent: SearchIntent) -> bool:
    match intent:
        case SearchIntent.FIND_SPECIFICATION:
            return bool(structured.specifications)
        case SearchIntent.FIND_GUIDELINE:
            return bool(structured.guidelines)
        case SearchIntent.FIND_COMPONENT:
            return bool(structured.overview or structured.specifications)
        case SearchIntent.COMPARE_PLATFORMS:
            return bool(structured.guidelines or structured.specifications)
        case _:
            return False


def structure_score(section: Section, plan: QueryPlan) -> float:
    """1.0 when the section has a part asked for by any intent rule the query satisfies.

    Adding a term only ever adds satisfied rules, so the score never drops
    when the term moves the query to an earlier rule.
    """
    structured = section.structured_content
    if structured is None:
        return 0.0
    intents = (plan.intent, *plan.matched_intents)
    return 1.0 if any(_has_part(structured, intent) for intent in intents) else 0.0


def context_score(section: Section, plan: QueryPlan) -> float:
    platform_part = 0.0
    if plan.platform is not None:
        if section.platform == plan.platform:
            platform_part = 1.0
        elif section.platform is Platform.UNIVERSAL:
            platform_part = 0.5

    category_part = 0.0
    if plan.category is not None and section.category == plan.category:
        category_part = 1.0

    return (platform_part + category_part) / 2


def is_exact_title_match(section: Section, plan: QueryPlan) -> bool:
    """The whole query (tokens in order) equals the whole title."""
    if not plan.tokens:
        return False
    return " ".join(plan.tokens) == normalise_text(section.title)


def is_pinned(section: Section, plan: QueryPlan) -> bool:
    """Literal containment of the raw query in the title ("button" pins "Buttons")."""
    if not plan.tokens:
        return False
    return plan.normalized_query in normalise_text(section.title)


def score_section(
    section: Section,
    plan: QueryPlan,
    settings: SearchSettings,
    semantic_scorer: SemanticScorer | None = None,
) -> ScoreBreakdown:
    """Score one section. Returns the full breakdown; ``final`` is the score."""
    keyword = keyword_score(section, plan, settings)
    structure = structure_score(section, plan)
    context = context_score(section, plan)

    semantic: float | None = None
    if semantic_scorer is not None:
        semantic = max(0.0, min(semantic_scorer.similarity(section, plan), 1.0))
        weights = settings.semantic_weights
        base = semantic * weights.semantic
    else:
        weights = settings.keyword_weights
        base = 0.0
    base += keyword * weights.keyword + structure * weights.structure + context * weights.context

    boosts = settings.boosts
    boost = 1.0
    if is_exact_title_match(section, plan):
        boost *= boosts.exact_title
    if plan.platform is not None and section.platform == plan.platform:
        boost *= boosts.platform_match
    if plan.category is not None and section.category == plan.category:
        boost *= boosts.category_match

    final = base * boost * section.quality.score
    return ScoreBreakdown(
        keyword=round(keyword, 4),
        structure=structure,
        context=context,
        semantic=None if semantic is None else round(semantic, 4),
        base=round(base, 4),
        boost=boost,
        final=final,
        pinned=is_pinned(section, plan),
    )


def sort_key(section: Section, breakdown: ScoreBreakdown) -> tuple:
    """Ordering for ranked results: pinned first, then score and tie-breaks."""
    return (
        not breakdown.pinned,
        -breakdown.final,
        -section.quality.score,
        -section.last_updated.timestamp(),
        section.title,
    )


class FuzzySemanticScorer:
    """Lexical stand-in for an embedding model.

    Scores token-set similarity between the query and the section's title and
    overview with rapidfuzz. Enabled with ``search.semantic_scorer: fuzzy``.
    """

    def similarity(self, section: Section, plan: QueryPlan) -> float:
        if not plan.tokens:
            return 0.0
        query = " ".join(plan.tokens)
        overview = section.structured_content.overview if section.structured_content else ""
        title_sim = fuzz.token_set_ratio(query, normalise_text(section.title))
        overview_sim = fuzz.token_set_ratio(query, normalise_text(overview)) if overview else 0.0
        return (title_sim * 0.6 + overview_sim * 0.4) / 100

"""Query analysis: raw query text -> QueryPlan.

Pure business logic: receives a Lexicon, returns a QueryPlan.
No knowledge of AppState, MCP, or I/O. Never raises for any query string.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rapidfuzz import fuzz, process

from higcontext.models.search import EntityKind, EntityMention, QueryPlan, SearchIntent
from higcontext.text import contains_phrase, normalise_text, stem, tokenize

if TYPE_CHECKING:
    from higcontext.lexicon import Lexicon
    from higcontext.models.section import Category, Platform

# Tokens shorter than this are never fuzzy-matched against component nouns
_FUZZY_MIN_LENGTH = 4


def analyze(
    raw_query: str,
    lexicon: Lexicon,
    *,
    platform: Platform | None = None,
    category: Category | None = None,
    force_intent: SearchIntent | None = None,
    component_fuzzy_cutoff: int = 85,
) -> QueryPlan:
    """Build the QueryPlan for one query.

    Steps (order matters):
      1. Normalise and tokenise (stop words and 1-char tokens dropped)
      2. Extract platform / category / component mentions
      3. Expand every token into a term group (token, stem, synonyms, and
         the component a misspelt token resolved to)
      4. Detect intent from ordered rules, first match wins
      5. Merge filters: caller-supplied filters win over detected ones
    """
    normalized = normalise_text(raw_query or "")
    tokens = tokenize(normalized, lexicon.stop_words)
    if not tokens:
        return QueryPlan(
            raw_query=raw_query or "",
            normalized_query=normalized,
            intent=force_intent or SearchIntent.GENERIC,
            platform=platform,
            category=category,
        )

    entities = extract_entities(
        normalized, tokens, lexicon, component_fuzzy_cutoff=component_fuzzy_cutoff
    )

    # A misspelt component ("buton") also searches for the noun it resolved to
    corrections = {
        e.text: e.value
        for e in entities
        if e.kind is EntityKind.COMPONENT and e.text in tokens and stem(e.text) != e.value
    }
    term_groups = tuple(
        expand_token(token, lexicon) | expand_token(corrections[token], lexicon)
        if token in corrections
        else expand_token(token, lexicon)
        for token in tokens
    )
    expanded: frozenset[str] = frozenset().union(*term_groups)
    matched = matching_intents(tokens, entities, lexicon)
    intent = force_intent or (matched[0] if matched else SearchIntent.GENERIC)

    platforms_mentioned: list[Platform] = []
    for entity in entities:
        if entity.kind is EntityKind.PLATFORM:
            detected = lexicon.platform_for(entity.text)
            if detected is not None and detected not in platforms_mentioned:
                platforms_mentioned.append(detected)

    detected_category = next(
        (lexicon.category_phrases[e.text] for e in entities if e.kind is EntityKind.CATEGORY),
        None,
    )

    # Comparisons span several platforms; a single detected one is not a filter
    detected_platform = None
    if intent is not SearchIntent.COMPARE_PLATFORMS and platforms_mentioned:
        detected_platform = platforms_mentioned[0]

    return QueryPlan(
        raw_query=raw_query,
        normalized_query=normalized,
        tokens=tuple(tokens),
        term_groups=term_groups,
        expanded_terms=expanded,
        intent=intent,
        matched_intents=matched,
        entities=tuple(entities),
        platform=platform if platform is not None else detected_platform,
        category=category if category is not None else detected_category,
        platforms_mentioned=tuple(platforms_mentioned),
    )


def expand_token(token: str, lexicon: Lexicon) -> frozenset[str]:
    """Return the term group for one token: itself, its stem and synonyms of both."""
    stemmed = stem(token)
    group = {token, stemmed}
    group.update(lexicon.synonyms_for(token))
    group.update(lexicon.synonyms_for(stemmed))
    return frozenset(group)


def extract_entities(
    normalized: str,
    tokens: list[str],
    lexicon: Lexicon,
    *,
    component_fuzzy_cutoff: int = 85,
) -> list[EntityMention]:
    """Scan the query against the platform, category and component gazetteers."""
    entities: list[EntityMention] = []

    for token in tokens:
        platform = lexicon.platform_for(token)
        if platform is not None:
            entities.append(EntityMention(EntityKind.PLATFORM, token, platform.value))

    # Category names contain stop words ("color and materials"), so they are
    # matched as phrases against the normalised query rather than tokens.
    for phrase, category in lexicon.category_phrases.items():
        if contains_phrase(normalized, phrase):
            entities.append(EntityMention(EntityKind.CATEGORY, phrase, category.value))

    seen_components: set[str] = set()
    for component in sorted(c for c in lexicon.components if " " in c):
        if contains_phrase(normalized, component):
            seen_components.add(component)
            entities.append(EntityMention(EntityKind.COMPONENT, component, component))

    single_word = lexicon.component_stems
    fuzzy_choices = sorted(single_word.values())
    for token in tokens:
        component = single_word.get(stem(token))
        if component is None and len(token) >= _FUZZY_MIN_LENGTH and fuzzy_choices:
            best = process.extractOne(
                token,
                fuzzy_choices,
                scorer=fuzz.ratio,
                score_cutoff=component_fuzzy_cutoff,
            )
            if best is not None:
                component = best[0]
        if component is None or component in seen_components:
            continue
        seen_components.add(component)
        entities.append(EntityMention(EntityKind.COMPONENT, token, component))

    return entities


def matching_intents(
    tokens: list[str],
    entities: list[EntityMention],
    lexicon: Lexicon,
) -> tuple[SearchIntent, ...]:
    """Every intent rule the query satisfies, in rule order."""
    words = set(tokens)
    kinds = [e.kind for e in entities]
    platform_count = len({e.value for e in entities if e.kind is EntityKind.PLATFORM})
    has_component = EntityKind.COMPONENT in kinds

    rules = (
        (
            SearchIntent.COMPARE_PLATFORMS,
            bool(words & lexicon.intent_words.compare) or platform_count >= 2,
        ),
        (
            SearchIntent.FIND_SPECIFICATION,
            bool(words & lexicon.intent_words.specification)
            and bool(platform_count or has_component),
        ),
        (SearchIntent.FIND_GUIDELINE, bool(words & lexicon.intent_words.guideline)),
        (SearchIntent.FIND_COMPONENT, has_component),
    )
    return tuple(intent for intent, fired in rules if fired)

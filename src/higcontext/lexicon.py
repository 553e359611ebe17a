"""Query vocabulary: stop words, synonym groups, gazetteers, intent words.

The vocabulary is data, not code. The bundled ``data/lexicon.yaml`` is used
unless ``search.lexicon_path`` points at a replacement file.
"""

from __future__ import annotations

from functools import cached_property
from importlib import resources
from pathlib import Path

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, field_validator

from higcontext.models.section import Category, Platform
from higcontext.text import normalise_text, stem

log = structlog.get_logger()


class IntentWords(BaseModel):
    compare: frozenset[str] = frozenset()
    specification: frozenset[str] = frozenset()
    guideline: frozenset[str] = frozenset()


class Lexicon(BaseModel):
    model_config = ConfigDict(frozen=True)

    stop_words: frozenset[str] = frozenset()
    synonyms: list[list[str]] = []
    components: frozenset[str] = frozenset()
    platforms: dict[str, Platform] = {}
    intent_words: IntentWords = IntentWords()

    @field_validator("synonyms")
    @classmethod
    def normalise_groups(cls, v: list[list[str]]) -> list[list[str]]:
        return [[normalise_text(term) for term in group if normalise_text(term)] for group in v]

    @field_validator("components", "stop_words")
    @classmethod
    def normalise_terms(cls, v: frozenset[str]) -> frozenset[str]:
        return frozenset(normalise_text(term) for term in v if normalise_text(term))

    @cached_property
    def synonym_index(self) -> dict[str, frozenset[str]]:
        """term -> every term sharing a group with it (itself excluded)."""
        index: dict[str, set[str]] = {}
        for group in self.synonyms:
            for term in group:
                index.setdefault(term, set()).update(t for t in group if t != term)
        return {term: frozenset(alternates) for term, alternates in index.items()}

    @cached_property
    def component_stems(self) -> dict[str, str]:
        """Stem of every single-word component noun -> the noun itself."""
        return {stem(c): c for c in self.components if " " not in c}

    @cached_property
    def category_phrases(self) -> dict[str, Category]:
        """Normalised category name ("color and materials") -> Category."""
        return {normalise_text(c.value): c for c in Category}

    def synonyms_for(self, term: str) -> frozenset[str]:
        return self.synonym_index.get(term, frozenset())

    def platform_for(self, token: str) -> Platform | None:
        return self.platforms.get(token)


def load_lexicon(path: str | Path | None = None) -> Lexicon:
    """Load the lexicon from ``path`` or from the bundled data file.

    A broken override file is a configuration error and raises; there is no
    silent fallback to the bundled vocabulary.
    """
    if path is None:
        raw = resources.files("higcontext").joinpath("data/lexicon.yaml").read_text("utf-8")
        source = "bundled"
    else:
        raw = Path(path).expanduser().read_text(encoding="utf-8")
        source = str(path)

    lexicon = Lexicon.model_validate(yaml.safe_load(raw) or {})
    log.debug(
        "lexicon_loaded",
        source=source,
        synonym_groups=len(lexicon.synonyms),
        components=len(lexicon.components),
    )
    return lexicon

"""Text normalisation shared by indexing, query analysis and scoring.

Every field that is compared against query terms goes through the same
``normalise_text`` so that a term matches regardless of case, punctuation or
hyphenation ("Tab-Bars" and "tab bars" normalise identically).
"""

from __future__ import annotations

import re
from collections.abc import Iterable

_NON_WORD_RE = re.compile(r"[^\w\s]|_")
_WHITESPACE_RE = re.compile(r"\s+")

MIN_TOKEN_LENGTH = 2


def normalise_text(raw: str) -> str:
    """Lowercase, replace punctuation with spaces and collapse whitespace."""
    text = raw.lower()
    text = _NON_WORD_RE.sub(" ", text)
    text = _WHITESPACE_RE.sub(" ", text)
    return text.strip()


def stem(word: str) -> str:
    """Strip one inflectional suffix: ``-ing``, ``-ed`` or plural ``-s``.

    Deliberately crude. Only the suffix is removed, so "tapping" becomes
    "tapp"; what matters is that query and document words reduce the same way.
    """
    if len(word) > 5 and word.endswith("ing"):
        return word[:-3]
    if len(word) > 4 and word.endswith("ed"):
        return word[:-2]
    if len(word) > 3 and word.endswith("s") and not word.endswith(("ss", "us", "is", "os")):
        return word[:-1]
    return word


def tokenize(raw: str, stop_words: frozenset[str] = frozenset()) -> list[str]:
    """Split text into normalised tokens, dropping short tokens and stop words.

    Order is preserved and duplicates are removed (first occurrence wins).
    """
    seen: set[str] = set()
    tokens: list[str] = []
    for token in normalise_text(raw).split():
        if len(token) < MIN_TOKEN_LENGTH or token in stop_words or token in seen:
            continue
        seen.add(token)
        tokens.append(token)
    return tokens


def term_set(words: Iterable[str]) -> frozenset[str]:
    """Words plus their stems, the form fields are matched in."""
    terms: set[str] = set()
    for word in words:
        terms.add(word)
        terms.add(stem(word))
    return frozenset(terms)


def contains_phrase(haystack: str, phrase: str) -> bool:
    """Whole-word containment of ``phrase`` in already-normalised ``haystack``."""
    if not phrase:
        return False
    return f" {phrase} " in f" {haystack} "

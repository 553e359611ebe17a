"""Markdown parser for guideline pages.

Single pass over the page that splits it into the parts a guideline page is
organised around: an overview, best-practice bullets, examples,
``key: value`` specifications and related topics. Lines inside fenced code
blocks are never treated as structure.
"""

from __future__ import annotations

import re

from higcontext.models.section import StructuredContent

_HEADING_RE = re.compile(r"^(#{1,4}) (.+)")
_BULLET_RE = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+(.+)")
_SPEC_RE = re.compile(r"^\s*(?:[-*+]\s+)?\**([^:*]{1,60}?)\**\s*:\s+(.+)")
_LINK_RE = re.compile(r"\[([^\]]+)\]\([^)]*\)")
_EMPHASIS_RE = re.compile(r"[*_`]+")

# Heading words that route the lines below them into a structured part
_GUIDELINE_HEADINGS = ("best practice", "guideline", "do", "don't", "avoid", "consider")
_EXAMPLE_HEADINGS = ("example",)
_SPEC_HEADINGS = ("specification", "dimension", "size", "metric")
_RELATED_HEADINGS = ("related", "see also")


def _clean(text: str) -> str:
    text = _LINK_RE.sub(r"\1", text)
    return _EMPHASIS_RE.sub("", text).strip()


def _classify(heading: str) -> str | None:
    words = heading.lower()
    for kind, markers in (
        ("guidelines", _GUIDELINE_HEADINGS),
        ("examples", _EXAMPLE_HEADINGS),
        ("specifications", _SPEC_HEADINGS),
        ("related", _RELATED_HEADINGS),
    ):
        if any(re.search(rf"\b{re.escape(m)}(?:s|es)?\b", words) for m in markers):
            return kind
    return None


def iter_content_lines(content: str):
    """Yield ``(lineno, line)`` for every line outside fenced code blocks."""
    in_code_block = False
    fence: str | None = None

    for lineno, line in enumerate(content.splitlines(), start=1):
        stripped = line.strip()

        if stripped.startswith("```") or stripped.startswith("~~~"):
            current_fence = stripped[:3]
            if not in_code_block:
                in_code_block = True
                fence = current_fence
            elif current_fence == fence:
                in_code_block = False
                fence = None
            continue

        if in_code_block:
            continue

        yield lineno, line


def count_headings(content: str) -> int:
    return sum(1 for _, line in iter_content_lines(content) if _HEADING_RE.match(line))


def parse_structured_content(content: str) -> StructuredContent:
    """Recover the structured parts of a Markdown guideline page.

    The overview is the first paragraph of prose before any routed heading.
    Bullets under guideline, example and related headings are collected in
    page order; ``key: value`` lines under a specifications heading become
    specification entries.
    """
    overview_lines: list[str] = []
    overview_done = False
    guidelines: list[str] = []
    examples: list[str] = []
    specifications: dict[str, str] = {}
    related: set[str] = set()

    current: str | None = None

    for _, line in iter_content_lines(content):
        heading = _HEADING_RE.match(line)
        if heading:
            current = _classify(heading.group(2))
            if overview_lines:
                overview_done = True
            continue

        if not line.strip():
            if overview_lines:
                overview_done = True
            continue

        if current is None:
            if not overview_done and not _BULLET_RE.match(line):
                overview_lines.append(_clean(line))
            continue

        if current == "specifications":
            spec = _SPEC_RE.match(line)
            if spec:
                specifications[_clean(spec.group(1)).lower()] = _clean(spec.group(2))
            continue

        bullet = _BULLET_RE.match(line)
        if not bullet:
            continue
        item = _clean(bullet.group(1))
        if not item:
            continue
        if current == "guidelines":
            guidelines.append(item)
        elif current == "examples":
            examples.append(item)
        else:
            related.add(item.lower())

    return StructuredContent(
        overview=" ".join(overview_lines),
        guidelines=tuple(guidelines),
        examples=tuple(examples),
        specifications=specifications,
        related_concepts=frozenset(related),
    )


def strip_markdown(content: str) -> str:
    """Plain text of a page: markup removed, code blocks dropped."""
    lines = []
    for _, line in iter_content_lines(content):
        heading = _HEADING_RE.match(line)
        text = heading.group(2) if heading else line
        bullet = _BULLET_RE.match(text)
        if bullet:
            text = bullet.group(1)
        text = _clean(text)
        if text:
            lines.append(text)
    return "\n".join(lines)

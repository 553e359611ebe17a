"""In-memory section store and its advisory on-disk snapshot.

Writes are copy-on-write: the mapping is rebuilt and its reference swapped
under a lock, so a reader that took ``snapshot()`` keeps a consistent view
and never sees a half-replaced section. Reads take no lock.
"""

from __future__ import annotations

import json
import os
import threading
from collections.abc import Iterable, Mapping
from contextlib import suppress
from datetime import UTC, datetime
from types import MappingProxyType
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError

from higcontext.models.section import (
    Category,
    ExtractionMethod,
    Platform,
    Section,
)
from higcontext.text import normalise_text, tokenize

if TYPE_CHECKING:
    from pathlib import Path

log = structlog.get_logger()

SNAPSHOT_VERSION = "1"
MAX_EXTRACTED_KEYWORDS = 20

# Filler words that are never useful as keywords
_KEYWORD_STOP_WORDS = frozenset(
    "the and for are but not you all can has her was one our out how its let "
    "use may also any each more most such than that then them they this with "
    "your from into when where which while will would should could".split()
)


def extract_keywords(title: str, content: str, limit: int = MAX_EXTRACTED_KEYWORDS) -> list[str]:
    """Derive keywords from title and content, title words first."""
    words = tokenize(f"{title} {content}", _KEYWORD_STOP_WORDS)
    return [w for w in words if len(w) >= 3 and not w.isdigit()][:limit]


def prepare_section(section: Section) -> Section:
    """Normalise keywords and guarantee the non-empty keyword invariant.

    Title words are always part of the keyword set; explicit keywords are
    normalised; when both are empty, content words (then the id) are used.
    """
    keywords = {normalise_text(k) for k in section.keywords if normalise_text(k)}
    keywords.update(tokenize(section.title, _KEYWORD_STOP_WORDS))
    if not keywords:
        keywords.update(extract_keywords(section.title, section.content))
    if not keywords:
        keywords.add(normalise_text(section.id) or section.id)
    return section.model_copy(update={"keywords": frozenset(keywords)})


class SectionStore:
    """Holds indexed sections keyed by id. Owns no ranking logic."""

    def __init__(self, sections: Iterable[Section] = ()) -> None:
        self._lock = threading.Lock()
        self._sections: Mapping[str, Section] = MappingProxyType({})
        self.last_updated: datetime | None = None
        self.add_many(sections)

    def add(self, section: Section) -> Section:
        """Insert or replace the section with this id. Idempotent."""
        return self.add_many([section])[0]

    def add_many(self, sections: Iterable[Section]) -> list[Section]:
        prepared = [prepare_section(s) for s in sections]
        if not prepared:
            return []
        with self._lock:
            updated = dict(self._sections)
            for section in prepared:
                updated[section.id] = section
            self._sections = MappingProxyType(updated)
            self.last_updated = datetime.now(UTC)
        for section in prepared:
            log.debug("section_indexed", section_id=section.id, keywords=len(section.keywords))
        return prepared

    def remove(self, section_id: str) -> bool:
        with self._lock:
            if section_id not in self._sections:
                return False
            updated = dict(self._sections)
            del updated[section_id]
            self._sections = MappingProxyType(updated)
            self.last_updated = datetime.now(UTC)
        return True

    def clear(self) -> None:
        with self._lock:
            self._sections = MappingProxyType({})
            self.last_updated = datetime.now(UTC)

    def get(self, section_id: str) -> Section | None:
        return self._sections.get(section_id)

    def snapshot(self) -> Mapping[str, Section]:
        """Read-only view that stays consistent while writers swap in new data."""
        return self._sections

    def candidates(
        self,
        platform: Platform | None = None,
        category: Category | None = None,
    ) -> list[Section]:
        """Sections passing the filters; a platform filter also admits universal."""
        allowed = None if platform is None else {platform, Platform.UNIVERSAL}
        return [
            s
            for s in self._sections.values()
            if (allowed is None or s.platform in allowed)
            and (category is None or s.category == category)
        ]

    def __len__(self) -> int:
        return len(self._sections)

    def __contains__(self, section_id: object) -> bool:
        return section_id in self._sections


# ---------------------------------------------------------------------------
# Snapshot (warm restart / debugging)
# ---------------------------------------------------------------------------


def build_snapshot(store: SectionStore) -> dict:
    """Snapshot document: every section minus its content body, plus metadata."""
    sections = store.snapshot()
    updated = store.last_updated or datetime.now(UTC)
    return {
        "metadata": {
            "version": SNAPSHOT_VERSION,
            "total_sections": len(sections),
            "last_updated": updated.isoformat(),
        },
        "sections": {
            section_id: section.model_dump(mode="json", exclude={"content"})
            for section_id, section in sorted(sections.items())
        },
    }


def save_snapshot(store: SectionStore, path: Path) -> None:
    """Persist the snapshot with atomic replace semantics."""
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = json.dumps(build_snapshot(store), indent=2).encode("utf-8")
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    try:
        with open(tmp_path, "wb") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    finally:
        with suppress(OSError):
            tmp_path.unlink(missing_ok=True)
    log.info("snapshot_saved", path=str(path), sections=len(store))


def load_snapshot(path: Path) -> list[Section] | None:
    """Load sections from a snapshot file.

    The snapshot is advisory: a missing, unreadable or invalid file returns
    ``None`` and the index is rebuilt by ingestion. Restored sections carry no
    content body and are marked as snapshot extractions.
    """
    if not path.is_file():
        log.debug("snapshot_missing", path=str(path))
        return None
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
        version = document["metadata"]["version"]
        if version != SNAPSHOT_VERSION:
            log.warning("snapshot_invalid", reason="version_mismatch", version=version)
            return None
        sections = []
        for raw in document["sections"].values():
            section = Section.model_validate(raw)
            quality = section.quality.model_copy(
                update={"extraction_method": ExtractionMethod.SNAPSHOT}
            )
            sections.append(section.model_copy(update={"quality": quality}))
    except (OSError, ValueError, KeyError, TypeError, ValidationError):
        log.warning("snapshot_invalid", reason="invalid_content", path=str(path), exc_info=True)
        return None

    log.info("snapshot_loaded", path=str(path), sections=len(sections))
    return sections

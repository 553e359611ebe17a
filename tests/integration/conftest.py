"""Integration test fixtures.

Provides a wired AppState over the shared sample sections, and an isolated
environment for running the server as a subprocess without touching the
network or the user's data directory.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest

from higcontext.config import Settings
from higcontext.reference import load_component_reference
from higcontext.state import AppState

if TYPE_CHECKING:
    from pathlib import Path

    from higcontext.lexicon import Lexicon
    from higcontext.search import SearchEngine
    from higcontext.store import SectionStore

# Port 1 refuses connections immediately, so ingestion always falls back
UNREACHABLE_URL = "http://127.0.0.1:1/toggles.md"

MANIFEST = f"""\
sections:
  - id: toggles
    title: Toggles
    url: https://developer.apple.com/design/human-interface-guidelines/toggles
    source_url: {UNREACHABLE_URL}
    platform: universal
    category: selection-and-input
    keywords: [toggle, switch]
    fallback: |
      # Toggles

      A toggle lets people choose between a pair of opposing states.
"""


@pytest.fixture()
def manifest_path(tmp_path: Path) -> Path:
    path = tmp_path / "sections.yaml"
    path.write_text(MANIFEST, encoding="utf-8")
    return path


@pytest.fixture()
def isolated_env(tmp_path: Path, manifest_path: Path) -> dict[str, str]:
    """HIGCONTEXT__ variables pointing every data path at tmp_path."""
    return {
        "HIGCONTEXT__SERVER__TRANSPORT": "stdio",
        "HIGCONTEXT__CACHE__BACKEND": "sqlite",
        "HIGCONTEXT__CACHE__DB_PATH": str(tmp_path / "cache.db"),
        "HIGCONTEXT__FETCHER__MAX_RETRIES": "0",
        "HIGCONTEXT__INGESTION__MANIFEST_PATH": str(manifest_path),
        "HIGCONTEXT__INGESTION__SNAPSHOT_PATH": str(tmp_path / "search-index.json"),
    }


@pytest.fixture()
def subprocess_env(isolated_env: dict[str, str]) -> dict[str, str]:
    """Baseline env dict for subprocess-based MCP integration tests."""
    return {**os.environ, **isolated_env}


@pytest.fixture()
def app_state(store: SectionStore, lexicon: Lexicon, engine: SearchEngine) -> AppState:
    """AppState over the sample sections, with no ingestion attached."""
    return AppState(
        settings=Settings(),
        lexicon=lexicon,
        store=store,
        engine=engine,
        reference=load_component_reference(),
    )

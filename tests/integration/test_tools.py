"""Integration tests for MCP tool handlers.

Tests the full path through each handler: input validation → search engine
→ output serialisation. Uses a real AppState over the sample sections.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from higcontext.errors import ErrorCode, HigContextError
from higcontext.tools.compare_platforms import handle as compare_handle
from higcontext.tools.get_accessibility_requirements import handle as accessibility_handle
from higcontext.tools.get_component_spec import handle as component_handle
from higcontext.tools.get_design_tokens import handle as tokens_handle
from higcontext.tools.search_guidelines import handle as search_handle

if TYPE_CHECKING:
    from higcontext.state import AppState


class TestSearchGuidelinesHandler:
    """Full handler pipeline tests for search_guidelines."""

    async def test_valid_query_returns_results(self, app_state: AppState) -> None:
        result = await search_handle("button design", app_state, platform="ios")
        assert [hit["id"] for hit in result["results"]] == ["buttons-ios"]
        assert result["method"] == "matched"
        assert result["results"][0]["platform"] == "iOS"

    async def test_output_contains_all_required_fields(self, app_state: AppState) -> None:
        result = await search_handle("color", app_state)
        assert set(result.keys()) == {"results", "method", "intent"}
        hit = result["results"][0]
        assert set(hit.keys()) == {
            "id",
            "title",
            "url",
            "platform",
            "category",
            "relevance",
            "snippet",
            "is_fallback",
        }
        assert hit["id"] == "color"
        assert hit["snippet"].startswith("Judicious use of color")
        assert hit["is_fallback"] is False

    async def test_no_match_is_not_an_error(self, app_state: AppState) -> None:
        result = await search_handle("stepper", app_state)
        assert result["results"] == []
        assert result["method"] == "no_match"

    @pytest.mark.parametrize("query", ["", "   ", "the of and"])
    async def test_blank_query_is_no_match(self, app_state: AppState, query: str) -> None:
        result = await search_handle(query, app_state)
        assert result["results"] == []
        assert result["method"] == "no_match"

    async def test_limit_applied(self, app_state: AppState) -> None:
        result = await search_handle("button", app_state, limit=1)
        assert len(result["results"]) == 1

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"query": "x" * 501},
            {"query": "buttons", "platform": "android"},
            {"query": "buttons", "category": "widgets"},
            {"query": "buttons", "limit": 0},
            {"query": "buttons", "limit": 51},
        ],
    )
    async def test_invalid_input(self, app_state: AppState, kwargs: dict) -> None:
        with pytest.raises(HigContextError) as exc_info:
            await search_handle(state=app_state, **kwargs)
        assert exc_info.value.code == ErrorCode.INVALID_INPUT
        assert exc_info.value.recoverable is False


class TestGetComponentSpecHandler:
    async def test_best_match_with_alternatives(self, app_state: AppState) -> None:
        result = await component_handle("buttons", app_state)
        assert set(result.keys()) == {"best_match", "alternatives", "method"}
        assert result["best_match"]["id"] == "buttons-macos"
        assert [alt["id"] for alt in result["alternatives"]] == ["buttons-ios"]
        assert result["alternatives"][0]["relevance"] > 0

    async def test_platform_narrows_match(self, app_state: AppState) -> None:
        result = await component_handle("button", app_state, platform="iOS")
        assert result["best_match"]["id"] == "buttons-ios"
        assert result["best_match"]["platform"] == "iOS"
        assert result["alternatives"] == []

    async def test_component_spec_fields(self, app_state: AppState) -> None:
        result = await component_handle("buttons-ios", app_state)
        assert set(result["best_match"].keys()) == {
            "id",
            "title",
            "url",
            "platform",
            "overview",
            "structured_content",
            "is_fallback",
        }

    async def test_unknown_component(self, app_state: AppState) -> None:
        result = await component_handle("stepper", app_state)
        assert result["best_match"] is None
        assert result["alternatives"] == []
        assert result["method"] == "no_match"

    async def test_invalid_platform(self, app_state: AppState) -> None:
        with pytest.raises(HigContextError) as exc_info:
            await component_handle("buttons", app_state, platform="Android")
        assert exc_info.value.code == ErrorCode.INVALID_INPUT

    async def test_empty_name(self, app_state: AppState) -> None:
        with pytest.raises(HigContextError) as exc_info:
            await component_handle("", app_state)
        assert exc_info.value.code == ErrorCode.INVALID_INPUT


class TestComparePlatformsHandler:
    async def test_one_entry_per_requested_platform(self, app_state: AppState) -> None:
        result = await compare_handle("button", ["ios", "macOS", "tvOS"], app_state)
        assert result["component_name"] == "button"
        assert list(result["by_platform"]) == ["iOS", "macOS", "tvOS"]
        assert result["by_platform"]["iOS"]["id"] == "buttons-ios"
        assert result["by_platform"]["macOS"]["id"] == "buttons-macos"
        assert result["by_platform"]["tvOS"] is None
        assert result["method"] == "matched"

    async def test_universal_section_fills_every_platform(self, app_state: AppState) -> None:
        result = await compare_handle("color", ["iOS", "watchOS"], app_state)
        assert result["by_platform"]["iOS"]["id"] == "color"
        assert result["by_platform"]["watchOS"]["id"] == "color"

    @pytest.mark.parametrize(
        "platforms",
        [
            ["iOS"],
            ["iOS", "IOS"],
            ["iOS", "Android"],
            ["iOS", "macOS", "watchOS", "tvOS", "visionOS", "universal"],
        ],
    )
    async def test_invalid_platforms(self, app_state: AppState, platforms: list[str]) -> None:
        with pytest.raises(HigContextError) as exc_info:
            await compare_handle("buttons", platforms, app_state)
        assert exc_info.value.code == ErrorCode.INVALID_INPUT


class TestGetDesignTokensHandler:
    async def test_tokens_with_matching_section(self, app_state: AppState) -> None:
        result = await tokens_handle("Buttons", "ios", app_state)
        assert set(result.keys()) == {
            "component",
            "platform",
            "tokens",
            "matched",
            "section_id",
            "specifications",
        }
        assert result["platform"] == "iOS"
        assert result["matched"] is True
        assert result["section_id"] == "buttons-ios"
        assert result["tokens"]["dimensions"]["min_height"] == "44pt"

    async def test_token_type_narrows_groups(self, app_state: AppState) -> None:
        result = await tokens_handle("tab bar", "iOS", app_state, token_type="typography")
        assert result["tokens"] == {
            "typography": {"label_font_size": "10pt", "label_font_weight": "400"}
        }

    async def test_unknown_component_is_not_an_error(self, app_state: AppState) -> None:
        result = await tokens_handle("stepper", "macOS", app_state)
        assert result["matched"] is False
        assert result["section_id"] is None
        assert result["specifications"] == {}
        assert result["tokens"]["spacing"] == {"padding": "16pt", "margin": "8pt"}

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"component": "", "platform": "iOS"},
            {"component": "button", "platform": "android"},
            {"component": "button", "platform": "universal"},
            {"component": "button", "platform": "iOS", "token_type": "shadows"},
        ],
    )
    async def test_invalid_input(self, app_state: AppState, kwargs: dict) -> None:
        with pytest.raises(HigContextError) as exc_info:
            await tokens_handle(state=app_state, **kwargs)
        assert exc_info.value.code == ErrorCode.INVALID_INPUT
        assert exc_info.value.recoverable is False


class TestGetAccessibilityRequirementsHandler:
    async def test_requirements_and_related_sections(self, app_state: AppState) -> None:
        result = await accessibility_handle("button", "iOS", app_state)
        assert set(result.keys()) == {
            "component",
            "platform",
            "requirements",
            "matched",
            "related",
            "method",
        }
        assert result["matched"] is True
        assert result["requirements"]["wcag_compliance"] == "WCAG 2.1 AA"
        assert "Button trait for VoiceOver" in result["requirements"]["voiceover_support"]
        assert result["related"][0]["id"] == "buttons-ios"
        assert result["method"] == "matched"

    async def test_unknown_component_gets_baseline(self, app_state: AppState) -> None:
        result = await accessibility_handle("stepper", "watchOS", app_state)
        assert result["matched"] is False
        assert result["requirements"]["minimum_touch_target"] == "44pt x 44pt"
        assert result["related"] == []
        assert result["method"] == "no_match"

    async def test_invalid_platform(self, app_state: AppState) -> None:
        with pytest.raises(HigContextError) as exc_info:
            await accessibility_handle("button", "Android", app_state)
        assert exc_info.value.code == ErrorCode.INVALID_INPUT

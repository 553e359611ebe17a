from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel

from higcontext.models.section import Platform


class TokenType(StrEnum):
    COLORS = "colors"
    SPACING = "spacing"
    TYPOGRAPHY = "typography"
    DIMENSIONS = "dimensions"
    ALL = "all"


class TokenGroups(BaseModel):
    colors: dict[str, str] = {}
    spacing: dict[str, str] = {}
    typography: dict[str, str] = {}
    dimensions: dict[str, str] = {}


class AccessibilityRequirements(BaseModel):
    minimum_touch_target: str = ""
    contrast_ratio: str = ""
    wcag_compliance: str = ""
    voiceover_support: list[str] = []
    keyboard_navigation: list[str] = []
    additional_guidelines: list[str] = []


class ComponentEntry(BaseModel):
    aliases: list[str] = []
    tokens: TokenGroups = TokenGroups()
    # Platform -> token overrides, merged over ``tokens`` group by group
    platforms: dict[Platform, TokenGroups] = {}
    # Only the fields set here replace the baseline
    accessibility: dict[str, str | list[str]] = {}

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from higcontext.models.search import SearchIntent, SearchMethod
from higcontext.models.section import Category, Platform, StructuredContent
from higcontext.models.reference import AccessibilityRequirements, TokenType

_PLATFORMS_BY_NAME = {p.value.lower(): p for p in Platform}


def _coerce_platform(v: object) -> object:
    # Agents write "ios" as often as "iOS"
    if isinstance(v, str):
        return _PLATFORMS_BY_NAME.get(v.strip().lower(), v)
    return v


class SearchGuidelinesInput(BaseModel):
    # Blank is allowed: it searches nothing and answers no_match
    query: str = Field(max_length=500)
    platform: Platform | None = None
    category: Category | None = None
    limit: int = Field(default=10, ge=1, le=50)

    @field_validator("query")
    @classmethod
    def strip_query(cls, v: str) -> str:
        return v.strip()

    @field_validator("platform", mode="before")
    @classmethod
    def normalise_platform(cls, v: object) -> object:
        return _coerce_platform(v)


class GetComponentSpecInput(BaseModel):
    component_name: str = Field(min_length=1, max_length=200)
    platform: Platform | None = None

    @field_validator("platform", mode="before")
    @classmethod
    def normalise_platform(cls, v: object) -> object:
        return _coerce_platform(v)


class ComparePlatformsInput(BaseModel):
    component_name: str = Field(min_length=1, max_length=200)
    platforms: list[Platform] = Field(min_length=2, max_length=5)

    @field_validator("platforms", mode="before")
    @classmethod
    def normalise_platforms(cls, v: object) -> object:
        if isinstance(v, list):
            return [_coerce_platform(p) for p in v]
        return v

    @field_validator("platforms")
    @classmethod
    def unique_platforms(cls, v: list[Platform]) -> list[Platform]:
        unique = list(dict.fromkeys(v))
        if len(unique) < 2:
            raise ValueError("platforms must name at least two distinct platforms")
        return unique


class _ComponentOnPlatformInput(BaseModel):
    component: str = Field(min_length=1, max_length=200)
    platform: Platform

    @field_validator("component")
    @classmethod
    def strip_component(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("component must not be blank")
        return v

    @field_validator("platform", mode="before")
    @classmethod
    def normalise_platform(cls, v: object) -> object:
        return _coerce_platform(v)

    @field_validator("platform")
    @classmethod
    def concrete_platform(cls, v: Platform) -> Platform:
        if v is Platform.UNIVERSAL:
            raise ValueError("platform must be a concrete platform, not universal")
        return v


class GetDesignTokensInput(_ComponentOnPlatformInput):
    token_type: TokenType = TokenType.ALL


class GetAccessibilityRequirementsInput(_ComponentOnPlatformInput):
    pass


class SearchHit(BaseModel):
    """Single result returned by search_guidelines."""

    id: str
    title: str
    url: str
    platform: Platform
    category: Category
    relevance: float
    snippet: str
    is_fallback: bool


class SearchGuidelinesOutput(BaseModel):
    results: list[SearchHit]
    method: SearchMethod
    intent: SearchIntent


class ComponentSpec(BaseModel):
    id: str
    title: str
    url: str
    platform: Platform
    overview: str
    structured_content: StructuredContent | None
    is_fallback: bool


class GetComponentSpecOutput(BaseModel):
    best_match: ComponentSpec | None
    alternatives: list[SearchHit]
    method: SearchMethod


class ComparePlatformsOutput(BaseModel):
    component_name: str
    by_platform: dict[str, ComponentSpec | None]
    method: SearchMethod


class GetDesignTokensOutput(BaseModel):
    component: str
    platform: Platform
    # Group name ("colors", "spacing", ...) -> token name -> value
    tokens: dict[str, dict[str, str]]
    # False when the component has no entry of its own and generic tokens apply
    matched: bool
    # Specifications table of the guideline section naming the component
    section_id: str | None = None
    specifications: dict[str, str] = {}


class GetAccessibilityRequirementsOutput(BaseModel):
    component: str
    platform: Platform
    requirements: AccessibilityRequirements
    matched: bool
    related: list[SearchHit]
    method: SearchMethod

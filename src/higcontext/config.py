"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (HIGCONTEXT__SERVER__TRANSPORT=http)
  2. higcontext.yaml        (searched in cwd, then platform config dir)
  3. Hardcoded defaults

The config file is optional; all fields have sensible defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_DEFAULT_DATA_DIR = platformdirs.user_data_dir("higcontext")
_DEFAULT_DB_PATH = str(Path(_DEFAULT_DATA_DIR) / "cache.db")
_DEFAULT_SNAPSHOT_PATH = str(Path(_DEFAULT_DATA_DIR) / "search-index.json")


def _find_config_file() -> str | None:
    """Return the path of the first higcontext.yaml found, or None."""
    candidates = [
        Path("higcontext.yaml"),
        Path(platformdirs.user_config_dir("higcontext")) / "higcontext.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class ServerSettings(BaseModel):
    transport: Literal["stdio", "http"] = "stdio"
    host: str = "127.0.0.1"
    port: int = 8080
    # Hosts a browser Origin header may name on the HTTP transport
    allowed_origin_hosts: list[str] = ["localhost", "127.0.0.1"]


class CacheSettings(BaseModel):
    backend: Literal["memory", "sqlite"] = "memory"
    db_path: str = _DEFAULT_DB_PATH
    fresh_ttl_seconds: int = Field(default=3600, gt=0)
    # Stale copies outlive the fresh window by this factor
    stale_ttl_multiplier: float = Field(default=24.0, ge=1.0)
    cleanup_interval_hours: int = 6


class FetcherSettings(BaseModel):
    timeout_seconds: float = 15.0
    max_retries: int = Field(default=2, ge=0)
    initial_backoff_seconds: float = 0.5
    max_backoff_seconds: float = 8.0
    user_agent: str = "higcontext/1.0"


class WeightScheme(BaseModel):
    """Linear blend of the component scores into ``base``."""

    semantic: float = 0.0
    keyword: float
    structure: float
    context: float


class FieldWeights(BaseModel):
    title: float = 1.0
    keywords: float = 0.6
    body: float = 0.3


class BoostFactors(BaseModel):
    exact_title: float = 2.0
    platform_match: float = 1.5
    category_match: float = 1.3


class SearchSettings(BaseModel):
    min_relevance_threshold: float = Field(default=0.1, ge=0.0)
    default_limit: int = Field(default=10, ge=1)
    max_limit: int = Field(default=50, ge=1)
    keyword_weights: WeightScheme = WeightScheme(keyword=0.6, structure=0.25, context=0.15)
    semantic_weights: WeightScheme = WeightScheme(
        semantic=0.4, keyword=0.3, structure=0.2, context=0.1
    )
    field_weights: FieldWeights = FieldWeights()
    boosts: BoostFactors = BoostFactors()
    # Results scoring within this fraction of the best hit count as near ties
    near_tie_ratio: float = Field(default=0.8, gt=0.0, le=1.0)
    component_fuzzy_cutoff: int = Field(default=85, ge=0, le=100)
    semantic_scorer: Literal["none", "fuzzy"] = "none"
    lexicon_path: str | None = None
    components_path: str | None = None

    @model_validator(mode="after")
    def _limits_consistent(self) -> SearchSettings:
        if self.default_limit > self.max_limit:
            raise ValueError("search.default_limit must not exceed search.max_limit")
        return self


class IngestionSettings(BaseModel):
    manifest_path: str | None = None
    snapshot_path: str = _DEFAULT_SNAPSHOT_PATH
    refresh_interval_hours: int = 24
    concurrency: int = Field(default=4, ge=1)


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: HIGCONTEXT__SERVER__PORT=9090
        env_prefix="HIGCONTEXT__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    server: ServerSettings = ServerSettings()
    cache: CacheSettings = CacheSettings()
    fetcher: FetcherSettings = FetcherSettings()
    search: SearchSettings = SearchSettings()
    ingestion: IngestionSettings = IngestionSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
            # dotenv and file secrets intentionally excluded
        )

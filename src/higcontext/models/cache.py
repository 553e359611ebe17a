from __future__ import annotations

from datetime import datetime, timedelta
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator


class CacheTier(StrEnum):
    FRESH = "fresh"
    STALE = "stale"
    EXPIRED = "expired"


class CacheEntry(BaseModel):
    """One cached value with its two expiry deadlines."""

    model_config = ConfigDict(frozen=True)

    key: str
    value: Any
    fetched_at: datetime
    fresh_expires_at: datetime
    stale_expires_at: datetime

    @model_validator(mode="after")
    def _stale_outlives_fresh(self) -> CacheEntry:
        if self.stale_expires_at < self.fresh_expires_at:
            raise ValueError("stale_expires_at must not precede fresh_expires_at")
        return self

    @classmethod
    def create(
        cls,
        key: str,
        value: Any,
        *,
        now: datetime,
        fresh_ttl: timedelta,
        stale_ttl: timedelta,
    ) -> CacheEntry:
        return cls(
            key=key,
            value=value,
            fetched_at=now,
            fresh_expires_at=now + fresh_ttl,
            stale_expires_at=now + max(stale_ttl, fresh_ttl),
        )

    def tier(self, now: datetime) -> CacheTier:
        if now < self.fresh_expires_at:
            return CacheTier.FRESH
        if now < self.stale_expires_at:
            return CacheTier.STALE
        return CacheTier.EXPIRED


class CacheHit(BaseModel):
    """A value returned by the resilient cache, annotated with its tier."""

    model_config = ConfigDict(frozen=True)

    value: Any
    tier: CacheTier
    fetched_at: datetime

    @property
    def stale(self) -> bool:
        return self.tier is not CacheTier.FRESH

"""Background scheduler coroutines for ingestion refresh and cache cleanup."""

from __future__ import annotations

import asyncio
import random
from typing import TYPE_CHECKING, Literal

import structlog

if TYPE_CHECKING:
    from higcontext.state import AppState

log = structlog.get_logger()

INGESTION_INITIAL_BACKOFF_SECONDS = 60
INGESTION_MAX_BACKOFF_SECONDS = 3600
INGESTION_MAX_TRANSIENT_BACKOFF_ATTEMPTS = 5

IngestionOutcome = Literal["success", "transient_failure"]


def _jittered_delay(base_seconds: int) -> float:
    return base_seconds * random.uniform(0.8, 1.2)


async def run_ingestion_pass(state: AppState) -> IngestionOutcome:
    """Refresh every manifest section once.

    A pass where no section could be read from the origin or the cache (all
    static fallbacks or failures) is a transient failure worth retrying soon.
    """
    if state.ingestor is None or not state.sources:
        return "success"
    report = await state.ingestor.ingest_all(state.sources)
    live = len(report.indexed) - len(report.fallbacks)
    return "success" if live > 0 else "transient_failure"


async def run_cache_cleanup_scheduler(state: AppState) -> None:
    """Run cache cleanup at startup and (HTTP mode) on the configured interval."""
    interval_hours = state.settings.cache.cleanup_interval_hours

    # Both transports: run at startup
    if state.cache is not None:
        await state.cache.cleanup_expired()

    if state.settings.server.transport != "http":
        return

    # HTTP long-running mode: repeat on the configured interval.
    while True:
        await asyncio.sleep(interval_hours * 3600)
        if state.cache is not None:
            await state.cache.cleanup_expired()


async def run_ingestion_scheduler(state: AppState) -> None:
    """Run a startup ingestion pass and (HTTP mode) periodic refreshes."""
    if state.settings.server.transport != "http":
        try:
            await run_ingestion_pass(state)
        except Exception:
            log.warning("ingestion_scheduler_error", mode="startup_once", exc_info=True)
        return

    backoff_seconds = INGESTION_INITIAL_BACKOFF_SECONDS
    consecutive_transient_failures = 0

    while True:
        try:
            outcome = await run_ingestion_pass(state)
        except Exception:
            log.warning("ingestion_scheduler_error", mode="http_loop", exc_info=True)
            outcome = "transient_failure"

        refresh_interval_seconds = state.settings.ingestion.refresh_interval_hours * 3600

        if outcome == "success":
            consecutive_transient_failures = 0
            backoff_seconds = INGESTION_INITIAL_BACKOFF_SECONDS
            await asyncio.sleep(refresh_interval_seconds)
            continue

        consecutive_transient_failures += 1
        if consecutive_transient_failures >= INGESTION_MAX_TRANSIENT_BACKOFF_ATTEMPTS:
            log.warning(
                "ingestion_transient_retry_suspended",
                consecutive_failures=consecutive_transient_failures,
                cooldown_seconds=refresh_interval_seconds,
            )
            consecutive_transient_failures = 0
            backoff_seconds = INGESTION_INITIAL_BACKOFF_SECONDS
            await asyncio.sleep(refresh_interval_seconds)
            continue

        await asyncio.sleep(_jittered_delay(backoff_seconds))
        backoff_seconds = min(backoff_seconds * 2, INGESTION_MAX_BACKOFF_SECONDS)

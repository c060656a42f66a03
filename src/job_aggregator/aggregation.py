from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable, Iterable
from typing import Any

from job_aggregator.keywords import job_dedup_key, normalize_text
from job_aggregator.models import AggregationResult, Job, JobFilters
from job_aggregator.providers.base import JobProvider
from job_aggregator.registry import ProviderRegistry
from job_aggregator.studios import StudioDirectory

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL_SECONDS = 15 * 60
HEALTH_PROBE_FILTERS = JobFilters(limit=1)


def cache_key(filters: JobFilters) -> str:
    """Deterministic key built only from the fields that change a result set."""
    fields = {
        "query": normalize_text(filters.search_text),
        "company": normalize_text(filters.company or ""),
        "location": normalize_text(filters.location or ""),
        "remote": filters.remote,
        "job_type": filters.job_type.value if filters.job_type else None,
        "salary_min": filters.salary_min,
        "posted_within_days": filters.posted_within_days,
        "limit": filters.limit,
    }
    return json.dumps(fields, sort_keys=True)


def deduplicate(jobs: Iterable[Job]) -> list[Job]:
    seen: set[tuple[str, str, str]] = set()
    unique = []
    for job in jobs:
        key = job_dedup_key(job)
        if key in seen:
            continue
        seen.add(key)
        unique.append(job)
    return unique


class AggregationService:
    """Top-level search: cached fan-out, dedup in priority order, studio enrichment."""

    def __init__(
        self,
        registry: ProviderRegistry,
        studios: StudioDirectory | None = None,
        *,
        cache_ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.registry = registry
        self.studios = studios or StudioDirectory()
        self.cache_ttl_seconds = cache_ttl_seconds
        self._clock = clock
        self._cache: dict[str, tuple[float, AggregationResult]] = {}

    def _cached(self, key: str) -> AggregationResult | None:
        entry = self._cache.get(key)
        if entry is None:
            return None
        expires_at, result = entry
        if self._clock() >= expires_at:
            del self._cache[key]
            return None
        return result

    def _store(self, key: str, result: AggregationResult) -> None:
        now = self._clock()
        for stale in [k for k, (expires_at, _) in self._cache.items() if now >= expires_at]:
            del self._cache[stale]
        self._cache[key] = (now + self.cache_ttl_seconds, result)

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    async def search_jobs(self, filters: JobFilters) -> AggregationResult:
        started = time.perf_counter()
        try:
            key = cache_key(filters)
            cached = self._cached(key)
            if cached is not None:
                logger.debug("Cache hit for %s", key)
                return cached

            batch = await self.registry.fetch_from_all_providers(filters)
            unique = deduplicate(batch.jobs)
            enriched = [self.studios.enrich(job) for job in unique]
            if filters.limit is not None:
                enriched = enriched[: filters.limit]

            result = AggregationResult(
                jobs=enriched,
                sources=list(batch.sources),
                total_found=len(enriched),
                errors=[],
                processing_time_ms=(time.perf_counter() - started) * 1000,
            )
            self._store(key, result)
            logger.info(
                "Search %r: %d jobs (%d before dedup) from %s",
                filters.search_text,
                len(enriched),
                len(batch.jobs),
                ", ".join(batch.sources) or "no providers",
            )
            return result
        except Exception as exc:
            logger.exception("Search failed")
            return AggregationResult(
                jobs=[],
                sources=[],
                total_found=0,
                errors=[f"Search failed: {exc}"],
                processing_time_ms=(time.perf_counter() - started) * 1000,
            )

    def clear_cache(self) -> None:
        self._cache.clear()

    def add_provider(self, provider: JobProvider) -> None:
        self.registry.register(provider)
        self.clear_cache()

    def remove_provider(self, name: str) -> None:
        self.registry.unregister(name)
        self.clear_cache()

    def get_provider(self, name: str) -> JobProvider | None:
        return self.registry.get_provider(name)

    def get_all_providers(self) -> list[JobProvider]:
        return self.registry.providers()

    def get_provider_status(self) -> list[dict[str, Any]]:
        return self.registry.get_provider_status()

    def update_provider_config(self, name: str, **changes: Any) -> bool:
        updated = self.registry.update_provider(name, **changes)
        if updated:
            self.clear_cache()
        return updated

    async def check_provider_health(self) -> dict[str, bool]:
        """Probe every enabled provider once; a skipped provider counts as unhealthy."""
        status = {}
        for provider in self.registry.get_all_providers():
            result = await self.registry.fetch_from_provider(provider.name, HEALTH_PROBE_FILTERS)
            status[provider.name] = result is not None and result.ok
        return status

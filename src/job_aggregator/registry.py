from __future__ import annotations

import asyncio
import itertools
import logging
import threading
import time
from collections.abc import Callable
from typing import Any

from job_aggregator.errors import FetchError
from job_aggregator.models import FetchResult, JobFilters, ProviderBatch
from job_aggregator.providers.base import JobProvider, log_fetch_error
from job_aggregator.rate_limit import RateLimiter

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY_LIMIT = 20

FetchObserver = Callable[[FetchResult], None]


class ProviderRegistry:
    """
    Owns the registered providers and their descriptors.

    Providers are ordered by ``priority`` (lower first) with registration order
    as the secondary key; that single order drives dispatch, merge order and
    therefore which copy of a duplicated posting survives.
    """

    def __init__(
        self,
        rate_limiter: RateLimiter | None = None,
        *,
        concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT,
    ):
        if concurrency_limit < 1:
            raise ValueError("concurrency_limit must be at least 1")
        self.rate_limiter = rate_limiter or RateLimiter()
        self.concurrency_limit = concurrency_limit
        self._providers: dict[str, JobProvider] = {}
        self._order: dict[str, int] = {}
        self._sequence = itertools.count()
        self._observers: list[FetchObserver] = []
        self._active_requests = 0
        self._lock = threading.Lock()

    @property
    def active_requests(self) -> int:
        return self._active_requests

    def register(self, provider: JobProvider) -> None:
        name = provider.name
        if name not in self._order:
            self._order[name] = next(self._sequence)
        self._providers[name] = provider
        limit = provider.descriptor.rate_limit
        if limit is not None:
            self.rate_limiter.configure(name, limit.requests, limit.period_seconds)

    def unregister(self, name: str) -> None:
        self._providers.pop(name, None)
        self._order.pop(name, None)

    def get_provider(self, name: str) -> JobProvider | None:
        return self._providers.get(name)

    def providers(self) -> list[JobProvider]:
        return sorted(self._providers.values(), key=self._sort_key)

    def get_all_providers(self) -> list[JobProvider]:
        return [provider for provider in self.providers() if provider.descriptor.enabled]

    def _sort_key(self, provider: JobProvider) -> tuple[int, int]:
        return (provider.descriptor.priority, self._order[provider.name])

    def update_provider(
        self,
        name: str,
        *,
        enabled: bool | None = None,
        priority: int | None = None,
        api_key: str | None = None,
        config: dict[str, Any] | None = None,
    ) -> bool:
        provider = self._providers.get(name)
        if provider is None:
            return False
        descriptor = provider.descriptor
        if enabled is not None:
            descriptor.enabled = enabled
        if priority is not None:
            descriptor.priority = priority
        if api_key is not None:
            descriptor.api_key = api_key
        if config:
            descriptor.config = {**descriptor.config, **config}
        return True

    def get_provider_status(self) -> list[dict[str, Any]]:
        return [
            {
                "name": provider.name,
                "display_name": provider.descriptor.display_name,
                "enabled": provider.descriptor.enabled,
                "priority": provider.descriptor.priority,
                "remaining_requests": self.rate_limiter.get_remaining_requests(provider.name),
            }
            for provider in self.providers()
        ]

    def add_observer(self, observer: FetchObserver) -> None:
        self._observers.append(observer)

    def _notify(self, result: FetchResult) -> None:
        for observer in self._observers:
            try:
                observer(result)
            except Exception:
                logger.exception("Fetch observer failed for %s", result.provider)

    def _admit(self, name: str) -> bool:
        with self._lock:
            if self._active_requests >= self.concurrency_limit:
                logger.debug(
                    "Concurrency limit reached (%d/%d), skipping %s",
                    self._active_requests,
                    self.concurrency_limit,
                    name,
                )
                return False
            if not self.rate_limiter.try_acquire(name):
                logger.debug("Rate limit exhausted for %s, skipping this round", name)
                return False
            self._active_requests += 1
            return True

    def _release(self) -> None:
        with self._lock:
            self._active_requests -= 1

    async def _fetch_admitted(
        self,
        provider: JobProvider,
        filters: JobFilters,
        reserved: set[str] | None = None,
    ) -> FetchResult:
        started = time.perf_counter()
        try:
            # from here on the finally below owns the slot
            if reserved is not None:
                reserved.discard(provider.name)
            result = await provider.fetch_jobs(filters)
        except Exception as exc:
            error = FetchError.from_exception(exc)
            log_fetch_error(provider.name, error)
            result = FetchResult(
                provider=provider.name,
                jobs=[],
                error=error,
                elapsed_ms=(time.perf_counter() - started) * 1000,
            )
        finally:
            self._release()
        self._notify(result)
        return result

    async def fetch_from_provider(self, name: str, filters: JobFilters) -> FetchResult | None:
        """Fetch from one provider; ``None`` means it was not eligible or not admitted."""
        provider = self._providers.get(name)
        if provider is None or not provider.descriptor.usable:
            return None
        if not self._admit(name):
            return None
        return await self._fetch_admitted(provider, filters)

    async def fetch_from_all_providers(self, filters: JobFilters) -> ProviderBatch:
        providers = [provider for provider in self.get_all_providers() if provider.descriptor.usable]
        admitted: list[JobProvider] = []
        skipped: list[str] = []
        for provider in providers:
            if self._admit(provider.name):
                admitted.append(provider)
            else:
                skipped.append(provider.name)

        # slots of tasks cancelled before their first step are released here
        reserved = {provider.name for provider in admitted}
        try:
            results = await asyncio.gather(
                *(self._fetch_admitted(provider, filters, reserved) for provider in admitted),
                return_exceptions=True,
            )
        finally:
            for _ in reserved:
                self._release()
            reserved.clear()

        jobs = []
        sources: list[str] = []
        settled: list[FetchResult] = []
        for provider, result in zip(admitted, results):
            if isinstance(result, BaseException):
                # _fetch_admitted already converts provider errors; this is cancellation or worse
                logger.error("Fetch task for %s did not settle cleanly: %r", provider.name, result)
                continue
            settled.append(result)
            if result.jobs:
                jobs.extend(result.jobs)
                sources.append(provider.name)

        logger.info(
            "Aggregation round: %d providers fetched, %d skipped, %d contributed %d jobs",
            len(admitted),
            len(skipped),
            len(sources),
            len(jobs),
        )
        return ProviderBatch(jobs=jobs, sources=sources, results=settled, skipped=skipped)

import asyncio

import httpx

from job_aggregator.errors import ErrorKind
from job_aggregator.models import FetchResult, Job, JobFilters, ProviderDescriptor, RateLimit
from job_aggregator.providers.base import JobProvider
from job_aggregator.rate_limit import RateLimiter
from job_aggregator.registry import ProviderRegistry


class StaticProvider(JobProvider):
    def __init__(self, name: str, priority: int, jobs=(), *, error: Exception | None = None, **fields):
        super().__init__(ProviderDescriptor(name=name, display_name=name, priority=priority, **fields))
        self.jobs = list(jobs)
        self.error = error
        self.calls = 0

    def build_params(self, filters):
        return {}

    def parse_response(self, data):
        return list(data)

    async def fetch_jobs(self, filters):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return FetchResult(provider=self.name, jobs=self.parse_response(self.jobs))


def _job(job_id: str, source: str, title: str = "Unity Dev") -> Job:
    return Job(id=job_id, title=title, company="Acme", location="Remote", source=source)


def test_providers_sorted_by_priority_then_registration_order() -> None:
    registry = ProviderRegistry()
    for provider in (StaticProvider("late", 5), StaticProvider("b", 1), StaticProvider("a", 1)):
        registry.register(provider)
    registry.register(StaticProvider("off", 0, enabled=False))

    assert [p.name for p in registry.providers()] == ["off", "b", "a", "late"]
    assert [p.name for p in registry.get_all_providers()] == ["b", "a", "late"]


def test_merge_follows_priority_and_sources_list_contributors() -> None:
    registry = ProviderRegistry()
    registry.register(StaticProvider("p3", 3, [_job("p3-1", "p3")]))
    registry.register(StaticProvider("p1", 1, [_job("p1-1", "p1")]))
    registry.register(StaticProvider("empty", 2))

    batch = asyncio.run(registry.fetch_from_all_providers(JobFilters()))

    assert [job.id for job in batch.jobs] == ["p1-1", "p3-1"]
    assert batch.sources == ["p1", "p3"]
    assert [result.provider for result in batch.results] == ["p1", "empty", "p3"]


def test_raising_provider_contributes_nothing_and_others_survive() -> None:
    registry = ProviderRegistry()
    broken = StaticProvider("broken", 1, error=RuntimeError("boom"))
    registry.register(broken)
    registry.register(StaticProvider("good", 2, [_job("good-1", "good")]))
    observed: list[FetchResult] = []
    registry.add_observer(observed.append)

    batch = asyncio.run(registry.fetch_from_all_providers(JobFilters()))

    assert [job.id for job in batch.jobs] == ["good-1"]
    assert batch.sources == ["good"]
    failed = next(result for result in observed if result.provider == "broken")
    assert failed.error.kind is ErrorKind.UNEXPECTED
    assert registry.active_requests == 0


def test_timeout_raised_past_provider_is_classified_expected() -> None:
    registry = ProviderRegistry()
    registry.register(StaticProvider("slow", 1, error=httpx.ConnectTimeout("timed out")))

    result = asyncio.run(registry.fetch_from_provider("slow", JobFilters()))

    assert result.jobs == []
    assert result.error.kind is ErrorKind.EXPECTED


def test_rate_limited_provider_is_skipped_for_the_round() -> None:
    registry = ProviderRegistry(RateLimiter(15, 60))
    limited = StaticProvider("limited", 1, [_job("l-1", "limited")], rate_limit=RateLimit(requests=1, period_seconds=60))
    registry.register(limited)

    first = asyncio.run(registry.fetch_from_all_providers(JobFilters()))
    second = asyncio.run(registry.fetch_from_all_providers(JobFilters()))

    assert first.sources == ["limited"]
    assert second.jobs == []
    assert second.skipped == ["limited"]
    assert limited.calls == 1


def test_concurrency_ceiling_skips_providers_beyond_the_limit() -> None:
    registry = ProviderRegistry(concurrency_limit=2)
    providers = [StaticProvider(f"p{n}", n, [_job(f"p{n}-1", f"p{n}", title=f"Job {n}")]) for n in range(3)]
    for provider in providers:
        registry.register(provider)

    batch = asyncio.run(registry.fetch_from_all_providers(JobFilters()))

    assert batch.sources == ["p0", "p1"]
    assert batch.skipped == ["p2"]
    assert providers[2].calls == 0
    assert registry.active_requests == 0


def test_auth_required_provider_without_key_is_not_eligible() -> None:
    registry = ProviderRegistry()
    keyed = StaticProvider("keyed", 1, [_job("k-1", "keyed")], requires_auth=True)
    registry.register(keyed)

    assert asyncio.run(registry.fetch_from_provider("keyed", JobFilters())) is None
    assert registry.update_provider("keyed", api_key="abc")
    assert asyncio.run(registry.fetch_from_provider("keyed", JobFilters())).jobs


def test_update_provider_changes_descriptor_and_status() -> None:
    registry = ProviderRegistry()
    registry.register(StaticProvider("a", 1))
    registry.register(StaticProvider("b", 2))

    assert registry.update_provider("b", priority=0, config={"category": "games"})
    assert not registry.update_provider("missing", enabled=False)

    status = registry.get_provider_status()
    assert [row["name"] for row in status] == ["b", "a"]
    assert registry.get_provider("b").descriptor.config == {"category": "games"}


def test_failing_observer_does_not_break_round() -> None:
    registry = ProviderRegistry()
    registry.register(StaticProvider("a", 1, [_job("a-1", "a")]))

    def bad_observer(result):
        raise RuntimeError("observer bug")

    registry.add_observer(bad_observer)
    batch = asyncio.run(registry.fetch_from_all_providers(JobFilters()))

    assert batch.sources == ["a"]


class SlowProvider(StaticProvider):
    def __init__(self, name: str, priority: int, jobs=(), **fields):
        super().__init__(name, priority, jobs, **fields)
        self.delay = 10.0

    async def fetch_jobs(self, filters):
        await asyncio.sleep(self.delay)
        return await super().fetch_jobs(filters)


def test_cancelled_round_releases_every_admitted_slot() -> None:
    registry = ProviderRegistry(concurrency_limit=2)
    providers = [SlowProvider(f"p{n}", n, [_job(f"p{n}-1", f"p{n}", title=f"Job {n}")]) for n in range(2)]
    for provider in providers:
        registry.register(provider)

    async def run():
        task = asyncio.ensure_future(registry.fetch_from_all_providers(JobFilters()))
        await asyncio.sleep(0)
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        active_after_cancel = registry.active_requests

        for provider in providers:
            provider.delay = 0
        return active_after_cancel, await registry.fetch_from_all_providers(JobFilters())

    active_after_cancel, batch = asyncio.run(run())

    assert active_after_cancel == 0
    assert batch.skipped == []
    assert batch.sources == ["p0", "p1"]
    assert registry.active_requests == 0

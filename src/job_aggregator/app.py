"""Composition root: one instance of every service per application context."""
from __future__ import annotations

from contextlib import AbstractAsyncContextManager

import httpx

from job_aggregator.aggregation import AggregationService
from job_aggregator.alerts import AlertService
from job_aggregator.company_boards import CompanyBoardManager
from job_aggregator.config import Settings
from job_aggregator.health import HealthDashboard
from job_aggregator.notifications import NotificationCenter, SlackForwarder
from job_aggregator.providers.catalog import build_default_providers
from job_aggregator.rate_limit import RateLimiter
from job_aggregator.registry import ProviderRegistry
from job_aggregator.scheduler import PeriodicTask
from job_aggregator.storage import StateStore
from job_aggregator.studios import StudioDirectory, load_studios


def build_client(settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=settings.request_timeout_seconds,
        headers={"User-Agent": settings.user_agent, "Accept": "application/json, */*"},
        follow_redirects=True,
        transport=transport,
    )


class Application(AbstractAsyncContextManager["Application"]):
    def __init__(self, settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings
        self.store = StateStore(settings.state_db_path)
        self.client = build_client(settings, transport)

        self.rate_limiter = RateLimiter(settings.rate_limit_requests, settings.rate_limit_period_seconds)
        self.registry = ProviderRegistry(self.rate_limiter, concurrency_limit=settings.max_concurrent_requests)
        self.health = HealthDashboard(
            self.store,
            latency_threshold_ms=settings.degraded_latency_ms,
            failure_threshold=settings.failure_threshold,
            retention_seconds=settings.health_retention_days * 24 * 3600,
        )
        self.registry.add_observer(self.health.observe)

        for provider in build_default_providers(settings, self.client):
            self.registry.register(provider)
        self.boards = CompanyBoardManager(self.registry, self.store, self.client, health=self.health)
        self.boards.load()

        self.studios = StudioDirectory(load_studios(settings.studios_path))
        self.aggregation = AggregationService(
            self.registry,
            self.studios,
            cache_ttl_seconds=settings.cache_ttl_seconds,
        )

        self.notifications = NotificationCenter()
        if settings.slack_webhook_url:
            self.notifications.add_forwarder(
                SlackForwarder(settings.slack_webhook_url, self.client, settings.request_timeout_seconds)
            )
        self.alerts = AlertService(
            self.aggregation,
            self.store,
            self.notifications,
            max_alerts=settings.max_alerts,
        )
        self._board_task: PeriodicTask | None = None

    async def start_background(self) -> None:
        """Verify boards now, then keep verifying them and polling alerts on their intervals."""
        await self.boards.verify()
        self._board_task = PeriodicTask(
            "company-board-verification",
            self.boards.verify,
            self.settings.board_verify_interval_seconds,
        )
        self._board_task.start()
        await self.alerts.start(self.settings.alert_check_interval_seconds)

    async def stop_background(self) -> None:
        await self.alerts.stop()
        if self._board_task is not None:
            await self._board_task.stop()
            self._board_task = None

    async def aclose(self) -> None:
        await self.stop_background()
        await self.client.aclose()
        self.store.close()

    async def __aexit__(self, exc_type, exc, exc_tb) -> None:
        await self.aclose()

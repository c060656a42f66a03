from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from pydantic import ValidationError

from job_aggregator.models import FetchResult, HealthMetric, HealthStatus
from job_aggregator.storage import DISABLED_COMPANY_BOARDS_KEY, PROVIDER_HEALTH_KEY, StateStore

logger = logging.getLogger(__name__)

DEFAULT_LATENCY_THRESHOLD_MS = 5000.0
DEFAULT_FAILURE_THRESHOLD = 3
EMA_WEIGHT = 0.2
DEFAULT_RETENTION_SECONDS = 7 * 24 * 3600


@dataclass(frozen=True)
class ProviderHealthReport:
    provider_key: str
    provider_name: str
    provider_type: str
    metrics: HealthMetric
    is_enabled: bool
    last_error: str | None


@dataclass(frozen=True)
class HealthSummary:
    total_providers: int
    healthy_providers: int
    degraded_providers: int
    failed_providers: int
    average_response_time: float
    last_check_time: float | None


class HealthDashboard:
    """
    Rolling per-provider health derived only from reported check outcomes.

    Status is recomputed on every update from the failure streak and the
    latest latency, so a single success always clears ``failed``.
    """

    def __init__(
        self,
        store: StateStore,
        *,
        latency_threshold_ms: float = DEFAULT_LATENCY_THRESHOLD_MS,
        failure_threshold: int = DEFAULT_FAILURE_THRESHOLD,
        retention_seconds: float = DEFAULT_RETENTION_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self._store = store
        self.latency_threshold_ms = latency_threshold_ms
        self.failure_threshold = failure_threshold
        self.retention_seconds = retention_seconds
        self._clock = clock
        self._metrics = self._load()

    def _load(self) -> dict[str, HealthMetric]:
        raw = self._store.get_json(PROVIDER_HEALTH_KEY, {})
        if not isinstance(raw, dict):
            logger.warning("Discarding malformed provider health data")
            return {}
        metrics: dict[str, HealthMetric] = {}
        for key, value in raw.items():
            try:
                metrics[key] = HealthMetric.model_validate(value)
            except ValidationError as exc:
                logger.warning("Discarding health entry for %s: %s", key, exc)
        return metrics

    def _save(self) -> None:
        self._store.set_json(
            PROVIDER_HEALTH_KEY,
            {key: metric.model_dump(mode="json") for key, metric in self._metrics.items()},
        )

    def get_metric(self, provider_key: str) -> HealthMetric | None:
        metric = self._metrics.get(provider_key)
        return metric.model_copy() if metric is not None else None

    def update_provider_health(
        self,
        provider_key: str,
        *,
        success: bool,
        response_time: float,
        error: str | None = None,
    ) -> HealthMetric:
        previous = self._metrics.get(provider_key)
        current = previous.model_copy() if previous is not None else HealthMetric()
        now = self._clock()
        current.last_check = now
        current.total_checks += 1

        if success:
            if current.last_successful_check is None:
                current.average_response_time = response_time
            else:
                current.average_response_time = (
                    EMA_WEIGHT * response_time + (1 - EMA_WEIGHT) * current.average_response_time
                )
            current.last_successful_check = now
            current.consecutive_failures = 0
            current.status = (
                HealthStatus.DEGRADED if response_time > self.latency_threshold_ms else HealthStatus.HEALTHY
            )
        else:
            current.consecutive_failures += 1
            current.error_count += 1
            current.status = (
                HealthStatus.FAILED
                if current.consecutive_failures >= self.failure_threshold
                else HealthStatus.DEGRADED
            )
            if error:
                current.last_error = error

        if previous is not None and previous.status != current.status:
            logger.info("Provider %s health changed to %s", provider_key, current.status.value)
        self._metrics[provider_key] = current
        self._save()
        return current.model_copy()

    def observe(self, result: FetchResult) -> None:
        """Registry observer: record one provider fetch outcome."""
        self.update_provider_health(
            result.provider,
            success=result.ok,
            response_time=result.elapsed_ms,
            error=result.error.message if result.error else None,
        )

    def _disabled_keys(self) -> set[str]:
        raw = self._store.get_json(DISABLED_COMPANY_BOARDS_KEY, [])
        if not isinstance(raw, list):
            return set()
        return {
            f"{entry['type']}:{entry['token']}"
            for entry in raw
            if isinstance(entry, dict) and entry.get("type") and entry.get("token")
        }

    def get_provider_health_report(self) -> list[ProviderHealthReport]:
        disabled = self._disabled_keys()
        reports = []
        for key, metric in self._metrics.items():
            provider_type, _, name = key.partition(":")
            reports.append(
                ProviderHealthReport(
                    provider_key=key,
                    provider_name=name or provider_type,
                    provider_type=provider_type,
                    metrics=metric.model_copy(),
                    is_enabled=key not in disabled,
                    last_error=metric.last_error,
                )
            )
        reports.sort(key=lambda r: (r.metrics.status is not HealthStatus.FAILED, -r.metrics.last_check))
        return reports

    def get_health_summary(self) -> HealthSummary:
        reports = self.get_provider_health_report()
        by_status = {status: 0 for status in HealthStatus}
        for report in reports:
            by_status[report.metrics.status] += 1
        average = (
            sum(r.metrics.average_response_time for r in reports) / len(reports) if reports else 0.0
        )
        return HealthSummary(
            total_providers=len(reports),
            healthy_providers=by_status[HealthStatus.HEALTHY],
            degraded_providers=by_status[HealthStatus.DEGRADED],
            failed_providers=by_status[HealthStatus.FAILED],
            average_response_time=average,
            last_check_time=max((r.metrics.last_check for r in reports), default=None),
        )

    def cleanup_old_data(self) -> list[str]:
        """Drop stale healthy entries; anything not healthy is kept regardless of age."""
        cutoff = self._clock() - self.retention_seconds
        stale = [
            key
            for key, metric in self._metrics.items()
            if metric.last_check < cutoff and metric.status is HealthStatus.HEALTHY
        ]
        for key in stale:
            del self._metrics[key]
        if stale:
            self._save()
            logger.info("Cleaned up %d stale provider health entries", len(stale))
        return stale

    def reset_provider_health(self, provider_key: str) -> None:
        self._metrics[provider_key] = HealthMetric()
        self._save()
        logger.info("Reset health metrics for provider: %s", provider_key)

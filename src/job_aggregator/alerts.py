"""Saved searches polled on an interval and diffed against the last poll."""
from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from job_aggregator.aggregation import AggregationService
from job_aggregator.models import Alert, Job, JobFilters, JobUpdate
from job_aggregator.notifications import Notification, NotificationCenter, log_email_intent
from job_aggregator.scheduler import PeriodicTask
from job_aggregator.storage import ALERTS_KEY, ALERTS_SEEN_KEY, StateStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_ALERTS = 10
DEFAULT_CHECK_INTERVAL_SECONDS = 5 * 60
UPDATABLE_FIELDS = frozenset({"name", "filters", "enabled", "email_notifications", "push_notifications"})

Listener = Callable[..., None]


class AlertError(ValueError):
    pass


class AlertNotFoundError(AlertError):
    def __init__(self, alert_id: str):
        super().__init__(f"job alert not found: {alert_id}")
        self.alert_id = alert_id


class AlertLimitError(AlertError):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AlertService:
    """
    Owns every ``Alert`` and the ids seen on each alert's previous poll.

    The seen set is replaced, not unioned, on every check: a posting that
    drops out of the results and later comes back is reported as new again.
    Alerts and seen ids are written to the store after every mutation.
    """

    def __init__(
        self,
        aggregation: AggregationService,
        store: StateStore,
        notifications: NotificationCenter | None = None,
        *,
        max_alerts: int = DEFAULT_MAX_ALERTS,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.aggregation = aggregation
        self.store = store
        self.notifications = notifications or NotificationCenter()
        self.max_alerts = max_alerts
        self._clock = clock
        self._alerts: dict[str, Alert] = {}
        self._seen: dict[str, set[str]] = {}
        self._listeners: dict[str, list[Listener]] = {}
        self._task: PeriodicTask | None = None
        self._load()

    # events

    def on(self, event: str, listener: Listener) -> None:
        self._listeners.setdefault(event, []).append(listener)

    def off(self, event: str, listener: Listener) -> None:
        listeners = self._listeners.get(event, [])
        if listener in listeners:
            listeners.remove(listener)

    def _emit(self, event: str, *args: Any) -> None:
        for listener in list(self._listeners.get(event, [])):
            try:
                listener(*args)
            except Exception:
                logger.exception("Listener for %s failed", event)

    # persistence

    def _load(self) -> None:
        raw_alerts = self.store.get_json(ALERTS_KEY, [])
        raw_seen = self.store.get_json(ALERTS_SEEN_KEY, {})
        if not isinstance(raw_alerts, list):
            logger.warning("Ignoring malformed %s value", ALERTS_KEY)
            raw_alerts = []
        if not isinstance(raw_seen, dict):
            logger.warning("Ignoring malformed %s value", ALERTS_SEEN_KEY)
            raw_seen = {}

        for entry in raw_alerts:
            try:
                alert = Alert.model_validate(entry)
            except ValidationError as exc:
                logger.warning("Skipping unreadable alert: %s", exc)
                continue
            self._alerts[alert.id] = alert
            seen = raw_seen.get(alert.id, [])
            self._seen[alert.id] = {str(job_id) for job_id in seen} if isinstance(seen, list) else set()
        if self._alerts:
            logger.info("Loaded %d job alerts", len(self._alerts))

    def _save(self) -> None:
        self.store.set_json(ALERTS_KEY, [alert.model_dump(mode="json") for alert in self._alerts.values()])
        self.store.set_json(
            ALERTS_SEEN_KEY,
            {alert_id: sorted(ids) for alert_id, ids in self._seen.items()},
        )

    # CRUD

    def get_alerts(self) -> list[Alert]:
        return list(self._alerts.values())

    def get_alert(self, alert_id: str) -> Alert:
        alert = self._alerts.get(alert_id)
        if alert is None:
            raise AlertNotFoundError(alert_id)
        return alert

    def seen_job_ids(self, alert_id: str) -> frozenset[str]:
        self.get_alert(alert_id)
        return frozenset(self._seen.get(alert_id, set()))

    async def create_alert(
        self,
        name: str,
        filters: JobFilters,
        *,
        email_notifications: bool = False,
        push_notifications: bool = True,
    ) -> Alert:
        if len(self._alerts) >= self.max_alerts:
            raise AlertLimitError(f"Maximum of {self.max_alerts} job alerts allowed")
        if not name.strip():
            raise AlertError("alert name must not be empty")

        alert = Alert(
            id=f"alert-{uuid.uuid4().hex[:12]}",
            name=name.strip(),
            filters=filters,
            email_notifications=email_notifications,
            push_notifications=push_notifications,
            created_at=self._clock(),
        )
        self._alerts[alert.id] = alert
        self._seen[alert.id] = set()
        self._save()

        await self.check_alert(alert.id)
        logger.info("Created job alert: %s", alert.name)
        self._emit("alert-created", alert)
        return alert

    def update_alert(self, alert_id: str, **changes: Any) -> Alert:
        alert = self.get_alert(alert_id)
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise AlertError(f"cannot update alert fields: {', '.join(sorted(unknown))}")
        try:
            updated = Alert.model_validate({**alert.model_dump(), **changes})
        except ValidationError as exc:
            raise AlertError(str(exc)) from exc

        self._alerts[alert_id] = updated
        self._save()
        logger.info("Updated job alert: %s", updated.name)
        self._emit("alert-updated", updated)
        return updated

    def delete_alert(self, alert_id: str) -> Alert:
        alert = self.get_alert(alert_id)
        del self._alerts[alert_id]
        self._seen.pop(alert_id, None)
        self._save()
        logger.info("Deleted job alert: %s", alert.name)
        self._emit("alert-deleted", alert)
        return alert

    def toggle_alert(self, alert_id: str) -> Alert:
        alert = self.get_alert(alert_id)
        alert.enabled = not alert.enabled
        self._save()
        logger.info("%s job alert: %s", "Enabled" if alert.enabled else "Disabled", alert.name)
        self._emit("alert-toggled", alert)
        return alert

    # polling

    async def check_alert(self, alert_id: str) -> list[Job]:
        """Re-run the alert's search and return the jobs not seen on the previous poll."""
        alert = self.get_alert(alert_id)
        if not alert.enabled:
            return []

        result = await self.aggregation.search_jobs(alert.filters)
        previous = self._seen.get(alert_id, set())
        new_jobs = [job for job in result.jobs if job.id not in previous]

        now = self._clock()
        alert.last_checked = now
        alert.total_matches = len(result.jobs)
        alert.new_matches = len(new_jobs)
        self._seen[alert_id] = {job.id for job in result.jobs}
        self._save()

        if new_jobs:
            logger.info("Found %d new jobs for alert: %s", len(new_jobs), alert.name)
            for job in new_jobs:
                self._emit("new-job", JobUpdate(type="new", job=job, alert=alert, timestamp=now))
            notification = self._build_notification(alert, new_jobs)
            if alert.push_notifications:
                await self.notifications.show(notification)
            if alert.email_notifications:
                log_email_intent(alert.name, notification)
        return new_jobs

    def _build_notification(self, alert: Alert, new_jobs: list[Job]) -> Notification:
        return Notification(
            title=f"New Jobs Found: {alert.name}",
            body=f"{len(new_jobs)} new job{'s' if len(new_jobs) != 1 else ''} matching {alert.name}",
            tag=f"job-alert-{alert.id}",
            data={
                "alert_id": alert.id,
                "jobs": [
                    {"id": job.id, "title": job.title, "company": job.company, "url": job.url}
                    for job in new_jobs
                ],
            },
        )

    async def check_all_alerts(self) -> dict[str, int]:
        enabled = [alert for alert in self._alerts.values() if alert.enabled]
        logger.debug("Checking %d enabled job alerts", len(enabled))

        counts: dict[str, int] = {}
        for alert in enabled:
            try:
                counts[alert.id] = len(await self.check_alert(alert.id))
            except Exception:
                logger.exception("Failed to check alert %s", alert.name)

        self._emit("alerts-checked", {"total_checked": len(enabled), "timestamp": self._clock()})
        return counts

    # lifecycle

    @property
    def running(self) -> bool:
        return self._task is not None and self._task.running

    async def start(self, interval: float = DEFAULT_CHECK_INTERVAL_SECONDS) -> None:
        if self.running:
            return
        logger.info("Starting job alert service")
        self._task = PeriodicTask("job-alerts", self.check_all_alerts, interval)
        self._task.start()
        await self.check_all_alerts()
        self._emit("service-started")

    async def stop(self) -> None:
        if self._task is None:
            return
        logger.info("Stopping job alert service")
        task, self._task = self._task, None
        await task.stop()
        self._emit("service-stopped")

    def get_stats(self) -> dict[str, Any]:
        today = self._clock().date()
        checked = [alert.last_checked for alert in self._alerts.values() if alert.last_checked]
        return {
            "total_alerts": len(self._alerts),
            "active_alerts": sum(1 for alert in self._alerts.values() if alert.enabled),
            "new_jobs_today": sum(
                alert.new_matches
                for alert in self._alerts.values()
                if alert.last_checked and alert.last_checked.date() == today
            ),
            "last_update_time": max(checked) if checked else None,
            "is_running": self.running,
        }

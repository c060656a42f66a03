from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import httpx

logger = logging.getLogger(__name__)

Forwarder = Callable[["Notification"], Awaitable[None]]


@dataclass(frozen=True)
class Notification:
    title: str
    body: str
    tag: str
    data: dict[str, Any] = field(default_factory=dict)


class NotificationCenter:
    """
    In-process notification tray.

    A notification replaces any earlier one carrying the same tag, so repeated
    alert ticks update a single entry instead of stacking.
    """

    def __init__(self, forwarders: list[Forwarder] | None = None):
        self._active: dict[str, Notification] = {}
        self._forwarders = list(forwarders or [])

    def add_forwarder(self, forwarder: Forwarder) -> None:
        self._forwarders.append(forwarder)

    @property
    def active(self) -> list[Notification]:
        return list(self._active.values())

    def get(self, tag: str) -> Notification | None:
        return self._active.get(tag)

    def dismiss(self, tag: str) -> None:
        self._active.pop(tag, None)

    async def show(self, notification: Notification) -> None:
        replaced = notification.tag in self._active
        # re-insert so the newest notification sorts last
        self._active.pop(notification.tag, None)
        self._active[notification.tag] = notification
        logger.info(
            "%s notification %s: %s",
            "Replaced" if replaced else "Showing",
            notification.tag,
            notification.title,
        )
        for forwarder in self._forwarders:
            try:
                await forwarder(notification)
            except httpx.HTTPError as exc:
                logger.warning("Notification forwarding failed for %s: %s", notification.tag, exc)


def format_slack_text(notification: Notification) -> str:
    lines = [f"*{notification.title}*", notification.body]
    for job in notification.data.get("jobs", [])[:30]:
        lines.append(f"- {job['title']} @ {job['company']} - {job['url']}")
    extra = len(notification.data.get("jobs", [])) - 30
    if extra > 0:
        lines.append(f"- ... and {extra} more")
    return "\n".join(lines)


class SlackForwarder:
    def __init__(self, webhook_url: str, client: httpx.AsyncClient, timeout_seconds: float = 20.0):
        self.webhook_url = webhook_url
        self.client = client
        self.timeout_seconds = timeout_seconds

    async def __call__(self, notification: Notification) -> None:
        response = await self.client.post(
            self.webhook_url,
            json={"text": format_slack_text(notification)},
            timeout=self.timeout_seconds,
            follow_redirects=True,
        )
        response.raise_for_status()


def log_email_intent(recipient_hint: str, notification: Notification) -> None:
    # No mail transport; record what would have been sent.
    logger.info("Email notification for %s: %s (%s)", recipient_hint, notification.title, notification.body)

from __future__ import annotations

from typing import Any

import feedparser
import httpx

from job_aggregator.errors import ProviderResponseError
from job_aggregator.keywords import looks_remote
from job_aggregator.models import Job, JobFilters
from job_aggregator.providers.base import HttpJobProvider
from job_aggregator.providers.common import clean_spaces, parse_date, stable_job_id, strip_html


def split_feed_title(title: str) -> tuple[str, str]:
    """Split the common "Company: Role" feed title convention."""
    company, sep, role = title.partition(":")
    if sep and company.strip() and role.strip():
        return clean_spaces(company), clean_spaces(role)
    return "", clean_spaces(title)


class RssFeedProvider(HttpJobProvider):
    """Job board exposing an RSS/Atom feed; the feed URL lives in ``config['feed_url']``."""

    @property
    def url(self) -> str:
        return self.descriptor.config.get("feed_url") or self.base_url

    def build_params(self, filters: JobFilters) -> dict[str, Any]:
        return {}

    def decode(self, response: httpx.Response) -> Any:
        return response.content

    def parse_response(self, data: Any) -> list[Job]:
        feed = feedparser.parse(data)
        entries = getattr(feed, "entries", None) or []
        if feed.get("bozo") and not entries:
            raise ProviderResponseError(f"unparseable feed: {feed.get('bozo_exception')}")

        default_company = self.descriptor.config.get("company") or "Unknown Company"
        jobs: list[Job] = []
        for entry in entries:
            link = entry.get("link") or ""
            title_raw = (entry.get("title") or "").strip()
            if not title_raw:
                continue
            company, title = split_feed_title(title_raw)
            location = clean_spaces(entry.get("region") or entry.get("location") or "") or "Not specified"
            description = strip_html(entry.get("summary") or entry.get("description"))
            jobs.append(
                Job(
                    id=stable_job_id(self.name, url=entry.get("id") or link, fallback=title_raw),
                    title=title,
                    company=company or default_company,
                    location=location,
                    remote=bool(self.descriptor.config.get("remote")) or looks_remote(location),
                    description=description,
                    url=link,
                    tags=frozenset(tag.get("term", "") for tag in entry.get("tags", []) if tag.get("term")),
                    posted_date=parse_date(entry.get("published") or entry.get("updated")),
                    source=self.name,
                )
            )
        return jobs

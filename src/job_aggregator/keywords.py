from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone

from job_aggregator.models import Job, JobFilters

REMOTE_MARKERS = ("remote", "anywhere", "worldwide", "work from home")


def normalize_text(value: str) -> str:
    normalized = unicodedata.normalize("NFKC", value or "").casefold()
    normalized = re.sub(r"[\W_]+", " ", normalized)
    normalized = re.sub(r"\s+", " ", normalized).strip()
    return normalized


def contains_phrase(haystack: str, phrase: str) -> bool:
    """Whole-word containment on normalized text."""
    needle = normalize_text(phrase)
    if not needle:
        return False
    return f" {needle} " in f" {normalize_text(haystack)} "


def scan_keywords(text: str, vocabulary: Iterable[str]) -> tuple[str, ...]:
    return tuple(word for word in vocabulary if contains_phrase(text, word))


def looks_remote(*values: str | None) -> bool:
    haystack = normalize_text(" ".join(value or "" for value in values))
    return any(marker in haystack for marker in REMOTE_MARKERS)


def job_dedup_key(job: Job) -> tuple[str, str, str]:
    return (normalize_text(job.company), normalize_text(job.title), normalize_text(job.location))


def matches_filters(
    job: Job,
    filters: JobFilters,
    *,
    now: datetime | None = None,
    check_query: bool = True,
) -> bool:
    """Any query term is enough; the remaining filters must all hold."""
    query = normalize_text(filters.search_text) if check_query else ""
    if query:
        haystack = normalize_text(f"{job.title} {job.company} {job.description} {' '.join(job.tags)}")
        if not any(term in haystack for term in query.split()):
            return False

    if filters.company and normalize_text(filters.company) not in normalize_text(job.company):
        return False

    location = normalize_text(filters.location or "")
    if location and location != "remote":
        if location not in normalize_text(job.location):
            return False
    if location == "remote" and not job.remote:
        return False

    if filters.remote is True and not job.remote:
        return False
    if filters.job_type is not None and job.type != filters.job_type:
        return False

    if filters.salary_min is not None and job.salary is not None:
        ceiling = job.salary.max if job.salary.max is not None else job.salary.min
        if ceiling is not None and ceiling < filters.salary_min:
            return False

    if filters.posted_within_days is not None and job.posted_date is not None:
        current = now or datetime.now(timezone.utc)
        posted = job.posted_date
        if posted.tzinfo is None:
            posted = posted.replace(tzinfo=timezone.utc)
        if current - posted > timedelta(days=filters.posted_within_days):
            return False

    return True

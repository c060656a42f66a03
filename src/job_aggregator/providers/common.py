from __future__ import annotations

import hashlib
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

from bs4 import BeautifulSoup

from job_aggregator.models import JobType, SalaryRange

_SALARY_NUMBER = re.compile(r"\d{1,3}(?:,\d{3})+k?|\d+(?:\.\d+)?k?", re.IGNORECASE)
_CURRENCY_SYMBOLS = {"$": "USD", "£": "GBP", "€": "EUR"}
_JOB_TYPE_HINTS = (
    ("intern", JobType.INTERNSHIP),
    ("part", JobType.PART_TIME),
    ("contract", JobType.CONTRACT),
    ("temporary", JobType.CONTRACT),
    ("freelance", JobType.FREELANCE),
)


def clean_spaces(value: str) -> str:
    return re.sub(r"\s+", " ", value or "").strip()


def strip_html(value: str | None) -> str:
    if not value:
        return ""
    if "<" not in value and "&" not in value:
        return clean_spaces(value)
    soup = BeautifulSoup(value, "html.parser")
    return clean_spaces(soup.get_text(" ", strip=True))


def stable_job_id(prefix: str, raw_id: Any = None, *, url: str = "", fallback: str = "") -> str:
    if raw_id not in (None, ""):
        return f"{prefix}-{raw_id}"
    basis = url or fallback
    digest = hashlib.sha1(basis.encode("utf-8")).hexdigest()[:16]
    return f"{prefix}-{digest}"


def parse_date(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        seconds = value / 1000 if value > 10_000_000_000 else value
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    text = str(value).strip()
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        try:
            parsed = parsedate_to_datetime(text)
        except (TypeError, ValueError):
            return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _salary_number(token: str) -> float:
    multiplier = 1000 if token.lower().endswith("k") else 1
    return float(token.lower().rstrip("k").replace(",", "")) * multiplier


def parse_salary(value: Any) -> SalaryRange | None:
    if not value:
        return None
    if isinstance(value, dict):
        low, high = value.get("min"), value.get("max")
        if low is None and high is None:
            return None
        return SalaryRange(min=low, max=high, currency=value.get("currency"))

    text = str(value)
    numbers = _SALARY_NUMBER.findall(text)
    if len(numbers) < 2:
        return None
    currency = next((code for symbol, code in _CURRENCY_SYMBOLS.items() if symbol in text), None)
    lowered = text.lower()
    frequency = "hourly" if "hour" in lowered else "monthly" if "month" in lowered else "yearly"
    return SalaryRange(
        min=_salary_number(numbers[0]),
        max=_salary_number(numbers[1]),
        currency=currency,
        frequency=frequency,
    )


def map_job_type(value: Any) -> JobType:
    text = " ".join(value) if isinstance(value, (list, tuple)) else str(value or "")
    lowered = text.casefold()
    for hint, job_type in _JOB_TYPE_HINTS:
        if hint in lowered:
            return job_type
    return JobType.FULL_TIME

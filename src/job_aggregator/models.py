from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from job_aggregator.errors import FetchError


class JobType(str, Enum):
    FULL_TIME = "full-time"
    PART_TIME = "part-time"
    CONTRACT = "contract"
    INTERNSHIP = "internship"
    FREELANCE = "freelance"


class SalaryRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    min: float | None = None
    max: float | None = None
    currency: str | None = None
    frequency: str | None = None


class Job(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    company: str
    location: str = "Not specified"
    remote: bool = False
    type: JobType = JobType.FULL_TIME
    description: str = ""
    url: str = ""
    salary: SalaryRange | None = None
    tags: frozenset[str] = frozenset()
    posted_date: datetime | None = None
    source: str
    gaming_relevance: float | None = Field(default=None, ge=0.0, le=1.0)
    studio_id: str | None = None
    studio_slug: str | None = None
    studio_type: str | None = None
    game_genres: tuple[str, ...] = ()
    platforms: tuple[str, ...] = ()


class JobFilters(BaseModel):
    model_config = ConfigDict(frozen=True)

    query: str | None = None
    title: str | None = None
    company: str | None = None
    location: str | None = None
    remote: bool | None = None
    job_type: JobType | None = None
    salary_min: float | None = None
    posted_within_days: int | None = Field(default=None, ge=1)
    limit: int | None = Field(default=None, ge=1)

    @property
    def search_text(self) -> str:
        return (self.query or self.title or "").strip()


class RateLimit(BaseModel):
    requests: int = Field(ge=1)
    period_seconds: float = Field(gt=0.0)


class ProviderDescriptor(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    name: str
    display_name: str
    priority: int
    enabled: bool = True
    rate_limit: RateLimit | None = None
    requires_auth: bool = False
    api_key: str | None = None
    config: dict[str, Any] = Field(default_factory=dict)

    @property
    def usable(self) -> bool:
        return self.enabled and (not self.requires_auth or bool(self.api_key))


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    FAILED = "failed"


class HealthMetric(BaseModel):
    last_check: float = 0.0
    status: HealthStatus = HealthStatus.HEALTHY
    consecutive_failures: int = 0
    average_response_time: float = 0.0
    last_successful_check: float | None = None
    error_count: int = 0
    total_checks: int = 0
    last_error: str | None = None


class Alert(BaseModel):
    id: str
    name: str
    filters: JobFilters
    enabled: bool = True
    last_checked: datetime | None = None
    total_matches: int = 0
    new_matches: int = 0
    email_notifications: bool = False
    push_notifications: bool = True
    created_at: datetime


@dataclass(frozen=True)
class FetchResult:
    provider: str
    jobs: list[Job]
    error: FetchError | None = None
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class ProviderBatch:
    jobs: list[Job]
    sources: list[str]
    results: list[FetchResult] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class AggregationResult:
    jobs: list[Job]
    sources: list[str]
    total_found: int
    errors: list[str]
    processing_time_ms: float


@dataclass(frozen=True)
class JobUpdate:
    type: str
    job: Job
    alert: Alert
    timestamp: datetime

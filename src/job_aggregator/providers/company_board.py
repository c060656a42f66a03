"""Single-company ATS boards (Greenhouse, Lever, ...) exposed as providers."""
from __future__ import annotations

import logging
from typing import Any, Literal

import httpx
from pydantic import BaseModel

from job_aggregator.errors import ProviderResponseError
from job_aggregator.keywords import looks_remote
from job_aggregator.models import Job, JobFilters, ProviderDescriptor
from job_aggregator.providers.base import HttpJobProvider
from job_aggregator.providers.common import (
    map_job_type,
    parse_date,
    parse_salary,
    stable_job_id,
    strip_html,
)

logger = logging.getLogger(__name__)

BoardType = Literal["greenhouse", "lever", "recruitee", "workable", "ashby", "smartrecruiters"]

_BASE_URLS: dict[str, str] = {
    "greenhouse": "https://boards-api.greenhouse.io/v1/boards/{token}/jobs",
    "lever": "https://api.lever.co/v0/postings/{token}",
    "recruitee": "https://api.recruitee.com/c/{token}/offers",
    "workable": "https://apply.workable.com/api/v1/widget/accounts/{token}",
    "ashby": "https://api.ashbyhq.com/posting-api/job-board/{token}",
    "smartrecruiters": "https://api.smartrecruiters.com/v1/companies/{token}/postings",
}
_PARAMS: dict[str, dict[str, str]] = {
    "greenhouse": {"content": "true"},
    "lever": {"mode": "json"},
}


class CompanyBoardConfig(BaseModel):
    name: str
    token: str
    type: BoardType

    @property
    def key(self) -> str:
        return f"{self.type}:{self.token}"


class CompanyBoardProvider(HttpJobProvider):
    def __init__(
        self,
        board: CompanyBoardConfig,
        client: httpx.AsyncClient,
        *,
        priority: int = 10,
        enabled: bool = True,
    ):
        descriptor = ProviderDescriptor(
            name=board.key,
            display_name=f"{board.name} ({board.type})",
            priority=priority,
            enabled=enabled,
            config={"company": board.name, "board_type": board.type, "token": board.token},
        )
        super().__init__(descriptor, client)
        self.board = board
        self.base_url = _BASE_URLS[board.type].format(token=board.token)

    def build_params(self, filters: JobFilters) -> dict[str, Any]:
        # ATS boards list everything; filtering happens after parsing
        return dict(_PARAMS.get(self.board.type, {}))

    async def verify_availability(self) -> bool:
        """Lightweight probe of the board's base endpoint."""
        try:
            response = await self.client.get(self.base_url)
        except httpx.HTTPError as exc:
            logger.info("Probe of %s failed: %s", self.name, exc)
            return False
        return 200 <= response.status_code < 300

    def parse_response(self, data: Any) -> list[Job]:
        parser = getattr(self, f"_parse_{self.board.type}")
        return parser(data)

    def _job(self, raw_id: Any, title: Any, location: Any, **fields: Any) -> Job:
        location_text = str(location or "").strip() or "Not specified"
        url = fields.pop("url", "") or ""
        remote = fields.pop("remote", False)
        return Job(
            id=stable_job_id(self.board.type, raw_id, url=url),
            title=str(title or "Unknown Position"),
            company=self.board.name,
            location=location_text,
            remote=bool(remote) or looks_remote(location_text),
            url=url,
            source=self.name,
            **fields,
        )

    def _parse_greenhouse(self, data: Any) -> list[Job]:
        if not isinstance(data, dict) or not isinstance(data.get("jobs"), list):
            raise ProviderResponseError("greenhouse payload has no 'jobs' list")
        return [
            self._job(
                job.get("id"),
                job.get("title"),
                (job.get("location") or {}).get("name"),
                url=job.get("absolute_url"),
                description=strip_html(job.get("content")),
                posted_date=parse_date(job.get("updated_at")),
            )
            for job in data["jobs"]
        ]

    def _parse_lever(self, data: Any) -> list[Job]:
        if not isinstance(data, list):
            raise ProviderResponseError("lever payload is not a list")
        jobs = []
        for job in data:
            categories = job.get("categories") or {}
            jobs.append(
                self._job(
                    job.get("id"),
                    job.get("text"),
                    categories.get("location"),
                    url=job.get("hostedUrl"),
                    remote=job.get("workplaceType") == "remote",
                    type=map_job_type(categories.get("commitment")),
                    description=strip_html(job.get("descriptionPlain") or job.get("description")),
                    salary=parse_salary(job.get("salaryRange") or job.get("salaryDescription")),
                    posted_date=parse_date(job.get("createdAt")),
                )
            )
        return jobs

    def _parse_recruitee(self, data: Any) -> list[Job]:
        if not isinstance(data, dict) or not isinstance(data.get("offers"), list):
            raise ProviderResponseError("recruitee payload has no 'offers' list")
        return [
            self._job(
                job.get("id"),
                job.get("title"),
                job.get("location"),
                url=job.get("careers_url"),
                remote=job.get("remote"),
                type=map_job_type(job.get("employment_type_code")),
                description=strip_html(job.get("description")),
                posted_date=parse_date(job.get("created_at")),
            )
            for job in data["offers"]
        ]

    def _parse_workable(self, data: Any) -> list[Job]:
        if not isinstance(data, dict) or not isinstance(data.get("jobs"), list):
            raise ProviderResponseError("workable payload has no 'jobs' list")
        jobs = []
        for job in data["jobs"]:
            location = ", ".join(part for part in (job.get("city"), job.get("country")) if part)
            jobs.append(
                self._job(
                    job.get("shortcode"),
                    job.get("title"),
                    location,
                    url=job.get("url") or job.get("shortlink"),
                    remote=job.get("telecommuting"),
                    type=map_job_type(job.get("employment_type")),
                    description=strip_html(job.get("description")),
                    posted_date=parse_date(job.get("published_on")),
                )
            )
        return jobs

    def _parse_ashby(self, data: Any) -> list[Job]:
        if not isinstance(data, dict) or not isinstance(data.get("jobs"), list):
            raise ProviderResponseError("ashby payload has no 'jobs' list")
        return [
            self._job(
                job.get("id"),
                job.get("title"),
                job.get("location"),
                url=job.get("jobUrl"),
                remote=job.get("isRemote"),
                type=map_job_type(job.get("employmentType")),
                description=strip_html(job.get("descriptionPlain") or job.get("descriptionHtml")),
                salary=parse_salary(job.get("salaryRange")),
                posted_date=parse_date(job.get("publishedAt")),
            )
            for job in data["jobs"]
        ]

    def _parse_smartrecruiters(self, data: Any) -> list[Job]:
        items = data.get("content") if isinstance(data, dict) else data
        if not isinstance(items, list):
            raise ProviderResponseError("smartrecruiters payload has no 'content' list")
        jobs = []
        for item in items:
            place = item.get("location") or {}
            location = ", ".join(part for part in (place.get("city"), place.get("country")) if part)
            jobs.append(
                self._job(
                    item.get("id"),
                    item.get("name"),
                    location,
                    url=item.get("ref"),
                    remote=place.get("remote"),
                    type=map_job_type((item.get("typeOfEmployment") or {}).get("label")),
                    posted_date=parse_date(item.get("releasedDate")),
                )
            )
        return jobs

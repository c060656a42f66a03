"""Open remote-job boards with public JSON APIs."""
from __future__ import annotations

from typing import Any

from job_aggregator.errors import ProviderResponseError
from job_aggregator.keywords import looks_remote
from job_aggregator.models import Job, JobFilters
from job_aggregator.providers.base import HttpJobProvider
from job_aggregator.providers.common import (
    map_job_type,
    parse_date,
    parse_salary,
    stable_job_id,
    strip_html,
)


class RemotiveProvider(HttpJobProvider):
    base_url = "https://remotive.com/api/remote-jobs"
    server_side_search = True

    def build_params(self, filters: JobFilters) -> dict[str, Any]:
        params: dict[str, Any] = {}
        if filters.search_text:
            params["search"] = filters.search_text
        category = self.descriptor.config.get("category")
        if category:
            params["category"] = category
        if filters.limit:
            params["limit"] = filters.limit
        return params

    def parse_response(self, data: Any) -> list[Job]:
        if not isinstance(data, dict) or not isinstance(data.get("jobs"), list):
            raise ProviderResponseError("remotive payload has no 'jobs' list")
        jobs: list[Job] = []
        for hit in data["jobs"]:
            location = hit.get("candidate_required_location") or "Remote"
            jobs.append(
                Job(
                    id=stable_job_id(self.name, hit.get("id"), url=hit.get("url", "")),
                    title=hit.get("title") or "Unknown Position",
                    company=hit.get("company_name") or "Unknown Company",
                    location=location,
                    remote=True,
                    type=map_job_type(hit.get("job_type")),
                    description=strip_html(hit.get("description")),
                    url=hit.get("url") or "",
                    salary=parse_salary(hit.get("salary")),
                    tags=frozenset(hit.get("tags") or ()),
                    posted_date=parse_date(hit.get("publication_date")),
                    source=self.name,
                )
            )
        return jobs


class RemoteOKProvider(HttpJobProvider):
    base_url = "https://remoteok.com/api"

    def build_params(self, filters: JobFilters) -> dict[str, Any]:
        # no server-side search; filtered after parsing
        return {}

    def parse_response(self, data: Any) -> list[Job]:
        if not isinstance(data, list):
            raise ProviderResponseError("remoteok payload is not a list")
        jobs: list[Job] = []
        for hit in data[1:]:
            if not isinstance(hit, dict) or not hit.get("position"):
                continue
            url = hit.get("url") or hit.get("apply_url") or f"https://remoteok.com/remote-jobs/{hit.get('id')}"
            salary = None
            if hit.get("salary_min") and hit.get("salary_max"):
                salary = parse_salary({"min": hit["salary_min"], "max": hit["salary_max"], "currency": "USD"})
            jobs.append(
                Job(
                    id=stable_job_id(self.name, hit.get("id"), url=url),
                    title=hit["position"],
                    company=hit.get("company") or "Unknown Company",
                    location=hit.get("location") or "Remote",
                    remote=True,
                    description=strip_html(hit.get("description")),
                    url=url,
                    salary=salary,
                    tags=frozenset(hit.get("tags") or ()),
                    posted_date=parse_date(hit.get("epoch") or hit.get("date")),
                    source=self.name,
                )
            )
        return jobs


class ArbeitnowProvider(HttpJobProvider):
    base_url = "https://www.arbeitnow.com/api/job-board-api"

    def build_params(self, filters: JobFilters) -> dict[str, Any]:
        return {"page": 1}

    def parse_response(self, data: Any) -> list[Job]:
        if not isinstance(data, dict) or not isinstance(data.get("data"), list):
            raise ProviderResponseError("arbeitnow payload has no 'data' list")
        jobs: list[Job] = []
        for hit in data["data"]:
            location = hit.get("location") or "Not specified"
            jobs.append(
                Job(
                    id=stable_job_id(self.name, hit.get("slug"), url=hit.get("url", "")),
                    title=hit.get("title") or "Unknown Position",
                    company=hit.get("company_name") or "Unknown Company",
                    location=location,
                    remote=bool(hit.get("remote")) or looks_remote(location),
                    type=map_job_type(hit.get("job_types")),
                    description=strip_html(hit.get("description")),
                    url=hit.get("url") or "",
                    tags=frozenset(hit.get("tags") or ()),
                    posted_date=parse_date(hit.get("created_at")),
                    source=self.name,
                )
            )
        return jobs


class JoobleProvider(HttpJobProvider):
    base_url = "https://jooble.org/api"
    method = "POST"
    server_side_search = True

    @property
    def url(self) -> str:
        return f"{self.base_url}/{self.descriptor.api_key}"

    def build_params(self, filters: JobFilters) -> dict[str, Any]:
        body: dict[str, Any] = {"keywords": filters.search_text or "game developer"}
        if filters.location:
            body["location"] = filters.location
        if filters.salary_min:
            body["salary"] = int(filters.salary_min)
        return body

    def parse_response(self, data: Any) -> list[Job]:
        if not isinstance(data, dict) or not isinstance(data.get("jobs"), list):
            raise ProviderResponseError("jooble payload has no 'jobs' list")
        jobs: list[Job] = []
        for hit in data["jobs"]:
            location = hit.get("location") or "Not specified"
            jobs.append(
                Job(
                    id=stable_job_id(self.name, hit.get("id"), url=hit.get("link", "")),
                    title=strip_html(hit.get("title")) or "Unknown Position",
                    company=hit.get("company") or "Unknown Company",
                    location=location,
                    remote=looks_remote(location, hit.get("title")),
                    type=map_job_type(hit.get("type")),
                    description=strip_html(hit.get("snippet")),
                    url=hit.get("link") or "",
                    salary=parse_salary(hit.get("salary")),
                    posted_date=parse_date(hit.get("updated")),
                    source=self.name,
                )
            )
        return jobs

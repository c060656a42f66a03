from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_fixed

from job_aggregator.errors import FetchError
from job_aggregator.keywords import matches_filters
from job_aggregator.models import FetchResult, Job, JobFilters, ProviderDescriptor

logger = logging.getLogger(__name__)


def log_fetch_error(provider: str, error: FetchError) -> None:
    if error.expected:
        logger.info("Provider %s unavailable, contributing no jobs: %s", provider, error.message)
    else:
        logger.error("Unexpected error fetching from %s: %s", provider, error.message)


class JobProvider(ABC):
    """
    A pluggable job source.

    ``fetch_jobs`` must never raise: every failure is reported through the
    ``error`` of the returned ``FetchResult`` so one broken vendor cannot sink
    an aggregation round.
    """

    def __init__(self, descriptor: ProviderDescriptor):
        self.descriptor = descriptor

    @property
    def name(self) -> str:
        return self.descriptor.name

    @abstractmethod
    def build_params(self, filters: JobFilters) -> dict[str, Any]:
        """Translate filters into the vendor's query parameters."""

    @abstractmethod
    def parse_response(self, data: Any) -> list[Job]:
        """Normalize a decoded vendor payload into canonical jobs."""

    @abstractmethod
    async def fetch_jobs(self, filters: JobFilters) -> FetchResult:
        """Fetch, normalize and filter jobs for one aggregation round."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, priority={self.descriptor.priority})"


class HttpJobProvider(JobProvider):
    """Provider backed by a single HTTP endpoint on the shared client."""

    base_url: str = ""
    method: str = "GET"
    # vendors that search server-side are trusted on the query terms
    server_side_search: bool = False

    def __init__(self, descriptor: ProviderDescriptor, client: httpx.AsyncClient):
        super().__init__(descriptor)
        self.client = client

    @property
    def url(self) -> str:
        return self.base_url

    def request_headers(self) -> dict[str, str]:
        return {}

    def decode(self, response: httpx.Response) -> Any:
        return response.json()

    @retry(
        retry=retry_if_exception_type((httpx.ConnectError, httpx.RemoteProtocolError)),
        stop=stop_after_attempt(2),
        wait=wait_fixed(0.5),
        reraise=True,
    )
    async def _send(self, params: dict[str, Any]) -> httpx.Response:
        headers = self.request_headers()
        if self.method == "POST":
            response = await self.client.post(self.url, json=params, headers=headers)
        else:
            response = await self.client.get(self.url, params=params or None, headers=headers)
        response.raise_for_status()
        return response

    async def fetch_jobs(self, filters: JobFilters) -> FetchResult:
        started = time.perf_counter()
        try:
            response = await self._send(self.build_params(filters))
            jobs = self.parse_response(self.decode(response))
        except Exception as exc:
            error = FetchError.from_exception(exc)
            log_fetch_error(self.name, error)
            return FetchResult(
                provider=self.name,
                jobs=[],
                error=error,
                elapsed_ms=(time.perf_counter() - started) * 1000,
            )

        matched = [job for job in jobs if matches_filters(job, filters, check_query=not self.server_side_search)]
        if filters.limit is not None:
            matched = matched[: filters.limit]
        logger.debug("%s returned %d jobs (%d after filtering)", self.name, len(jobs), len(matched))
        return FetchResult(
            provider=self.name,
            jobs=matched,
            elapsed_ms=(time.perf_counter() - started) * 1000,
        )

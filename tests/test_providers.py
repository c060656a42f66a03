import asyncio
import json

import httpx

from job_aggregator.errors import ErrorKind
from job_aggregator.models import JobFilters, JobType, ProviderDescriptor
from job_aggregator.providers.company_board import CompanyBoardConfig, CompanyBoardProvider
from job_aggregator.providers.remote_boards import JoobleProvider, RemoteOKProvider, RemotiveProvider
from job_aggregator.providers.rss import RssFeedProvider, split_feed_title

RSS_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Programming jobs</title>
    <item>
      <title>Acme Games: Senior Unity Developer</title>
      <link>https://weworkremotely.com/jobs/1</link>
      <guid>https://weworkremotely.com/jobs/1</guid>
      <description>&lt;p&gt;Build &lt;b&gt;gameplay&lt;/b&gt; tools&lt;/p&gt;</description>
      <pubDate>Mon, 02 Mar 2026 10:00:00 +0000</pubDate>
    </item>
    <item>
      <title>Backend Engineer</title>
      <link>https://weworkremotely.com/jobs/2</link>
    </item>
  </channel>
</rss>
"""


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _descriptor(name: str, **fields) -> ProviderDescriptor:
    return ProviderDescriptor(name=name, display_name=name.title(), priority=10, **fields)


def _fetch(provider, filters: JobFilters):
    async def run():
        try:
            return await provider.fetch_jobs(filters)
        finally:
            await provider.client.aclose()

    return asyncio.run(run())


def test_remotive_builds_params_and_normalizes_jobs() -> None:
    seen_params = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen_params.update(request.url.params)
        return httpx.Response(
            200,
            json={
                "jobs": [
                    {
                        "id": 101,
                        "url": "https://remotive.com/jobs/101",
                        "title": "Unity Developer",
                        "company_name": "Acme",
                        "candidate_required_location": "Worldwide",
                        "job_type": "contract",
                        "description": "<p>Ship games</p>",
                        "tags": ["unity", "c#"],
                        "publication_date": "2026-03-01T09:00:00",
                    },
                    {"id": 102, "title": "Accountant", "company_name": "Ledger"},
                ]
            },
        )

    provider = RemotiveProvider(_descriptor("remotive", config={"category": "software-dev"}), _client(handler))
    result = _fetch(provider, JobFilters(query="unity"))

    assert seen_params == {"search": "unity", "category": "software-dev"}
    assert result.ok
    assert [job.id for job in result.jobs] == ["remotive-101", "remotive-102"]
    job = result.jobs[0]
    assert job.remote is True
    assert job.type is JobType.CONTRACT
    assert job.description == "Ship games"
    assert job.tags == frozenset({"unity", "c#"})
    assert job.source == "remotive"



def test_server_side_search_results_are_not_refiltered_by_query() -> None:
    payload = {"jobs": [{"id": 1, "title": "Unity Dev", "company_name": "Acme", "candidate_required_location": "Remote"}]}
    provider = RemotiveProvider(_descriptor("remotive"), _client(lambda request: httpx.Response(200, json=payload)))

    result = _fetch(provider, JobFilters(query="unity developer"))

    assert [job.title for job in result.jobs] == ["Unity Dev"]


def test_client_side_query_keeps_jobs_matching_any_term() -> None:
    payload = [
        {"legal": "metadata"},
        {"id": "1", "position": "Unity Dev", "company": "Acme", "tags": []},
        {"id": "2", "position": "Accountant", "company": "Ledger", "tags": []},
    ]
    provider = RemoteOKProvider(_descriptor("remoteok"), _client(lambda request: httpx.Response(200, json=payload)))

    result = _fetch(provider, JobFilters(query="unity developer"))

    assert [job.title for job in result.jobs] == ["Unity Dev"]

def test_remoteok_skips_metadata_and_truncates_to_limit() -> None:
    payload = [{"legal": "metadata"}] + [
        {"id": str(n), "position": f"Game Developer {n}", "company": "Studio", "tags": []} for n in range(5)
    ]
    provider = RemoteOKProvider(_descriptor("remoteok"), _client(lambda request: httpx.Response(200, json=payload)))

    result = _fetch(provider, JobFilters(limit=2))

    assert [job.id for job in result.jobs] == ["remoteok-0", "remoteok-1"]


def test_jooble_posts_to_keyed_url() -> None:
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={"jobs": [{"id": 7, "title": "Gameplay Programmer", "company": "Foo", "location": "Remote"}]},
        )

    provider = JoobleProvider(_descriptor("jooble", requires_auth=True, api_key="secret"), _client(handler))
    result = _fetch(provider, JobFilters(query="gameplay", location="Remote"))

    assert captured["url"] == "https://jooble.org/api/secret"
    assert captured["body"] == {"keywords": "gameplay", "location": "Remote"}
    assert result.jobs[0].remote is True


def test_not_found_is_expected_and_yields_no_jobs() -> None:
    provider = RemotiveProvider(_descriptor("remotive"), _client(lambda request: httpx.Response(404)))

    result = _fetch(provider, JobFilters())

    assert result.jobs == []
    assert result.error.kind is ErrorKind.EXPECTED
    assert result.error.status_code == 404


def test_timeout_is_expected() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    result = _fetch(RemotiveProvider(_descriptor("remotive"), _client(handler)), JobFilters())

    assert result.error.kind is ErrorKind.EXPECTED


def test_server_error_and_malformed_payload_are_unexpected() -> None:
    failing = RemotiveProvider(_descriptor("remotive"), _client(lambda request: httpx.Response(500)))
    malformed = RemotiveProvider(
        _descriptor("remotive"), _client(lambda request: httpx.Response(200, json={"items": []}))
    )

    assert _fetch(failing, JobFilters()).error.kind is ErrorKind.UNEXPECTED
    assert _fetch(malformed, JobFilters()).error.kind is ErrorKind.UNEXPECTED


def test_rss_feed_splits_company_and_role() -> None:
    provider = RssFeedProvider(
        _descriptor("weworkremotely", config={"feed_url": "https://feeds.test/jobs.rss", "remote": True}),
        _client(lambda request: httpx.Response(200, content=RSS_FEED.encode())),
    )

    result = _fetch(provider, JobFilters())

    first, second = result.jobs
    assert (first.company, first.title) == ("Acme Games", "Senior Unity Developer")
    assert first.description == "Build gameplay tools"
    assert first.remote is True
    assert first.posted_date.year == 2026
    assert second.company == "Unknown Company"
    assert first.id.startswith("weworkremotely-")
    assert first.id != second.id


def test_split_feed_title_without_company() -> None:
    assert split_feed_title("Acme:  Lead  Designer") == ("Acme", "Lead Designer")
    assert split_feed_title("Lead Designer") == ("", "Lead Designer")


def test_greenhouse_board_parses_jobs_and_verifies() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1/boards/acme/jobs"
        return httpx.Response(
            200,
            json={
                "jobs": [
                    {
                        "id": 55,
                        "title": "Technical Artist",
                        "location": {"name": "Remote - US"},
                        "absolute_url": "https://boards.greenhouse.io/acme/jobs/55",
                        "content": "&lt;p&gt;Shaders&lt;/p&gt;",
                    }
                ]
            },
        )

    board = CompanyBoardConfig(name="Acme Games", token="acme", type="greenhouse")
    provider = CompanyBoardProvider(board, _client(handler))

    assert provider.name == "greenhouse:acme"
    result = _fetch(provider, JobFilters())
    job = result.jobs[0]
    assert job.id == "greenhouse-55"
    assert job.company == "Acme Games"
    assert job.remote is True
    assert job.source == "greenhouse:acme"


def test_board_probe_fails_on_error_status_and_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if "dead" in request.url.path:
            return httpx.Response(404)
        raise httpx.ConnectError("refused", request=request)

    async def run():
        client = _client(handler)
        try:
            dead = CompanyBoardProvider(CompanyBoardConfig(name="Dead", token="dead", type="lever"), client)
            down = CompanyBoardProvider(CompanyBoardConfig(name="Down", token="down", type="lever"), client)
            return await dead.verify_availability(), await down.verify_availability()
        finally:
            await client.aclose()

    assert asyncio.run(run()) == (False, False)

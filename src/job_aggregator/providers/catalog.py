"""Static provider catalog plus user overrides."""
from __future__ import annotations

from typing import Any

import httpx

from job_aggregator.config import ProviderOverride, Settings
from job_aggregator.models import ProviderDescriptor, RateLimit
from job_aggregator.providers.base import HttpJobProvider
from job_aggregator.providers.company_board import CompanyBoardConfig
from job_aggregator.providers.remote_boards import (
    ArbeitnowProvider,
    JoobleProvider,
    RemoteOKProvider,
    RemotiveProvider,
)
from job_aggregator.providers.rss import RssFeedProvider

PROVIDER_CLASSES: dict[str, type[HttpJobProvider]] = {
    "remotive": RemotiveProvider,
    "remoteok": RemoteOKProvider,
    "arbeitnow": ArbeitnowProvider,
    "jooble": JoobleProvider,
    "weworkremotely": RssFeedProvider,
}

DEFAULT_DESCRIPTORS: tuple[dict[str, Any], ...] = (
    {
        "name": "remotive",
        "display_name": "Remotive",
        "priority": 20,
        "rate_limit": {"requests": 2, "period_seconds": 60},
        "config": {"category": "software-dev"},
    },
    {
        "name": "remoteok",
        "display_name": "RemoteOK",
        "priority": 30,
        "rate_limit": {"requests": 60, "period_seconds": 3600},
    },
    {
        "name": "weworkremotely",
        "display_name": "We Work Remotely",
        "priority": 35,
        "config": {
            "feed_url": "https://weworkremotely.com/categories/remote-programming-jobs.rss",
            "remote": True,
        },
    },
    {
        "name": "arbeitnow",
        "display_name": "Arbeitnow",
        "priority": 40,
    },
    {
        "name": "jooble",
        "display_name": "Jooble",
        "priority": 50,
        "requires_auth": True,
        "rate_limit": {"requests": 500, "period_seconds": 86400},
    },
)

# Board tokens change over time; dead ones get disabled by verification.
COMPANY_BOARDS: tuple[CompanyBoardConfig, ...] = (
    CompanyBoardConfig(name="Riot Games", token="riotgames", type="greenhouse"),
    CompanyBoardConfig(name="Bungie", token="bungie", type="greenhouse"),
    CompanyBoardConfig(name="Epic Games", token="epicgames", type="greenhouse"),
    CompanyBoardConfig(name="Roblox", token="roblox", type="greenhouse"),
    CompanyBoardConfig(name="Discord", token="discord", type="greenhouse"),
    CompanyBoardConfig(name="Unity Technologies", token="unity3d", type="greenhouse"),
    CompanyBoardConfig(name="Netflix Games", token="netflix", type="lever"),
    CompanyBoardConfig(name="Ubisoft", token="Ubisoft", type="smartrecruiters"),
    CompanyBoardConfig(name="Rockstar Games", token="rockstar-games", type="smartrecruiters"),
)


def apply_override(descriptor: ProviderDescriptor, override: ProviderOverride) -> ProviderDescriptor:
    if override.enabled is not None:
        descriptor.enabled = override.enabled
    if override.priority is not None:
        descriptor.priority = override.priority
    if override.api_key:
        descriptor.api_key = override.api_key
    if override.config:
        descriptor.config = {**descriptor.config, **override.config}
    return descriptor


def build_descriptors(settings: Settings) -> list[ProviderDescriptor]:
    descriptors = []
    for raw in DEFAULT_DESCRIPTORS:
        descriptor = ProviderDescriptor(
            name=raw["name"],
            display_name=raw["display_name"],
            priority=raw["priority"],
            requires_auth=raw.get("requires_auth", False),
            rate_limit=RateLimit(**raw["rate_limit"]) if raw.get("rate_limit") else None,
            config=dict(raw.get("config", {})),
        )
        if descriptor.name == "jooble" and settings.jooble_api_key:
            descriptor.api_key = settings.jooble_api_key
        override = settings.provider_overrides.get(descriptor.name)
        if override is not None:
            apply_override(descriptor, override)
        descriptors.append(descriptor)
    return descriptors


def build_default_providers(settings: Settings, client: httpx.AsyncClient) -> list[HttpJobProvider]:
    return [
        PROVIDER_CLASSES[descriptor.name](descriptor, client)
        for descriptor in build_descriptors(settings)
    ]

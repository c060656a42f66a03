"""Loading, verification and auto disable/re-enable of single-company ATS boards."""
from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable

import httpx
from pydantic import ValidationError

from job_aggregator.health import HealthDashboard
from job_aggregator.providers.catalog import COMPANY_BOARDS
from job_aggregator.providers.company_board import CompanyBoardConfig, CompanyBoardProvider
from job_aggregator.registry import ProviderRegistry
from job_aggregator.storage import COMPANY_BOARDS_KEY, DISABLED_COMPANY_BOARDS_KEY, StateStore

logger = logging.getLogger(__name__)


def _board_key(entry: dict) -> str | None:
    if not isinstance(entry, dict) or not entry.get("type") or not entry.get("token"):
        return None
    return f"{entry['type']}:{entry['token']}"


class CompanyBoardManager:
    def __init__(
        self,
        registry: ProviderRegistry,
        store: StateStore,
        client: httpx.AsyncClient,
        *,
        health: HealthDashboard | None = None,
        static_boards: Iterable[CompanyBoardConfig] = COMPANY_BOARDS,
    ):
        self.registry = registry
        self.store = store
        self.client = client
        self.health = health
        self._static_boards = list(static_boards)
        self._boards: dict[str, CompanyBoardConfig] = {}
        self.disabled: set[str] = self._load_disabled()

    def _load_disabled(self) -> set[str]:
        raw = self.store.get_json(DISABLED_COMPANY_BOARDS_KEY, [])
        if not isinstance(raw, list):
            logger.warning("Ignoring malformed disabled-board list")
            return set()
        return {key for key in map(_board_key, raw) if key}

    def _save_disabled(self) -> None:
        entries = []
        for key in sorted(self.disabled):
            board_type, _, token = key.partition(":")
            entries.append({"type": board_type, "token": token})
        self.store.set_json(DISABLED_COMPANY_BOARDS_KEY, entries)

    def user_boards(self) -> list[CompanyBoardConfig]:
        raw = self.store.get_json(COMPANY_BOARDS_KEY, [])
        if not isinstance(raw, list):
            logger.warning("Ignoring malformed user company boards")
            return []
        boards = []
        for entry in raw:
            try:
                boards.append(CompanyBoardConfig.model_validate(entry))
            except ValidationError as exc:
                logger.warning("Skipping invalid company board %r: %s", entry, exc)
        return boards

    @property
    def boards(self) -> list[CompanyBoardConfig]:
        return list(self._boards.values())

    def load(self) -> list[CompanyBoardConfig]:
        """Register static and user boards; boards on the disabled list start disabled."""
        for board in [*self._static_boards, *self.user_boards()]:
            self._register(board)
        logger.info(
            "Registered %d company boards (%d disabled)",
            len(self._boards),
            sum(1 for key in self._boards if key in self.disabled),
        )
        return self.boards

    def _register(self, board: CompanyBoardConfig) -> None:
        provider = CompanyBoardProvider(board, self.client, enabled=board.key not in self.disabled)
        self.registry.register(provider)
        self._boards[board.key] = board

    def _provider(self, key: str) -> CompanyBoardProvider | None:
        provider = self.registry.get_provider(key)
        return provider if isinstance(provider, CompanyBoardProvider) else None

    async def _probe(self, provider: CompanyBoardProvider) -> tuple[str, bool, float]:
        started = time.perf_counter()
        available = await provider.verify_availability()
        return provider.name, available, (time.perf_counter() - started) * 1000

    async def verify(self) -> dict[str, bool]:
        providers = [provider for key in self._boards if (provider := self._provider(key)) is not None]
        outcomes = await asyncio.gather(*(self._probe(provider) for provider in providers))

        results = {}
        for key, available, elapsed_ms in outcomes:
            results[key] = available
            if self.health is not None:
                self.health.update_provider_health(
                    key,
                    success=available,
                    response_time=elapsed_ms,
                    error=None if available else "board verification failed",
                )
            if available and key in self.disabled:
                self.disabled.discard(key)
                self.registry.update_provider(key, enabled=True)
                logger.info("Company board %s is reachable again, re-enabled", key)
            elif not available and key not in self.disabled:
                self.disabled.add(key)
                self.registry.update_provider(key, enabled=False)
                logger.warning("Company board %s failed verification, disabled", key)

        self._save_disabled()
        logger.info(
            "Verified %d company boards: %d available",
            len(results),
            sum(1 for ok in results.values() if ok),
        )
        return results

    async def reload(self, configs: Iterable[CompanyBoardConfig]) -> dict[str, bool]:
        """Replace user-defined boards at runtime, persist them and re-verify."""
        user_boards = list(configs)
        for key in list(self._boards):
            self.registry.unregister(key)
        self._boards.clear()
        self.store.set_json(COMPANY_BOARDS_KEY, [board.model_dump() for board in user_boards])
        self.load()
        return await self.verify()

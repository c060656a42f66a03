from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Run an async callable every ``interval`` seconds on the running loop."""

    def __init__(
        self,
        name: str,
        func: Callable[[], Awaitable[object]],
        interval: float,
        *,
        run_immediately: bool = False,
    ):
        if interval <= 0:
            raise ValueError(f"{name}: interval must be positive")
        self.name = name
        self.func = func
        self.interval = interval
        self.run_immediately = run_immediately
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run(self) -> None:
        if not self.run_immediately:
            await asyncio.sleep(self.interval)
        while True:
            try:
                await self.func()
            except Exception:
                logger.exception("Scheduled task %s failed", self.name)
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)
        logger.info("Started %s every %.0fs", self.name, self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Stopped %s", self.name)

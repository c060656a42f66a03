import asyncio

import pytest

from job_aggregator.scheduler import PeriodicTask


def test_task_runs_repeatedly_and_survives_errors() -> None:
    calls = []

    async def tick():
        calls.append(len(calls))
        if len(calls) == 1:
            raise RuntimeError("first tick fails")

    async def run():
        task = PeriodicTask("tick", tick, 0.01, run_immediately=True)
        task.start()
        while len(calls) < 3:
            await asyncio.sleep(0.01)
        await task.stop()
        return task.running

    assert asyncio.run(run()) is False
    assert len(calls) >= 3


def test_non_positive_interval_is_rejected() -> None:
    async def noop():
        return None

    with pytest.raises(ValueError):
        PeriodicTask("bad", noop, 0)

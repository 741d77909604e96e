import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from reprise.application.ticker import DispatchTicker


@pytest.fixture
def orchestrator():
    mock = MagicMock()
    mock.run_sweep = AsyncMock(return_value=None)
    return mock


@pytest.mark.asyncio
async def test_tick_runs_unforced_sweep(orchestrator):
    ticker = DispatchTicker(orchestrator, interval_seconds=60)

    await ticker.tick()

    orchestrator.run_sweep.assert_awaited_once_with(force=False)


@pytest.mark.asyncio
async def test_start_and_stop(orchestrator):
    ticker = DispatchTicker(orchestrator, interval_seconds=0.01)

    ticker.start()
    ticker.start()  # idempotent
    assert ticker.running is True
    await asyncio.sleep(0.1)
    await ticker.stop()

    assert ticker.running is False
    assert orchestrator.run_sweep.await_count >= 1
    for call in orchestrator.run_sweep.await_args_list:
        assert call.kwargs == {"force": False}


@pytest.mark.asyncio
async def test_stop_without_start_is_noop(orchestrator):
    ticker = DispatchTicker(orchestrator)
    await ticker.stop()
    assert ticker.running is False


@pytest.mark.asyncio
async def test_crashed_sweep_does_not_stop_ticker(orchestrator):
    orchestrator.run_sweep.side_effect = RuntimeError("boom")
    ticker = DispatchTicker(orchestrator, interval_seconds=0.01)

    ticker.start()
    await asyncio.sleep(0.1)
    assert ticker.running is True
    await ticker.stop()

    assert orchestrator.run_sweep.await_count >= 2

"""Periodic timer that triggers dispatch sweeps."""

import asyncio
import logging

from reprise.application.dispatch import DispatchOrchestrator
from reprise.domain.constants import DEFAULT_TICK_SECONDS

logger = logging.getLogger(__name__)


class DispatchTicker:
    """
    Fires `run_sweep(force=False)` every `interval_seconds`.

    Ticks do not wait for the previous sweep: each tick starts a sweep task and
    goes back to sleep. Overlapping sweeps are coalesced by the orchestrator.
    """

    def __init__(self, orchestrator: DispatchOrchestrator, interval_seconds: float = DEFAULT_TICK_SECONDS):
        self._orchestrator = orchestrator
        self._interval = interval_seconds
        self._task: asyncio.Task | None = None
        self._sweeps: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        logger.info(f"Starting dispatch ticker (every {self._interval}s)")
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

        # In-flight sweeps are allowed to finish.
        if self._sweeps:
            await asyncio.gather(*self._sweeps, return_exceptions=True)
        logger.info("Dispatch ticker stopped")

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self.tick()

    def tick(self) -> asyncio.Task:
        """Start one scheduled sweep in the background."""
        task = asyncio.create_task(self._orchestrator.run_sweep(force=False))
        self._sweeps.add(task)
        task.add_done_callback(self._sweep_done)
        return task

    def _sweep_done(self, task: asyncio.Task) -> None:
        self._sweeps.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Scheduled sweep crashed: {exc}", exc_info=exc)

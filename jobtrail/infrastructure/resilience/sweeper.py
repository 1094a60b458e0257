"""Periodic reclamation of expired in-memory state.

The sweeper is an explicit lifecycle object: hosts call ``start()`` from a
running event loop and ``await stop()`` on shutdown. Tests call
``sweep_once()`` directly instead of waiting for the timer.
"""

import asyncio
import logging
from typing import List, Optional, Protocol, Sequence

logger = logging.getLogger(__name__)

DEFAULT_SWEEP_INTERVAL_MS = 60_000


class Sweepable(Protocol):
    """Anything that can drop its own expired entries."""

    def sweep(self) -> int:
        ...


class PeriodicSweeper:
    """Runs ``sweep()`` on a set of targets at a fixed interval."""

    def __init__(self, targets: Sequence[Sweepable], interval_ms: int = DEFAULT_SWEEP_INTERVAL_MS):
        if interval_ms <= 0:
            raise ValueError("Sweep interval must be positive.")
        self.targets: List[Sweepable] = list(targets)
        self.interval_ms = interval_ms
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedules the sweep loop on the running event loop. Calling it twice is a no-op."""
        if self.is_running:
            return
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run())
        logger.info(f"PeriodicSweeper started: {len(self.targets)} target(s) every {self.interval_ms}ms")

    async def stop(self) -> None:
        """Cancels the sweep loop and waits for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("PeriodicSweeper stopped.")

    def sweep_once(self) -> int:
        """Sweeps every target now and returns the total number of entries removed."""
        removed = 0
        for target in self.targets:
            try:
                removed += target.sweep()
            except Exception as e:
                logger.error(f"Sweep failed for {type(target).__name__}: {e}", exc_info=True)
        return removed

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_ms / 1000)
            self.sweep_once()

    async def __aenter__(self) -> "PeriodicSweeper":
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

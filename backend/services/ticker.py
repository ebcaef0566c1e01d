"""Periodic tick driver."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from core.models import TickResult
from services.pipeline import MonitoringPipeline

logger = logging.getLogger(__name__)

type TickListener = Callable[[TickResult], Awaitable[None]]


class TickDriver:
    """Runs the pipeline every ``interval`` seconds and cleans the alert log.

    A failing tick is logged and the schedule carries on. Ticks never overlap:
    the next one starts ``interval`` seconds after the previous one finished.
    """

    def __init__(
        self,
        pipeline: MonitoringPipeline,
        interval: float,
        cleanup_interval: float = 3600.0,
        on_tick: TickListener | None = None,
    ) -> None:
        self.pipeline = pipeline
        self.interval = interval
        self.cleanup_interval = cleanup_interval
        self.on_tick = on_tick
        self._task: asyncio.Task[None] | None = None
        self._last_cleanup = time.monotonic()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def tick_once(self) -> TickResult | None:
        try:
            result = await self.pipeline.run_tick()
            if self.on_tick is not None:
                await self.on_tick(result)
        except Exception:
            logger.exception("Tick failed")
            return None
        finally:
            self._maybe_cleanup()
        return result

    def _maybe_cleanup(self) -> None:
        now = time.monotonic()
        if now - self._last_cleanup < self.cleanup_interval:
            return
        self._last_cleanup = now
        try:
            self.pipeline.clean_old_alerts()
        except Exception:
            logger.exception("Alert cleanup failed")

    async def _run(self) -> None:
        logger.info("Tick driver started (every %.0f s)", self.interval)
        while True:
            await self.tick_once()
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Tick driver stopped")

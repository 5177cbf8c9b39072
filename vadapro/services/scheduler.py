"""Single clock tick driving counter resets, record eviction and queue drains."""

import asyncio
from datetime import datetime

import structlog

from vadapro.monitoring.metrics import TOKENS_THIS_MINUTE
from vadapro.services.clock import Clock
from vadapro.services.rate_limiter import RateLimiter
from vadapro.services.request_queue import RequestQueue
from vadapro.services.usage import UsageState

logger = structlog.get_logger()


class Scheduler:
    """Owns the only background timer in the process.

    ``tick`` does all periodic work for one instant and can be called directly
    with a manual clock; ``start`` just calls it every ``tick_interval``.
    """

    def __init__(
        self,
        usage: UsageState,
        limiter: RateLimiter,
        queue: RequestQueue,
        clock: Clock,
        tick_interval: float = 1.0,
        drain_interval: float = 5.0,
    ) -> None:
        self._usage = usage
        self._limiter = limiter
        self._queue = queue
        self._clock = clock
        self.tick_interval = tick_interval
        self.drain_interval = drain_interval
        self._last_drain: datetime | None = None
        self._drain_task: asyncio.Task | None = None
        self._runner: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._runner is not None and not self._runner.done()

    def tick(self) -> asyncio.Task | None:
        """Run reset and eviction checks; start a drain pass when one is due.

        Returns the drain task if one was started. The drain runs in the
        background so a slow provider call never delays counter resets.
        """
        now = self._clock.now()

        reset = self._usage.tick(now)
        if reset.minute_reset:
            TOKENS_THIS_MINUTE.set(0)
        self._limiter.evict_idle(now)

        if not self._drain_due(now):
            return None
        self._last_drain = now
        if not len(self._queue) or self._queue.is_draining:
            return None
        self._drain_task = asyncio.create_task(self._queue.drain())
        return self._drain_task

    def _drain_due(self, now: datetime) -> bool:
        if self._last_drain is None:
            return True
        return (now - self._last_drain).total_seconds() >= self.drain_interval

    def start(self) -> None:
        if self.is_running:
            return
        self._runner = asyncio.create_task(self._run())
        logger.info(
            "scheduler.started",
            tick_interval=self.tick_interval,
            drain_interval=self.drain_interval,
        )

    async def stop(self) -> None:
        for task in (self._runner, self._drain_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._runner = None
        self._drain_task = None
        logger.info("scheduler.stopped")

    async def _run(self) -> None:
        while True:
            try:
                self.tick()
            except Exception as e:
                logger.error("scheduler.tick_failed", error=str(e))
            await asyncio.sleep(self.tick_interval)

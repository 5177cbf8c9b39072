"""Admission controller for AI analysis requests.

Direct path: limiter allows, run now.
Soft limit: queue, wait for a drain pass to serve or reject the entry.
Hard limit: reject immediately.
"""

import asyncio

import structlog

from vadapro.config import Settings, settings
from vadapro.models.api import (
    AnalysisResult,
    AnalyzeRequest,
    UsageLimits,
    UsageStats,
)
from vadapro.monitoring.metrics import REQUESTS_REJECTED
from vadapro.services.clock import Clock, SystemClock
from vadapro.services.errors import ProviderUnavailable, RateLimitExceeded, ValidationError
from vadapro.services.executor import RequestExecutor
from vadapro.services.gemini import GeminiClient, get_gemini_client
from vadapro.services.rate_limiter import RateLimiter, RateLimits
from vadapro.services.request_queue import RequestQueue
from vadapro.services.scheduler import Scheduler
from vadapro.services.usage import UsageState

logger = structlog.get_logger()


class AnalysisService:
    def __init__(
        self,
        limits: RateLimits,
        client: GeminiClient,
        clock: Clock,
        max_queue_size: int = 100,
        max_users: int = 10_000,
        idle_ttl_seconds: float = 24 * 60 * 60,
        tick_interval: float = 1.0,
        drain_interval: float = 5.0,
    ) -> None:
        self.limits = limits
        self.client = client
        self.clock = clock
        self.usage = UsageState.create(clock.now())
        self.limiter = RateLimiter(
            limits,
            self.usage,
            clock,
            max_users=max_users,
            idle_ttl_seconds=idle_ttl_seconds,
        )
        self.executor = RequestExecutor(client, self.usage, clock, limits.max_tokens_per_minute)
        self.queue = RequestQueue(self.limiter, self.executor, clock, max_size=max_queue_size)
        self.scheduler = Scheduler(
            self.usage,
            self.limiter,
            self.queue,
            clock,
            tick_interval=tick_interval,
            drain_interval=drain_interval,
        )
        self._background: set[asyncio.Task] = set()

    @classmethod
    def from_settings(
        cls,
        config: Settings,
        client: GeminiClient | None = None,
        clock: Clock | None = None,
    ) -> "AnalysisService":
        return cls(
            RateLimits.from_settings(config),
            client or get_gemini_client(),
            clock or SystemClock(config.timezone),
            max_queue_size=config.max_queue_size,
            max_users=config.rate_limit_max_users,
            idle_ttl_seconds=config.rate_limit_idle_ttl_seconds,
            tick_interval=config.tick_interval_seconds,
            drain_interval=config.queue_drain_interval_seconds,
        )

    @property
    def model_name(self) -> str:
        return self.client.model

    async def analyze(self, request: AnalyzeRequest, user_id: str | None) -> AnalysisResult:
        """Admit, queue or reject ``request`` and return the analysis result."""
        if not request.query or not request.query.strip():
            raise ValidationError("Query is required")

        decision = self.limiter.check(user_id)

        if decision.allowed:
            return await self.executor.execute(request)

        if not decision.should_queue:
            REQUESTS_REJECTED.labels(reason=decision.reason.value).inc()
            raise RateLimitExceeded(decision)

        entry = self.queue.enqueue(request, user_id)
        self._trigger_drain()
        return await entry.future

    def _trigger_drain(self) -> None:
        task = asyncio.create_task(self.queue.drain())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def usage_stats(self) -> UsageStats:
        max_tokens = self.limits.max_tokens_per_minute
        return UsageStats(
            total_requests_today=self.usage.total_requests_today,
            total_tokens_this_minute=self.usage.total_tokens_this_minute,
            remaining_tokens=self.usage.remaining_tokens(max_tokens),
            usage_percentage=f"{self.usage.usage_percentage(max_tokens):.2f}",
            limits=UsageLimits(
                requests_per_minute=self.limits.requests_per_minute,
                requests_per_day=self.limits.requests_per_day,
                max_tokens_per_minute=max_tokens,
            ),
            minute_reset_time=self.usage.minute_reset_at.isoformat(),
            daily_reset_time=self.usage.daily_reset_at.isoformat(),
            queue_size=len(self.queue),
        )

    def start(self) -> None:
        self.scheduler.start()

    async def stop(self) -> None:
        await self.scheduler.stop()
        for task in list(self._background):
            task.cancel()
        failed = self.queue.close(ProviderUnavailable("Server is shutting down"))
        if failed:
            logger.warning("analysis.queue_abandoned", count=failed)


# Singleton
_analysis_service: AnalysisService | None = None


def get_analysis_service() -> AnalysisService:
    global _analysis_service
    if _analysis_service is None:
        _analysis_service = AnalysisService.from_settings(settings)
    return _analysis_service

"""FIFO backlog for requests that hit the per-user minute limit.

Entries are only ever removed from the head. A drain pass stops at the first
entry that is still soft-limited, so a later request is never served ahead
of an earlier one that is still waiting.
"""

import asyncio
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime

import structlog

from vadapro.middleware.logging import request_context
from vadapro.models.api import AnalysisResult, AnalyzeRequest
from vadapro.monitoring.metrics import QUEUE_SIZE, QUEUE_WAIT, REQUESTS_QUEUED, REQUESTS_REJECTED
from vadapro.services.clock import Clock
from vadapro.services.errors import QueueFull, RateLimitExceeded
from vadapro.services.executor import RequestExecutor
from vadapro.services.rate_limiter import RateLimiter

logger = structlog.get_logger()


@dataclass
class QueueEntry:
    """A pending request and the future its caller is awaiting."""

    request: AnalyzeRequest
    user_id: str | None
    future: asyncio.Future
    enqueued_at: datetime
    log_context: dict = field(default_factory=dict)

    def resolve(self, result: AnalysisResult) -> bool:
        if self.future.done():
            return False
        self.future.set_result(result)
        return True

    def fail(self, error: BaseException) -> bool:
        if self.future.done():
            return False
        self.future.set_exception(error)
        return True


class RequestQueue:
    def __init__(
        self,
        limiter: RateLimiter,
        executor: RequestExecutor,
        clock: Clock,
        max_size: int = 100,
    ) -> None:
        self._limiter = limiter
        self._executor = executor
        self._clock = clock
        self.max_size = max_size
        self._entries: deque[QueueEntry] = deque()
        self._draining = False

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def is_draining(self) -> bool:
        return self._draining

    def peek(self) -> QueueEntry | None:
        return self._entries[0] if self._entries else None

    def enqueue(self, request: AnalyzeRequest, user_id: str | None) -> QueueEntry:
        """Append a request; the returned entry's future settles when it is served."""
        if len(self._entries) >= self.max_size:
            REQUESTS_REJECTED.labels(reason="queue_full").inc()
            logger.warning("queue.full", size=len(self._entries), max_size=self.max_size)
            raise QueueFull(f"Request queue is full ({self.max_size})")

        entry = QueueEntry(
            request=request,
            user_id=user_id,
            future=asyncio.get_running_loop().create_future(),
            enqueued_at=self._clock.now(),
            log_context=request_context(),
        )
        self._entries.append(entry)
        REQUESTS_QUEUED.inc()
        QUEUE_SIZE.set(len(self._entries))
        logger.info("queue.enqueued", user_id=user_id, size=len(self._entries))
        return entry

    async def drain(self) -> int:
        """Serve queued requests in order until one is still soft-limited.

        Not reentrant: a call made while another pass is running returns 0
        immediately. Returns the number of entries removed from the queue.
        """
        if self._draining or not self._entries:
            return 0

        self._draining = True
        removed = 0
        logger.info("queue.drain_started", pending=len(self._entries))
        try:
            while self._entries:
                entry = self._entries[0]
                with structlog.contextvars.bound_contextvars(**entry.log_context):
                    if not await self._serve_head(entry):
                        break
                removed += 1
        finally:
            self._draining = False
            QUEUE_SIZE.set(len(self._entries))
            logger.info("queue.drain_finished", removed=removed, pending=len(self._entries))
        return removed

    async def _serve_head(self, entry: QueueEntry) -> bool:
        """Settle the head entry. Returns False when it is still soft-limited."""
        if entry.future.cancelled():
            # Caller went away; don't spend quota on it.
            self._pop()
            logger.info("queue.skipped_cancelled", user_id=entry.user_id)
            return True

        decision = self._limiter.check(entry.user_id)

        if decision.should_queue:
            return False

        self._pop()
        if not decision.allowed:
            REQUESTS_REJECTED.labels(reason=decision.reason.value).inc()
            logger.info("queue.rejected", user_id=entry.user_id, error=decision.error)
            entry.fail(RateLimitExceeded(decision))
            self._observe_wait(entry)
            return True

        logger.info("queue.executing", user_id=entry.user_id)
        try:
            result = await self._executor.execute(entry.request)
        except asyncio.CancelledError:
            entry.future.cancel()
            raise
        except Exception as e:
            logger.error(
                "queue.execution_failed",
                user_id=entry.user_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            entry.fail(e)
        else:
            entry.resolve(result)
        self._observe_wait(entry)
        return True

    def close(self, error: BaseException) -> int:
        """Fail every pending entry with ``error`` and empty the queue."""
        failed = 0
        while self._entries:
            if self._pop().fail(error):
                failed += 1
        QUEUE_SIZE.set(0)
        return failed

    def _pop(self) -> QueueEntry:
        entry = self._entries.popleft()
        QUEUE_SIZE.set(len(self._entries))
        return entry

    def _observe_wait(self, entry: QueueEntry) -> None:
        QUEUE_WAIT.observe((self._clock.now() - entry.enqueued_at).total_seconds())

"""In-memory admission control for AI analysis requests.

Three limits are enforced, in this order:

1. per-user requests per minute (sliding 60 s window), soft: the caller queues
2. per-user requests per day, hard: rejected outright
3. global tokens per minute, hard: rejected outright

The per-minute check runs first on purpose. A user who is over both the
minute and the daily limit is told to queue, and the queued request is
rejected later when it is re-checked on dequeue.
"""

from collections import OrderedDict, deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

import structlog

from vadapro.monitoring.metrics import RATE_LIMIT_DECISIONS, TRACKED_USERS
from vadapro.services.clock import Clock
from vadapro.services.usage import UsageState

logger = structlog.get_logger()

WINDOW_SECONDS = 60.0
ANONYMOUS_KEY = "anonymous"


class LimitReason(str, Enum):
    MINUTE = "minute"
    DAILY = "daily"
    TOKENS = "tokens"


@dataclass(frozen=True)
class RateLimits:
    requests_per_minute: int = 10
    requests_per_day: int = 250
    max_tokens_per_minute: int = 250_000

    @classmethod
    def from_settings(cls, settings) -> "RateLimits":
        return cls(
            requests_per_minute=settings.requests_per_minute,
            requests_per_day=settings.requests_per_day,
            max_tokens_per_minute=settings.max_tokens_per_minute,
        )


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    should_queue: bool = False
    reason: LimitReason | None = None
    error: str | None = None


@dataclass
class RateLimitRecord:
    requests: deque[float] = field(default_factory=deque)
    daily_requests: int = 0
    day_marker: datetime | None = None
    last_seen: float = 0.0


class RateLimiter:
    """Sliding-window and daily limiter keyed by user id.

    Records are created lazily and kept in least-recently-seen order so the
    store can be capped (``max_users``) and swept for idle users
    (``evict_idle``).
    """

    def __init__(
        self,
        limits: RateLimits,
        usage: UsageState,
        clock: Clock,
        max_users: int = 10_000,
        idle_ttl_seconds: float = 24 * 60 * 60,
    ):
        self.limits = limits
        self.usage = usage
        self._clock = clock
        self.max_users = max_users
        self.idle_ttl_seconds = idle_ttl_seconds
        self._records: OrderedDict[str, RateLimitRecord] = OrderedDict()

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._records

    def get_record(self, user_id: str | None) -> RateLimitRecord | None:
        return self._records.get(user_id or ANONYMOUS_KEY)

    def check(self, user_id: str | None) -> RateLimitDecision:
        """Decide whether a request from ``user_id`` may run now."""
        key = user_id or ANONYMOUS_KEY
        now = self._clock.now().timestamp()
        record = self._touch(key, now)

        while record.requests and now - record.requests[0] >= WINDOW_SECONDS:
            record.requests.popleft()

        if len(record.requests) >= self.limits.requests_per_minute:
            logger.info("rate_limit.queued", user_id=key, window=len(record.requests))
            return self._decide(
                RateLimitDecision(
                    allowed=False,
                    should_queue=True,
                    reason=LimitReason.MINUTE,
                    error="Rate limit exceeded. Request queued.",
                )
            )

        if record.daily_requests >= self.limits.requests_per_day:
            logger.warning("rate_limit.daily_exceeded", user_id=key)
            return self._decide(
                RateLimitDecision(
                    allowed=False,
                    reason=LimitReason.DAILY,
                    error=(
                        "Daily limit reached. "
                        f"Max {self.limits.requests_per_day} requests per day."
                    ),
                )
            )

        if self.usage.total_tokens_this_minute >= self.limits.max_tokens_per_minute:
            logger.warning(
                "rate_limit.token_budget_exhausted",
                user_id=key,
                tokens=self.usage.total_tokens_this_minute,
            )
            return self._decide(
                RateLimitDecision(
                    allowed=False,
                    reason=LimitReason.TOKENS,
                    error="System token quota exhausted. Please try again later.",
                )
            )

        record.requests.append(now)
        record.daily_requests += 1
        self.usage.record_request()
        return self._decide(RateLimitDecision(allowed=True))

    def evict_idle(self, now: datetime | None = None) -> int:
        """Drop records not seen within ``idle_ttl_seconds``. Returns count dropped."""
        cutoff = (now or self._clock.now()).timestamp() - self.idle_ttl_seconds
        evicted = 0
        # Records are ordered oldest-seen first.
        while self._records:
            key, record = next(iter(self._records.items()))
            if record.last_seen > cutoff:
                break
            del self._records[key]
            evicted += 1
        if evicted:
            TRACKED_USERS.set(len(self._records))
            logger.info("rate_limit.evicted_idle", count=evicted, remaining=len(self._records))
        return evicted

    def _touch(self, key: str, now: float) -> RateLimitRecord:
        record = self._records.get(key)
        if record is None:
            record = RateLimitRecord(day_marker=self.usage.daily_reset_at)
            self._records[key] = record
            self._enforce_cap(key, now)
            TRACKED_USERS.set(len(self._records))
        else:
            self._records.move_to_end(key)

        if record.day_marker != self.usage.daily_reset_at:
            record.daily_requests = 0
            record.day_marker = self.usage.daily_reset_at
        record.last_seen = now
        return record

    def _enforce_cap(self, key: str, now: float) -> None:
        """Evict least-recently-seen records until the store is back at ``max_users``.

        Eviction stops at the first record that still has requests inside its
        minute window, so the store may run over the cap for up to a minute.
        Evicted users do lose their daily count; the cap bounds memory at that
        cost.
        """
        while len(self._records) > self.max_users:
            oldest_key, oldest = next(iter(self._records.items()))
            if oldest_key == key or self._in_window(oldest, now):
                logger.warning(
                    "rate_limit.cap_exceeded",
                    tracked=len(self._records),
                    max_users=self.max_users,
                )
                return
            del self._records[oldest_key]
            logger.info("rate_limit.evicted_lru", user_id=oldest_key)

    @staticmethod
    def _in_window(record: RateLimitRecord, now: float) -> bool:
        return bool(record.requests) and now - record.requests[-1] < WINDOW_SECONDS

    @staticmethod
    def _decide(decision: RateLimitDecision) -> RateLimitDecision:
        outcome = "allowed" if decision.allowed else decision.reason.value
        RATE_LIMIT_DECISIONS.labels(outcome=outcome).inc()
        return decision

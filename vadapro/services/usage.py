"""Process-wide AI usage counters with minute and day reset boundaries."""

from dataclasses import dataclass
from datetime import datetime, time, timedelta

import structlog

logger = structlog.get_logger()


def next_minute(now: datetime) -> datetime:
    """Start of the minute following ``now``."""
    return now.replace(second=0, microsecond=0) + timedelta(minutes=1)


def next_midnight(now: datetime) -> datetime:
    """Midnight following ``now`` in its own time zone.

    With a ``ZoneInfo`` zone the offset is the one in effect at midnight,
    which can differ from the offset of ``now`` on DST change days.
    """
    return datetime.combine(now.date() + timedelta(days=1), time.min, tzinfo=now.tzinfo)


@dataclass
class TickResult:
    minute_reset: bool = False
    day_reset: bool = False


@dataclass
class UsageState:
    """Rolling token and request totals shared by the limiter and executor.

    Counters only move forward between boundaries. ``tick`` is the single place
    where they are zeroed, and it is idempotent until a boundary is crossed.
    """

    minute_reset_at: datetime
    daily_reset_at: datetime
    total_tokens_this_minute: int = 0
    total_requests_today: int = 0

    @classmethod
    def create(cls, now: datetime) -> "UsageState":
        return cls(minute_reset_at=next_minute(now), daily_reset_at=next_midnight(now))

    def tick(self, now: datetime) -> TickResult:
        result = TickResult()
        if now >= self.minute_reset_at:
            self.total_tokens_this_minute = 0
            self.minute_reset_at = next_minute(now)
            result.minute_reset = True
        if now >= self.daily_reset_at:
            self.total_requests_today = 0
            self.daily_reset_at = next_midnight(now)
            result.day_reset = True
            logger.info("usage.daily_reset", next_reset=self.daily_reset_at.isoformat())
        return result

    def record_request(self) -> None:
        self.total_requests_today += 1

    def record_tokens(self, tokens: int) -> None:
        self.total_tokens_this_minute += max(tokens, 0)

    def remaining_tokens(self, max_tokens_per_minute: int) -> int:
        return max_tokens_per_minute - self.total_tokens_this_minute

    def usage_percentage(self, max_tokens_per_minute: int) -> float:
        if max_tokens_per_minute <= 0:
            return 100.0
        return self.total_tokens_this_minute / max_tokens_per_minute * 100

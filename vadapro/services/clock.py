"""Wall-clock sources for the rate limiter, usage counters and scheduler."""

from datetime import datetime, timedelta, tzinfo
from typing import Protocol
from zoneinfo import ZoneInfo


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock in an IANA time zone.

    The zone is a real ``ZoneInfo`` rather than a fixed UTC offset, so the
    daily boundary stays at local midnight across DST changes.
    """

    def __init__(self, zone: str | tzinfo = "UTC") -> None:
        self.tz = ZoneInfo(zone) if isinstance(zone, str) else zone

    def now(self) -> datetime:
        return datetime.now(self.tz)


class ManualClock:
    """Clock that only moves when told to. Used to drive virtual time."""

    def __init__(self, start: datetime) -> None:
        self._now = start

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float) -> datetime:
        self._now += timedelta(seconds=seconds)
        return self._now

    def set(self, moment: datetime) -> None:
        self._now = moment

"""Tests for global usage counters and their reset boundaries."""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from vadapro.services.clock import SystemClock
from vadapro.services.usage import UsageState, next_midnight, next_minute


class TestBoundaries:
    def test_next_minute(self):
        now = datetime(2026, 3, 10, 12, 0, 30, 500, tzinfo=timezone.utc)
        assert next_minute(now) == datetime(2026, 3, 10, 12, 1, tzinfo=timezone.utc)

    def test_next_minute_on_exact_boundary(self):
        now = datetime(2026, 3, 10, 12, 1, tzinfo=timezone.utc)
        assert next_minute(now) == datetime(2026, 3, 10, 12, 2, tzinfo=timezone.utc)

    def test_next_midnight_keeps_timezone(self):
        tz = timezone(timedelta(hours=-5))
        now = datetime(2026, 3, 10, 23, 59, tzinfo=tz)
        assert next_midnight(now) == datetime(2026, 3, 11, tzinfo=tz)

    def test_next_midnight_uses_offset_after_dst_change(self):
        amsterdam = ZoneInfo("Europe/Amsterdam")
        # Clocks go forward at 02:00 on 2026-03-29.
        now = datetime(2026, 3, 29, 1, 0, tzinfo=amsterdam)
        midnight = next_midnight(now)

        assert midnight.utcoffset() == timedelta(hours=2)
        assert midnight == datetime(2026, 3, 29, 22, 0, tzinfo=timezone.utc)

    def test_system_clock_is_zone_aware(self):
        now = SystemClock("Europe/Amsterdam").now()
        assert now.tzinfo == ZoneInfo("Europe/Amsterdam")
        assert SystemClock().now().utcoffset() == timedelta(0)

    def test_create_sets_both_boundaries(self, clock):
        state = UsageState.create(clock.now())
        assert state.minute_reset_at == datetime(2026, 3, 10, 12, 1, tzinfo=timezone.utc)
        assert state.daily_reset_at == datetime(2026, 3, 11, tzinfo=timezone.utc)
        assert state.total_tokens_this_minute == 0
        assert state.total_requests_today == 0


class TestTick:
    def test_ticks_before_boundary_are_noops(self, clock, usage):
        usage.record_tokens(1234)
        usage.record_request()

        first = usage.tick(clock.advance(5))
        second = usage.tick(clock.advance(5))

        assert not first.minute_reset and not second.minute_reset
        assert usage.total_tokens_this_minute == 1234
        assert usage.total_requests_today == 1

    def test_minute_boundary_resets_tokens_only(self, clock, usage):
        usage.record_tokens(500)
        usage.record_request()

        result = usage.tick(clock.advance(30))

        assert result.minute_reset is True
        assert result.day_reset is False
        assert usage.total_tokens_this_minute == 0
        assert usage.total_requests_today == 1
        assert usage.minute_reset_at == datetime(2026, 3, 10, 12, 2, tzinfo=timezone.utc)

    def test_day_boundary_resets_requests(self, clock, usage):
        usage.record_request()
        clock.set(datetime(2026, 3, 11, 0, 0, 1, tzinfo=timezone.utc))

        result = usage.tick(clock.now())

        assert result.day_reset is True
        assert usage.total_requests_today == 0
        assert usage.daily_reset_at == datetime(2026, 3, 12, tzinfo=timezone.utc)

    def test_long_gap_recomputes_from_now(self, clock, usage):
        clock.advance(3 * 3600 + 15)
        usage.tick(clock.now())
        assert usage.minute_reset_at == datetime(2026, 3, 10, 15, 1, tzinfo=timezone.utc)


class TestAccounting:
    def test_record_tokens_accumulates(self, usage):
        usage.record_tokens(100)
        usage.record_tokens(50)
        assert usage.total_tokens_this_minute == 150

    def test_negative_tokens_ignored(self, usage):
        usage.record_tokens(-10)
        assert usage.total_tokens_this_minute == 0

    def test_remaining_and_percentage(self, usage):
        usage.record_tokens(62_500)
        assert usage.remaining_tokens(250_000) == 187_500
        assert usage.usage_percentage(250_000) == 25.0

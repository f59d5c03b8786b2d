"""
Unit tests for operand parsing and reset period boundaries.

Tests cover:
- Lenient integer and float parsing
- HH:MM parsing and aware-to-naive conversion
- Date and date range parsing
- Daily, weekly, monthly and custom period starts
- Month-length clamping and the last-day-of-month marker
- Next reset instants and human-readable descriptions
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from smart_routines.core.reset_period import (
    get_next_reset,
    get_reset_description,
    get_reset_period_start,
)
from smart_routines.core.schema import ResetPeriod
from smart_routines.core.utils import (
    parse_date,
    parse_date_range,
    parse_float,
    parse_int,
    parse_time_of_day,
    to_naive_local,
)


# =============================================================
# Test: Numeric operands
# =============================================================


class TestParseNumbers:

    @pytest.mark.parametrize(
        "value,expected",
        [("3", 3), (" 3 ", 3), ("3.9", 3), ("-2", -2), ("12 times", 12), ("abc", 0), ("", 0), (None, 0)],
    )
    def test_parse_int(self, value, expected):
        assert parse_int(value) == expected

    def test_parse_int_custom_default(self):
        assert parse_int("n/a", default=5) == 5

    @pytest.mark.parametrize(
        "value,expected",
        [("33.33", 33.33), ("50", 50.0), (".5", 0.5), ("7.5kg", 7.5), ("x", 0.0), (None, 0.0), (4, 4.0)],
    )
    def test_parse_float(self, value, expected):
        assert parse_float(value) == expected


# =============================================================
# Test: Time and date operands
# =============================================================


class TestParseTimeOfDay:

    @pytest.mark.parametrize(
        "value,expected",
        [("00:00", 0), ("08:30", 510), ("8:05", 485), ("23:59", 1439)],
    )
    def test_valid(self, value, expected):
        assert parse_time_of_day(value) == expected

    @pytest.mark.parametrize("value", [None, "", "24:00", "10:60", "noon", "10:5"])
    def test_invalid(self, value):
        assert parse_time_of_day(value) is None


class TestToNaiveLocal:

    def test_naive_passes_through(self):
        moment = datetime(2026, 3, 11, 9, 0)
        assert to_naive_local(moment) is moment
        assert to_naive_local(None) is None

    def test_aware_converted_to_local(self):
        moment = datetime(2026, 3, 11, 9, 0, tzinfo=timezone(timedelta(hours=5)))
        converted = to_naive_local(moment)
        assert converted.tzinfo is None
        assert converted.astimezone() == moment


class TestParseDate:

    def test_iso_date(self):
        assert parse_date("2026-03-11") == date(2026, 3, 11)

    def test_datetime_string(self):
        assert parse_date("2026-03-11T15:30:00") == date(2026, 3, 11)

    def test_invalid(self):
        assert parse_date("not a date") is None
        assert parse_date("") is None

    def test_date_range(self):
        assert parse_date_range("2026-03-01, 2026-03-31") == (date(2026, 3, 1), date(2026, 3, 31))

    @pytest.mark.parametrize("value", [None, "", "2026-03-01", "2026-03-01,nope", "a,b,c"])
    def test_malformed_date_range(self, value):
        assert parse_date_range(value) is None


# =============================================================
# Test: Reset period boundaries
# =============================================================


class TestResetPeriodStart:

    def test_daily_after_reset_time(self):
        now = datetime(2026, 3, 11, 23, 58)
        assert get_reset_period_start(ResetPeriod.DAILY, now=now) == datetime(2026, 3, 11, 23, 55)

    def test_daily_before_reset_time(self):
        now = datetime(2026, 3, 11, 9, 0)
        assert get_reset_period_start(ResetPeriod.DAILY, now=now) == datetime(2026, 3, 10, 23, 55)

    def test_daily_custom_reset_time(self):
        now = datetime(2026, 3, 11, 9, 0)
        start = get_reset_period_start(ResetPeriod.DAILY, now=now, reset_time="04:00")
        assert start == datetime(2026, 3, 11, 4, 0)

    def test_weekly_defaults_to_sunday(self):
        # Wednesday 2026-03-11
        now = datetime(2026, 3, 11, 9, 0)
        assert get_reset_period_start(ResetPeriod.WEEKLY, now=now) == datetime(2026, 3, 8, 23, 55)

    def test_weekly_on_reset_day_before_reset_time(self):
        # Monday 2026-03-09, before the rollover: the period began a week earlier
        now = datetime(2026, 3, 9, 12, 0)
        start = get_reset_period_start(ResetPeriod.WEEKLY, reset_day=1, now=now)
        assert start == datetime(2026, 3, 2, 23, 55)

    def test_monthly_default_first(self):
        now = datetime(2026, 3, 11, 9, 0)
        assert get_reset_period_start(ResetPeriod.MONTHLY, now=now) == datetime(2026, 3, 1, 23, 55)

    def test_monthly_rolls_back_a_month(self):
        now = datetime(2026, 3, 11, 9, 0)
        start = get_reset_period_start(ResetPeriod.MONTHLY, reset_day=15, now=now)
        assert start == datetime(2026, 2, 15, 23, 55)

    def test_monthly_clamps_to_month_length(self):
        now = datetime(2026, 3, 11, 9, 0)
        start = get_reset_period_start(ResetPeriod.MONTHLY, reset_day=31, now=now)
        assert start == datetime(2026, 2, 28, 23, 55)

    def test_monthly_last_day(self):
        now = datetime(2026, 3, 31, 23, 59)
        start = get_reset_period_start(ResetPeriod.MONTHLY, reset_day=99, now=now)
        assert start == datetime(2026, 3, 31, 23, 55)

    def test_custom_never_resets(self):
        assert get_reset_period_start(ResetPeriod.CUSTOM, now=datetime(2026, 3, 11)) == datetime.min

    def test_start_never_after_now(self):
        now = datetime(2026, 1, 1, 0, 0)
        for period in (ResetPeriod.DAILY, ResetPeriod.WEEKLY, ResetPeriod.MONTHLY):
            assert get_reset_period_start(period, now=now) <= now


class TestNextReset:

    def test_daily(self):
        now = datetime(2026, 3, 11, 9, 0)
        assert get_next_reset(ResetPeriod.DAILY, now=now) == datetime(2026, 3, 11, 23, 55)

    def test_weekly(self):
        now = datetime(2026, 3, 11, 9, 0)
        assert get_next_reset(ResetPeriod.WEEKLY, now=now) == datetime(2026, 3, 15, 23, 55)

    def test_monthly_keeps_reset_day(self):
        # Period started 2026-02-28 (clamped); next reset is on the 31st
        now = datetime(2026, 3, 11, 9, 0)
        assert get_next_reset(ResetPeriod.MONTHLY, reset_day=31, now=now) == datetime(2026, 3, 31, 23, 55)

    def test_custom(self):
        assert get_next_reset(ResetPeriod.CUSTOM) is None


class TestResetDescription:

    @pytest.mark.parametrize(
        "period,reset_day,expected",
        [
            (ResetPeriod.DAILY, None, "Daily at 11:55 PM"),
            (ResetPeriod.WEEKLY, 1, "Weekly on Monday at 11:55 PM"),
            (ResetPeriod.WEEKLY, 7, "Weekly"),
            (ResetPeriod.MONTHLY, 99, "Monthly on last day at 11:55 PM"),
            (ResetPeriod.MONTHLY, 15, "Monthly on day 15 at 11:55 PM"),
            (ResetPeriod.CUSTOM, None, "Custom schedule"),
        ],
    )
    def test_descriptions(self, period, reset_day, expected):
        assert get_reset_description(period, reset_day) == expected

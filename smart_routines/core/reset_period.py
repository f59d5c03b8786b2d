"""
Reset period boundaries.

A routine's completions are counted within its current reset period.
Periods roll over at a fixed time of day (23:55 by default): daily at
that time, weekly on `reset_day` (0=Sunday), monthly on day `reset_day`
of the month (99 means the last day of the month).

These are pure functions of their inputs; callers pass "now" explicitly
so the boundary is always recomputed for the instant being evaluated.
"""

from calendar import monthrange
from datetime import datetime, timedelta

from dateutil.relativedelta import relativedelta

from smart_routines.core.schema import LAST_DAY_OF_MONTH, ResetPeriod
from smart_routines.core.utils import parse_time_of_day

DEFAULT_RESET_TIME = "23:55"

_WEEKDAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


def _reset_clock(reset_time: str) -> tuple[int, int]:
    minutes = parse_time_of_day(reset_time)
    if minutes is None:
        minutes = parse_time_of_day(DEFAULT_RESET_TIME)
    return divmod(minutes, 60)


def _month_anchor(year: int, month: int, reset_day: int, hour: int, minute: int) -> datetime:
    """The reset instant for a given month, clamping the day to the month length."""
    days_in_month = monthrange(year, month)[1]
    day = days_in_month if reset_day == LAST_DAY_OF_MONTH else min(reset_day, days_in_month)
    return datetime(year, month, day, hour, minute)


def get_reset_period_start(
    period: ResetPeriod,
    reset_day: int | None = None,
    now: datetime | None = None,
    reset_time: str = DEFAULT_RESET_TIME,
) -> datetime:
    """Return the start instant of the reset period that contains `now`.

    Args:
        period: The routine's reset period.
        reset_day: Weekday (WEEKLY, default Sunday) or day of month
            (MONTHLY, default 1st, 99 = last day).
        now: The evaluation instant. Defaults to the current local time.
        reset_time: HH:MM at which periods roll over.

    Returns:
        The period start. CUSTOM periods never reset and return datetime.min.
    """
    now = now or datetime.now()
    hour, minute = _reset_clock(reset_time)

    match period:
        case ResetPeriod.DAILY:
            start = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
            if start > now:
                start -= timedelta(days=1)
            return start

        case ResetPeriod.WEEKLY:
            day = 0 if reset_day is None else reset_day
            current_day = (now.weekday() + 1) % 7
            days_ago = (7 + current_day - day) % 7
            start = (now - timedelta(days=days_ago)).replace(
                hour=hour, minute=minute, second=0, microsecond=0
            )
            if start > now:
                start -= timedelta(days=7)
            return start

        case ResetPeriod.MONTHLY:
            day = 1 if reset_day is None else reset_day
            start = _month_anchor(now.year, now.month, day, hour, minute)
            if start > now:
                previous = now - relativedelta(months=1)
                start = _month_anchor(previous.year, previous.month, day, hour, minute)
            return start

    # CUSTOM: completions never expire
    return datetime.min


def get_next_reset(
    period: ResetPeriod,
    reset_day: int | None = None,
    now: datetime | None = None,
    reset_time: str = DEFAULT_RESET_TIME,
) -> datetime | None:
    """Return the instant the current period ends, or None for CUSTOM periods."""
    now = now or datetime.now()
    start = get_reset_period_start(period, reset_day, now, reset_time)

    match period:
        case ResetPeriod.DAILY:
            return start + timedelta(days=1)
        case ResetPeriod.WEEKLY:
            return start + timedelta(days=7)
        case ResetPeriod.MONTHLY:
            hour, minute = _reset_clock(reset_time)
            following = start + relativedelta(months=1)
            day = 1 if reset_day is None else reset_day
            return _month_anchor(following.year, following.month, day, hour, minute)

    return None


def get_reset_description(period: ResetPeriod, reset_day: int | None = None) -> str:
    """Human-readable description of a reset schedule."""
    match period:
        case ResetPeriod.DAILY:
            return "Daily at 11:55 PM"
        case ResetPeriod.WEEKLY:
            if reset_day is None or not 0 <= reset_day <= 6:
                return "Weekly"
            return f"Weekly on {_WEEKDAY_NAMES[reset_day]} at 11:55 PM"
        case ResetPeriod.MONTHLY:
            if reset_day is None:
                return "Monthly"
            if reset_day == LAST_DAY_OF_MONTH:
                return "Monthly on last day at 11:55 PM"
            return f"Monthly on day {reset_day} at 11:55 PM"
        case ResetPeriod.CUSTOM:
            return "Custom schedule"

    return "Unknown"

"""Date coercion and calendar arithmetic shared by rules, reminders and predictions.

All follow-up math works on whole dates: timestamps are reduced to a date in
the business timezone before any arithmetic so time-of-day never shifts a
result.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime, timedelta

import pandas as pd
import pytz
from pandas.tseries.offsets import BDay

from .config import TIMEZONE

Clock = Callable[[], datetime]

TZ = pytz.timezone(TIMEZONE)


def system_clock() -> datetime:
    return datetime.now(tz=TZ)


def today(clock: Clock | None = None) -> date:
    """Current date in the business timezone, read from ``clock``."""
    now = (clock or system_clock)()
    resolved = to_date(now)
    if resolved is None:
        raise ValueError(f"Clock returned an invalid timestamp: {now!r}")
    return resolved


def resolve_today(value: date | datetime | None = None, clock: Clock | None = None) -> date:
    """Use an explicit ``value`` as "today" when given, otherwise read the clock."""
    if value is None:
        return today(clock)
    resolved = to_date(value)
    if resolved is None:
        raise ValueError(f"Invalid reference date: {value!r}")
    return resolved


def to_date(value) -> date | None:
    """Coerce a date-like value to a ``date`` (midnight-truncated).

    Accepts ``date``, ``datetime``, ``pd.Timestamp`` and ISO-like strings.
    Timezone-aware values are converted to the business timezone first.
    Returns None for missing or malformed input rather than raising.
    """
    if value is None or value is pd.NaT or isinstance(value, bool | int | float):
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(TZ)
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and not value.strip():
        return None
    try:
        ts = pd.to_datetime(value, errors="coerce")
    except (TypeError, ValueError):
        return None
    if ts is None or pd.isna(ts):
        return None
    if getattr(ts, "tzinfo", None) is not None:
        ts = ts.tz_convert(TZ)
    return ts.date()


def add_days(start: date, days: int) -> date:
    return start + timedelta(days=days)


def days_between(start, end) -> int | None:
    """Whole calendar days from ``start`` to ``end`` (negative if reversed)."""
    start_d = to_date(start)
    end_d = to_date(end)
    if start_d is None or end_d is None:
        return None
    return (end_d - start_d).days


def is_business_day(value: date) -> bool:
    return value.weekday() < 5


def next_business_day(value: date) -> date:
    """Roll a Saturday or Sunday forward to the following Monday."""
    while not is_business_day(value):
        value += timedelta(days=1)
    return value


def add_business_days(start: date, days: int) -> date:
    """Add ``days`` business days to ``start``, skipping Saturdays and Sundays.

    Counting starts the day after ``start``, so a Saturday plus one business
    day lands on Monday and Friday plus one lands on the following Monday.
    """
    if days < 0:
        raise ValueError("days must be non-negative")
    if days == 0:
        return start
    return (pd.Timestamp(start) + BDay(days)).date()

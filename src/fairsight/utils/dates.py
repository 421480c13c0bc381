"""
Date helpers and the injectable clock.

All "what day is it" questions in the package go through a Clock so that
tests can pin today to a fixed date. Dates cross the backend boundary as
local ``YYYY-MM-DD`` strings.
"""

from datetime import date, datetime, timedelta
from typing import List, Tuple, Union

DATE_FORMAT = "%Y-%m-%d"

DateLike = Union[date, datetime, str]


class Clock:
    """Wall clock in the machine's local time zone."""

    def now(self) -> datetime:
        return datetime.now()

    def today(self) -> date:
        return self.now().date()

    def today_string(self) -> str:
        return to_date_string(self.today())

    def timestamp(self) -> float:
        return self.now().timestamp()


class FixedClock(Clock):
    """Clock frozen at a given instant. Used by tests and replays."""

    def __init__(self, instant: Union[datetime, date, str]):
        if isinstance(instant, str):
            instant = datetime.strptime(instant, DATE_FORMAT)
        elif not isinstance(instant, datetime):
            instant = datetime(instant.year, instant.month, instant.day)
        self._instant = instant

    def now(self) -> datetime:
        return self._instant

    def advance(self, **delta) -> None:
        self._instant = self._instant + timedelta(**delta)


def to_date(value: DateLike) -> date:
    """Normalize a date, datetime or ``YYYY-MM-DD`` string to a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return datetime.strptime(value.strip()[:10], DATE_FORMAT).date()
    raise TypeError(f"Expected date, datetime or str, got {type(value).__name__}")


def to_date_string(value: DateLike) -> str:
    return to_date(value).strftime(DATE_FORMAT)


def days_between(start: DateLike, end: DateLike) -> int:
    return (to_date(end) - to_date(start)).days


def dates_in_range(start: DateLike, end: DateLike) -> List[str]:
    """Every calendar day from start to end inclusive, as ``YYYY-MM-DD`` labels."""
    current = to_date(start)
    last = to_date(end)
    dates = []
    while current <= last:
        dates.append(current.strftime(DATE_FORMAT))
        current += timedelta(days=1)
    return dates


def days_ago(days: int, clock: Clock = None) -> date:
    clock = clock or Clock()
    return clock.today() - timedelta(days=days)


def default_date_range(clock: Clock = None) -> Tuple[date, date]:
    """Last week up to today, the range the dashboards open with."""
    clock = clock or Clock()
    return days_ago(7, clock), clock.today()


def static_ranges(clock: Clock = None) -> List[Tuple[str, date, date]]:
    """Preset (label, start, end) ranges, inclusive of today."""
    clock = clock or Clock()
    today = clock.today()
    return [
        ("Last 7 Days", days_ago(6, clock), today),
        ("Last 30 Days", days_ago(29, clock), today),
    ]

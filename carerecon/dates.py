"""
Calendar-date helpers.

Every date key the engine emits is built from local date components. A
timezone-aware datetime is first converted to the configured local zone and
only then reduced to a date, never the other way round.
"""

from collections.abc import Iterator
from datetime import date, datetime, time, timedelta, tzinfo
from enum import StrEnum

DUTCH_WEEKDAYS_SHORT = ("ma", "di", "wo", "do", "vr", "za", "zo")
DUTCH_MONTHS_SHORT = (
    "jan",
    "feb",
    "mrt",
    "apr",
    "mei",
    "jun",
    "jul",
    "aug",
    "sep",
    "okt",
    "nov",
    "dec",
)


class Weekday(StrEnum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def of(cls, day: date) -> "Weekday":
        return list(cls)[day.weekday()]


def to_local_datetime(value: datetime, tz: tzinfo | None = None) -> datetime:
    """Naive datetimes are already local; aware ones are converted to ``tz``."""
    if value.tzinfo is None or tz is None:
        return value.replace(tzinfo=None)
    return value.astimezone(tz).replace(tzinfo=None)


def to_local_date(value: date | datetime, tz: tzinfo | None = None) -> date:
    if isinstance(value, datetime):
        return to_local_datetime(value, tz).date()
    return value


def date_key(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}-{day.day:02d}"


def parse_date_key(value: str) -> date:
    year, month, day = (int(part) for part in value.split("-"))
    return date(year, month, day)


def parse_time_of_day(value: str | time) -> time:
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    hours, minutes = value.strip().split(":")[:2]
    return time(int(hours), int(minutes))


def format_time_of_day(value: time) -> str:
    return f"{value.hour:02d}:{value.minute:02d}"


def minutes_since_midnight(value: time) -> int:
    return value.hour * 60 + value.minute


def dutch_date_label(day: date) -> str:
    # e.g. "ma 10 jun"
    return (
        f"{DUTCH_WEEKDAYS_SHORT[day.weekday()]} "
        f"{day.day} {DUTCH_MONTHS_SHORT[day.month - 1]}"
    )


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every date in ``[start, end)``."""
    current = start
    while current < end:
        yield current
        current += timedelta(days=1)


def days_between(earlier: date, later: date) -> int:
    return (later - earlier).days

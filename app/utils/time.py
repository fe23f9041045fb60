"""Time and calendar utilities (local business timezone)."""

from datetime import date, datetime, timedelta, tzinfo
from typing import List, Optional
from zoneinfo import ZoneInfo

from app.config import settings

LOCAL_TZ = ZoneInfo(settings.TIMEZONE)


def now_local_naive() -> datetime:
    """
    Current time in the business timezone, returned as naive datetime for DB storage.
    """
    return datetime.now(LOCAL_TZ).replace(tzinfo=None)


def today_local() -> date:
    return now_local_naive().date()


def to_local_iso_db(dt: datetime, naive_assumed_tz: Optional[tzinfo] = None) -> str:
    """
    Convert a DB timestamp to an ISO string with offset.

    DB timestamps are stored as naive local time, so naive values are
    interpreted as local (not UTC) unless told otherwise.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=naive_assumed_tz or LOCAL_TZ)
    return dt.astimezone(LOCAL_TZ).isoformat()


def first_of_month(value: date) -> date:
    return date(value.year, value.month, 1)


def end_of_month(value: date) -> date:
    """Last calendar day of the month containing `value`."""
    return add_months(first_of_month(value), 1) - timedelta(days=1)


def add_months(month: date, count: int) -> date:
    """Shift a first-of-month date by `count` months (negative allowed)."""
    index = month.year * 12 + (month.month - 1) + count
    return date(index // 12, index % 12 + 1, 1)


def previous_month(value: date) -> date:
    return add_months(first_of_month(value), -1)


def months_between(start: date, end: date) -> List[date]:
    """
    First-of-month dates from start's month through end's month inclusive.

    Empty when start's month is after end's month.
    """
    months: List[date] = []
    current = first_of_month(start)
    last = first_of_month(end)
    while current <= last:
        months.append(current)
        current = add_months(current, 1)
    return months


def parse_month(month_str: str) -> date:
    """Parse YYYY-MM into the first day of that month."""
    year, month = map(int, month_str.split("-"))
    return date(year, month, 1)


def iso_week(value: date) -> tuple[int, int]:
    """(iso_year, iso_week_number) for a date."""
    iso = value.isocalendar()
    return iso[0], iso[1]

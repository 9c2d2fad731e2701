from datetime import date, datetime
from typing import Optional, Union


DayLike = Union[date, str, None]


def parse_day(value: DayLike) -> Optional[date]:
    """ISO day (YYYY-MM-DD) or date -> date; None when missing or malformed."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        return None


def days_between(start: date, end: date) -> int:
    return (end - start).days


def previous_month(day: date) -> tuple:
    """(year, month) of the calendar month before day."""
    if day.month == 1:
        return day.year - 1, 12
    return day.year, day.month - 1

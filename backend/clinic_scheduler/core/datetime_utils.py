"""Clinic-local time helpers.

Timestamps written by the service use the clinic's wall clock (Lima,
UTC-5, no daylight saving) so that audit rows and publication stamps
read the same as the calendars the staff edits. Calendar helpers used by
the shift report and the day editor also live here.
"""
import calendar
import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple


# Clinic time zone (UTC-5)
CLINIC_TZ = timezone(timedelta(hours=-5))

_HHMM_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)(:[0-5]\d)?$")
_YEAR_MONTH_RE = re.compile(r"^\d{4}-\d{2}$")


def get_now() -> datetime:
    """Current clinic time, timezone-aware.

    Example:
        >>> get_now()  # 2025-06-15 09:30:12.123456-05:00
    """
    return datetime.now(CLINIC_TZ)


def get_now_naive() -> datetime:
    """Current clinic time without tzinfo, for naive DateTime columns."""
    return get_now().replace(tzinfo=None)


def days_in_month(year: int, month: int) -> int:
    """Number of days of the given calendar month (28..31)."""
    return calendar.monthrange(year, month)[1]


def parse_year_month(value: str) -> Tuple[int, int]:
    """Parse ``YYYY-MM`` into ``(year, month)``.

    Raises:
        ValueError: when the string is malformed or the month is not 01..12.
    """
    if not value or not _YEAR_MONTH_RE.match(value):
        raise ValueError("El mes debe tener formato YYYY-MM")
    year, month = (int(part) for part in value.split("-"))
    if not 1 <= month <= 12:
        raise ValueError("El mes debe estar entre 01 y 12")
    return year, month


def parse_hhmm(value: str) -> time:
    """Parse ``HH:MM`` (seconds tolerated) into a :class:`datetime.time`."""
    if not isinstance(value, str) or not _HHMM_RE.match(value):
        raise ValueError("La hora debe tener formato HH:MM")
    hours, minutes = value.split(":")[:2]
    return time(int(hours), int(minutes))


def format_hhmm(value: Optional[datetime | time]) -> Optional[str]:
    """Render a time or timestamp as ``HH:MM``; ``None`` passes through."""
    if value is None:
        return None
    return value.strftime("%H:%M")


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    """First and last date of a calendar month."""
    return date(year, month, 1), date(year, month, days_in_month(year, month))

"""
Month and Day Arithmetic

All ledger partitioning is by a ``YYYY-MM`` month key. Dates are kept as
timezone-aware UTC datetimes so that "which month" and "which day" never
depend on the server's local timezone.
"""

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Optional, Union

MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"

_MONTH_RE = re.compile(MONTH_PATTERN)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(value: Union[date, datetime]) -> datetime:
    """Coerce a date or datetime to an aware UTC datetime.

    Plain dates become midnight UTC; naive datetimes are assumed to be UTC.
    """
    if not isinstance(value, datetime):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_month(value: Optional[str]) -> bool:
    return bool(value) and _MONTH_RE.match(value) is not None


def month_from_date(value: Union[date, datetime]) -> str:
    d = to_utc(value)
    return f"{d.year:04d}-{d.month:02d}"


def current_month() -> str:
    return month_from_date(utc_now())


def previous_month(month: str) -> str:
    """Calendar month before ``month``; January rolls back a year.

    >>> previous_month("2026-01")
    '2025-12'
    """
    year, mon = (int(part) for part in month.split("-"))
    if mon == 1:
        return f"{year - 1:04d}-12"
    return f"{year:04d}-{mon - 1:02d}"


def next_month(month: str) -> str:
    year, mon = (int(part) for part in month.split("-"))
    if mon == 12:
        return f"{year + 1:04d}-01"
    return f"{year:04d}-{mon + 1:02d}"


def day_bounds(day: Union[date, datetime]) -> tuple[datetime, datetime]:
    """Inclusive start and exclusive end of the UTC calendar day."""
    if isinstance(day, datetime):
        day = to_utc(day).date()
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def coerce_datetime(value: Any) -> Any:
    """Pre-validation hook for model date fields.

    Dates, naive datetimes and bare ``YYYY-MM-DD`` strings become aware UTC
    datetimes; anything else is left for pydantic to parse or reject.
    """
    if isinstance(value, (date, datetime)):
        return to_utc(value)
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        if len(value) == 10:
            return to_utc(date.fromisoformat(value))
    return value

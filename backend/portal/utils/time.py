"""Time Utilities - UTC timestamps, day arithmetic and date ranges"""
from datetime import datetime, timezone, timedelta
from typing import Optional, Tuple
from dateutil.relativedelta import relativedelta


def utc_now() -> datetime:
    """Current UTC time at millisecond precision, the resolution BSON stores"""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes"""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_iso(dt: datetime) -> str:
    """
    Format datetime to ISO 8601 string

    Args:
        dt: Datetime object

    Returns:
        ISO formatted string with Z suffix for UTC
    """
    return ensure_utc(dt).isoformat().replace("+00:00", "Z")


def start_of_day(dt: datetime) -> datetime:
    """Midnight (UTC) of the given datetime's day"""
    return ensure_utc(dt).replace(hour=0, minute=0, second=0, microsecond=0)


DATE_RANGES = ("today", "week", "month", "year")


def resolve_date_range(name: str, now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """
    Translate a named range into a [start, end] window ending now.

    Args:
        name: One of today, week, month, year

    Raises:
        ValueError: For unknown range names
    """
    now = ensure_utc(now or utc_now())
    if name == "today":
        start = start_of_day(now)
    elif name == "week":
        start = now - timedelta(days=7)
    elif name == "month":
        start = now - relativedelta(months=1)
    elif name == "year":
        start = now - relativedelta(years=1)
    else:
        raise ValueError(f"Unknown date range: {name}")
    return start, now

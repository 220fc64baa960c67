from datetime import date, datetime, time, timedelta, timezone
from typing import Iterator, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import logging

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime"""
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Ensure datetime is in UTC timezone"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def camp_timezone(name: str):
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown camp timezone '{name}', falling back to UTC")
        return timezone.utc


def camp_days(camp_start: datetime, camp_end: datetime, tz) -> Iterator[date]:
    """Yield every calendar day touched by the camp window, in the camp's zone"""
    first = ensure_utc(camp_start).astimezone(tz).date()
    last = ensure_utc(camp_end).astimezone(tz).date()
    current = first
    while current <= last:
        yield current
        current += timedelta(days=1)


def window_on_day(day: date, start_t: time, end_t: time, tz) -> Tuple[datetime, datetime]:
    """Place a time-of-day window on a given day; a non-positive window rolls to the next day"""
    start = datetime.combine(day, start_t, tzinfo=tz)
    end = datetime.combine(day, end_t, tzinfo=tz)
    if end <= start:
        end = end + timedelta(days=1)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def expand_daily_windows(
    start_time: datetime,
    end_time: datetime,
    camp_start: datetime,
    camp_end: datetime,
    tz,
) -> list[Tuple[datetime, datetime]]:
    """Repeat the time-of-day part of [start_time, end_time) on every camp day"""
    local_start = ensure_utc(start_time).astimezone(tz)
    local_end = ensure_utc(end_time).astimezone(tz)
    return [
        window_on_day(day, local_start.timetz().replace(tzinfo=None), local_end.timetz().replace(tzinfo=None), tz)
        for day in camp_days(camp_start, camp_end, tz)
    ]

"""
Timestamp normalization

Visit dates reach us as datetimes, dates, ISO strings, epoch numbers or
structured {"seconds": ..., "nanoseconds": ...} timestamps written by older
clients. Everything is normalized to timezone-aware UTC datetimes so that
filtering and ordering agree no matter which shape was stored.
"""

from datetime import date, datetime, time, timezone
from typing import Any, Optional, Tuple


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_datetime(value: Any) -> Optional[datetime]:
    """
    Convert any supported date representation to an aware UTC datetime.

    Returns None for missing or unparseable values.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)

    if isinstance(value, dict) and "seconds" in value:
        try:
            seconds = float(value["seconds"]) + float(value.get("nanoseconds", 0) or 0) / 1e9
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (TypeError, ValueError, OverflowError, OSError):
            return None

    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return to_datetime(datetime.fromisoformat(text))
        except ValueError:
            return None

    return None


def comparable(value: Any) -> Any:
    """Key used by stores for equality/range predicates: dates normalized, rest untouched"""
    if isinstance(value, (datetime, date, dict)):
        normalized = to_datetime(value)
        return normalized if normalized is not None else value
    if isinstance(value, str):
        normalized = to_datetime(value)
        # Only ISO-looking strings become dates; "pending" stays "pending"
        return normalized if normalized is not None else value
    return value


def descending_date_key(value: Any) -> datetime:
    """Sort key for newest-first ordering; undated records sink to the end"""
    normalized = to_datetime(value)
    return normalized if normalized is not None else datetime.min.replace(tzinfo=timezone.utc)


def to_isoformat(value: Any) -> Any:
    """Serialize dates for JSON storage, leave other values alone"""
    if isinstance(value, (datetime, date)):
        return to_datetime(value).isoformat()
    return value


def day_bounds(date_from: Optional[date], date_to: Optional[date]) -> Tuple[Optional[datetime], Optional[datetime]]:
    """Calendar-day range to datetimes: start of the first day, last instant of the last day"""
    start = datetime.combine(date_from, time.min, tzinfo=timezone.utc) if date_from else None
    end = datetime.combine(date_to, time.max, tzinfo=timezone.utc) if date_to else None
    return start, end

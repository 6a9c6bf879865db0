from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from flask import current_app, has_app_context


DEFAULT_BUSINESS_TIMEZONE = "Asia/Kolkata"
DEFAULT_BUSINESS_DAY_START_HOUR = 2


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    if dt.tzinfo is None:
        return dt

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """Parse "YYYY-MM-DD" (or a full ISO datetime, keeping its date part)."""
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None
    if len(s) == 10:
        return date.fromisoformat(s)
    return parse_iso_datetime(s).date()


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def to_iso_date(d: Optional[date]) -> Optional[str]:
    return d.isoformat() if d is not None else None


def _setting(key: str, default):
    if has_app_context():
        return current_app.config.get(key, default)
    return default


def business_zone() -> ZoneInfo:
    return ZoneInfo(_setting("BUSINESS_TIMEZONE", DEFAULT_BUSINESS_TIMEZONE))


def to_local(dt: datetime) -> datetime:
    """Convert a UTC-naive datetime to an aware datetime in the business zone."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(business_zone())


def business_date(now: Optional[datetime] = None) -> date:
    """
    The business day a moment belongs to.

    The local wall clock is shifted back by BUSINESS_DAY_START_HOUR hours
    before truncating to the date, so 00:00-01:59 counts as the previous day.
    Every "today" comparison in the services goes through this function.
    """
    if now is None:
        now = utcnow()
    shift = timedelta(hours=_setting("BUSINESS_DAY_START_HOUR", DEFAULT_BUSINESS_DAY_START_HOUR))
    return (to_local(now) - shift).date()


def start_of_calendar_day(now: Optional[datetime] = None) -> datetime:
    """
    Local midnight of the current calendar day (no business-day shift),
    returned as a UTC-naive datetime comparable with stored timestamps.
    """
    if now is None:
        now = utcnow()
    local = to_local(now)
    midnight = datetime.combine(local.date(), time.min, tzinfo=local.tzinfo)
    return midnight.astimezone(timezone.utc).replace(tzinfo=None)

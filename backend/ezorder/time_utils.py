from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from flask import current_app, has_app_context


DEFAULT_BUSINESS_TIMEZONE = "America/Tegucigalpa"


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

    # Normalize to UTC-naive
    if dt.tzinfo is None:
        # interpret naive as UTC
        return dt.replace(tzinfo=None)

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


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


def business_timezone() -> ZoneInfo:
    """Reference timezone for civil-day math (never server-local)."""
    name = DEFAULT_BUSINESS_TIMEZONE
    if has_app_context():
        name = current_app.config.get("BUSINESS_TIMEZONE") or DEFAULT_BUSINESS_TIMEZONE
    return ZoneInfo(name)


def as_utc_naive(dt: Optional[datetime]) -> Optional[datetime]:
    """Normalize a datetime read back from the database to UTC-naive."""
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def business_date(dt_utc: Optional[datetime] = None) -> date:
    """Civil date in the business timezone for a UTC instant (default: now)."""
    moment = as_utc_naive(dt_utc) or utcnow()
    return moment.replace(tzinfo=timezone.utc).astimezone(business_timezone()).date()


def parse_business_date(value: Optional[str]) -> Optional[date]:
    """
    Parse a civil date from a query string.

    Accepts "YYYY-MM-DD" or a full ISO datetime (its civil date in the
    business timezone is used).
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None
    if len(s) == 10:
        return date.fromisoformat(s)
    return business_date(parse_iso_datetime(s))


def start_of_business_day(day: date) -> datetime:
    """00:00:00 of the civil day, as a UTC-naive datetime."""
    local = datetime.combine(day, time.min, tzinfo=business_timezone())
    return local.astimezone(timezone.utc).replace(tzinfo=None)


def end_of_business_day(day: date) -> datetime:
    """23:59:59.999999 of the civil day, as a UTC-naive datetime."""
    next_start = datetime.combine(day + timedelta(days=1), time.min, tzinfo=business_timezone())
    return (next_start - timedelta(microseconds=1)).astimezone(timezone.utc).replace(tzinfo=None)


def business_day_bounds(day: Optional[date] = None) -> tuple[datetime, datetime]:
    day = day or business_date()
    return start_of_business_day(day), end_of_business_day(day)

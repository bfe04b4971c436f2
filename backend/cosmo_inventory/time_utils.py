# Overview: Clock helpers; UTC storage timestamps and business-calendar dates.

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from flask import current_app, has_app_context

DEFAULT_BUSINESS_TIMEZONE = "Asia/Seoul"


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def business_timezone() -> ZoneInfo:
    name = DEFAULT_BUSINESS_TIMEZONE
    if has_app_context():
        name = current_app.config.get("BUSINESS_TIMEZONE", DEFAULT_BUSINESS_TIMEZONE)
    return ZoneInfo(name)


def business_now() -> datetime:
    """Wall-clock 'now' in the business time zone (aware)."""
    return datetime.now(business_timezone())


def business_today() -> date:
    """
    Calendar date in the business time zone.

    Movement dates are business dates: a movement recorded at 01:00 in Seoul
    belongs to that Seoul day even though it is still yesterday in UTC.
    """
    return business_now().date()


def parse_iso_date(value) -> Optional[date]:
    """
    Parse a calendar date.

    Accepts a date, a datetime (its date part), "YYYY-MM-DD", or a full
    ISO datetime string (only the date part is kept). None / "" -> None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    if not s:
        return None
    return date.fromisoformat(s[:10])


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """UTC timestamp string with a trailing Z, second precision; naive input is UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def to_iso_date(d: Optional[date]) -> Optional[str]:
    return d.isoformat() if d is not None else None

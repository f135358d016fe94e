"""Business-local calendar helpers.

Shift dates, schedule intervals and the sweep's close timestamp are all
expressed in ``settings.BUSINESS_TIMEZONE``. Everything stored is UTC.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from backend.app.core.config import settings


def business_tz() -> ZoneInfo:
    return ZoneInfo(settings.BUSINESS_TIMEZONE)


def as_utc(moment: datetime) -> datetime:
    """Return *moment* as an aware UTC datetime.

    Naive values are taken to be UTC already (SQLite drops the offset).
    """
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def business_date(moment: datetime | None = None) -> date:
    """Calendar date of *moment* (default: now) in the business time zone."""
    moment = as_utc(moment) if moment is not None else utc_now()
    return moment.astimezone(business_tz()).date()


def parse_hhmm(value: str) -> time:
    """Parse ``HH:MM`` (seconds, if present, are ignored)."""
    parts = value.strip().split(":")
    return time(int(parts[0]), int(parts[1]) if len(parts) > 1 else 0)


def at_business_time(day: date, clock: time | str) -> datetime:
    """UTC instant of wall-clock *clock* on *day* in the business zone."""
    if isinstance(clock, str):
        clock = parse_hhmm(clock)
    local = datetime.combine(day, clock, tzinfo=business_tz())
    return local.astimezone(timezone.utc)


def business_day_bounds(day: date) -> tuple[datetime, datetime]:
    """Half-open UTC range ``[start, end)`` covering *day* in the business zone."""
    return at_business_time(day, time(0, 0)), next_business_midnight(day)


def next_business_midnight(day: date) -> datetime:
    """Midnight starting the business day after *day*, as UTC."""
    return at_business_time(day + timedelta(days=1), time(0, 0))

# clinic_scheduler/core/business.py
from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Callable
from zoneinfo import ZoneInfo

UTC = timezone.utc

# Statuses that hold a slot on the therapist's agenda
ACTIVE_STATUSES = ("scheduled", "confirmed", "in-progress")
TERMINAL_STATUSES = ("completed", "cancelled", "no-show")

Clock = Callable[[], datetime]


def system_clock() -> datetime:
    return datetime.now(UTC)


def get_clock() -> Clock:
    """FastAPI dependency; tests override it with a frozen clock."""
    return system_clock


def fixed_clock(instant: datetime) -> Clock:
    return lambda: instant


def as_utc(dt: datetime) -> datetime:
    # Naive values coming out of storage are UTC by convention
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_local(dt: datetime, tz: ZoneInfo) -> datetime:
    return as_utc(dt).astimezone(tz)


def local_datetime(day: date, at: time, tz: ZoneInfo) -> datetime:
    return datetime.combine(day, at, tzinfo=tz)


def local_day_bounds(day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """UTC [start, end) of a local calendar day."""
    start = local_datetime(day, time(0, 0), tz)
    end = local_datetime(day + timedelta(days=1), time(0, 0), tz)
    return start.astimezone(UTC), end.astimezone(UTC)


def week_bounds(day: date) -> tuple[date, date]:
    """Sunday..Saturday week containing ``day``."""
    # weekday(): Mon=0 .. Sun=6
    start = day - timedelta(days=(day.weekday() + 1) % 7)
    return start, start + timedelta(days=6)

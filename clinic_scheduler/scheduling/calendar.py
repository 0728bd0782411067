# clinic_scheduler/scheduling/calendar.py
from __future__ import annotations

import calendar as _calendar
from collections import Counter
from datetime import date, timedelta
from typing import Iterable
from zoneinfo import ZoneInfo

from clinic_scheduler.core.business import to_local
from clinic_scheduler.schemas.appointment import CalendarDay

GRID_CELLS = 42  # 6 weeks, so the grid never changes height between months


def first_weekday_sunday_based(year: int, month: int) -> int:
    # date.weekday(): Mon=0 .. Sun=6  ->  Sun=0 .. Sat=6
    return (date(year, month, 1).weekday() + 1) % 7


def generate_calendar_days(
    year: int,
    month: int,
    appointments: Iterable,
    today: date,
    tz: ZoneInfo,
) -> list[CalendarDay]:
    """Month grid of exactly 42 days, weeks starting on Sunday.

    Appointments of any status are counted on the local day they start.
    Filler days from the adjacent months always carry a count of zero.
    """
    days_in_month = _calendar.monthrange(year, month)[1]
    first = date(year, month, 1)
    counts = Counter(to_local(a.date_time, tz).date() for a in appointments)

    days: list[CalendarDay] = []

    # Previous month filler
    leading = first_weekday_sunday_based(year, month)
    for offset in range(leading, 0, -1):
        d = first - timedelta(days=offset)
        days.append(CalendarDay(day=d.day, is_current_month=False, is_today=False, date=d, appointment_count=0))

    # Current month
    for day in range(1, days_in_month + 1):
        d = date(year, month, day)
        days.append(CalendarDay(
            day=day,
            is_current_month=True,
            is_today=d == today,
            date=d,
            appointment_count=counts.get(d, 0),
        ))

    # Next month filler
    after = date(year, month, days_in_month) + timedelta(days=1)
    for offset in range(GRID_CELLS - len(days)):
        d = after + timedelta(days=offset)
        days.append(CalendarDay(day=d.day, is_current_month=False, is_today=False, date=d, appointment_count=0))

    return days


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First day of the month and first day of the next month."""
    first = date(year, month, 1)
    if month == 12:
        return first, date(year + 1, 1, 1)
    return first, date(year, month + 1, 1)

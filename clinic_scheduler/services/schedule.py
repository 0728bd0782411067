# clinic_scheduler/services/schedule.py
"""
Read paths: bookable slots of a day, the month grid and day listings.
Each call fetches a fresh snapshot from the store and projects it with the
pure functions in ``clinic_scheduler.scheduling``.
"""
from __future__ import annotations

from collections import Counter
from datetime import date, datetime, timedelta
from typing import Optional, Sequence
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.core.business import Clock, local_day_bounds, system_clock, week_bounds
from clinic_scheduler.core.config import settings
from clinic_scheduler.crud.appointment import list_appointments
from clinic_scheduler.db.models.appointment import Appointment
from clinic_scheduler.scheduling.calendar import generate_calendar_days, month_bounds
from clinic_scheduler.scheduling.slots import generate_time_slots
from clinic_scheduler.schemas.appointment import (
    AppointmentFilter,
    AppointmentOut,
    AppointmentStatus,
    CalendarDay,
    DaySchedule,
    TimeSlot,
)

# Upper bound for a single day/month read; a therapist never has this many sessions
SNAPSHOT_LIMIT = 5000


async def appointments_between(
    db: AsyncSession,
    start_day: date,
    end_day: date,
    tz: ZoneInfo,
    *,
    therapist_id: Optional[str] = None,
    status: Optional[AppointmentStatus] = None,
) -> Sequence[Appointment]:
    """Appointments starting on local days ``start_day`` .. ``end_day`` inclusive."""
    start_utc, _ = local_day_bounds(start_day, tz)
    _, end_utc = local_day_bounds(end_day, tz)
    rows, _ = await list_appointments(
        db,
        AppointmentFilter(therapist_id=therapist_id, status=status, start=start_utc, end=end_utc),
        limit=SNAPSHOT_LIMIT,
    )
    return rows


async def day_slots(
    db: AsyncSession,
    day: date,
    *,
    therapist_id: Optional[str] = None,
    duration: Optional[int] = None,
    clock: Clock = system_clock,
    tz: Optional[ZoneInfo] = None,
) -> list[TimeSlot]:
    tz = tz or settings.tz
    # Include the previous day so a late session running past midnight still blocks
    rows = await appointments_between(db, day - timedelta(days=1), day, tz, therapist_id=therapist_id)
    not_before: Optional[datetime] = clock() if settings.REJECT_PAST_BOOKINGS else None
    return generate_time_slots(
        day,
        rows,
        tz,
        duration=duration,
        not_before=not_before,
        opening=settings.OPENING_TIME,
        last_start=settings.LAST_SLOT_TIME,
        slot_minutes=settings.SLOT_MINUTES,
    )


async def month_calendar(
    db: AsyncSession,
    year: int,
    month: int,
    *,
    therapist_id: Optional[str] = None,
    clock: Clock = system_clock,
    tz: Optional[ZoneInfo] = None,
) -> list[CalendarDay]:
    tz = tz or settings.tz
    first, next_first = month_bounds(year, month)
    rows = await appointments_between(db, first, next_first - timedelta(days=1), tz, therapist_id=therapist_id)
    today = clock().astimezone(tz).date()
    return generate_calendar_days(year, month, rows, today, tz)


async def day_schedule(
    db: AsyncSession,
    day: date,
    *,
    therapist_id: Optional[str] = None,
    status: Optional[AppointmentStatus] = None,
    tz: Optional[ZoneInfo] = None,
) -> DaySchedule:
    """Appointments of one day, optionally filtered by status, plus per-status counts of the whole day."""
    tz = tz or settings.tz
    rows = await appointments_between(db, day, day, tz, therapist_id=therapist_id)
    counts = Counter(AppointmentStatus.parse(a.status).value for a in rows)
    selected = [a for a in rows if status is None or AppointmentStatus.parse(a.status) is status]
    selected.sort(key=lambda a: a.date_time)
    return DaySchedule(
        date=day,
        appointments=[AppointmentOut.model_validate(a) for a in selected],
        status_counts={s.value: counts.get(s.value, 0) for s in AppointmentStatus},
    )


async def today_appointments(db: AsyncSession, *, therapist_id: Optional[str] = None,
                             clock: Clock = system_clock, tz: Optional[ZoneInfo] = None) -> Sequence[Appointment]:
    tz = tz or settings.tz
    today = clock().astimezone(tz).date()
    return await appointments_between(db, today, today, tz, therapist_id=therapist_id)


async def week_appointments(db: AsyncSession, *, therapist_id: Optional[str] = None,
                            clock: Clock = system_clock, tz: Optional[ZoneInfo] = None) -> Sequence[Appointment]:
    tz = tz or settings.tz
    start, end = week_bounds(clock().astimezone(tz).date())
    return await appointments_between(db, start, end, tz, therapist_id=therapist_id)

# clinic_scheduler/api/routes/schedule.py
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.api.auth import require_api_key
from clinic_scheduler.core.business import Clock, get_clock
from clinic_scheduler.core.errors import ValidationError
from clinic_scheduler.db.session import get_session
from clinic_scheduler.schemas.appointment import (
    AppointmentOut,
    AppointmentStatus,
    CalendarDay,
    DaySchedule,
    TimeSlot,
)
from clinic_scheduler.services import schedule

router = APIRouter(prefix="/schedule", tags=["schedule"], dependencies=[Depends(require_api_key)])


@router.get("/slots", response_model=list[TimeSlot])
async def slots_ep(
    day: date = Query(..., alias="date"),
    therapist_id: Optional[str] = None,
    duration: Optional[int] = Query(None, gt=0),
    db: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    return await schedule.day_slots(db, day, therapist_id=therapist_id, duration=duration, clock=clock)


@router.get("/calendar/{year}/{month}", response_model=list[CalendarDay])
async def calendar_ep(
    year: int = Path(..., ge=1900, le=2999),
    month: int = Path(..., ge=1, le=12),
    therapist_id: Optional[str] = None,
    db: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    return await schedule.month_calendar(db, year, month, therapist_id=therapist_id, clock=clock)


# Static routes above the parametrised /day/{day}
@router.get("/today", response_model=list[AppointmentOut])
async def today_ep(
    therapist_id: Optional[str] = None,
    db: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    return await schedule.today_appointments(db, therapist_id=therapist_id, clock=clock)


@router.get("/week", response_model=list[AppointmentOut])
async def week_ep(
    therapist_id: Optional[str] = None,
    db: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    return await schedule.week_appointments(db, therapist_id=therapist_id, clock=clock)


@router.get("/day/{day}", response_model=DaySchedule)
async def day_ep(
    day: date,
    therapist_id: Optional[str] = None,
    status: Optional[str] = None,
    db: AsyncSession = Depends(get_session),
):
    try:
        wanted = AppointmentStatus.parse(status) if status else None
    except ValueError:
        raise ValidationError({"status": f"Unknown status {status!r}"})
    return await schedule.day_schedule(db, day, therapist_id=therapist_id, status=wanted)

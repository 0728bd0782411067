# clinic_scheduler/api/routes/appointments.py
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.api.auth import require_api_key
from clinic_scheduler.core.business import Clock, get_clock
from clinic_scheduler.core.errors import AppointmentNotFound, ValidationError
from clinic_scheduler.crud.appointment import get_appointment, list_appointments, total_pages
from clinic_scheduler.db.session import get_session
from clinic_scheduler.schemas.appointment import (
    AppointmentFilter,
    AppointmentOut,
    AppointmentPage,
    AppointmentStatus,
    BookingRequest,
    CancelRequest,
    CompleteRequest,
    ReportEligibility,
    RescheduleRequest,
    TransitionRequest,
)
from clinic_scheduler.services import appointments as lifecycle
from clinic_scheduler.services.booking import book_appointment

router = APIRouter(prefix="/appointments", tags=["appointments"], dependencies=[Depends(require_api_key)])


@router.post("", response_model=AppointmentOut, status_code=status.HTTP_201_CREATED)
async def create_appointment_ep(
    payload: BookingRequest,
    db: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    return await book_appointment(db, payload, clock=clock)


@router.get("", response_model=AppointmentPage)
async def list_appointments_ep(
    patient_id: Optional[str] = None,
    therapist_id: Optional[str] = None,
    status_: Optional[str] = Query(None, alias="status"),
    type_: Optional[str] = Query(None, alias="type"),
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_session),
):
    try:
        flt = AppointmentFilter(
            patient_id=patient_id, therapist_id=therapist_id,
            status=status_, type=type_, start=start, end=end,
        )
    except ValueError as e:
        raise ValidationError({"filter": str(e)})
    if (flt.start and flt.start.tzinfo is None) or (flt.end and flt.end.tzinfo is None):
        raise ValidationError({"filter": "start/end must include a UTC offset"})

    rows, total = await list_appointments(db, flt, page=page, limit=limit)
    return AppointmentPage(
        data=[AppointmentOut.model_validate(r) for r in rows],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages(total, limit),
    )


@router.get("/{appointment_id}", response_model=AppointmentOut)
async def get_appointment_ep(appointment_id: str, db: AsyncSession = Depends(get_session)):
    obj = await get_appointment(db, appointment_id)
    if not obj:
        raise AppointmentNotFound(appointment_id)
    return obj


@router.get("/{appointment_id}/report-eligibility", response_model=ReportEligibility)
async def report_eligibility_ep(appointment_id: str, db: AsyncSession = Depends(get_session)):
    return await lifecycle.report_eligibility(db, appointment_id)


@router.patch("/{appointment_id}/confirm", response_model=AppointmentOut)
async def confirm_ep(
    appointment_id: str,
    payload: Optional[TransitionRequest] = Body(None),
    db: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    expected = payload.expected_status if payload else None
    return await lifecycle.confirm_appointment(db, appointment_id, clock=clock, expected_status=expected)


@router.patch("/{appointment_id}/start", response_model=AppointmentOut)
async def start_ep(
    appointment_id: str,
    payload: Optional[TransitionRequest] = Body(None),
    db: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    expected = payload.expected_status if payload else None
    return await lifecycle.start_appointment(db, appointment_id, clock=clock, expected_status=expected)


@router.patch("/{appointment_id}/complete", response_model=AppointmentOut)
async def complete_ep(
    appointment_id: str,
    payload: Optional[CompleteRequest] = Body(None),
    db: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    payload = payload or CompleteRequest()
    return await lifecycle.complete_appointment(
        db, appointment_id,
        session_notes=payload.session_notes,
        clock=clock,
        expected_status=payload.expected_status,
    )


@router.patch("/{appointment_id}/cancel", response_model=AppointmentOut)
async def cancel_ep(
    appointment_id: str,
    payload: CancelRequest,
    db: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    return await lifecycle.cancel_appointment(
        db, appointment_id,
        reason=payload.reason,
        cancelled_by=payload.cancelled_by,
        notes=payload.notes,
        clock=clock,
        expected_status=payload.expected_status,
    )


@router.patch("/{appointment_id}/no-show", response_model=AppointmentOut)
async def no_show_ep(
    appointment_id: str,
    payload: Optional[TransitionRequest] = Body(None),
    db: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    expected = payload.expected_status if payload else None
    return await lifecycle.mark_no_show(db, appointment_id, clock=clock, expected_status=expected)


@router.patch("/{appointment_id}", response_model=AppointmentOut)
async def reschedule_ep(
    appointment_id: str,
    payload: RescheduleRequest,
    db: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    return await lifecycle.reschedule_appointment(
        db, appointment_id,
        new_date=payload.date,
        new_time=payload.time,
        new_duration=payload.duration,
        clock=clock,
        expected_status=payload.expected_status,
    )


@router.delete("/{appointment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_appointment_ep(
    appointment_id: str,
    expected_status: Optional[str] = None,
    db: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    try:
        expected = AppointmentStatus.parse(expected_status) if expected_status else None
    except ValueError:
        raise ValidationError({"expected_status": f"Unknown status {expected_status!r}"})
    await lifecycle.delete_appointment(db, appointment_id, expected_status=expected, clock=clock)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

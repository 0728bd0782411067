# clinic_scheduler/services/booking.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.core.business import UTC, Clock, local_datetime, system_clock
from clinic_scheduler.core.config import settings
from clinic_scheduler.core.errors import ConflictError, PatientNotFound, ValidationError
from clinic_scheduler.core.logging import get_logger
from clinic_scheduler.crud.appointment import create_appointment_checked
from clinic_scheduler.db.models.appointment import Appointment
from clinic_scheduler.scheduling.slots import parse_slot_time
from clinic_scheduler.schemas.appointment import BookingRequest
from clinic_scheduler.services.patients import resolve_patient

logger = get_logger(__name__)


# ---------- Internal helpers ----------

@dataclass(frozen=True)
class ValidatedBooking:
    patient_id: str
    therapist_id: str
    starts_at_utc: datetime
    duration: int


def _parse_start(day: date, time_label: str, tz: ZoneInfo) -> datetime:
    return local_datetime(day, parse_slot_time(time_label), tz).astimezone(UTC)


def validate_booking(
    req: BookingRequest,
    *,
    now: datetime,
    tz: ZoneInfo,
    allowed_durations: Optional[list[int]] = None,
    default_duration: int = 50,
    reject_past: bool = True,
) -> ValidatedBooking:
    """
    Check the booking form without touching the store.
    Every problem is reported against its own field so the form can
    highlight each missing input.
    """
    errors: dict[str, str] = {}

    if not req.patient_id:
        errors["patient"] = "Select a patient."
    if not req.therapist_id:
        errors["therapist"] = "Select a therapist."
    if req.date is None:
        errors["date"] = "Select a date."
    if not req.time:
        errors["time"] = "Select a time slot."

    duration = req.duration if req.duration is not None else default_duration
    if duration <= 0:
        errors["duration"] = "Duration must be a positive number of minutes."
    elif allowed_durations and duration not in allowed_durations:
        options = ", ".join(str(d) for d in allowed_durations)
        errors["duration"] = f"Duration must be one of: {options} minutes."

    starts_at_utc = None
    if req.date is not None and req.time:
        try:
            starts_at_utc = _parse_start(req.date, req.time, tz)
        except ValueError:
            errors["time"] = "Invalid time. Use HH:MM."
        else:
            if reject_past and starts_at_utc < now:
                errors["time"] = "The selected time is in the past."

    if errors:
        raise ValidationError(errors)

    return ValidatedBooking(
        patient_id=req.patient_id,
        therapist_id=req.therapist_id,
        starts_at_utc=starts_at_utc,
        duration=duration,
    )


# ---------- Core orchestration ----------

async def book_appointment(
    db: AsyncSession,
    req: BookingRequest,
    *,
    clock: Clock = system_clock,
    tz: Optional[ZoneInfo] = None,
) -> Appointment:
    """
    Booking coordinator:
    1) Validate the form (field-scoped errors, no side effects)
    2) Resolve the patient to refresh the cached display name
    3) Insert, re-checking the full requested interval against the store
    """
    tz = tz or settings.tz
    now = clock()

    booking = validate_booking(
        req,
        now=now,
        tz=tz,
        allowed_durations=settings.ALLOWED_DURATIONS,
        default_duration=settings.DEFAULT_DURATION_MIN,
        reject_past=settings.REJECT_PAST_BOOKINGS,
    )

    try:
        patient = await resolve_patient(db, booking.patient_id)
    except PatientNotFound:
        raise ValidationError({"patient": "Patient not found."})

    try:
        appt = await create_appointment_checked(
            db,
            patient_id=patient.id,
            patient_name=patient.name,
            therapist_id=booking.therapist_id,
            therapist_name=req.therapist_name,
            date_time=booking.starts_at_utc,
            duration=booking.duration,
            type=req.type.value,
            notes=req.notes,
            created_at=now,
            clinic_id=settings.CLINIC_ID,
        )
    except ConflictError:
        logger.info(
            "booking_rejected",
            reason="slot_taken",
            therapist_id=booking.therapist_id,
            starts_at=booking.starts_at_utc.isoformat(),
            duration=booking.duration,
        )
        raise

    logger.info(
        "appointment_created",
        appointment_id=appt.id,
        patient_id=appt.patient_id,
        therapist_id=appt.therapist_id,
        starts_at=appt.date_time.isoformat(),
        duration=appt.duration,
    )
    return appt

# clinic_scheduler/services/appointments.py
"""
Lifecycle actions on existing appointments.

Each action reads the appointment, plans the transition from its current
status, and writes the result with an update conditioned on that status.
Callers may pass ``expected_status`` (what their screen showed) so a stale
client gets StaleStateError instead of acting on a state it never saw.
"""
from __future__ import annotations

from datetime import date
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.core.business import UTC, Clock, local_datetime, system_clock
from clinic_scheduler.core.config import settings
from clinic_scheduler.core.errors import (
    AppointmentNotFound,
    InvalidTransitionError,
    StaleStateError,
    ValidationError,
)
from clinic_scheduler.core.logging import get_logger
from clinic_scheduler.crud import appointment as store
from clinic_scheduler.db.models.appointment import Appointment
from clinic_scheduler.scheduling.lifecycle import Action, TransitionPlan, is_report_eligible, plan_transition
from clinic_scheduler.scheduling.slots import parse_slot_time
from clinic_scheduler.schemas.appointment import AppointmentStatus, CancelledBy, ReportEligibility
from clinic_scheduler.services.patients import try_resolve_patient

logger = get_logger(__name__)


async def _load(db: AsyncSession, appointment_id: str) -> Appointment:
    appt = await store.get_appointment(db, appointment_id)
    if appt is None:
        raise AppointmentNotFound(appointment_id)
    return appt


def _check_expected(appt: Appointment, expected_status: Optional[AppointmentStatus]) -> None:
    if expected_status is None:
        return
    current = AppointmentStatus.parse(appt.status)
    if current is not AppointmentStatus.parse(expected_status):
        raise StaleStateError(appt.id, AppointmentStatus.parse(expected_status).value, current.value)


def _plan(appt: Appointment, action: Action, clock: Clock, **kwargs) -> TransitionPlan:
    try:
        return plan_transition(appt.status, action, clock(), **kwargs)
    except InvalidTransitionError:
        logger.warning("invalid_transition", appointment_id=appt.id, status=appt.status, action=action.value)
        raise


async def _refreshed_name(db: AsyncSession, appt: Appointment) -> Dict[str, Any]:
    """Cached patient name, refreshed from the directory when it resolves."""
    patient_id = appt.patient_id
    ref = await try_resolve_patient(db, patient_id)
    if ref is None:
        logger.warning("patient_name_refresh_failed", appointment_id=appt.id, patient_id=patient_id)
        return {}
    if ref.name != appt.patient_name:
        return {"patient_name": ref.name}
    return {}


async def _apply(db: AsyncSession, appt: Appointment, plan: TransitionPlan) -> Appointment:
    fields = dict(plan.changes)
    fields.update(await _refreshed_name(db, appt))
    new_status = fields.pop("status", None)
    return await store.update_appointment_status(
        db, appt.id, plan.expected_status.value, new_status, fields,
    )


async def confirm_appointment(db, appointment_id: str, *, clock: Clock = system_clock,
                              expected_status: Optional[AppointmentStatus] = None) -> Appointment:
    appt = await _load(db, appointment_id)
    _check_expected(appt, expected_status)
    return await _apply(db, appt, _plan(appt, Action.confirm, clock))


async def start_appointment(db, appointment_id: str, *, clock: Clock = system_clock,
                            expected_status: Optional[AppointmentStatus] = None) -> Appointment:
    appt = await _load(db, appointment_id)
    _check_expected(appt, expected_status)
    return await _apply(db, appt, _plan(appt, Action.start, clock))


async def complete_appointment(db, appointment_id: str, *, session_notes: Optional[str] = None,
                               clock: Clock = system_clock,
                               expected_status: Optional[AppointmentStatus] = None) -> Appointment:
    appt = await _load(db, appointment_id)
    _check_expected(appt, expected_status)
    plan = _plan(appt, Action.complete, clock, session_notes=session_notes)
    return await _apply(db, appt, plan)


async def cancel_appointment(db, appointment_id: str, *, reason: str, cancelled_by: CancelledBy,
                             notes: Optional[str] = None, clock: Clock = system_clock,
                             expected_status: Optional[AppointmentStatus] = None) -> Appointment:
    appt = await _load(db, appointment_id)
    _check_expected(appt, expected_status)
    plan = _plan(appt, Action.cancel, clock, reason=reason, cancelled_by=cancelled_by,
                 cancellation_notes=notes)
    return await _apply(db, appt, plan)


async def mark_no_show(db, appointment_id: str, *, clock: Clock = system_clock,
                       expected_status: Optional[AppointmentStatus] = None) -> Appointment:
    appt = await _load(db, appointment_id)
    _check_expected(appt, expected_status)
    return await _apply(db, appt, _plan(appt, Action.mark_no_show, clock))


async def reschedule_appointment(
    db: AsyncSession,
    appointment_id: str,
    *,
    new_date: Optional[date] = None,
    new_time: Optional[str] = None,
    new_duration: Optional[int] = None,
    clock: Clock = system_clock,
    tz: Optional[ZoneInfo] = None,
    expected_status: Optional[AppointmentStatus] = None,
) -> Appointment:
    """Move an appointment, keeping its status; the new interval is re-checked for conflicts."""
    tz = tz or settings.tz
    appt = await _load(db, appointment_id)
    _check_expected(appt, expected_status)
    plan = _plan(appt, Action.reschedule, clock)

    current_local = appt.date_time.astimezone(tz)
    day = new_date or current_local.date()
    errors: Dict[str, str] = {}
    try:
        at = parse_slot_time(new_time) if new_time else current_local.time()
    except ValueError:
        errors["time"] = "Invalid time. Use HH:MM."
        at = None
    duration = new_duration if new_duration is not None else appt.duration
    if duration <= 0:
        errors["duration"] = "Duration must be a positive number of minutes."
    elif settings.ALLOWED_DURATIONS and duration not in settings.ALLOWED_DURATIONS:
        errors["duration"] = "Duration is not one of the allowed session lengths."
    if errors:
        raise ValidationError(errors)

    starts_at = local_datetime(day, at, tz).astimezone(UTC)
    if settings.REJECT_PAST_BOOKINGS and starts_at < clock():
        raise ValidationError({"time": "The selected time is in the past."})

    fields = dict(plan.changes)
    fields.update(await _refreshed_name(db, appt))
    therapist_id = appt.therapist_id
    updated = await store.reschedule_appointment(
        db,
        appt.id,
        plan.expected_status.value,
        therapist_id=therapist_id,
        date_time=starts_at,
        duration=duration,
        fields=fields,
    )
    logger.info("appointment_rescheduled", appointment_id=updated.id,
                starts_at=updated.date_time.isoformat(), duration=updated.duration)
    return updated


async def delete_appointment(db: AsyncSession, appointment_id: str, *,
                             expected_status: Optional[AppointmentStatus] = None,
                             clock: Clock = system_clock) -> None:
    """Hard delete; only non-terminal appointments can be removed."""
    appt = await _load(db, appointment_id)
    _check_expected(appt, expected_status)
    plan = _plan(appt, Action.delete, clock)
    await store.delete_appointment(db, appt.id, plan.expected_status.value)


async def report_eligibility(db: AsyncSession, appointment_id: str) -> ReportEligibility:
    appt = await _load(db, appointment_id)
    return ReportEligibility(
        appointment_id=appt.id,
        status=appt.status,
        report_eligible=is_report_eligible(appt),
        completed_at=appt.completed_at,
    )

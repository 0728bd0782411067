# clinic_scheduler/crud/appointment.py

from __future__ import annotations

import asyncio
import math
import weakref
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, Optional, Sequence

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.core.errors import AppointmentNotFound, ConflictError, StaleStateError
from clinic_scheduler.core.logging import get_logger
from clinic_scheduler.db.models.appointment import Appointment
from clinic_scheduler.schemas.appointment import AppointmentFilter, AppointmentStatus

logger = get_logger(__name__)

# One writer per therapist inside this process; Postgres adds an advisory lock across processes.
# asyncio locks belong to a loop, so they are kept per running loop.
_therapist_locks: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, Dict[str, asyncio.Lock]]" = (
    weakref.WeakKeyDictionary()
)


def _lock_for(therapist_id: str) -> asyncio.Lock:
    loop = asyncio.get_running_loop()
    locks = _therapist_locks.setdefault(loop, defaultdict(asyncio.Lock))
    return locks[therapist_id]


@asynccontextmanager
async def therapist_write_lock(db: AsyncSession, therapist_id: str):
    async with _lock_for(therapist_id):
        if db.bind.dialect.name == "postgresql":
            # Released automatically when the transaction ends
            await db.execute(sa.select(sa.func.pg_advisory_xact_lock(sa.func.hashtext(therapist_id))))
        yield


async def get_appointment(db: AsyncSession, appointment_id: str) -> Optional[Appointment]:
    return await db.get(Appointment, appointment_id)


async def find_conflicts(
    db: AsyncSession,
    *,
    therapist_id: str,
    start: datetime,
    end: datetime,
    exclude_id: Optional[str] = None,
) -> Sequence[Appointment]:
    """Active appointments of ``therapist_id`` overlapping ``[start, end)``."""
    q = sa.select(Appointment).where(
        Appointment.therapist_id == therapist_id,
        Appointment.status.in_(AppointmentStatus.active_spellings()),
        Appointment.date_time < end,
        Appointment.ends_at > start,
    )
    if exclude_id is not None:
        q = q.where(Appointment.id != exclude_id)
    res = await db.execute(q.order_by(Appointment.date_time.asc()))
    return res.scalars().all()


async def create_appointment_checked(
    db: AsyncSession,
    *,
    patient_id: str,
    patient_name: str,
    therapist_id: str,
    therapist_name: Optional[str],
    date_time: datetime,
    duration: int,
    type: str,
    notes: Optional[str],
    created_at: datetime,
    clinic_id: str = "default",
) -> Appointment:
    """Insert a scheduled appointment unless it overlaps an active one.

    The overlap check runs under the therapist's write lock against the
    store itself, so two callers racing for the same slot cannot both win.
    """
    end = Appointment.compute_end(date_time, duration)
    async with therapist_write_lock(db, therapist_id):
        conflicts = await find_conflicts(db, therapist_id=therapist_id, start=date_time, end=end)
        if conflicts:
            conflicting_ids = [a.id for a in conflicts]
            await db.rollback()
            logger.info("booking_conflict", therapist_id=therapist_id, conflicting_ids=conflicting_ids)
            raise ConflictError(conflicting_ids)

        appt = Appointment(
            clinic_id=clinic_id,
            patient_id=patient_id,
            patient_name=patient_name,
            therapist_id=therapist_id,
            therapist_name=therapist_name,
            date_time=date_time,
            duration=duration,
            ends_at=end,
            type=type,
            status="scheduled",
            notes=notes,
            created_at=created_at,
            updated_at=created_at,
        )
        db.add(appt)
        try:
            await db.commit()
        except IntegrityError:
            # Exclusion constraint on Postgres: someone else committed first
            await db.rollback()
            raise ConflictError()
    await db.refresh(appt)
    return appt


async def list_appointments(
    db: AsyncSession,
    flt: Optional[AppointmentFilter] = None,
    *,
    page: int = 1,
    limit: int = 100,
) -> tuple[Sequence[Appointment], int]:
    """Filtered page of appointments ordered by start, plus the total match count."""
    flt = flt or AppointmentFilter()
    conditions = []
    if flt.patient_id is not None:
        conditions.append(Appointment.patient_id == flt.patient_id)
    if flt.therapist_id is not None:
        conditions.append(Appointment.therapist_id == flt.therapist_id)
    if flt.status is not None:
        conditions.append(Appointment.status.in_(flt.status.spellings()))
    if flt.type is not None:
        conditions.append(Appointment.type == flt.type.value)
    if flt.start is not None:
        conditions.append(Appointment.date_time >= flt.start)
    if flt.end is not None:
        conditions.append(Appointment.date_time < flt.end)

    total = (await db.execute(
        sa.select(sa.func.count()).select_from(Appointment).where(*conditions)
    )).scalar_one()

    page = max(page, 1)
    q = (
        sa.select(Appointment)
        .where(*conditions)
        .order_by(Appointment.date_time.asc(), Appointment.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    res = await db.execute(q)
    return res.scalars().all(), total


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


def _has_status(status: str):
    # Rows written before the status values were hyphenated still use underscores
    return Appointment.status.in_(AppointmentStatus.parse(status).spellings())


async def _raise_stale_or_missing(db: AsyncSession, appointment_id: str, expected_status: str) -> None:
    await db.rollback()
    current = await db.get(Appointment, appointment_id, populate_existing=True)
    if current is None:
        raise AppointmentNotFound(appointment_id)
    raise StaleStateError(
        appointment_id,
        AppointmentStatus.parse(expected_status).value,
        AppointmentStatus.parse(current.status).value,
    )


async def _conditional_update(
    db: AsyncSession,
    appointment_id: str,
    expected_status: str,
    values: Dict[str, Any],
) -> Appointment:
    stmt = (
        sa.update(Appointment)
        .where(Appointment.id == appointment_id, _has_status(expected_status))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    res = await db.execute(stmt)
    if res.rowcount == 0:
        await _raise_stale_or_missing(db, appointment_id, expected_status)
    await db.commit()
    return await db.get(Appointment, appointment_id, populate_existing=True)


async def update_appointment_status(
    db: AsyncSession,
    appointment_id: str,
    expected_status: str,
    new_status: Optional[str],
    fields: Dict[str, Any],
) -> Appointment:
    """Apply ``fields`` only if the row still has ``expected_status``.

    A mismatch raises StaleStateError instead of overwriting a newer state.
    """
    values = dict(fields)
    if new_status is not None:
        values["status"] = new_status
    appt = await _conditional_update(db, appointment_id, expected_status, values)
    logger.info("appointment_status_updated", appointment_id=appointment_id,
                from_status=expected_status, to_status=appt.status)
    return appt


async def reschedule_appointment(
    db: AsyncSession,
    appointment_id: str,
    expected_status: str,
    *,
    therapist_id: str,
    date_time: datetime,
    duration: int,
    fields: Dict[str, Any],
) -> Appointment:
    end = Appointment.compute_end(date_time, duration)
    async with therapist_write_lock(db, therapist_id):
        conflicts = await find_conflicts(
            db, therapist_id=therapist_id, start=date_time, end=end, exclude_id=appointment_id,
        )
        if conflicts:
            conflicting_ids = [a.id for a in conflicts]
            await db.rollback()
            logger.info("booking_conflict", therapist_id=therapist_id, conflicting_ids=conflicting_ids)
            raise ConflictError(conflicting_ids)
        values = dict(fields, date_time=date_time, duration=duration, ends_at=end)
        try:
            return await _conditional_update(db, appointment_id, expected_status, values)
        except IntegrityError:
            await db.rollback()
            raise ConflictError()


async def delete_appointment(db: AsyncSession, appointment_id: str, expected_status: str) -> None:
    res = await db.execute(
        sa.delete(Appointment)
        .where(Appointment.id == appointment_id, _has_status(expected_status))
        .execution_options(synchronize_session=False)
    )
    if res.rowcount == 0:
        await _raise_stale_or_missing(db, appointment_id, expected_status)
    await db.commit()
    logger.info("appointment_deleted", appointment_id=appointment_id)

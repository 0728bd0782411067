# clinic_scheduler/services/patients.py
"""
Patient directory as seen by the scheduling core: resolve an id to the
display data that gets denormalised onto appointments.
"""
from __future__ import annotations

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.core.errors import PatientNotFound
from clinic_scheduler.crud.patient import get_patient
from clinic_scheduler.schemas.patient import PatientRef


async def resolve_patient(db: AsyncSession, patient_id: str) -> PatientRef:
    patient = await get_patient(db, patient_id)
    if patient is None:
        raise PatientNotFound(patient_id)
    # Copy out plain values so later rollbacks can't expire what we hand back
    return PatientRef(id=patient.id, name=patient.full_name, email=patient.email)


async def try_resolve_patient(db: AsyncSession, patient_id: str) -> Optional[PatientRef]:
    try:
        return await resolve_patient(db, patient_id)
    except PatientNotFound:
        return None

# clinic_scheduler/crud/patient.py
from datetime import datetime, timezone
from typing import Optional, Sequence

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.db.models.patient import Patient
from clinic_scheduler.schemas.patient import PatientCreate


async def get_patient(db: AsyncSession, patient_id: str) -> Optional[Patient]:
    return await db.get(Patient, patient_id)


async def create_patient(db: AsyncSession, data: PatientCreate) -> Patient:
    obj = Patient(
        full_name=data.full_name,
        email=data.email,
        phone=data.phone,
        created_at=datetime.now(timezone.utc),
    )
    db.add(obj)
    await db.commit()
    await db.refresh(obj)
    return obj


async def search_patients(
    db: AsyncSession, *, q: Optional[str] = None, limit: int = 20, offset: int = 0
) -> Sequence[Patient]:
    """Case-insensitive name/email substring search used by the booking form's patient picker."""
    stmt = sa.select(Patient)
    if q:
        term = f"%{q.strip().lower()}%"
        stmt = stmt.where(sa.or_(
            sa.func.lower(Patient.full_name).like(term),
            sa.func.lower(Patient.email).like(term),
        ))
    stmt = stmt.order_by(Patient.full_name.asc()).offset(offset).limit(limit)
    res = await db.execute(stmt)
    return res.scalars().all()

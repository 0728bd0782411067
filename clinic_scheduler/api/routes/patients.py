# clinic_scheduler/api/routes/patients.py
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.api.auth import require_api_key
from clinic_scheduler.core.errors import PatientNotFound
from clinic_scheduler.crud.patient import create_patient, get_patient, search_patients
from clinic_scheduler.db.session import get_session
from clinic_scheduler.schemas.patient import PatientCreate, PatientOut

router = APIRouter(prefix="/patients", tags=["patients"], dependencies=[Depends(require_api_key)])


@router.post("", response_model=PatientOut, status_code=status.HTTP_201_CREATED)
async def create_patient_ep(payload: PatientCreate, db: AsyncSession = Depends(get_session)):
    return await create_patient(db, payload)


@router.get("", response_model=list[PatientOut])
async def search_patients_ep(q: Optional[str] = None, limit: int = 20, offset: int = 0,
                             db: AsyncSession = Depends(get_session)):
    return await search_patients(db, q=q, limit=limit, offset=offset)


@router.get("/{patient_id}", response_model=PatientOut)
async def get_patient_ep(patient_id: str, db: AsyncSession = Depends(get_session)):
    obj = await get_patient(db, patient_id)
    if not obj:
        raise PatientNotFound(patient_id)
    return obj

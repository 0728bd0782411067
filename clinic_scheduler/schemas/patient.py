# clinic_scheduler/schemas/patient.py
from datetime import datetime as _Datetime
from typing import Optional

import phonenumbers
from phonenumbers import PhoneNumberFormat
from pydantic import BaseModel, ConfigDict, Field, field_validator

from clinic_scheduler.core.config import settings


class PatientCreate(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=120)
    email: Optional[str] = Field(None, max_length=254)
    phone: Optional[str] = Field(None, max_length=20)

    @field_validator("full_name")
    @classmethod
    def _clean_name(cls, v: str) -> str:
        # trim + collapse internal extra spaces
        v = " ".join(v.strip().split())
        if not v:
            raise ValueError("full_name cannot be empty")
        return v

    @field_validator("phone")
    @classmethod
    def _normalize_phone(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        try:
            parsed = phonenumbers.parse(v, settings.PHONE_REGION)
        except phonenumbers.NumberParseException:
            raise ValueError("phone is not a recognisable number")
        if not phonenumbers.is_possible_number(parsed):
            raise ValueError("phone is not a possible number")
        return phonenumbers.format_number(parsed, PhoneNumberFormat.E164)


class PatientOut(BaseModel):
    id: str
    full_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    created_at: _Datetime

    model_config = ConfigDict(from_attributes=True)


class PatientRef(BaseModel):
    """What the scheduling core needs to know about a patient."""
    id: str
    name: str
    email: Optional[str] = None

# clinic_scheduler/schemas/appointment.py

from __future__ import annotations

from datetime import date as _Date, datetime as _Datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AppointmentStatus(str, Enum):
    scheduled = "scheduled"
    confirmed = "confirmed"
    in_progress = "in-progress"
    completed = "completed"
    cancelled = "cancelled"
    no_show = "no-show"

    @classmethod
    def parse(cls, value: "str | AppointmentStatus") -> "AppointmentStatus":
        """Accept legacy underscore spellings (``in_progress``, ``no_show``)."""
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower().replace("_", "-"))

    @property
    def is_active(self) -> bool:
        return self in (AppointmentStatus.scheduled, AppointmentStatus.confirmed, AppointmentStatus.in_progress)

    @property
    def is_terminal(self) -> bool:
        return not self.is_active

    def spellings(self) -> tuple[str, ...]:
        """Every value a stored row may carry for this status, canonical first."""
        legacy = self.value.replace("-", "_")
        return (self.value, legacy) if legacy != self.value else (self.value,)

    @classmethod
    def active_spellings(cls) -> tuple[str, ...]:
        return tuple(s for status in cls if status.is_active for s in status.spellings())


class AppointmentType(str, Enum):
    regular = "regular"
    evaluation = "evaluation"
    reevaluation = "reevaluation"
    discharge = "discharge"
    follow_up = "follow-up"
    parent_meeting = "parent-meeting"
    report_delivery = "report-delivery"

    @classmethod
    def parse(cls, value: "str | AppointmentType") -> "AppointmentType":
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower().replace("_", "-"))


class CancelledBy(str, Enum):
    therapist = "therapist"
    patient = "patient"
    system = "system"


class CancellationReason(str, Enum):
    patient_request = "patient-request"
    therapist_unavailable = "therapist-unavailable"
    no_show = "no-show"
    other = "other"


# ---------- Requests ----------

class BookingRequest(BaseModel):
    """Booking form payload.

    Every field is optional here so the booking coordinator can report each
    missing input separately instead of failing on the first one.
    """
    patient_id: Optional[str] = None
    therapist_id: Optional[str] = None
    therapist_name: Optional[str] = None
    date: Optional[_Date] = None
    time: Optional[str] = Field(None, examples=["09:30"], description="Clinic-local HH:MM")
    duration: Optional[int] = Field(None, examples=[50])
    type: AppointmentType = AppointmentType.regular
    notes: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def _parse_type(cls, v):
        return AppointmentType.parse(v) if v is not None else AppointmentType.regular


class CompleteRequest(BaseModel):
    session_notes: Optional[str] = None
    expected_status: Optional[AppointmentStatus] = None

    @field_validator("expected_status", mode="before")
    @classmethod
    def _parse_status(cls, v):
        return AppointmentStatus.parse(v) if v is not None else None


class CancelRequest(BaseModel):
    reason: str = Field(..., min_length=1)
    cancelled_by: CancelledBy
    notes: Optional[str] = None
    expected_status: Optional[AppointmentStatus] = None

    @field_validator("reason")
    @classmethod
    def _clean_reason(cls, v: str) -> str:
        v = " ".join(v.strip().split())
        if not v:
            raise ValueError("reason cannot be empty")
        return v

    @field_validator("expected_status", mode="before")
    @classmethod
    def _parse_status(cls, v):
        return AppointmentStatus.parse(v) if v is not None else None


class TransitionRequest(BaseModel):
    """Body for confirm / start / no-show; all optional."""
    expected_status: Optional[AppointmentStatus] = None

    @field_validator("expected_status", mode="before")
    @classmethod
    def _parse_status(cls, v):
        return AppointmentStatus.parse(v) if v is not None else None


class RescheduleRequest(BaseModel):
    date: Optional[_Date] = None
    time: Optional[str] = Field(None, examples=["14:00"])
    duration: Optional[int] = None
    expected_status: Optional[AppointmentStatus] = None

    @field_validator("expected_status", mode="before")
    @classmethod
    def _parse_status(cls, v):
        return AppointmentStatus.parse(v) if v is not None else None


class AppointmentFilter(BaseModel):
    patient_id: Optional[str] = None
    therapist_id: Optional[str] = None
    status: Optional[AppointmentStatus] = None
    type: Optional[AppointmentType] = None
    start: Optional[_Datetime] = None
    end: Optional[_Datetime] = None

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, v):
        return AppointmentStatus.parse(v) if v else None

    @field_validator("type", mode="before")
    @classmethod
    def _parse_type(cls, v):
        return AppointmentType.parse(v) if v else None


# ---------- Responses ----------

class AppointmentOut(BaseModel):
    id: str
    clinic_id: str
    patient_id: str
    patient_name: str
    therapist_id: str
    therapist_name: Optional[str] = None
    type: AppointmentType
    status: AppointmentStatus
    date_time: _Datetime
    duration: int
    notes: Optional[str] = None
    session_notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[CancelledBy] = None
    cancellation_notes: Optional[str] = None
    created_at: _Datetime
    updated_at: Optional[_Datetime] = None
    confirmed_at: Optional[_Datetime] = None
    started_at: Optional[_Datetime] = None
    completed_at: Optional[_Datetime] = None
    cancelled_at: Optional[_Datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, v):
        return AppointmentStatus.parse(v)

    @field_validator("type", mode="before")
    @classmethod
    def _parse_type(cls, v):
        return AppointmentType.parse(v)


class AppointmentPage(BaseModel):
    data: list[AppointmentOut]
    total: int
    page: int
    limit: int
    total_pages: int


class TimeSlot(BaseModel):
    time: str = Field(..., examples=["08:30"])
    available: bool


class CalendarDay(BaseModel):
    day: int
    is_current_month: bool
    is_today: bool
    date: _Date
    appointment_count: int


class DaySchedule(BaseModel):
    date: _Date
    appointments: list[AppointmentOut]
    status_counts: dict[str, int]


class ReportEligibility(BaseModel):
    appointment_id: str
    status: AppointmentStatus
    report_eligible: bool
    completed_at: Optional[_Datetime] = None

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, v):
        return AppointmentStatus.parse(v)

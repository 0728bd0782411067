# clinic_scheduler/db/models/appointment.py

from __future__ import annotations
import uuid
from datetime import datetime, timedelta, timezone

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from clinic_scheduler.db.models.patient import Patient
from clinic_scheduler.db.session import Base, UTCDateTime
from clinic_scheduler.schemas.appointment import AppointmentStatus


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        sa.CheckConstraint("duration > 0", name="ck_appointments_duration_positive"),
        sa.Index("ix_appointments_therapist_date_time", "therapist_id", "date_time"),
        sa.Index("ix_appointments_patient_id", "patient_id"),
        sa.Index("ix_appointments_status", "status"),
    )

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    clinic_id: Mapped[str] = mapped_column(sa.String(64), nullable=False, server_default="default")

    patient_id: Mapped[str] = mapped_column(sa.String(36), sa.ForeignKey("patients.id", ondelete="CASCADE"), nullable=False)
    # Cached from the patient directory, refreshed on every write
    patient_name: Mapped[str] = mapped_column(sa.String(120), nullable=False)
    therapist_id: Mapped[str] = mapped_column(sa.String(64), nullable=False)
    therapist_name: Mapped[str | None] = mapped_column(sa.String(120))

    # Stored as timezone-aware UTC; ends_at is kept equal to date_time + duration
    date_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    duration: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    ends_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    type: Mapped[str] = mapped_column(sa.String(32), nullable=False, server_default="regular")
    status: Mapped[str] = mapped_column(sa.String(32), nullable=False, server_default="scheduled")

    notes: Mapped[str | None] = mapped_column(sa.Text)
    session_notes: Mapped[str | None] = mapped_column(sa.Text)

    cancellation_reason: Mapped[str | None] = mapped_column(sa.String(255))
    cancelled_by: Mapped[str | None] = mapped_column(sa.String(16))
    cancellation_notes: Mapped[str | None] = mapped_column(sa.Text)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    confirmed_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    started_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    cancelled_at: Mapped[datetime | None] = mapped_column(UTCDateTime)

    # Relations
    patient: Mapped[Patient] = relationship(back_populates="appointments")

    @validates("status")
    def _normalize_status(self, key, value):
        return AppointmentStatus.parse(value).value

    @staticmethod
    def compute_end(start: datetime, duration: int) -> datetime:
        return start + timedelta(minutes=duration)

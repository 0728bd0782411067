#!/usr/bin/env python3
"""
Rows stored with the old underscore spellings (``in_progress``, ``no_show``)
must behave exactly like their hyphenated equivalents in every store query.
"""

from datetime import date

import pytest
import sqlalchemy as sa

from clinic_scheduler.core.errors import ConflictError, StaleStateError
from clinic_scheduler.crud.appointment import find_conflicts, list_appointments, update_appointment_status
from clinic_scheduler.db.models.appointment import Appointment
from clinic_scheduler.schemas.appointment import (
    AppointmentFilter,
    AppointmentStatus,
    BookingRequest,
    CancelledBy,
)
from clinic_scheduler.services import appointments as lifecycle
from clinic_scheduler.services import schedule
from clinic_scheduler.services.booking import book_appointment

from conftest import local

START = local(2025, 6, 10, 9, 0)


@pytest.fixture
def make_legacy_appointment(db, make_appointment):
    """Insert a row, then force a legacy status past the ORM's normalisation."""

    async def _make(status: str, start=START, **extra) -> str:
        appt = await make_appointment(start, **extra)
        appointment_id = appt.id
        await db.execute(
            sa.update(Appointment)
            .where(Appointment.id == appointment_id)
            .values(status=status)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        await db.refresh(appt)
        stored = (await db.execute(
            sa.select(Appointment.status).where(Appointment.id == appointment_id)
        )).scalar_one()
        assert stored == status
        return appointment_id

    return _make


@pytest.mark.unit
class TestStatusSpellings:

    def test_spellings(self):
        assert AppointmentStatus.in_progress.spellings() == ("in-progress", "in_progress")
        assert AppointmentStatus.no_show.spellings() == ("no-show", "no_show")
        assert AppointmentStatus.confirmed.spellings() == ("confirmed",)

    def test_active_spellings_cover_legacy_in_progress(self):
        assert set(AppointmentStatus.active_spellings()) == {
            "scheduled", "confirmed", "in-progress", "in_progress",
        }

    def test_orm_writes_are_normalised(self):
        appt = Appointment(status="no_show")
        assert appt.status == "no-show"
        appt.status = "in_progress"
        assert appt.status == "in-progress"


@pytest.mark.integration
class TestLegacyRowsBlockBookings:

    @pytest.mark.asyncio
    async def test_legacy_in_progress_is_a_conflict(self, db, patient, make_legacy_appointment, frozen_clock):
        patient_id = patient.id
        legacy_id = await make_legacy_appointment("in_progress")

        conflicts = await find_conflicts(db, therapist_id="th-1", start=START, end=local(2025, 6, 10, 9, 30))
        assert [a.id for a in conflicts] == [legacy_id]

        slots = {s.time: s.available for s in await schedule.day_slots(
            db, date(2025, 6, 10), therapist_id="th-1", clock=frozen_clock,
        )}
        assert slots["09:00"] is False

        req = BookingRequest(patient_id=patient_id, therapist_id="th-1", date=date(2025, 6, 10), time="09:00")
        with pytest.raises(ConflictError) as exc:
            await book_appointment(db, req, clock=frozen_clock)
        assert exc.value.conflicting_ids == [legacy_id]

    @pytest.mark.asyncio
    async def test_legacy_no_show_frees_the_slot(self, db, make_legacy_appointment):
        await make_legacy_appointment("no_show")
        assert await find_conflicts(db, therapist_id="th-1", start=START, end=local(2025, 6, 10, 9, 30)) == []


@pytest.mark.integration
class TestLegacyRowsTransition:

    @pytest.mark.asyncio
    async def test_complete_legacy_in_progress(self, db, make_legacy_appointment, frozen_clock):
        legacy_id = await make_legacy_appointment("in_progress")
        done = await lifecycle.complete_appointment(db, legacy_id, session_notes="Done", clock=frozen_clock)
        assert done.status == "completed"
        assert done.session_notes == "Done"

    @pytest.mark.asyncio
    async def test_cancel_legacy_in_progress(self, db, make_legacy_appointment, frozen_clock):
        legacy_id = await make_legacy_appointment("in_progress")
        cancelled = await lifecycle.cancel_appointment(
            db, legacy_id, reason="other", cancelled_by=CancelledBy.system, clock=frozen_clock,
        )
        assert cancelled.status == "cancelled"

    @pytest.mark.asyncio
    async def test_delete_legacy_in_progress(self, db, make_legacy_appointment, frozen_clock):
        legacy_id = await make_legacy_appointment("in_progress")
        await lifecycle.delete_appointment(db, legacy_id, clock=frozen_clock)
        assert await db.get(Appointment, legacy_id, populate_existing=True) is None

    @pytest.mark.asyncio
    async def test_stale_error_reports_canonical_values(self, db, make_legacy_appointment):
        legacy_id = await make_legacy_appointment("in_progress")
        with pytest.raises(StaleStateError) as exc:
            await update_appointment_status(db, legacy_id, "scheduled", "confirmed", {})
        assert exc.value.expected == "scheduled"
        assert exc.value.actual == "in-progress"


@pytest.mark.integration
class TestLegacyRowsRead:

    @pytest.mark.asyncio
    async def test_status_filter_matches_both_spellings(self, db, make_appointment, make_legacy_appointment):
        await make_appointment(local(2025, 6, 11, 9, 0), status="in-progress")
        await make_legacy_appointment("in_progress")

        rows, total = await list_appointments(db, AppointmentFilter(status="in-progress"))
        assert total == 2
        assert all(AppointmentStatus.parse(r.status) is AppointmentStatus.in_progress for r in rows)

    @pytest.mark.asyncio
    async def test_report_eligibility_of_legacy_no_show(self, db, make_legacy_appointment):
        legacy_id = await make_legacy_appointment("no_show")
        report = await lifecycle.report_eligibility(db, legacy_id)
        assert report.status is AppointmentStatus.no_show
        assert report.report_eligible is False

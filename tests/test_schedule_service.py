#!/usr/bin/env python3
"""
Tests for the schedule read paths: slots, month calendar and day listings.
"""

from datetime import date

import pytest

from clinic_scheduler.services import schedule

from conftest import local


def availability(slots):
    return {s.time: s.available for s in slots}


@pytest.mark.integration
class TestDaySlots:

    @pytest.mark.asyncio
    async def test_booked_session_blocks_slots(self, db, make_appointment, frozen_clock):
        await make_appointment(local(2025, 6, 10, 9, 0))
        result = availability(await schedule.day_slots(db, date(2025, 6, 10), therapist_id="th-1", clock=frozen_clock))

        assert len(result) == 21
        assert result["08:30"] is True
        assert result["09:00"] is False
        assert result["09:30"] is False
        assert result["10:00"] is True

    @pytest.mark.asyncio
    async def test_other_therapist_not_counted(self, db, make_appointment, frozen_clock):
        await make_appointment(local(2025, 6, 10, 9, 0), therapist_id="th-2")
        slots = await schedule.day_slots(db, date(2025, 6, 10), therapist_id="th-1", clock=frozen_clock)
        assert all(s.available for s in slots)

    @pytest.mark.asyncio
    async def test_cancelled_session_frees_slots(self, db, make_appointment, frozen_clock):
        await make_appointment(local(2025, 6, 10, 9, 0), status="cancelled")
        slots = await schedule.day_slots(db, date(2025, 6, 10), therapist_id="th-1", clock=frozen_clock)
        assert all(s.available for s in slots)

    @pytest.mark.asyncio
    async def test_duration_probe(self, db, make_appointment, frozen_clock):
        await make_appointment(local(2025, 6, 10, 9, 0))
        result = availability(await schedule.day_slots(
            db, date(2025, 6, 10), therapist_id="th-1", duration=60, clock=frozen_clock,
        ))
        assert result["08:00"] is True
        assert result["08:30"] is False

    @pytest.mark.asyncio
    async def test_past_slots_of_today_unavailable(self, db, frozen_clock):
        # The frozen clock reads 09:00 in the clinic on 1 June
        result = availability(await schedule.day_slots(db, date(2025, 6, 1), clock=frozen_clock))
        assert result["08:00"] is False
        assert result["08:30"] is False
        assert result["09:00"] is True


@pytest.mark.integration
class TestCalendarAndListings:

    @pytest.mark.asyncio
    async def test_month_calendar_counts(self, db, make_appointment, frozen_clock):
        await make_appointment(local(2025, 6, 10, 9, 0))
        await make_appointment(local(2025, 6, 10, 14, 0), status="cancelled")
        await make_appointment(local(2025, 7, 1, 9, 0))

        days = await schedule.month_calendar(db, 2025, 6, clock=frozen_clock)
        by_date = {d.date: d for d in days}

        assert len(days) == 42
        assert by_date[date(2025, 6, 10)].appointment_count == 2
        assert by_date[date(2025, 6, 1)].is_today is True
        # 1 July is filler in the June grid
        assert by_date[date(2025, 7, 1)].appointment_count == 0

    @pytest.mark.asyncio
    async def test_day_schedule_with_status_filter(self, db, make_appointment):
        await make_appointment(local(2025, 6, 10, 14, 0), status="confirmed")
        await make_appointment(local(2025, 6, 10, 9, 0))
        await make_appointment(local(2025, 6, 10, 11, 0), status="cancelled")

        full = await schedule.day_schedule(db, date(2025, 6, 10))
        assert [a.date_time for a in full.appointments] == sorted(a.date_time for a in full.appointments)
        assert full.status_counts["scheduled"] == 1
        assert full.status_counts["confirmed"] == 1
        assert full.status_counts["cancelled"] == 1
        assert full.status_counts["in-progress"] == 0

        filtered = await schedule.day_schedule(db, date(2025, 6, 10), status=full.appointments[0].status)
        assert len(filtered.appointments) == 1
        assert filtered.status_counts == full.status_counts

    @pytest.mark.asyncio
    async def test_today_and_week(self, db, make_appointment, frozen_clock):
        await make_appointment(local(2025, 6, 1, 15, 0))
        await make_appointment(local(2025, 6, 6, 10, 0))
        await make_appointment(local(2025, 6, 8, 10, 0))

        today = await schedule.today_appointments(db, clock=frozen_clock)
        week = await schedule.week_appointments(db, clock=frozen_clock)

        assert [a.date_time for a in today] == [local(2025, 6, 1, 15, 0)]
        # Week of Sunday 1 June runs through Saturday 7 June
        assert len(week) == 2

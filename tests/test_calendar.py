#!/usr/bin/env python3
"""
Tests for the month calendar grid.
"""

from datetime import date, datetime, timezone
from types import SimpleNamespace
from zoneinfo import ZoneInfo

import pytest

from clinic_scheduler.scheduling.calendar import GRID_CELLS, generate_calendar_days, month_bounds

TZ = ZoneInfo("America/Sao_Paulo")


def appt_at(dt: datetime, status="scheduled"):
    return SimpleNamespace(date_time=dt, duration=50, status=status)


@pytest.mark.unit
class TestCalendarGrid:

    def test_february_2026_starts_on_sunday(self):
        days = generate_calendar_days(2026, 2, [], date(2026, 2, 14), TZ)
        current = [d for d in days if d.is_current_month]
        assert len(days) == GRID_CELLS
        assert days[0].date == date(2026, 2, 1)
        assert len(current) == 28
        assert [d.day for d in days[28:]] == list(range(1, 15))

    def test_march_2025_has_leading_filler(self):
        days = generate_calendar_days(2025, 3, [], date(2025, 6, 1), TZ)
        assert len(days) == GRID_CELLS
        assert [d.date for d in days[:6]] == [date(2025, 2, d) for d in range(23, 29)]
        assert days[6].date == date(2025, 3, 1)
        assert days[-1].date == date(2025, 4, 5)
        assert not any(d.is_today for d in days)

    @pytest.mark.parametrize("year,month", [(2024, 2), (2025, 8), (2025, 12), (2026, 5)])
    def test_always_42_consecutive_days(self, year, month):
        days = generate_calendar_days(year, month, [], date(2025, 1, 1), TZ)
        assert len(days) == GRID_CELLS
        for prev, cur in zip(days, days[1:]):
            assert (cur.date - prev.date).days == 1
        # Weeks start on Sunday
        assert days[0].date.weekday() == 6

    def test_today_flag(self):
        days = generate_calendar_days(2025, 6, [], date(2025, 6, 17), TZ)
        flagged = [d for d in days if d.is_today]
        assert len(flagged) == 1
        assert flagged[0].date == date(2025, 6, 17)

    def test_counts_every_status_on_local_day(self):
        rows = [
            appt_at(datetime(2025, 6, 10, 12, 0, tzinfo=timezone.utc)),
            appt_at(datetime(2025, 6, 10, 15, 0, tzinfo=timezone.utc), status="cancelled"),
            # 01:00 UTC on the 12th is 22:00 on the 11th in the clinic
            appt_at(datetime(2025, 6, 12, 1, 0, tzinfo=timezone.utc)),
        ]
        by_date = {d.date: d.appointment_count for d in generate_calendar_days(2025, 6, rows, date(2025, 6, 1), TZ)}
        assert by_date[date(2025, 6, 10)] == 2
        assert by_date[date(2025, 6, 11)] == 1
        assert by_date[date(2025, 6, 12)] == 0

    def test_filler_days_have_zero_count(self):
        # The July 2025 grid ends on 9 August
        rows = [appt_at(datetime(2025, 8, 1, 13, 0, tzinfo=timezone.utc))]
        days = generate_calendar_days(2025, 7, rows, date(2025, 6, 1), TZ)
        filler = [d for d in days if d.date == date(2025, 8, 1)]
        assert filler and filler[0].appointment_count == 0
        assert not filler[0].is_current_month


def test_month_bounds_wraps_december():
    assert month_bounds(2025, 12) == (date(2025, 12, 1), date(2026, 1, 1))
    assert month_bounds(2025, 6) == (date(2025, 6, 1), date(2025, 7, 1))

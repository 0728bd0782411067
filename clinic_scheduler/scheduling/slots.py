"""
Slot generation for the booking form.

Candidate starts are laid out every ``slot_minutes`` from the opening time
up to and including the last slot start. Each slot is probed as
``[start, start + slot_minutes)`` and marked unavailable when it overlaps an
active appointment. Passing ``duration`` probes the full span a session of
that length would occupy instead.
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from clinic_scheduler.core.business import ACTIVE_STATUSES, local_datetime
from clinic_scheduler.schemas.appointment import AppointmentStatus, TimeSlot
from clinic_scheduler.scheduling.intervals import Interval, appointment_interval, overlaps

OPENING_TIME = time(8, 0)
LAST_SLOT_TIME = time(18, 0)
SLOT_MINUTES = 30


def is_active(appointment) -> bool:
    return AppointmentStatus.parse(appointment.status).value in ACTIVE_STATUSES


def candidate_starts(
    day: date,
    tz: ZoneInfo,
    *,
    opening: time = OPENING_TIME,
    last_start: time = LAST_SLOT_TIME,
    slot_minutes: int = SLOT_MINUTES,
) -> list[datetime]:
    step = timedelta(minutes=slot_minutes)
    current = local_datetime(day, opening, tz)
    last = local_datetime(day, last_start, tz)
    starts = []
    while current <= last:
        starts.append(current)
        current += step
    return starts


def generate_time_slots(
    day: Optional[date],
    appointments: Iterable,
    tz: ZoneInfo,
    *,
    duration: Optional[int] = None,
    not_before: Optional[datetime] = None,
    opening: time = OPENING_TIME,
    last_start: time = LAST_SLOT_TIME,
    slot_minutes: int = SLOT_MINUTES,
) -> list[TimeSlot]:
    """Ordered slots for ``day`` with availability flags.

    ``appointments`` may hold any status; only active ones block a slot.
    ``not_before`` marks slots starting before that instant unavailable.
    """
    if day is None:
        return []

    busy = [appointment_interval(a) for a in appointments if is_active(a)]
    probe_minutes = duration or slot_minutes

    slots = []
    for start in candidate_starts(day, tz, opening=opening, last_start=last_start, slot_minutes=slot_minutes):
        probe = Interval.of_minutes(start, probe_minutes)
        available = not any(overlaps(probe, b) for b in busy)
        if available and not_before is not None and start < not_before:
            available = False
        slots.append(TimeSlot(time=start.strftime("%H:%M"), available=available))
    return slots


def parse_slot_time(value: str) -> time:
    """Parse a ``HH:MM`` slot label."""
    hours, sep, minutes = value.strip().partition(":")
    if not sep or not hours.isdigit() or not minutes.isdigit() or len(minutes) != 2:
        raise ValueError(f"invalid slot time {value!r}, expected HH:MM")
    return time(int(hours), int(minutes))

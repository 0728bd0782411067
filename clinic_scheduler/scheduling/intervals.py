# clinic_scheduler/scheduling/intervals.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta


@dataclass(frozen=True)
class Interval:
    """Half-open time interval ``[start, start + duration)``."""

    start: datetime
    duration: timedelta

    @classmethod
    def of_minutes(cls, start: datetime, minutes: int) -> "Interval":
        return cls(start, timedelta(minutes=minutes))

    @classmethod
    def between(cls, start: datetime, end: datetime) -> "Interval":
        return cls(start, end - start)

    @property
    def end(self) -> datetime:
        return self.start + self.duration

    def overlaps(self, other: "Interval") -> bool:
        return overlaps(self, other)


def overlaps(a: Interval, b: Interval) -> bool:
    # Half-open: back-to-back (a.end == b.start) and empty intervals never overlap
    if a.duration <= timedelta(0) or b.duration <= timedelta(0):
        return False
    return a.start < b.end and b.start < a.end


def appointment_interval(appointment) -> Interval:
    """Interval occupied by anything with ``date_time`` and ``duration`` (minutes)."""
    return Interval.of_minutes(appointment.date_time, appointment.duration)

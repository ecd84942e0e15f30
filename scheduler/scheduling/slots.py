"""Slot generation for a single calendar day.

``generate_slots`` is pure: it never reads the clock or the database. Callers load the active
appointment intervals and the blocked intervals for the day and pass ``now`` explicitly, which
keeps the output identical for identical inputs.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta

from scheduler.scheduling.intervals import Interval, overlaps_any
from scheduler.scheduling.working_hours import WorkingHoursPolicy, validate_duration


@dataclass(frozen=True)
class Slot:
    interval: Interval
    available: bool
    is_past: bool
    is_blocked: bool
    is_booked: bool

    @property
    def start_time(self) -> datetime:
        return self.interval.start

    @property
    def end_time(self) -> datetime:
        return self.interval.end


def iterate_slot_intervals(window: Interval, duration_minutes: int):
    """Yield back-to-back intervals of ``duration_minutes`` that fit entirely inside ``window``."""
    step = timedelta(minutes=duration_minutes)
    current = window.start
    while current + step <= window.end:
        yield Interval(current, current + step)
        current += step


def generate_slots(
    day: date,
    duration_minutes: int,
    booked_intervals,
    blocked_intervals,
    now: datetime,
    policy: WorkingHoursPolicy | None = None,
) -> list[Slot]:
    validate_duration(duration_minutes)
    policy = policy or WorkingHoursPolicy()

    if not policy.is_working_day(day):
        return []

    booked = tuple(booked_intervals)
    blocked = tuple(blocked_intervals)

    slots: list[Slot] = []
    for interval in iterate_slot_intervals(policy.window(day), duration_minutes):
        is_booked = overlaps_any(interval, booked)
        is_blocked = overlaps_any(interval, blocked)
        is_past = interval.start < now
        slots.append(
            Slot(
                interval=interval,
                available=not is_booked and not is_blocked and not is_past,
                is_past=is_past,
                is_blocked=is_blocked,
                is_booked=is_booked,
            )
        )

    return slots

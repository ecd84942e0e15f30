"""Half-open time ranges and the single overlap predicate shared by the engine."""

from dataclasses import dataclass
from datetime import datetime, timedelta


@dataclass(frozen=True, order=True)
class Interval:
    """Immutable ``[start, end)`` range. ``start`` must be strictly before ``end``."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValueError('Interval start must be before its end.')

    @classmethod
    def from_duration(cls, start: datetime, duration_minutes: int) -> 'Interval':
        return cls(start, start + timedelta(minutes=duration_minutes))

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    def overlaps(self, other: 'Interval') -> bool:
        return overlaps(self, other)


def overlaps(a: Interval, b: Interval) -> bool:
    # Touching ranges ([9:00, 9:30) and [9:30, 10:00)) do not overlap.
    return a.start < b.end and b.start < a.end


def overlaps_any(candidate: Interval, intervals) -> bool:
    return any(overlaps(candidate, interval) for interval in intervals)

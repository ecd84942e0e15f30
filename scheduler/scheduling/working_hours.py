"""Business-hours configuration used by slot generation and booking validation."""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from scheduler.scheduling import errors
from scheduler.scheduling.intervals import Interval

ALLOWED_DURATIONS = (15, 30, 60, 90, 120)

# 0=Mon .. 6=Sun, matching date.weekday()
WEEKDAYS = frozenset({0, 1, 2, 3, 4})


def validate_duration(duration_minutes: int) -> int:
    if duration_minutes not in ALLOWED_DURATIONS:
        allowed = ', '.join(str(minutes) for minutes in ALLOWED_DURATIONS)
        raise errors.ValidationError(f'Duration must be one of {allowed} minutes.')
    return duration_minutes


@dataclass(frozen=True)
class WorkingHoursPolicy:
    start_hour: int = 9
    end_hour: int = 17
    slot_minutes: int = 30
    working_days: frozenset = field(default=WEEKDAYS)

    def __post_init__(self) -> None:
        if not 0 <= self.start_hour < self.end_hour <= 24:
            raise ValueError('Working hours must satisfy 0 <= start_hour < end_hour <= 24.')
        if self.slot_minutes <= 0:
            raise ValueError('slot_minutes must be positive.')
        if not set(self.working_days) <= set(range(7)):
            raise ValueError('working_days must be weekday numbers between 0 (Monday) and 6 (Sunday).')
        object.__setattr__(self, 'working_days', frozenset(self.working_days))

    @classmethod
    def from_config(cls) -> 'WorkingHoursPolicy':
        from scheduler.core import config

        return cls(
            start_hour=config.WORKING_HOURS_START,
            end_hour=config.WORKING_HOURS_END,
            slot_minutes=config.SLOT_MINUTES,
            working_days=frozenset(config.WORKING_DAYS),
        )

    def is_working_day(self, day: date) -> bool:
        return day.weekday() in self.working_days

    def window(self, day: date) -> Interval:
        midnight = datetime.combine(day, datetime.min.time())
        return Interval(midnight + timedelta(hours=self.start_hour), midnight + timedelta(hours=self.end_hour))

    def contains(self, interval: Interval) -> bool:
        """True when ``interval`` sits entirely inside one working day's opening hours."""
        day = interval.start.date()
        if not self.is_working_day(day):
            return False
        window = self.window(day)
        return window.start <= interval.start and interval.end <= window.end

    def as_dict(self) -> dict:
        return {
            'start_hour': self.start_hour,
            'end_hour': self.end_hour,
            'slot_minutes': self.slot_minutes,
            'working_days': sorted(self.working_days),
        }

from datetime import date, datetime

import pytest

from scheduler.scheduling import errors
from scheduler.scheduling.intervals import Interval
from scheduler.scheduling.working_hours import ALLOWED_DURATIONS, WorkingHoursPolicy, validate_duration


def test_default_policy_is_weekdays_nine_to_five() -> None:
    policy = WorkingHoursPolicy()

    assert policy.as_dict() == {
        'start_hour': 9,
        'end_hour': 17,
        'slot_minutes': 30,
        'working_days': [0, 1, 2, 3, 4],
    }
    assert policy.is_working_day(date(2030, 1, 7))
    assert not policy.is_working_day(date(2030, 1, 5))


def test_window_spans_opening_hours() -> None:
    policy = WorkingHoursPolicy(start_hour=8, end_hour=24)

    window = policy.window(date(2030, 1, 7))

    assert window == Interval(datetime(2030, 1, 7, 8, 0), datetime(2030, 1, 8, 0, 0))


def test_contains_requires_interval_inside_a_working_day() -> None:
    policy = WorkingHoursPolicy()

    assert policy.contains(Interval(datetime(2030, 1, 7, 9, 0), datetime(2030, 1, 7, 9, 30)))
    assert policy.contains(Interval(datetime(2030, 1, 7, 16, 0), datetime(2030, 1, 7, 17, 0)))
    assert not policy.contains(Interval(datetime(2030, 1, 7, 8, 30), datetime(2030, 1, 7, 9, 30)))
    assert not policy.contains(Interval(datetime(2030, 1, 7, 16, 30), datetime(2030, 1, 7, 17, 30)))
    assert not policy.contains(Interval(datetime(2030, 1, 5, 10, 0), datetime(2030, 1, 5, 11, 0)))


@pytest.mark.parametrize(
    'kwargs',
    [
        {'start_hour': 17, 'end_hour': 9},
        {'start_hour': 9, 'end_hour': 25},
        {'slot_minutes': 0},
        {'working_days': {7}},
    ],
)
def test_policy_rejects_invalid_configuration(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        WorkingHoursPolicy(**kwargs)


def test_policy_freezes_working_days() -> None:
    policy = WorkingHoursPolicy(working_days=[5, 6])

    assert policy.working_days == frozenset({5, 6})


def test_from_config_reads_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('scheduler.core.config.WORKING_HOURS_START', 10)
    monkeypatch.setattr('scheduler.core.config.WORKING_HOURS_END', 14)
    monkeypatch.setattr('scheduler.core.config.SLOT_MINUTES', 15)
    monkeypatch.setattr('scheduler.core.config.WORKING_DAYS', [5])

    policy = WorkingHoursPolicy.from_config()

    assert policy == WorkingHoursPolicy(start_hour=10, end_hour=14, slot_minutes=15, working_days=frozenset({5}))


def test_validate_duration_accepts_only_allowed_values() -> None:
    for minutes in ALLOWED_DURATIONS:
        assert validate_duration(minutes) == minutes

    with pytest.raises(errors.ValidationError) as exception_info:
        validate_duration(45)

    assert exception_info.value.detail == 'Duration must be one of 15, 30, 60, 90, 120 minutes.'

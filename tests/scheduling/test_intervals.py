from datetime import datetime

import pytest

from scheduler.scheduling.intervals import Interval, overlaps, overlaps_any


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2030, 1, 7, hour, minute)


def test_interval_rejects_empty_or_inverted_range() -> None:
    with pytest.raises(ValueError):
        Interval(at(10), at(10))

    with pytest.raises(ValueError):
        Interval(at(11), at(10))


def test_from_duration_builds_half_open_range() -> None:
    interval = Interval.from_duration(at(14), 60)

    assert interval == Interval(at(14), at(15))
    assert interval.duration_minutes == 60


@pytest.mark.parametrize(
    ('first', 'second', 'expected'),
    [
        (Interval(at(10), at(10, 30)), Interval(at(10, 15), at(10, 45)), True),
        (Interval(at(10), at(11)), Interval(at(10, 15), at(10, 45)), True),
        (Interval(at(10), at(10, 30)), Interval(at(10, 30), at(11)), False),
        (Interval(at(9), at(9, 30)), Interval(at(11), at(12)), False),
    ],
)
def test_overlaps_is_symmetric(first: Interval, second: Interval, expected: bool) -> None:
    assert overlaps(first, second) is expected
    assert overlaps(second, first) is expected


def test_interval_overlaps_itself() -> None:
    interval = Interval(at(9), at(9, 15))

    assert overlaps(interval, interval)
    assert interval.overlaps(interval)


def test_overlaps_any_checks_every_interval() -> None:
    candidate = Interval(at(13), at(14))

    assert not overlaps_any(candidate, [])
    assert not overlaps_any(candidate, [Interval(at(9), at(13)), Interval(at(14), at(15))])
    assert overlaps_any(candidate, [Interval(at(9), at(10)), Interval(at(13, 45), at(14, 15))])

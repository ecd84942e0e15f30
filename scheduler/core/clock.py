"""Canonical clock.

All datetimes are stored and compared as naive values in ``SCHEDULER_TIMEZONE``. Aware input
is converted into that zone before its tzinfo is dropped; naive input is taken as already
canonical.
"""

from datetime import datetime
from zoneinfo import ZoneInfo

from scheduler.core import config


def canonical_zone() -> ZoneInfo:
    return ZoneInfo(config.SCHEDULER_TIMEZONE)


def now() -> datetime:
    return datetime.now(canonical_zone()).replace(tzinfo=None, microsecond=0)


def to_canonical(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(canonical_zone()).replace(tzinfo=None)

"""ConflictGuard: rejects a candidate interval that collides with the active calendar."""

import logging

from scheduler.scheduling import errors
from scheduler.scheduling.intervals import Interval, overlaps

logger = logging.getLogger(__name__)


def find_overlapping(candidate: Interval, intervals, exclude_id=None):
    """Return the first ``(id, interval)`` pair overlapping ``candidate``, or ``None``.

    ``intervals`` is an iterable of ``(id, interval)`` pairs; the pair whose id equals
    ``exclude_id`` is skipped so an appointment is never compared against its own prior slot.
    """
    for item_id, interval in intervals:
        if exclude_id is not None and item_id == exclude_id:
            continue
        if overlaps(candidate, interval):
            return item_id, interval
    return None


def check_no_overlap(
    candidate: Interval,
    active_appointments,
    exclude_id=None,
    message: str = 'This time slot is already booked or pending.',
) -> None:
    collision = find_overlapping(candidate, active_appointments, exclude_id=exclude_id)
    if collision is not None:
        item_id, interval = collision
        logger.warning(
            'Slot conflict: %s-%s collides with %s (%s-%s)',
            candidate.start.isoformat(),
            candidate.end.isoformat(),
            item_id,
            interval.start.isoformat(),
            interval.end.isoformat(),
        )
        raise errors.SlotConflict(message)

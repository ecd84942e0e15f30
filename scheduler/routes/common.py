import logging
from datetime import datetime

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from scheduler.database import ensure_scheduling_schema
from scheduler.models.appointment import Appointment
from scheduler.models.blocked_slot import BlockedSlot
from scheduler.scheduling import errors
from scheduler.scheduling.conflicts import check_no_overlap
from scheduler.scheduling.intervals import Interval
from scheduler.scheduling.state_machine import OCCUPYING_STATUSES
from scheduler.scheduling.working_hours import WorkingHoursPolicy

logger = logging.getLogger(__name__)

DATABASE_UNAVAILABLE = 'Database unavailable. Verify DATABASE_URL and database credentials.'

OCCUPYING_STATUS_VALUES = sorted(occupying_status.value for occupying_status in OCCUPYING_STATUSES)


def get_policy() -> WorkingHoursPolicy:
    return WorkingHoursPolicy.from_config()


def ensure_database_ready() -> None:
    try:
        ensure_scheduling_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc


def database_unavailable(exc: SQLAlchemyError) -> HTTPException:
    logger.exception('Database operation failed', exc_info=exc)
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=DATABASE_UNAVAILABLE)


def http_error(exc: errors.SchedulingError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.detail)


def active_appointment_intervals(db: Session, window: Interval) -> list[tuple[int, Interval]]:
    rows = db.query(Appointment.id, Appointment.start_time, Appointment.end_time).filter(
        Appointment.status.in_(OCCUPYING_STATUS_VALUES),
        Appointment.start_time < window.end,
        Appointment.end_time > window.start,
    ).order_by(Appointment.start_time.asc()).all()
    return [(appointment_id, Interval(start_time, end_time)) for appointment_id, start_time, end_time in rows]


def blocked_intervals(db: Session, window: Interval) -> list[tuple[int, Interval]]:
    rows = db.query(BlockedSlot.id, BlockedSlot.start_time, BlockedSlot.end_time).filter(
        BlockedSlot.start_time < window.end,
        BlockedSlot.end_time > window.start,
    ).order_by(BlockedSlot.start_time.asc()).all()
    return [(blocked_id, Interval(start_time, end_time)) for blocked_id, start_time, end_time in rows]


def guard_calendar(db: Session, candidate: Interval, exclude_appointment_id: int | None = None) -> None:
    """Raise ``SlotConflict`` if ``candidate`` collides with a block or an occupying appointment.

    Appointments with an open cancellation or reschedule request still occupy their interval.

    Must run inside ``calendar_write_lock`` so the answer still holds when the caller commits.
    """
    check_no_overlap(
        candidate,
        active_appointment_intervals(db, candidate),
        exclude_id=exclude_appointment_id,
        message='This time slot is already booked or pending.',
    )
    check_no_overlap(
        candidate,
        blocked_intervals(db, candidate),
        message='This time is blocked.',
    )


def validate_booking_interval(interval: Interval, policy: WorkingHoursPolicy, now: datetime) -> None:
    if interval.start <= now:
        raise errors.ValidationError('Appointments must be scheduled in the future.')
    if not policy.is_working_day(interval.start.date()):
        raise errors.ValidationError('Appointments can only be scheduled on working days.')
    if not policy.contains(interval):
        raise errors.ValidationError('Appointment is outside working hours.')

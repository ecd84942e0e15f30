import logging
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from scheduler.auth.dependencies import get_current_actor
from scheduler.core import clock
from scheduler.database import get_db
from scheduler.locking import calendar_write_lock
from scheduler.models.appointment import Appointment
from scheduler.notifier import DatabaseNotificationDispatcher
from scheduler.routes.common import (
    database_unavailable,
    ensure_database_ready,
    get_policy,
    guard_calendar,
    http_error,
    validate_booking_interval,
)
from scheduler.scheduling import errors
from scheduler.scheduling.intervals import Interval
from scheduler.scheduling.notifications import booking_submitted_events, dispatch_events
from scheduler.scheduling.state_machine import (
    Actor,
    AppointmentStatus,
    TransitionPayload,
    apply_transition,
)
from scheduler.scheduling.working_hours import ALLOWED_DURATIONS, WorkingHoursPolicy

router = APIRouter(tags=['appointments'])

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 1000
MAX_NAME_LENGTH = 100
MAX_REASON_LENGTH = 500
APPOINTMENT_KINDS = ('online', 'offline')


def _required_text(value: str, label: str, max_length: int) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError(f'{label} is required.')
    if len(normalized) > max_length:
        raise ValueError(f'{label} cannot exceed {max_length} characters.')
    return normalized


def _optional_text(value: str | None, label: str, max_length: int) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    if not normalized:
        return None
    if len(normalized) > max_length:
        raise ValueError(f'{label} cannot exceed {max_length} characters.')
    return normalized


class CreateAppointmentRequest(BaseModel):
    title: str
    description: str | None = None
    kind: str
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    name: str
    email: str
    phone: str | None = None

    @field_validator('title')
    @classmethod
    def validate_title(cls, value: str) -> str:
        return _required_text(value, 'Title', MAX_TITLE_LENGTH)

    @field_validator('description')
    @classmethod
    def validate_description(cls, value: str | None) -> str | None:
        return _optional_text(value, 'Description', MAX_DESCRIPTION_LENGTH)

    @field_validator('kind')
    @classmethod
    def validate_kind(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in APPOINTMENT_KINDS:
            raise ValueError('Appointment type must be online or offline.')
        return normalized

    @field_validator('duration_minutes')
    @classmethod
    def validate_duration_minutes(cls, value: int) -> int:
        if value not in ALLOWED_DURATIONS:
            allowed = ', '.join(str(minutes) for minutes in ALLOWED_DURATIONS)
            raise ValueError(f'Duration must be one of {allowed} minutes.')
        return value

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _required_text(value, 'Name', MAX_NAME_LENGTH)

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not normalized or '@' not in normalized:
            raise ValueError('A valid email is required.')
        return normalized

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, value: str | None) -> str | None:
        return _optional_text(value, 'Phone', 40)


class TransitionRequest(BaseModel):
    event: str
    meeting_link: str | None = None
    reason: str | None = None
    new_start_time: datetime | None = None

    @field_validator('event')
    @classmethod
    def validate_event(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator('meeting_link')
    @classmethod
    def validate_meeting_link(cls, value: str | None) -> str | None:
        return _optional_text(value, 'Meeting link', 2000)

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return _optional_text(value, 'Reason', MAX_REASON_LENGTH)


class AppointmentResponse(BaseModel):
    id: int
    user_id: int
    title: str
    description: str | None = None
    kind: str
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    status: str
    meeting_link: str | None = None
    name: str
    email: str
    phone: str | None = None
    cancellation_reason: str | None = None
    rejection_reason: str | None = None
    reschedule_requested_time: datetime | None = None
    reschedule_reason: str | None = None

    class Config:
        from_attributes = True


def derive_interval(data: CreateAppointmentRequest) -> Interval:
    start_time = clock.to_canonical(data.start_time).replace(second=0, microsecond=0)
    end_time = clock.to_canonical(data.end_time).replace(second=0, microsecond=0)
    if end_time - start_time != timedelta(minutes=data.duration_minutes):
        raise errors.ValidationError('End time must equal start time plus the duration.')
    return Interval(start_time, end_time)


def get_appointment_for_actor(db: Session, appointment_id: int, actor: Actor) -> Appointment:
    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    if appointment is None:
        raise errors.NotFound('Appointment not found.')
    if not actor.is_admin and appointment.user_id != actor.id:
        raise errors.Forbidden('You can only access your own appointments.')
    return appointment


@router.get('', response_model=list[AppointmentResponse])
def list_appointments(
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        query = db.query(Appointment)
        if not actor.is_admin:
            query = query.filter(Appointment.user_id == actor.id)
        return query.order_by(Appointment.created_at.desc(), Appointment.id.desc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return get_appointment_for_actor(db, appointment_id, actor)
    except errors.SchedulingError as exc:
        raise http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    policy: WorkingHoursPolicy = Depends(get_policy),
    now: datetime = Depends(clock.now),
):
    ensure_database_ready()

    try:
        interval = derive_interval(data)
        validate_booking_interval(interval, policy, now)

        with calendar_write_lock(db):
            guard_calendar(db, interval)
            appointment = Appointment(
                user_id=actor.id,
                title=data.title,
                description=data.description,
                kind=data.kind,
                start_time=interval.start,
                end_time=interval.end,
                duration_minutes=data.duration_minutes,
                status=AppointmentStatus.PENDING.value,
                name=data.name,
                email=data.email,
                phone=data.phone,
            )
            db.add(appointment)
            db.commit()

        db.refresh(appointment)
    except errors.SchedulingError as exc:
        raise http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    logger.info(
        'Appointment %s booked by user %s for %s-%s',
        appointment.id,
        actor.id,
        appointment.start_time.isoformat(),
        appointment.end_time.isoformat(),
    )
    dispatch_events(DatabaseNotificationDispatcher(db), booking_submitted_events(appointment))

    return appointment


@router.patch('/{appointment_id}', response_model=AppointmentResponse)
def transition_appointment(
    appointment_id: int,
    data: TransitionRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    policy: WorkingHoursPolicy = Depends(get_policy),
    now: datetime = Depends(clock.now),
):
    ensure_database_ready()

    new_start_time = clock.to_canonical(data.new_start_time)
    if new_start_time is not None:
        new_start_time = new_start_time.replace(second=0, microsecond=0)
    payload = TransitionPayload(meeting_link=data.meeting_link, reason=data.reason, new_start_time=new_start_time)

    try:
        # Every transition is serialized with bookings so a status change never races a
        # reschedule confirmation on the same row.
        with calendar_write_lock(db):
            appointment = get_appointment_for_actor(db, appointment_id, actor)

            result = apply_transition(
                appointment,
                data.event,
                actor,
                payload,
                check_conflict=lambda candidate: guard_calendar(
                    db, candidate, exclude_appointment_id=appointment.id
                ),
                validate_requested_time=lambda requested: validate_booking_interval(requested, policy, now),
            )
            db.commit()

        db.refresh(appointment)
    except errors.SchedulingError as exc:
        raise http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    dispatch_events(DatabaseNotificationDispatcher(db), result.events)

    return appointment


"""Appointment status state machine.

Every legal move is one row of ``TRANSITIONS``, keyed by ``(status, event)``. ``apply_transition``
looks the pair up, checks the row's guard, lets the row's effect compute the field changes and
lifecycle events, and only then writes the changes onto the appointment. Anything that fails
along the way leaves the appointment exactly as it was.

The appointment may be an ORM row or any object exposing the same attribute names.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable

from scheduler.scheduling import errors
from scheduler.scheduling.intervals import Interval
from scheduler.scheduling.notifications import (
    ALL_ADMINS,
    BOOKING_APPROVED,
    BOOKING_CANCELLED,
    BOOKING_REJECTED,
    CANCELLATION_REQUEST,
    REMINDER,
    RESCHEDULE_REQUEST,
    EventDescriptor,
    format_when,
)

logger = logging.getLogger(__name__)


class AppointmentStatus(str, Enum):
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'
    CANCELLED = 'cancelled'
    COMPLETED = 'completed'
    CANCELLATION_REQUESTED = 'cancellation_requested'
    RESCHEDULE_REQUESTED = 'reschedule_requested'


class TransitionEvent(str, Enum):
    APPROVE = 'approve'
    REJECT = 'reject'
    REQUEST_CANCEL = 'request_cancel'
    REQUEST_RESCHEDULE = 'request_reschedule'
    CONFIRM_CANCEL = 'confirm_cancel'
    REJECT_CANCEL = 'reject_cancel'
    CONFIRM_RESCHEDULE = 'confirm_reschedule'
    REJECT_RESCHEDULE = 'reject_reschedule'


ACTIVE_STATUSES = frozenset({AppointmentStatus.PENDING, AppointmentStatus.APPROVED})
# An open request still holds its interval until an administrator resolves it.
OCCUPYING_STATUSES = ACTIVE_STATUSES | frozenset(
    {AppointmentStatus.CANCELLATION_REQUESTED, AppointmentStatus.RESCHEDULE_REQUESTED}
)
TERMINAL_STATUSES = frozenset(
    {AppointmentStatus.REJECTED, AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED}
)
ADMIN_ROLES = frozenset({'sub-admin', 'super-admin'})

ADMIN_GUARD = 'admin'
OWNER_GUARD = 'owner'


@dataclass(frozen=True)
class Actor:
    id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


@dataclass(frozen=True)
class TransitionPayload:
    meeting_link: str | None = None
    reason: str | None = None
    new_start_time: datetime | None = None


@dataclass
class TransitionResult:
    previous_status: AppointmentStatus
    status: AppointmentStatus
    events: list[EventDescriptor] = field(default_factory=list)


@dataclass(frozen=True)
class TransitionHooks:
    check_conflict: Callable[[Interval], None] | None = None
    validate_requested_time: Callable[[Interval], None] | None = None


@dataclass(frozen=True)
class Transition:
    target: AppointmentStatus
    guard: str
    effect: Callable


def _owner_event(appointment, event_type: str, title: str, message: str) -> EventDescriptor:
    return EventDescriptor(
        type=event_type,
        title=title,
        message=message,
        recipient=appointment.user_id,
        related_appointment_id=appointment.id,
    )


def _admin_event(appointment, event_type: str, title: str, message: str) -> EventDescriptor:
    return EventDescriptor(
        type=event_type,
        title=title,
        message=message,
        recipient=ALL_ADMINS,
        related_appointment_id=appointment.id,
    )


def _approve(appointment, payload: TransitionPayload, hooks: TransitionHooks):
    changes = {}
    if payload.meeting_link:
        changes['meeting_link'] = payload.meeting_link
    suffix = ' Meeting link has been added.' if payload.meeting_link else ''
    events = [
        _owner_event(
            appointment,
            BOOKING_APPROVED,
            'Appointment Approved',
            f'Your appointment "{appointment.title}" has been approved!{suffix}',
        )
    ]
    return changes, events


def _reject(appointment, payload: TransitionPayload, hooks: TransitionHooks):
    changes = {}
    if payload.reason:
        changes['rejection_reason'] = payload.reason
    suffix = f' Reason: {payload.reason}' if payload.reason else ''
    events = [
        _owner_event(
            appointment,
            BOOKING_REJECTED,
            'Appointment Rejected',
            f'Your appointment "{appointment.title}" has been rejected.{suffix}',
        )
    ]
    return changes, events


def _request_cancel(appointment, payload: TransitionPayload, hooks: TransitionHooks):
    changes = {'cancellation_reason': payload.reason}
    reason = payload.reason or 'not given'
    events = [
        _owner_event(
            appointment,
            CANCELLATION_REQUEST,
            'Cancellation Request Submitted',
            f'Your request to cancel "{appointment.title}" has been submitted.',
        ),
        _admin_event(
            appointment,
            CANCELLATION_REQUEST,
            'Cancellation Requested',
            f'Cancellation requested for "{appointment.title}". Reason: {reason}',
        ),
    ]
    return changes, events


def _request_reschedule(appointment, payload: TransitionPayload, hooks: TransitionHooks):
    if payload.new_start_time is None:
        raise errors.InvalidTransition(
            'New start time is required to request a reschedule.',
            current_status=appointment.status,
            event=TransitionEvent.REQUEST_RESCHEDULE.value,
        )
    if hooks.validate_requested_time is not None:
        hooks.validate_requested_time(Interval.from_duration(payload.new_start_time, appointment.duration_minutes))
    changes = {
        'reschedule_requested_time': payload.new_start_time,
        'reschedule_reason': payload.reason,
    }
    when = format_when(payload.new_start_time)
    reason = payload.reason or 'not given'
    events = [
        _owner_event(
            appointment,
            RESCHEDULE_REQUEST,
            'Reschedule Request Submitted',
            f'Your request to move "{appointment.title}" to {when} has been submitted.',
        ),
        _admin_event(
            appointment,
            RESCHEDULE_REQUEST,
            'Reschedule Requested',
            f'Reschedule requested for "{appointment.title}" to {when}. Reason: {reason}',
        ),
    ]
    return changes, events


def _confirm_cancel(appointment, payload: TransitionPayload, hooks: TransitionHooks):
    events = [
        _owner_event(
            appointment,
            BOOKING_CANCELLED,
            'Cancellation Approved',
            f'Your request to cancel "{appointment.title}" has been approved.',
        )
    ]
    return {}, events


def _reject_cancel(appointment, payload: TransitionPayload, hooks: TransitionHooks):
    events = [
        _owner_event(
            appointment,
            REMINDER,
            'Cancellation Rejected',
            f'Your request to cancel "{appointment.title}" has been rejected. The appointment is still scheduled.',
        )
    ]
    return {}, events


def _confirm_reschedule(appointment, payload: TransitionPayload, hooks: TransitionHooks):
    requested = appointment.reschedule_requested_time
    if requested is None:
        raise errors.InvalidTransition(
            'No requested time found for this reschedule request.',
            current_status=appointment.status,
            event=TransitionEvent.CONFIRM_RESCHEDULE.value,
        )
    if hooks.check_conflict is None:
        raise TypeError('confirm_reschedule requires a conflict check.')

    new_interval = Interval.from_duration(requested, appointment.duration_minutes)
    hooks.check_conflict(new_interval)

    changes = {
        'start_time': new_interval.start,
        'end_time': new_interval.end,
        'reschedule_requested_time': None,
        'reschedule_reason': None,
    }
    events = [
        _owner_event(
            appointment,
            BOOKING_APPROVED,
            'Reschedule Approved',
            f'Your request to reschedule "{appointment.title}" has been approved. '
            f'New time: {format_when(new_interval.start)}',
        )
    ]
    return changes, events


def _reject_reschedule(appointment, payload: TransitionPayload, hooks: TransitionHooks):
    changes = {'reschedule_requested_time': None, 'reschedule_reason': None}
    events = [
        _owner_event(
            appointment,
            REMINDER,
            'Reschedule Rejected',
            f'Your request to reschedule "{appointment.title}" has been rejected. '
            'The appointment remains at the original time.',
        )
    ]
    return changes, events


S = AppointmentStatus
E = TransitionEvent

TRANSITIONS = {
    (S.PENDING, E.APPROVE): Transition(S.APPROVED, ADMIN_GUARD, _approve),
    (S.PENDING, E.REJECT): Transition(S.REJECTED, ADMIN_GUARD, _reject),
    (S.PENDING, E.REQUEST_CANCEL): Transition(S.CANCELLATION_REQUESTED, OWNER_GUARD, _request_cancel),
    (S.APPROVED, E.REQUEST_CANCEL): Transition(S.CANCELLATION_REQUESTED, OWNER_GUARD, _request_cancel),
    (S.PENDING, E.REQUEST_RESCHEDULE): Transition(S.RESCHEDULE_REQUESTED, OWNER_GUARD, _request_reschedule),
    (S.APPROVED, E.REQUEST_RESCHEDULE): Transition(S.RESCHEDULE_REQUESTED, OWNER_GUARD, _request_reschedule),
    (S.CANCELLATION_REQUESTED, E.CONFIRM_CANCEL): Transition(S.CANCELLED, ADMIN_GUARD, _confirm_cancel),
    (S.CANCELLATION_REQUESTED, E.REJECT_CANCEL): Transition(S.APPROVED, ADMIN_GUARD, _reject_cancel),
    (S.RESCHEDULE_REQUESTED, E.CONFIRM_RESCHEDULE): Transition(S.APPROVED, ADMIN_GUARD, _confirm_reschedule),
    (S.RESCHEDULE_REQUESTED, E.REJECT_RESCHEDULE): Transition(S.APPROVED, ADMIN_GUARD, _reject_reschedule),
}

del S, E


def allowed_events(status) -> list[TransitionEvent]:
    status = AppointmentStatus(status)
    return [event for (from_status, event) in TRANSITIONS if from_status == status]


def _parse(appointment, event) -> tuple[AppointmentStatus, TransitionEvent]:
    try:
        parsed_event = TransitionEvent(event)
    except ValueError as exc:
        raise errors.InvalidTransition(
            f'Unknown event "{event}".',
            current_status=str(appointment.status),
            event=str(event),
        ) from exc

    try:
        status = AppointmentStatus(appointment.status)
    except ValueError as exc:
        raise errors.InvalidTransition(
            f'Appointment has unknown status "{appointment.status}".',
            current_status=str(appointment.status),
            event=parsed_event.value,
        ) from exc

    return status, parsed_event


def _check_guard(transition: Transition, appointment, actor: Actor, event: TransitionEvent) -> None:
    if transition.guard == ADMIN_GUARD and not actor.is_admin:
        raise errors.Forbidden(f'Only administrators can {event.value.replace("_", " ")} appointments.')
    if transition.guard == OWNER_GUARD and actor.id != appointment.user_id:
        raise errors.Forbidden('Only the user who booked this appointment can make this request.')


def apply_transition(
    appointment,
    event,
    actor: Actor,
    payload: TransitionPayload | None = None,
    check_conflict: Callable[[Interval], None] | None = None,
    validate_requested_time: Callable[[Interval], None] | None = None,
) -> TransitionResult:
    """Move ``appointment`` along the transition table.

    Raises ``InvalidTransition`` when ``(status, event)`` is not a row of the table or a required
    payload field is missing, ``Forbidden`` when the actor fails the row's guard, and whatever
    ``check_conflict`` raises (``SlotConflict``) for a reschedule confirmation that collides.
    ``validate_requested_time`` sees the interval of a reschedule request only once the move is
    known to be legal for this actor.
    """
    payload = payload or TransitionPayload()
    status, parsed_event = _parse(appointment, event)

    transition = TRANSITIONS.get((status, parsed_event))
    if transition is None:
        raise errors.InvalidTransition(
            f'Cannot {parsed_event.value} an appointment that is {status.value}.',
            current_status=status.value,
            event=parsed_event.value,
        )

    _check_guard(transition, appointment, actor, parsed_event)

    hooks = TransitionHooks(check_conflict=check_conflict, validate_requested_time=validate_requested_time)
    changes, events = transition.effect(appointment, payload, hooks)

    for name, value in changes.items():
        setattr(appointment, name, value)
    appointment.status = transition.target.value

    logger.info(
        'Appointment %s: %s -> %s via %s by user %s',
        appointment.id,
        status.value,
        transition.target.value,
        parsed_event.value,
        actor.id,
    )

    return TransitionResult(previous_status=status, status=transition.target, events=events)

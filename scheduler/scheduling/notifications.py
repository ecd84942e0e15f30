"""Lifecycle event descriptors and the dispatcher interface the engine emits them through.

The engine never resolves who the administrators are or how a notification is stored; it hands
each descriptor to a ``NotificationDispatcher`` with a recipient selector that is either a user
id or ``ALL_ADMINS``.
"""

import logging
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)

ALL_ADMINS = 'all_admins'

BOOKING_SUBMITTED = 'booking_submitted'
BOOKING_APPROVED = 'booking_approved'
BOOKING_REJECTED = 'booking_rejected'
BOOKING_CANCELLED = 'booking_cancelled'
REMINDER = 'reminder'
CANCELLATION_REQUEST = 'cancellation_request'
RESCHEDULE_REQUEST = 'reschedule_request'

NOTIFICATION_TYPES = (
    BOOKING_SUBMITTED,
    BOOKING_APPROVED,
    BOOKING_REJECTED,
    BOOKING_CANCELLED,
    REMINDER,
    CANCELLATION_REQUEST,
    RESCHEDULE_REQUEST,
)


@dataclass(frozen=True)
class EventDescriptor:
    type: str
    title: str
    message: str
    recipient: object
    related_appointment_id: int | None = None

    @property
    def is_for_admins(self) -> bool:
        return self.recipient == ALL_ADMINS


class NotificationDispatcher(Protocol):
    def notify(self, recipient, event: EventDescriptor) -> None:
        ...


def dispatch_events(dispatcher: NotificationDispatcher, events) -> None:
    """Hand every descriptor to ``dispatcher``.

    Runs after the triggering change is committed, so a failing delivery is logged and the
    remaining descriptors are still attempted.
    """
    for event in events:
        try:
            dispatcher.notify(event.recipient, event)
        except Exception:
            logger.exception(
                'Failed to dispatch %s notification for appointment %s',
                event.type,
                event.related_appointment_id,
            )


def booking_submitted_events(appointment) -> list[EventDescriptor]:
    return [
        EventDescriptor(
            type=BOOKING_SUBMITTED,
            title='Appointment Submitted',
            message=f'Your appointment "{appointment.title}" has been submitted and is pending approval.',
            recipient=appointment.user_id,
            related_appointment_id=appointment.id,
        ),
        EventDescriptor(
            type=BOOKING_SUBMITTED,
            title='New Appointment Request',
            message=(
                f'New appointment request from {appointment.name}: "{appointment.title}" '
                f'at {format_when(appointment.start_time)}'
            ),
            recipient=ALL_ADMINS,
            related_appointment_id=appointment.id,
        ),
    ]


def format_when(value) -> str:
    return value.strftime('%Y-%m-%d %H:%M')

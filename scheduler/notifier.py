"""NotificationDispatcher that writes lifecycle events into the users' notification inbox."""

import logging

from sqlalchemy.orm import Session

from scheduler.models.notification import Notification
from scheduler.models.user import User
from scheduler.scheduling.notifications import ALL_ADMINS, EventDescriptor
from scheduler.scheduling.state_machine import ADMIN_ROLES

logger = logging.getLogger(__name__)


class DatabaseNotificationDispatcher:
    def __init__(self, db: Session):
        self.db = db

    def resolve_recipients(self, recipient) -> list[int]:
        if recipient == ALL_ADMINS:
            rows = self.db.query(User.id).filter(User.role.in_(sorted(ADMIN_ROLES))).all()
            return [user_id for (user_id,) in rows]
        return [recipient]

    def notify(self, recipient, event: EventDescriptor) -> None:
        user_ids = self.resolve_recipients(recipient)
        if not user_ids:
            logger.info('No recipients for %s notification on appointment %s', event.type, event.related_appointment_id)
            return

        self.db.add_all(
            Notification(
                user_id=user_id,
                type=event.type,
                title=event.title,
                message=event.message,
                read=False,
                related_appointment_id=event.related_appointment_id,
            )
            for user_id in user_ids
        )
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

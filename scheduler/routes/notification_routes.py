from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from scheduler.auth.dependencies import get_current_actor
from scheduler.core import config
from scheduler.database import get_db
from scheduler.models.notification import Notification
from scheduler.routes.common import database_unavailable, ensure_database_ready, http_error
from scheduler.scheduling import errors
from scheduler.scheduling.state_machine import Actor

router = APIRouter(tags=['notifications'])


class NotificationResponse(BaseModel):
    id: int
    type: str
    title: str
    message: str
    read: bool
    related_appointment_id: int | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    unread_count: int


@router.get('', response_model=NotificationListResponse)
def list_notifications(
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        notifications = db.query(Notification).filter(
            Notification.user_id == actor.id,
        ).order_by(Notification.created_at.desc(), Notification.id.desc()).limit(config.NOTIFICATION_PAGE_SIZE).all()

        unread_count = db.query(Notification).filter(
            Notification.user_id == actor.id,
            Notification.read.is_(False),
        ).count()
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc

    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(notification) for notification in notifications],
        unread_count=unread_count,
    )


@router.patch('')
def mark_all_notifications_read(
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        db.query(Notification).filter(
            Notification.user_id == actor.id,
            Notification.read.is_(False),
        ).update({Notification.read: True}, synchronize_session=False)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    return {'message': 'All notifications marked as read'}


@router.patch('/{notification_id}', response_model=NotificationResponse)
def mark_notification_read(
    notification_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        notification = db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == actor.id,
        ).first()
        if notification is None:
            raise errors.NotFound('Notification not found.')

        notification.read = True
        db.commit()
        db.refresh(notification)
    except errors.SchedulingError as exc:
        raise http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    return notification

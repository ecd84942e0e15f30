import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from scheduler.auth.dependencies import get_current_actor
from scheduler.database import get_db
from scheduler.models.appointment import Appointment
from scheduler.models.blocked_slot import BlockedSlot
from scheduler.models.notification import Notification
from scheduler.models.user import User
from scheduler.routes.common import database_unavailable, ensure_database_ready, http_error
from scheduler.scheduling import errors
from scheduler.scheduling.state_machine import Actor

router = APIRouter(tags=['users'])

logger = logging.getLogger(__name__)

SUPER_ADMIN_ROLE = 'super-admin'
USER_ROLES = ('user', 'sub-admin', SUPER_ADMIN_ROLE)


class UpdateRoleRequest(BaseModel):
    role: str

    @field_validator('role')
    @classmethod
    def validate_role(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in USER_ROLES:
            raise ValueError('Role must be one of user, sub-admin, super-admin.')
        return normalized


class UserResponse(BaseModel):
    id: int
    name: str | None = None
    email: str
    phone: str | None = None
    role: str
    created_at: datetime | None = None

    class Config:
        from_attributes = True


def require_admin(actor: Actor) -> None:
    if not actor.is_admin:
        raise errors.Forbidden('Only administrators can manage users.')


def get_managed_user(db: Session, user_id: int, actor: Actor) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise errors.NotFound('User not found.')
    if user.role == SUPER_ADMIN_ROLE and actor.role != SUPER_ADMIN_ROLE:
        raise errors.Forbidden('Cannot modify a super-admin.')
    return user


@router.get('', response_model=list[UserResponse])
def list_users(
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        require_admin(actor)
        return db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()
    except errors.SchedulingError as exc:
        raise http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.patch('/{user_id}', response_model=UserResponse)
def update_user_role(
    user_id: int,
    data: UpdateRoleRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        require_admin(actor)
        user = get_managed_user(db, user_id, actor)
        previous_role = user.role
        user.role = data.role
        db.commit()
        db.refresh(user)
    except errors.SchedulingError as exc:
        raise http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    logger.info('User %s role changed from %s to %s by user %s', user.id, previous_role, user.role, actor.id)
    return user


@router.delete('/{user_id}')
def delete_user(
    user_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        require_admin(actor)
        if user_id == actor.id:
            raise errors.ValidationError('Cannot delete yourself.')

        user = get_managed_user(db, user_id, actor)

        # Appointments and blocks reference their user row.
        has_appointments = db.query(Appointment.id).filter(Appointment.user_id == user.id).first() is not None
        has_blocks = db.query(BlockedSlot.id).filter(BlockedSlot.created_by == user.id).first() is not None
        if has_appointments or has_blocks:
            raise errors.ValidationError('Cannot delete a user who still has appointments or blocked slots.')

        db.query(Notification).filter(Notification.user_id == user.id).delete(synchronize_session=False)
        db.delete(user)
        db.commit()
    except errors.SchedulingError as exc:
        raise http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    logger.info('User %s deleted by user %s', user_id, actor.id)
    return {'message': 'User deleted successfully'}

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from scheduler.auth.dependencies import get_current_actor
from scheduler.core import clock
from scheduler.database import get_db
from scheduler.locking import calendar_write_lock
from scheduler.models.blocked_slot import BlockedSlot
from scheduler.routes.common import (
    active_appointment_intervals,
    database_unavailable,
    ensure_database_ready,
    http_error,
)
from scheduler.scheduling import errors
from scheduler.scheduling.conflicts import check_no_overlap
from scheduler.scheduling.intervals import Interval
from scheduler.scheduling.state_machine import Actor

router = APIRouter(tags=['blocked-slots'])

logger = logging.getLogger(__name__)

MAX_BLOCK_REASON_LENGTH = 500


class CreateBlockedSlotRequest(BaseModel):
    start_time: datetime
    end_time: datetime
    reason: str | None = None

    @field_validator('start_time', 'end_time')
    @classmethod
    def normalize_time(cls, value: datetime) -> datetime:
        return clock.to_canonical(value).replace(second=0, microsecond=0)

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_BLOCK_REASON_LENGTH:
            raise ValueError(f'Reason must be {MAX_BLOCK_REASON_LENGTH} characters or fewer.')

        return normalized

    @model_validator(mode='after')
    def validate_range(self) -> 'CreateBlockedSlotRequest':
        if self.start_time >= self.end_time:
            raise ValueError('Start time must be before end time.')
        return self


class BlockedSlotResponse(BaseModel):
    id: int
    start_time: datetime
    end_time: datetime
    reason: str | None = None
    created_by: int

    class Config:
        from_attributes = True


def require_admin(actor: Actor, action: str) -> None:
    if not actor.is_admin:
        raise errors.Forbidden(f'Only administrators can {action}.')


@router.get('', response_model=list[BlockedSlotResponse])
def list_blocked_slots(
    start: datetime | None = Query(default=None),
    end: datetime | None = Query(default=None),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    del actor
    ensure_database_ready()

    try:
        query = db.query(BlockedSlot)
        if start is not None and end is not None:
            query = query.filter(
                BlockedSlot.start_time >= clock.to_canonical(start),
                BlockedSlot.end_time <= clock.to_canonical(end),
            )
        return query.order_by(BlockedSlot.start_time.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.post('', response_model=BlockedSlotResponse, status_code=status.HTTP_201_CREATED)
def create_blocked_slot(
    data: CreateBlockedSlotRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        require_admin(actor, 'block time')
        interval = Interval(data.start_time, data.end_time)

        with calendar_write_lock(db):
            check_no_overlap(
                interval,
                active_appointment_intervals(db, interval),
                message='This time is already booked by an appointment.',
            )
            blocked_slot = BlockedSlot(
                start_time=interval.start,
                end_time=interval.end,
                reason=data.reason,
                created_by=actor.id,
            )
            db.add(blocked_slot)
            db.commit()

        db.refresh(blocked_slot)
    except errors.SchedulingError as exc:
        raise http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    logger.info(
        'Blocked %s-%s (slot %s) by user %s',
        blocked_slot.start_time.isoformat(),
        blocked_slot.end_time.isoformat(),
        blocked_slot.id,
        actor.id,
    )
    return blocked_slot


@router.delete('/{slot_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_blocked_slot(
    slot_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        require_admin(actor, 'unblock time')

        blocked_slot = db.query(BlockedSlot).filter(BlockedSlot.id == slot_id).first()
        if blocked_slot is None:
            raise errors.NotFound('Blocked slot not found.')

        db.delete(blocked_slot)
        db.commit()
    except errors.SchedulingError as exc:
        raise http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    logger.info('Unblocked slot %s by user %s', slot_id, actor.id)

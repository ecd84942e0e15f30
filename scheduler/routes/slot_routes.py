from datetime import date, datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from scheduler.core import clock
from scheduler.database import get_db
from scheduler.routes.common import (
    active_appointment_intervals,
    blocked_intervals,
    database_unavailable,
    ensure_database_ready,
    get_policy,
    http_error,
)
from scheduler.scheduling import errors
from scheduler.scheduling.slots import generate_slots
from scheduler.scheduling.working_hours import WorkingHoursPolicy, validate_duration

router = APIRouter(tags=['slots'])


class WorkingHoursResponse(BaseModel):
    start_hour: int
    end_hour: int
    slot_minutes: int
    working_days: list[int]


class SlotResponse(BaseModel):
    start_time: datetime
    end_time: datetime
    available: bool
    is_past: bool
    is_blocked: bool
    is_booked: bool


class SlotListResponse(BaseModel):
    date: date
    duration_minutes: int
    working_hours: WorkingHoursResponse
    slots: list[SlotResponse]
    message: str | None = None


@router.get('', response_model=SlotListResponse)
def list_available_slots(
    date: date = Query(...),
    duration: int | None = Query(default=None),
    db: Session = Depends(get_db),
    policy: WorkingHoursPolicy = Depends(get_policy),
    now: datetime = Depends(clock.now),
):
    duration_minutes = duration if duration is not None else policy.slot_minutes
    working_hours = WorkingHoursResponse(**policy.as_dict())

    try:
        validate_duration(duration_minutes)
        if not policy.is_working_day(date):
            return SlotListResponse(
                date=date,
                duration_minutes=duration_minutes,
                working_hours=working_hours,
                slots=[],
                message='Not a working day',
            )

        ensure_database_ready()
        window = policy.window(date)
        booked = [interval for _, interval in active_appointment_intervals(db, window)]
        blocked = [interval for _, interval in blocked_intervals(db, window)]
        slots = generate_slots(date, duration_minutes, booked, blocked, now, policy)
    except errors.SchedulingError as exc:
        raise http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc

    return SlotListResponse(
        date=date,
        duration_minutes=duration_minutes,
        working_hours=working_hours,
        slots=[
            SlotResponse(
                start_time=slot.start_time,
                end_time=slot.end_time,
                available=slot.available,
                is_past=slot.is_past,
                is_blocked=slot.is_blocked,
                is_booked=slot.is_booked,
            )
            for slot in slots
        ],
    )

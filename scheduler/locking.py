"""Serialized critical section for writers that must keep the calendar conflict-free.

Appointment creation, every appointment transition and block creation each run their conflict query,
their write and their commit inside ``calendar_write_lock``. The process-wide lock serializes
threads of this worker; the ``SELECT ... FOR UPDATE`` on the single ``calendar_locks`` row
serializes workers that share a PostgreSQL database. SQLite ignores ``FOR UPDATE``, so nothing
serializes separate processes there: a SQLite deployment must run a single worker process.
Multi-worker deployments need PostgreSQL.
"""

import logging
from contextlib import contextmanager
from threading import Lock

from sqlalchemy.orm import Session

from scheduler.database import CALENDAR_LOCK_ID
from scheduler.models.calendar_lock import CalendarLock

logger = logging.getLogger(__name__)

_calendar_lock = Lock()


@contextmanager
def calendar_write_lock(db: Session):
    """Hold the calendar for the duration of the block.

    The caller commits inside the block. Any exception rolls the session back before the lock is
    released, so a losing writer never leaves a half-written change behind.
    """
    with _calendar_lock:
        try:
            lock_row = (
                db.query(CalendarLock)
                .filter(CalendarLock.id == CALENDAR_LOCK_ID)
                .with_for_update()
                .first()
            )
            if lock_row is None:
                db.add(CalendarLock(id=CALENDAR_LOCK_ID, name='default'))
                db.flush()
            yield
        except Exception:
            db.rollback()
            raise

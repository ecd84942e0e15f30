from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from scheduler.core import config

CALENDAR_LOCK_ID = 1


def build_engine(database_url: str):
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(database_url, echo=config.DATABASE_ECHO, connect_args=connect_args)


engine = build_engine(config.DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_scheduling_schema_checked = False


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _apply_scheduling_schema(bind) -> None:
    table_names = set(inspect(bind).get_table_names())

    with bind.begin() as connection:
        if 'appointments' in table_names:
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_time_range ON appointments(start_time, end_time)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_user_status ON appointments(user_id, status)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_status ON appointments(status)')
            )
        if 'blocked_slots' in table_names:
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_blocked_slots_time_range ON blocked_slots(start_time, end_time)')
            )
        if 'notifications' in table_names:
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_notifications_user_read ON notifications(user_id, read, created_at)')
            )
        if 'calendar_locks' in table_names:
            connection.execute(
                text(
                    'INSERT INTO calendar_locks (id, name) '
                    'SELECT :lock_id, :name '
                    'WHERE NOT EXISTS (SELECT 1 FROM calendar_locks WHERE id = :lock_id)'
                ),
                {'lock_id': CALENDAR_LOCK_ID, 'name': 'default'},
            )


def ensure_scheduling_schema(bind=None) -> None:
    """Create the lookup indexes and seed the calendar lock row.

    Without ``bind`` this runs once per process against the application engine.
    """
    global _scheduling_schema_checked

    if bind is not None:
        _apply_scheduling_schema(bind)
        return

    if _scheduling_schema_checked:
        return

    with _schema_lock:
        if _scheduling_schema_checked:
            return

        _apply_scheduling_schema(engine)
        _scheduling_schema_checked = True

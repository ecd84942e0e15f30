import os
from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite://')

from scheduler.database import Base, ensure_scheduling_schema  # noqa: E402
from scheduler.models import calendar_lock, notification  # noqa: E402,F401
from scheduler.models.appointment import Appointment  # noqa: E402
from scheduler.models.blocked_slot import BlockedSlot  # noqa: E402
from scheduler.models.user import User  # noqa: E402
from scheduler.scheduling.state_machine import Actor  # noqa: E402

# Monday 2030-01-07, before opening time.
NOW = datetime(2030, 1, 7, 8, 0)
MONDAY = NOW.date()


@pytest.fixture
def db_engine():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    ensure_scheduling_schema(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db(db_engine):
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def skip_global_schema_check(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('scheduler.routes.common.ensure_scheduling_schema', lambda: None)


def add_user(db, email: str, role: str = 'user', name: str = 'Test User') -> User:
    user = User(email=email, name=name, hashed_password='', role=role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def add_appointment(
    db,
    owner: User,
    start: datetime,
    duration_minutes: int = 30,
    status: str = 'approved',
    **fields,
) -> Appointment:
    appointment = Appointment(
        user_id=owner.id,
        title=fields.pop('title', 'Consultation'),
        kind=fields.pop('kind', 'online'),
        start_time=start,
        end_time=start + timedelta(minutes=duration_minutes),
        duration_minutes=duration_minutes,
        status=status,
        name=fields.pop('name', owner.name or 'Test User'),
        email=fields.pop('email', owner.email),
        **fields,
    )
    db.add(appointment)
    db.commit()
    db.refresh(appointment)
    return appointment


def add_blocked_slot(db, creator: User, start: datetime, end: datetime, reason: str | None = None) -> BlockedSlot:
    blocked_slot = BlockedSlot(start_time=start, end_time=end, reason=reason, created_by=creator.id)
    db.add(blocked_slot)
    db.commit()
    db.refresh(blocked_slot)
    return blocked_slot


@pytest.fixture
def owner(db) -> User:
    return add_user(db, 'owner@example.com', name='Olive Owner')


@pytest.fixture
def other_user(db) -> User:
    return add_user(db, 'other@example.com', name='Oscar Other')


@pytest.fixture
def admin(db) -> User:
    return add_user(db, 'admin@example.com', role='super-admin', name='Ada Admin')


@pytest.fixture
def owner_actor(owner) -> Actor:
    return Actor(id=owner.id, role=owner.role)


@pytest.fixture
def other_actor(other_user) -> Actor:
    return Actor(id=other_user.id, role=other_user.role)


@pytest.fixture
def admin_actor(admin) -> Actor:
    return Actor(id=admin.id, role=admin.role)

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from scheduler.core import config
from scheduler.database import Base, engine, ensure_scheduling_schema
from scheduler.models import appointment, blocked_slot, calendar_lock, notification, user  # noqa: F401
from scheduler.routes import (
    appointment_routes,
    auth_routes,
    blocked_slot_routes,
    notification_routes,
    slot_routes,
    user_routes,
)

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)

app = FastAPI(title='Appointment Scheduler')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_scheduling_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'Appointment Scheduler API Running'}


app.include_router(auth_routes.router, prefix='/auth')
app.include_router(slot_routes.router, prefix='/slots')
app.include_router(appointment_routes.router, prefix='/appointments')
app.include_router(blocked_slot_routes.router, prefix='/blocked-slots')
app.include_router(notification_routes.router, prefix='/notifications')
app.include_router(user_routes.router, prefix='/users')

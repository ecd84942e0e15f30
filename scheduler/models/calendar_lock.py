"""Calendar lock model definitions."""

from sqlalchemy import Column, Integer, String

from scheduler.database import Base


class CalendarLock(Base):
    """Single row locked FOR UPDATE by every writer that must keep the calendar conflict-free."""
    __tablename__ = "calendar_locks"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)

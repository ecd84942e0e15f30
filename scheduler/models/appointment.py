"""Appointment model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, func

from scheduler.database import Base
from scheduler.scheduling.intervals import Interval


class Appointment(Base):
    """Represents a booked appointment. Status changes go through the state machine."""
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text)
    kind = Column(String, nullable=False)  # online/offline
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    status = Column(String, nullable=False, default="pending")
    meeting_link = Column(String)
    name = Column(String(100), nullable=False)
    email = Column(String, nullable=False)
    phone = Column(String)
    cancellation_reason = Column(String)
    rejection_reason = Column(String)
    reschedule_requested_time = Column(DateTime)
    reschedule_reason = Column(String)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    @property
    def interval(self) -> Interval:
        return Interval(self.start_time, self.end_time)

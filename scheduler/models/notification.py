"""Notification model definitions."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, func

from scheduler.database import Base


class Notification(Base):
    """A lifecycle message in a user's inbox."""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    type = Column(String, nullable=False)
    title = Column(String, nullable=False)
    message = Column(String, nullable=False)
    read = Column(Boolean, nullable=False, default=False)
    related_appointment_id = Column(Integer, ForeignKey("appointments.id"))
    created_at = Column(DateTime, server_default=func.now())

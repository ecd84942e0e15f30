"""Blocked slot model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, func

from scheduler.database import Base
from scheduler.scheduling.intervals import Interval


class BlockedSlot(Base):
    """An administrator-held range that cannot be booked."""
    __tablename__ = "blocked_slots"

    id = Column(Integer, primary_key=True)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    reason = Column(String(500))
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    @property
    def interval(self) -> Interval:
        return Interval(self.start_time, self.end_time)

"""User model definitions."""

from sqlalchemy import Column, DateTime, Integer, String, func

from scheduler.database import Base


class User(Base):
    """Represents an application user. Rows are created by the credential service."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100))
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String)
    phone = Column(String)
    role = Column(String, nullable=False, default="user")  # user/sub-admin/super-admin
    created_at = Column(DateTime, server_default=func.now())

"""User model definitions."""

from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from assignment_portal.core.deadlines import utcnow
from assignment_portal.database import Base


class Role(str, Enum):
    """Closed set of account roles. There is no hierarchy between them."""
    STUDENT = "student"
    MONITOR = "monitor"
    ADMIN = "admin"


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String, nullable=False, default=Role.STUDENT.value)
    approved = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

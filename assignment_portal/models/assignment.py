"""Assignment model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text

from assignment_portal.core.deadlines import utcnow
from assignment_portal.database import Base


class Assignment(Base):
    """Represents an assignment published by a monitor or admin."""
    __tablename__ = "assignments"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    deadline = Column(DateTime, nullable=False, index=True)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

"""Submission model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint

from assignment_portal.core.deadlines import utcnow
from assignment_portal.database import Base


class Submission(Base):
    """One uploaded PDF per (assignment, student) pair."""
    __tablename__ = "submissions"
    __table_args__ = (
        UniqueConstraint("assignment_id", "student_id", name="uq_submissions_assignment_student"),
    )

    id = Column(Integer, primary_key=True, index=True)
    assignment_id = Column(Integer, ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    filename = Column(String, nullable=False)
    storage_key = Column(String, nullable=False)
    share_link = Column(String)
    direct_link = Column(String)
    email_message_id = Column(String)
    notification_status = Column(String, nullable=False)  # sent/failed/skipped
    notification_error = Column(String)
    uploaded_at = Column(DateTime, nullable=False, default=utcnow)

"""
Enrollment model - read-only view of the course enrollment collaborator
"""
from sqlalchemy import Column, String, DateTime, Uuid, UniqueConstraint
from quiz_engine.database import Base
from quiz_engine.utils.clock import utcnow
import uuid


class Enrollment(Base):
    """
    Course enrollments table (owned by the enrollment service)
    """
    __tablename__ = "course_enrollments"
    __table_args__ = (
        UniqueConstraint("user_id", "course_id", name="uq_course_enrollments_user_course"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    course_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    enrollment_status = Column(String(20), nullable=False, default="active")
    enrolled_at = Column(DateTime, default=utcnow)

    def __repr__(self):
        return f"<Enrollment(user_id={self.user_id}, course_id={self.course_id}, status={self.enrollment_status})>"

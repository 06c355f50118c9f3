"""
Enrollment collaborator interface
"""
import logging
from uuid import UUID
from sqlalchemy.orm import Session

from quiz_engine.models import Enrollment

logger = logging.getLogger(__name__)


class EnrollmentGateway:
    """Answers whether a learner may take quizzes of a course"""

    def is_enrolled(self, db: Session, learner_id: UUID, course_id: UUID) -> bool:
        raise NotImplementedError


class DatabaseEnrollmentGateway(EnrollmentGateway):
    """Reads active rows of the shared course_enrollments table"""

    ACTIVE_STATUSES = ("active",)

    def is_enrolled(self, db: Session, learner_id: UUID, course_id: UUID) -> bool:
        enrollment = db.query(Enrollment.id).filter(
            Enrollment.user_id == learner_id,
            Enrollment.course_id == course_id,
            Enrollment.enrollment_status.in_(self.ACTIVE_STATUSES)
        ).first()

        if not enrollment:
            logger.info(f"Learner {learner_id} is not enrolled in course {course_id}")

        return enrollment is not None


# Global instance
enrollment_gateway = DatabaseEnrollmentGateway()

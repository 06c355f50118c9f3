"""
Quiz model - configuration template for timed, limited-retry assessments
"""
from sqlalchemy import Column, String, Integer, Boolean, DateTime, Uuid, CheckConstraint
from sqlalchemy.orm import relationship
from quiz_engine.config import settings
from quiz_engine.database import Base
from quiz_engine.utils.clock import utcnow
import uuid


class Quiz(Base):
    """
    Quizzes table - one quiz per lesson, owns its questions
    """
    __tablename__ = "quizzes"
    __table_args__ = (
        CheckConstraint("attempt_limit >= 1", name="ck_quizzes_attempt_limit"),
        CheckConstraint("passing_score BETWEEN 0 AND 100", name="ck_quizzes_passing_score"),
        CheckConstraint(
            "time_limit_minutes IS NULL OR time_limit_minutes >= 1",
            name="ck_quizzes_time_limit"
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    lesson_id = Column(Uuid(as_uuid=True), nullable=False, unique=True, index=True)
    course_id = Column(Uuid(as_uuid=True), nullable=False, index=True)  # For enrollment checks
    title = Column(String(255), nullable=False)
    time_limit_minutes = Column(Integer, nullable=True)
    attempt_limit = Column(Integer, nullable=False, default=settings.DEFAULT_ATTEMPT_LIMIT)
    passing_score = Column(Integer, nullable=False, default=settings.DEFAULT_PASSING_SCORE)
    shuffle_questions = Column(Boolean, nullable=False, default=False)
    show_correct_answers = Column(Boolean, nullable=False, default=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    questions = relationship(
        "Question",
        back_populates="quiz",
        order_by="Question.position",
        cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<Quiz(id={self.id}, lesson_id={self.lesson_id}, title={self.title})>"

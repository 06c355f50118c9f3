"""
QuizAttempt model - one learner's timed run through a quiz
"""
from sqlalchemy import (
    Column, String, Integer, Boolean, DateTime, ForeignKey, Uuid,
    Index, UniqueConstraint, CheckConstraint, text
)
from sqlalchemy.orm import relationship
from quiz_engine.database import Base
from quiz_engine.utils.clock import utcnow
import uuid


class AttemptStatus:
    """Attempt states; everything but IN_PROGRESS is terminal"""
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"
    EXPIRED = "expired"

    ALL = (IN_PROGRESS, COMPLETED, ABANDONED, EXPIRED)
    TERMINAL = (COMPLETED, ABANDONED, EXPIRED)


_IN_PROGRESS_ONLY = text("status = 'in_progress'")


class QuizAttempt(Base):
    """
    Quiz attempts table

    The partial unique index is the source of truth for "at most one
    in-progress attempt per learner and quiz"; the (user, quiz, number) key
    keeps attempt numbering gap-free under concurrent starts.
    """
    __tablename__ = "quiz_attempts"
    __table_args__ = (
        UniqueConstraint("user_id", "quiz_id", "attempt_number", name="uq_quiz_attempts_number"),
        Index(
            "uq_quiz_attempts_in_progress",
            "user_id",
            "quiz_id",
            unique=True,
            postgresql_where=_IN_PROGRESS_ONLY,
            sqlite_where=_IN_PROGRESS_ONLY
        ),
        CheckConstraint("attempt_number >= 1", name="ck_quiz_attempts_number"),
        CheckConstraint(
            "percentage_score IS NULL OR percentage_score BETWEEN 0 AND 100",
            name="ck_quiz_attempts_percentage"
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    quiz_id = Column(Uuid(as_uuid=True), ForeignKey("quizzes.id"), nullable=False, index=True)
    attempt_number = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=AttemptStatus.IN_PROGRESS, index=True)
    started_at = Column(DateTime, nullable=False, default=utcnow)
    submitted_at = Column(DateTime, nullable=True)
    percentage_score = Column(Integer, nullable=True)
    passed = Column(Boolean, nullable=True)
    time_spent_seconds = Column(Integer, nullable=True)
    revision = Column(Integer, nullable=False, default=0)  # Bumped by every recorded response
    updated_at = Column(DateTime, default=utcnow)

    quiz = relationship("Quiz")
    responses = relationship(
        "QuizResponse",
        back_populates="attempt",
        order_by="QuizResponse.answered_at",
        cascade="all, delete-orphan"
    )

    def __repr__(self):
        return (
            f"<QuizAttempt(id={self.id}, user_id={self.user_id}, quiz_id={self.quiz_id}, "
            f"number={self.attempt_number}, status={self.status}, score={self.percentage_score})>"
        )

"""
QuizResponse model - one answer to one question within an attempt
"""
from sqlalchemy import Column, Integer, Float, Boolean, Text, DateTime, ForeignKey, Uuid, JSON, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from quiz_engine.database import Base
from quiz_engine.utils.clock import utcnow
import uuid


class QuizResponse(Base):
    """
    Quiz responses table - answers are stored raw and graded on completion
    """
    __tablename__ = "quiz_responses"
    __table_args__ = (
        UniqueConstraint("attempt_id", "question_id", name="uq_quiz_responses_attempt_question"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    attempt_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("quiz_attempts.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    question_id = Column(Uuid(as_uuid=True), ForeignKey("quiz_questions.id"), nullable=False, index=True)
    selected_option_ids = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=list)  # ["<uuid>", ...]
    text_answer = Column(Text, nullable=True)
    is_correct = Column(Boolean, nullable=True)  # Null until graded, stays null for free text
    points_earned = Column(Float, nullable=True)
    time_spent_seconds = Column(Integer, nullable=True)
    answered_at = Column(DateTime, nullable=False, default=utcnow)

    attempt = relationship("QuizAttempt", back_populates="responses")
    question = relationship("Question")

    @property
    def selected_ids(self) -> frozenset:
        """Selected option ids as a set of UUIDs"""
        return frozenset(uuid.UUID(str(value)) for value in (self.selected_option_ids or []))

    def __repr__(self):
        return f"<QuizResponse(attempt_id={self.attempt_id}, question_id={self.question_id}, correct={self.is_correct})>"

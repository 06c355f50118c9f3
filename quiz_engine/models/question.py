"""
Question and option models - the quiz's answer key
"""
from sqlalchemy import Column, String, Integer, Float, Boolean, Text, DateTime, ForeignKey, Uuid, CheckConstraint
from sqlalchemy.orm import relationship
from quiz_engine.database import Base
from quiz_engine.utils.clock import utcnow
import uuid


class QuestionType:
    """Supported question types"""
    MULTIPLE_CHOICE = "multiple_choice"  # single correct option
    MULTIPLE_SELECT = "multiple_select"  # one or more correct options
    TRUE_FALSE = "true_false"
    SHORT_ANSWER = "short_answer"  # free text, graded manually

    ALL = (MULTIPLE_CHOICE, MULTIPLE_SELECT, TRUE_FALSE, SHORT_ANSWER)
    OPTION_BASED = (MULTIPLE_CHOICE, MULTIPLE_SELECT, TRUE_FALSE)
    SINGLE_ANSWER = (MULTIPLE_CHOICE, TRUE_FALSE)
    AUTO_GRADABLE = OPTION_BASED


class Question(Base):
    """
    Quiz questions table
    """
    __tablename__ = "quiz_questions"
    __table_args__ = (
        CheckConstraint("points >= 1", name="ck_quiz_questions_points"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    quiz_id = Column(Uuid(as_uuid=True), ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True)
    question_type = Column(String(20), nullable=False)
    question_text = Column(Text, nullable=False)
    explanation = Column(Text, nullable=True)
    points = Column(Integer, nullable=False, default=1)
    position = Column(Float, nullable=False)
    is_required = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow)

    quiz = relationship("Quiz", back_populates="questions")
    options = relationship(
        "QuestionOption",
        back_populates="question",
        order_by="QuestionOption.position",
        cascade="all, delete-orphan"
    )

    @property
    def correct_option_ids(self):
        return frozenset(option.id for option in self.options if option.is_correct)

    def __repr__(self):
        return f"<Question(id={self.id}, quiz_id={self.quiz_id}, type={self.question_type})>"


class QuestionOption(Base):
    """
    Question options table
    """
    __tablename__ = "question_options"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    question_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("quiz_questions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    option_text = Column(Text, nullable=False)
    is_correct = Column(Boolean, nullable=False, default=False)
    position = Column(Float, nullable=False)

    question = relationship("Question", back_populates="options")

    def __repr__(self):
        return f"<QuestionOption(id={self.id}, question_id={self.question_id}, correct={self.is_correct})>"

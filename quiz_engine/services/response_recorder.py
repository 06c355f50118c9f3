"""
Response recorder - create-once storage of answers within an attempt
"""
import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from quiz_engine.config import settings
from quiz_engine.exceptions import NotFoundError, ConflictError, InvalidStateError, ValidationError
from quiz_engine.models import QuizAttempt, QuizResponse, Question, QuestionType, AttemptStatus
from quiz_engine.utils.clock import utcnow

logger = logging.getLogger(__name__)


class ResponseRecorder:
    """
    Persists one raw answer per (attempt, question)

    Answers are never updated: a timed exam is answered once. The unique
    (attempt_id, question_id) constraint backs the duplicate pre-check.
    """

    def __init__(self, max_text_length: int = None):
        self.max_text_length = max_text_length or settings.MAX_TEXT_ANSWER_LENGTH

    def submit(
        self,
        db: Session,
        attempt: QuizAttempt,
        question_id: UUID,
        selected_option_ids: Optional[List[UUID]] = None,
        text_answer: Optional[str] = None,
        time_spent_seconds: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> QuizResponse:
        """
        Record an answer

        Raises:
            NotFoundError: question is not part of the attempt's quiz
            InvalidStateError: attempt is not in progress
            ConflictError: question already answered in this attempt
            ValidationError: malformed answer payload
        """
        question = db.query(Question).filter(
            Question.id == question_id,
            Question.quiz_id == attempt.quiz_id
        ).first()
        if not question:
            raise NotFoundError("Question not found in this quiz")

        if attempt.status != AttemptStatus.IN_PROGRESS:
            raise InvalidStateError("Attempt is not in progress")

        existing = db.query(QuizResponse.id).filter(
            QuizResponse.attempt_id == attempt.id,
            QuizResponse.question_id == question_id
        ).first()
        if existing:
            raise ConflictError("Response already exists for this question")

        selected = self._validate_selection(question, selected_option_ids or [])
        text_answer = self._validate_text(question, text_answer)

        if time_spent_seconds is not None and time_spent_seconds < 0:
            raise ValidationError("Time spent cannot be negative")

        now = now or utcnow()

        # Same transaction as the insert; an attempt finalized by another
        # session leaves zero rows here
        touched = db.query(QuizAttempt).filter(
            QuizAttempt.id == attempt.id,
            QuizAttempt.status == AttemptStatus.IN_PROGRESS
        ).update({"updated_at": now, "revision": QuizAttempt.revision + 1}, synchronize_session=False)
        if touched != 1:
            db.rollback()
            logger.info(f"Response rejected, attempt {attempt.id} was finalized concurrently")
            raise InvalidStateError("Attempt is not in progress")

        response = QuizResponse(
            attempt_id=attempt.id,
            question_id=question_id,
            selected_option_ids=[str(option_id) for option_id in selected],
            text_answer=text_answer,
            time_spent_seconds=time_spent_seconds,
            answered_at=now
        )

        try:
            db.add(response)
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.info(f"Duplicate response rejected by constraint: attempt={attempt.id}, question={question_id}")
            raise ConflictError("Response already exists for this question")

        db.refresh(response)

        logger.info(f"Response recorded: attempt={attempt.id}, question={question_id}")

        return response

    def _validate_selection(self, question: Question, selected_option_ids: List[UUID]) -> List[UUID]:
        if len(set(selected_option_ids)) != len(selected_option_ids):
            raise ValidationError("Selected options must not repeat")

        if question.question_type not in QuestionType.OPTION_BASED:
            if selected_option_ids:
                raise ValidationError("This question does not accept selected options")
            return []

        valid_ids = {option.id for option in question.options}
        unknown = [option_id for option_id in selected_option_ids if option_id not in valid_ids]
        if unknown:
            raise ValidationError("Selected options do not belong to this question")

        if question.question_type in QuestionType.SINGLE_ANSWER and len(selected_option_ids) > 1:
            raise ValidationError("Only one option may be selected for this question")

        return list(selected_option_ids)

    def _validate_text(self, question: Question, text_answer: Optional[str]) -> Optional[str]:
        if text_answer is None:
            return None

        text_answer = text_answer.strip()
        if not text_answer:
            return None

        if question.question_type in QuestionType.OPTION_BASED:
            raise ValidationError("This question does not accept a text answer")

        if len(text_answer) > self.max_text_length:
            raise ValidationError(f"Text answer cannot exceed {self.max_text_length} characters")

        return text_answer


# Global instance
response_recorder = ResponseRecorder()

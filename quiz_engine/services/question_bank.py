"""
Question bank service - read-only view of quizzes, questions and the answer key
"""
import logging
import random
from dataclasses import dataclass
from typing import Dict, Any, List, Optional, Sequence
from uuid import UUID
from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from quiz_engine.exceptions import NotFoundError, ValidationError, ConflictError
from quiz_engine.models import Quiz, Question, QuestionOption, QuestionType, QuizAttempt

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuizConfig:
    """Quiz settings the attempt engine depends on"""
    quiz_id: UUID
    course_id: UUID
    time_limit_minutes: Optional[int]
    attempt_limit: int
    passing_score: int
    shuffle_questions: bool
    show_correct_answers: bool
    is_active: bool


@dataclass(frozen=True)
class AnswerKeyEntry:
    """Grading facts for one question"""
    question_id: UUID
    question_type: str
    points: int
    correct_option_ids: frozenset

    @property
    def auto_gradable(self) -> bool:
        return self.question_type in QuestionType.AUTO_GRADABLE


def validate_question(question_type: str, options: Sequence[Dict[str, Any]]) -> List[str]:
    """
    Check the option invariants for a question type

    Args:
        question_type: One of QuestionType.ALL
        options: Option dictionaries with an "is_correct" flag

    Returns:
        List of violations, empty when the question is valid
    """
    errors = []

    if question_type not in QuestionType.ALL:
        return [f"Invalid question type: {question_type}"]

    if question_type == QuestionType.SHORT_ANSWER:
        if options:
            errors.append("Short answer questions cannot have options")
        return errors

    correct_count = sum(1 for option in options if option.get("is_correct"))

    if len(options) < 2:
        errors.append("Question must have at least 2 options")

    if question_type == QuestionType.MULTIPLE_CHOICE and correct_count != 1:
        errors.append("Multiple choice questions must have exactly 1 correct option")
    elif question_type == QuestionType.MULTIPLE_SELECT and correct_count < 1:
        errors.append("Multiple select questions must have at least 1 correct option")
    elif question_type == QuestionType.TRUE_FALSE and (len(options) != 2 or correct_count != 1):
        errors.append("True/false questions must have exactly 2 options with 1 correct")

    return errors


class QuestionBank:
    """Loads quizzes and questions; builds learner-facing presentations"""

    def __init__(self, rng: Optional[random.Random] = None):
        self._random = rng or random.SystemRandom()

    def get_quiz(self, db: Session, quiz_id: UUID, require_active: bool = False) -> Quiz:
        quiz = db.query(Quiz).filter(Quiz.id == quiz_id).first()
        if not quiz or (require_active and not quiz.is_active):
            raise NotFoundError("Quiz not found or inactive" if require_active else "Quiz not found")
        return quiz

    def get_quiz_config(self, db: Session, quiz_id: UUID) -> QuizConfig:
        quiz = self.get_quiz(db, quiz_id)
        return QuizConfig(
            quiz_id=quiz.id,
            course_id=quiz.course_id,
            time_limit_minutes=quiz.time_limit_minutes,
            attempt_limit=quiz.attempt_limit,
            passing_score=quiz.passing_score,
            shuffle_questions=quiz.shuffle_questions,
            show_correct_answers=quiz.show_correct_answers,
            is_active=quiz.is_active
        )

    def get_questions(self, db: Session, quiz_id: UUID) -> List[Question]:
        """Questions of a quiz with their options, in authored order"""
        return (
            db.query(Question)
            .options(selectinload(Question.options))
            .filter(Question.quiz_id == quiz_id)
            .order_by(Question.position)
            .all()
        )

    def get_question(self, db: Session, question_id: UUID) -> Question:
        question = (
            db.query(Question)
            .options(selectinload(Question.options))
            .filter(Question.id == question_id)
            .first()
        )
        if not question:
            raise NotFoundError("Question not found")
        return question

    def answer_key(self, db: Session, quiz_id: UUID) -> Dict[UUID, AnswerKeyEntry]:
        """
        Authoritative grading data for every question in the quiz

        Loaded in a single pass so a whole attempt is graded against one
        consistent snapshot of the key.
        """
        return {
            question.id: AnswerKeyEntry(
                question_id=question.id,
                question_type=question.question_type,
                points=question.points,
                correct_option_ids=question.correct_option_ids
            )
            for question in self.get_questions(db, quiz_id)
        }

    def present(
        self,
        db: Session,
        quiz_id: UUID,
        include_answers: bool = False
    ) -> Dict[str, Any]:
        """
        Build the question list for display

        Correctness flags and explanations are stripped unless include_answers
        is set. When the quiz shuffles, question order and option order are
        permuted independently for every call; nothing is persisted.
        """
        quiz = self.get_quiz(db, quiz_id)
        questions = [
            self._present_question(question, include_answers)
            for question in self.get_questions(db, quiz_id)
        ]

        if quiz.shuffle_questions:
            self._random.shuffle(questions)
            for question in questions:
                if len(question["options"]) > 1:
                    self._random.shuffle(question["options"])

        return {
            "quiz_id": quiz.id,
            "title": quiz.title,
            "time_limit_minutes": quiz.time_limit_minutes,
            "shuffled": bool(quiz.shuffle_questions),
            "questions": questions
        }

    def _present_question(self, question: Question, include_answers: bool) -> Dict[str, Any]:
        options = []
        for option in question.options:
            item = {
                "id": option.id,
                "option_text": option.option_text,
                "position": option.position
            }
            if include_answers:
                item["is_correct"] = option.is_correct
            options.append(item)

        return {
            "id": question.id,
            "question_type": question.question_type,
            "question_text": question.question_text,
            "points": question.points,
            "position": question.position,
            "is_required": question.is_required,
            "explanation": question.explanation if include_answers else None,
            "options": options
        }

    def add_question(
        self,
        db: Session,
        quiz_id: UUID,
        question_type: str,
        question_text: str,
        options: Optional[Sequence[Dict[str, Any]]] = None,
        points: int = 1,
        position: Optional[float] = None,
        explanation: Optional[str] = None,
        is_required: bool = True
    ) -> Question:
        """
        Add a question with its options after checking the type invariants

        Args:
            options: [{"option_text": str, "is_correct": bool}, ...]

        Raises:
            NotFoundError: quiz does not exist
            ValidationError: invariants violated
        """
        self.get_quiz(db, quiz_id)
        options = list(options or [])

        question_text = (question_text or "").strip()
        if not question_text:
            raise ValidationError("Question text is required")
        if points < 1:
            raise ValidationError("Points must be at least 1")

        errors = validate_question(question_type, options)
        if errors:
            raise ValidationError("; ".join(errors))

        if position is None:
            current_max = db.query(func.max(Question.position)).filter(Question.quiz_id == quiz_id).scalar()
            position = (current_max or 0) + 1

        question = Question(
            quiz_id=quiz_id,
            question_type=question_type,
            question_text=question_text,
            explanation=explanation,
            points=points,
            position=position,
            is_required=is_required
        )
        for index, option in enumerate(options, start=1):
            question.options.append(QuestionOption(
                option_text=option["option_text"],
                is_correct=bool(option.get("is_correct")),
                position=option.get("position", index)
            ))

        db.add(question)
        db.commit()
        db.refresh(question)

        logger.info(f"Question added: {question.id} ({question_type}) to quiz {quiz_id}")

        return question

    def delete_question(self, db: Session, question_id: UUID) -> None:
        """Delete a question; only allowed while its quiz has no attempts"""
        question = self.get_question(db, question_id)

        attempts = db.query(func.count(QuizAttempt.id)).filter(QuizAttempt.quiz_id == question.quiz_id).scalar()
        if attempts:
            raise ConflictError("Cannot delete a question from a quiz that has attempts")

        db.delete(question)
        db.commit()

        logger.info(f"Question deleted: {question_id}")


# Global instance
question_bank = QuestionBank()

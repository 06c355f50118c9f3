"""
Quiz attempt service - the entry point used by the API layer

Applies enrollment and ownership preconditions, then delegates to the
lifecycle manager, question bank and analytics service.
"""
import logging
import math
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID
from sqlalchemy.orm import Session

from quiz_engine.exceptions import ForbiddenError, InvalidStateError, NotFoundError
from quiz_engine.models import QuizAttempt, QuizResponse, AttemptStatus
from quiz_engine.schemas.attempt import Principal
from quiz_engine.services.analytics_service import analytics_service, AnalyticsService
from quiz_engine.services.attempt_lifecycle import attempt_lifecycle, AttemptLifecycleManager
from quiz_engine.services.enrollment_gateway import enrollment_gateway, EnrollmentGateway
from quiz_engine.services.question_bank import question_bank, QuestionBank

logger = logging.getLogger(__name__)


class QuizAttemptService:
    """Facade over the attempt engine"""

    def __init__(
        self,
        lifecycle: AttemptLifecycleManager = None,
        bank: QuestionBank = None,
        analytics: AnalyticsService = None,
        enrollment: EnrollmentGateway = None
    ):
        self.lifecycle = lifecycle or attempt_lifecycle
        self.bank = bank or question_bank
        self.analytics = analytics or analytics_service
        self.enrollment = enrollment or enrollment_gateway

    def start_attempt(
        self,
        db: Session,
        principal: Principal,
        quiz_id: UUID,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Start a new attempt for the acting learner

        Raises:
            NotFoundError: quiz missing or inactive
            ForbiddenError: learner not enrolled in the quiz's course
            ConflictError: an attempt is already in progress
            LimitExceededError: no attempts left
        """
        config = self.bank.get_quiz_config(db, quiz_id)
        if not config.is_active:
            raise NotFoundError("Quiz not found or inactive")

        if not self.enrollment.is_enrolled(db, principal.user_id, config.course_id):
            raise ForbiddenError("You are not enrolled in the course for this quiz")

        attempt = self.lifecycle.start(db, principal.user_id, quiz_id, now=now)
        return self._serialize_attempt(attempt)

    def get_quiz_for_attempt(self, db: Session, principal: Principal, attempt_id: UUID) -> Dict[str, Any]:
        """Questions to display for an in-progress attempt, without the answer key"""
        attempt = self._get_owned_attempt(db, principal, attempt_id)

        if attempt.status != AttemptStatus.IN_PROGRESS:
            raise InvalidStateError("Attempt is not in progress")

        presentation = self.bank.present(db, attempt.quiz_id, include_answers=False)
        presentation["answered_question_ids"] = [response.question_id for response in attempt.responses]

        return presentation

    def submit_response(
        self,
        db: Session,
        principal: Principal,
        attempt_id: UUID,
        question_id: UUID,
        selected_option_ids: Optional[List[UUID]] = None,
        text_answer: Optional[str] = None,
        time_spent_seconds: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        self._get_owned_attempt(db, principal, attempt_id)

        response = self.lifecycle.record_response(
            db,
            attempt_id,
            question_id,
            selected_option_ids=selected_option_ids,
            text_answer=text_answer,
            time_spent_seconds=time_spent_seconds,
            now=now
        )
        return self._serialize_response(response)

    def complete_attempt(
        self,
        db: Session,
        principal: Principal,
        attempt_id: UUID,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        self._get_owned_attempt(db, principal, attempt_id)
        attempt = self.lifecycle.complete(db, attempt_id, now=now)
        return self._serialize_attempt(attempt)

    def abandon_attempt(
        self,
        db: Session,
        principal: Principal,
        attempt_id: UUID,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        self._get_owned_attempt(db, principal, attempt_id, allow_admin=True)
        attempt = self.lifecycle.abandon(db, attempt_id, now=now)
        return self._serialize_attempt(attempt)

    def get_attempt(
        self,
        db: Session,
        principal: Principal,
        attempt_id: UUID,
        include_responses: bool = False
    ) -> Dict[str, Any]:
        """
        Attempt details, optionally with responses

        Correct options are revealed only once the attempt has ended, and
        to learners only when the quiz shows correct answers.
        """
        attempt = self._get_owned_attempt(db, principal, attempt_id, allow_staff=True)
        data = self._serialize_attempt(attempt)

        if include_responses:
            reveal = attempt.status in AttemptStatus.TERMINAL and (
                attempt.quiz.show_correct_answers or principal.is_staff
            )
            key = self.bank.answer_key(db, attempt.quiz_id) if reveal else {}
            data["responses"] = [
                self._serialize_response(response, key.get(response.question_id))
                for response in attempt.responses
            ]

        return data

    def get_user_attempts(
        self,
        db: Session,
        principal: Principal,
        quiz_id: UUID,
        page: int = 1,
        limit: int = 10
    ) -> Dict[str, Any]:
        """Acting learner's attempts on a quiz, newest first"""
        query = db.query(QuizAttempt).filter(
            QuizAttempt.quiz_id == quiz_id,
            QuizAttempt.user_id == principal.user_id
        ).order_by(QuizAttempt.attempt_number.desc())

        return self._paginate(query, page, limit)

    def get_quiz_results(
        self,
        db: Session,
        principal: Principal,
        quiz_id: UUID,
        page: int = 1,
        limit: int = 10
    ) -> Dict[str, Any]:
        """
        Completed attempts of every learner on a quiz (instructors and admins)

        Highest score first; among equal scores the earlier submission wins.
        """
        self._require_staff(principal, "Not authorized to view quiz results")
        self.bank.get_quiz(db, quiz_id)

        query = db.query(QuizAttempt).filter(
            QuizAttempt.quiz_id == quiz_id,
            QuizAttempt.status == AttemptStatus.COMPLETED
        ).order_by(
            QuizAttempt.percentage_score.desc(),
            QuizAttempt.submitted_at.asc(),
            QuizAttempt.id.asc()
        )

        return self._paginate(query, page, limit)

    def get_best_attempt(self, db: Session, principal: Principal, quiz_id: UUID) -> Optional[Dict[str, Any]]:
        """Highest-scoring completed attempt of the acting learner, earliest wins ties"""
        attempt = (
            db.query(QuizAttempt)
            .filter(
                QuizAttempt.quiz_id == quiz_id,
                QuizAttempt.user_id == principal.user_id,
                QuizAttempt.status == AttemptStatus.COMPLETED
            )
            .order_by(QuizAttempt.percentage_score.desc(), QuizAttempt.attempt_number.asc())
            .first()
        )
        return self._serialize_attempt(attempt) if attempt else None

    def get_quiz_statistics(self, db: Session, principal: Principal, quiz_id: UUID) -> Dict[str, Any]:
        self._require_staff(principal, "Not authorized to view quiz statistics")
        self.bank.get_quiz(db, quiz_id)
        return self.analytics.get_quiz_statistics(db, quiz_id)

    def get_question_statistics(self, db: Session, principal: Principal, question_id: UUID) -> Dict[str, Any]:
        self._require_staff(principal, "Not authorized to view question statistics")
        self.bank.get_question(db, question_id)
        return self.analytics.get_question_statistics(db, question_id)

    def get_common_wrong_answers(
        self,
        db: Session,
        principal: Principal,
        question_id: UUID,
        limit: int = 5
    ) -> Dict[str, Any]:
        self._require_staff(principal, "Not authorized to view question statistics")
        self.bank.get_question(db, question_id)
        return self.analytics.get_common_wrong_answers(db, question_id, limit=limit)

    def get_learner_statistics(self, db: Session, principal: Principal, user_id: UUID) -> Dict[str, Any]:
        """A learner's own totals; staff may look up anyone"""
        if user_id != principal.user_id and not principal.is_staff:
            raise ForbiddenError("Not authorized to view this learner's statistics")
        return self.analytics.get_learner_statistics(db, user_id)

    def sweep_expired_attempts(
        self,
        db: Session,
        principal: Optional[Principal] = None,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """Administrative or scheduled expiry sweep; principal is None for the scheduler"""
        if principal is not None and not principal.is_admin:
            raise ForbiddenError("Only administrators can trigger the expiry sweep")
        return self.lifecycle.sweep_expired(db, now=now)

    def regrade_attempt(
        self,
        db: Session,
        principal: Principal,
        attempt_id: UUID,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        if not principal.is_admin:
            raise ForbiddenError("Only administrators can regrade attempts")
        attempt = self.lifecycle.regrade(db, attempt_id, now=now)
        return self._serialize_attempt(attempt)

    def _get_owned_attempt(
        self,
        db: Session,
        principal: Principal,
        attempt_id: UUID,
        allow_staff: bool = False,
        allow_admin: bool = False
    ) -> QuizAttempt:
        attempt = self.lifecycle.get_attempt(db, attempt_id)

        if attempt.user_id == principal.user_id:
            return attempt
        if allow_staff and principal.is_staff:
            return attempt
        if allow_admin and principal.is_admin:
            return attempt

        raise ForbiddenError("Not authorized to access this attempt")

    def _require_staff(self, principal: Principal, message: str) -> None:
        if not principal.is_staff:
            raise ForbiddenError(message)

    def _paginate(self, query, page: int, limit: int) -> Dict[str, Any]:
        total = query.count()
        attempts = query.offset((page - 1) * limit).limit(limit).all()

        return {
            "data": [self._serialize_attempt(attempt) for attempt in attempts],
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": math.ceil(total / limit) if limit else 0
        }

    def _serialize_attempt(self, attempt: QuizAttempt) -> Dict[str, Any]:
        return {
            "id": attempt.id,
            "quiz_id": attempt.quiz_id,
            "user_id": attempt.user_id,
            "attempt_number": attempt.attempt_number,
            "status": attempt.status,
            "started_at": attempt.started_at,
            "submitted_at": attempt.submitted_at,
            "percentage_score": attempt.percentage_score,
            "passed": attempt.passed,
            "time_spent_seconds": attempt.time_spent_seconds,
            "deadline": self.lifecycle.deadline(attempt)
        }

    def _serialize_response(self, response: QuizResponse, key_entry=None) -> Dict[str, Any]:
        return {
            "id": response.id,
            "attempt_id": response.attempt_id,
            "question_id": response.question_id,
            "selected_option_ids": sorted(response.selected_ids, key=str),
            "text_answer": response.text_answer,
            "is_correct": response.is_correct,
            "points_earned": response.points_earned,
            "time_spent_seconds": response.time_spent_seconds,
            "answered_at": response.answered_at,
            "correct_option_ids": sorted(key_entry.correct_option_ids, key=str) if key_entry else None
        }


# Global instance
quiz_attempt_service = QuizAttemptService()

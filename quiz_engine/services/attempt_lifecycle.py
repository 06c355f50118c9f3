"""
Attempt lifecycle manager - the attempt state machine

    in_progress -> completed | abandoned | expired

Terminal states never change again. Every transition is a conditional UPDATE
guarded by the current status, so a sweep racing a learner's submit can only
have one winner; the loser sees zero affected rows.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from quiz_engine.exceptions import NotFoundError, ConflictError, InvalidStateError, LimitExceededError
from quiz_engine.models import QuizAttempt, QuizResponse, AttemptStatus
from quiz_engine.services.grading_service import grading_engine, GradingEngine
from quiz_engine.services.question_bank import question_bank, QuestionBank
from quiz_engine.services.response_recorder import response_recorder, ResponseRecorder
from quiz_engine.services.time_limit import time_limit_enforcer, TimeLimitEnforcer
from quiz_engine.utils.cache import cache_service, CacheService
from quiz_engine.utils.clock import utcnow

logger = logging.getLogger(__name__)


class AttemptLifecycleManager:
    """Starts, finalizes, abandons and expires quiz attempts"""

    def __init__(
        self,
        grading: GradingEngine = None,
        recorder: ResponseRecorder = None,
        enforcer: TimeLimitEnforcer = None,
        bank: QuestionBank = None,
        cache: CacheService = None
    ):
        self.bank = bank or question_bank
        self.grading = grading or (GradingEngine(bank=bank) if bank else grading_engine)
        self.recorder = recorder or response_recorder
        self.enforcer = enforcer or time_limit_enforcer
        self.cache = cache or cache_service

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_attempt(self, db: Session, attempt_id: UUID) -> QuizAttempt:
        attempt = db.query(QuizAttempt).filter(QuizAttempt.id == attempt_id).first()
        if not attempt:
            raise NotFoundError("Attempt not found")
        return attempt

    def get_in_progress(self, db: Session, learner_id: UUID, quiz_id: UUID) -> Optional[QuizAttempt]:
        return db.query(QuizAttempt).filter(
            QuizAttempt.user_id == learner_id,
            QuizAttempt.quiz_id == quiz_id,
            QuizAttempt.status == AttemptStatus.IN_PROGRESS
        ).first()

    def count_attempts(self, db: Session, learner_id: UUID, quiz_id: UUID) -> int:
        return db.query(func.count(QuizAttempt.id)).filter(
            QuizAttempt.user_id == learner_id,
            QuizAttempt.quiz_id == quiz_id
        ).scalar() or 0

    def deadline(self, attempt: QuizAttempt) -> Optional[datetime]:
        return self.enforcer.deadline(attempt, attempt.quiz)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start(self, db: Session, learner_id: UUID, quiz_id: UUID, now: Optional[datetime] = None) -> QuizAttempt:
        """
        Start a new attempt

        Raises:
            NotFoundError: quiz missing or inactive
            ConflictError: an attempt is already in progress (resume it)
            LimitExceededError: attempt limit reached
        """
        now = now or utcnow()
        quiz = self.bank.get_quiz(db, quiz_id, require_active=True)

        if self.get_in_progress(db, learner_id, quiz_id):
            raise ConflictError("You already have an attempt in progress for this quiz; resume it instead")

        prior_attempts = self.count_attempts(db, learner_id, quiz_id)
        if prior_attempts >= quiz.attempt_limit:
            raise LimitExceededError(f"Maximum attempts ({quiz.attempt_limit}) reached for this quiz")

        attempt = QuizAttempt(
            user_id=learner_id,
            quiz_id=quiz_id,
            attempt_number=prior_attempts + 1,
            status=AttemptStatus.IN_PROGRESS,
            started_at=now,
            updated_at=now
        )

        try:
            db.add(attempt)
            db.commit()
        except IntegrityError:
            # A concurrent start won the unique index
            db.rollback()
            logger.info(f"Concurrent start rejected: user={learner_id}, quiz={quiz_id}")
            raise ConflictError("You already have an attempt in progress for this quiz; resume it instead")

        db.refresh(attempt)
        self.cache.invalidate_quiz_stats(quiz_id)

        logger.info(f"Attempt started: {attempt.id} (user={learner_id}, quiz={quiz_id}, number={attempt.attempt_number})")

        return attempt

    def record_response(
        self,
        db: Session,
        attempt_id: UUID,
        question_id: UUID,
        selected_option_ids: Optional[List[UUID]] = None,
        text_answer: Optional[str] = None,
        time_spent_seconds: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> QuizResponse:
        """
        Record an answer for an in-progress attempt

        An attempt found past its deadline is expired on the spot.
        """
        now = now or utcnow()
        attempt = self.get_attempt(db, attempt_id)

        if attempt.status != AttemptStatus.IN_PROGRESS:
            raise InvalidStateError("Attempt is not in progress")

        if self.enforcer.is_over_limit(attempt, attempt.quiz, now):
            self._expire(db, attempt, now)
            raise InvalidStateError("Attempt time limit has elapsed")

        return self.recorder.submit(
            db,
            attempt,
            question_id,
            selected_option_ids=selected_option_ids,
            text_answer=text_answer,
            time_spent_seconds=time_spent_seconds,
            now=now
        )

    def complete(self, db: Session, attempt_id: UUID, now: Optional[datetime] = None) -> QuizAttempt:
        """
        Finalize an attempt

        Over-time attempts end as expired and are not graded. Otherwise the
        attempt is graded and marked completed in the same transaction as the
        per-response grades.

        Raises:
            InvalidStateError: attempt is not in progress
            ConflictError: another actor finalized the attempt concurrently
        """
        now = now or utcnow()
        attempt = self.get_attempt(db, attempt_id)

        if attempt.status != AttemptStatus.IN_PROGRESS:
            raise InvalidStateError("Attempt is not in progress")

        quiz = attempt.quiz

        if self.enforcer.is_over_limit(attempt, quiz, now):
            if not self._expire(db, attempt, now):
                raise ConflictError("Attempt was finalized concurrently")
            db.refresh(attempt)
            return attempt

        # A response recorded after this point bumps the revision and voids
        # the transition below
        seen_revision = attempt.revision
        result = self.grading.score(db, attempt)

        updated = self._transition(db, attempt.id, AttemptStatus.IN_PROGRESS, {
            "status": AttemptStatus.COMPLETED,
            "percentage_score": result.percentage,
            "passed": result.passed,
            "submitted_at": now,
            "time_spent_seconds": self.enforcer.time_spent_seconds(attempt, quiz, now),
            "updated_at": now
        }, revision=seen_revision)
        if not updated:
            db.rollback()
            logger.warning(f"Complete lost transition race: attempt={attempt.id}")
            raise ConflictError("Attempt was finalized concurrently")

        db.commit()
        db.refresh(attempt)
        self.cache.invalidate_quiz_stats(attempt.quiz_id)

        logger.info(
            f"Attempt completed: {attempt.id} score={attempt.percentage_score}% passed={attempt.passed}"
        )

        return attempt

    def abandon(self, db: Session, attempt_id: UUID, now: Optional[datetime] = None) -> QuizAttempt:
        """Withdraw from an in-progress attempt without scoring"""
        now = now or utcnow()
        attempt = self.get_attempt(db, attempt_id)

        if attempt.status != AttemptStatus.IN_PROGRESS:
            raise InvalidStateError("Attempt is not in progress")

        updated = self._transition(db, attempt.id, AttemptStatus.IN_PROGRESS, {
            "status": AttemptStatus.ABANDONED,
            "updated_at": now
        })
        if not updated:
            db.rollback()
            raise ConflictError("Attempt was finalized concurrently")

        db.commit()
        db.refresh(attempt)
        self.cache.invalidate_quiz_stats(attempt.quiz_id)

        logger.info(f"Attempt abandoned: {attempt.id}")

        return attempt

    def regrade(self, db: Session, attempt_id: UUID, now: Optional[datetime] = None) -> QuizAttempt:
        """
        Re-score a completed attempt from its stored responses

        Used after answer-key corrections; identical inputs give identical
        results.
        """
        now = now or utcnow()
        attempt = self.get_attempt(db, attempt_id)

        if attempt.status != AttemptStatus.COMPLETED:
            raise InvalidStateError("Only completed attempts can be regraded")

        result = self.grading.score(db, attempt)

        updated = self._transition(db, attempt.id, AttemptStatus.COMPLETED, {
            "percentage_score": result.percentage,
            "passed": result.passed,
            "updated_at": now
        })
        if not updated:
            db.rollback()
            raise ConflictError("Attempt changed during regrade")

        db.commit()
        db.refresh(attempt)
        self.cache.invalidate_quiz_stats(attempt.quiz_id)

        logger.info(f"Attempt regraded: {attempt.id} score={attempt.percentage_score}%")

        return attempt

    def sweep_expired(self, db: Session, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Expire every in-progress attempt past its deadline

        Each attempt is committed on its own. A failure is logged and the
        sweep moves on; attempts finalized by someone else in the meantime
        are counted as skipped. Running it twice expires nothing new.

        Returns:
            Report with scanned/expired/skipped/failed counts
        """
        now = now or utcnow()
        overdue = self.enforcer.find_overdue(db, now)

        expired_ids = []
        skipped = 0
        failed = 0
        touched_quizzes = set()

        for candidate in overdue:
            try:
                updated = self._transition(db, candidate.attempt_id, AttemptStatus.IN_PROGRESS, {
                    "status": AttemptStatus.EXPIRED,
                    "time_spent_seconds": candidate.time_limit_minutes * 60,
                    "updated_at": now
                })
                if updated:
                    db.commit()
                    expired_ids.append(candidate.attempt_id)
                    touched_quizzes.add(candidate.quiz_id)
                else:
                    db.rollback()
                    skipped += 1
            except Exception as e:
                db.rollback()
                failed += 1
                logger.error(f"Failed to expire attempt {candidate.attempt_id}: {str(e)}")

        for quiz_id in touched_quizzes:
            self.cache.invalidate_quiz_stats(quiz_id)

        logger.info(
            f"Expiry sweep: scanned={len(overdue)}, expired={len(expired_ids)}, "
            f"skipped={skipped}, failed={failed}"
        )

        return {
            "scanned": len(overdue),
            "expired": len(expired_ids),
            "skipped": skipped,
            "failed": failed,
            "expired_attempt_ids": expired_ids
        }

    def _expire(self, db: Session, attempt: QuizAttempt, now: datetime) -> bool:
        """Move an overdue attempt to expired; False if it was already finalized"""
        updated = self._transition(db, attempt.id, AttemptStatus.IN_PROGRESS, {
            "status": AttemptStatus.EXPIRED,
            "time_spent_seconds": self.enforcer.time_spent_seconds(attempt, attempt.quiz, now),
            "updated_at": now
        })
        if not updated:
            db.rollback()
            return False

        db.commit()
        self.cache.invalidate_quiz_stats(attempt.quiz_id)

        logger.info(f"Attempt expired: {attempt.id}")

        return True

    def _transition(
        self,
        db: Session,
        attempt_id: UUID,
        expected_status: str,
        values: Dict[str, Any],
        revision: Optional[int] = None
    ) -> bool:
        """Conditional update; True only if the row still had expected_status (and revision)"""
        query = db.query(QuizAttempt).filter(
            QuizAttempt.id == attempt_id,
            QuizAttempt.status == expected_status
        )
        if revision is not None:
            query = query.filter(QuizAttempt.revision == revision)

        updated = query.update(values, synchronize_session=False)
        return updated == 1


# Global instance
attempt_lifecycle = AttemptLifecycleManager()

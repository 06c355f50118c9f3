"""
Time limit enforcement for quiz attempts

An attempt started at T on a quiz limited to M minutes is over its limit at
any time >= T + M. The synchronous check and the sweep query use that same
boundary.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional
from uuid import UUID
from sqlalchemy.orm import Session

from quiz_engine.models import Quiz, QuizAttempt, AttemptStatus
from quiz_engine.utils.clock import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OverdueAttempt:
    attempt_id: UUID
    quiz_id: UUID
    started_at: datetime
    time_limit_minutes: int


class TimeLimitEnforcer:
    """Deadline computation for in-progress attempts"""

    def deadline(self, attempt: QuizAttempt, quiz: Quiz) -> Optional[datetime]:
        """Moment the attempt runs out of time, or None without a limit"""
        if not quiz.time_limit_minutes:
            return None
        return attempt.started_at + timedelta(minutes=quiz.time_limit_minutes)

    def is_over_limit(self, attempt: QuizAttempt, quiz: Quiz, now: Optional[datetime] = None) -> bool:
        deadline = self.deadline(attempt, quiz)
        if deadline is None:
            return False
        # Inclusive: the attempt is out of time at exactly started_at + limit
        return (now or utcnow()) >= deadline

    def time_spent_seconds(self, attempt: QuizAttempt, quiz: Quiz, now: datetime) -> int:
        """Elapsed time since start, capped at the time limit"""
        elapsed = max(int((now - attempt.started_at).total_seconds()), 0)
        if quiz.time_limit_minutes:
            elapsed = min(elapsed, quiz.time_limit_minutes * 60)
        return elapsed

    def find_overdue(self, db: Session, now: Optional[datetime] = None) -> List[OverdueAttempt]:
        """
        In-progress attempts past their deadline, batched per time-limited quiz

        Args:
            db: Database session
            now: Evaluation time (defaults to current UTC time)

        Returns:
            Overdue attempts, oldest first within each quiz
        """
        now = now or utcnow()
        overdue = []

        limited_quizzes = db.query(Quiz.id, Quiz.time_limit_minutes).filter(
            Quiz.time_limit_minutes.isnot(None)
        ).all()

        for quiz_id, time_limit in limited_quizzes:
            # Same inclusive boundary as is_over_limit
            cutoff = now - timedelta(minutes=time_limit)
            rows = (
                db.query(QuizAttempt.id, QuizAttempt.started_at)
                .filter(
                    QuizAttempt.quiz_id == quiz_id,
                    QuizAttempt.status == AttemptStatus.IN_PROGRESS,
                    QuizAttempt.started_at <= cutoff
                )
                .order_by(QuizAttempt.started_at)
                .all()
            )
            overdue.extend(
                OverdueAttempt(
                    attempt_id=attempt_id,
                    quiz_id=quiz_id,
                    started_at=started_at,
                    time_limit_minutes=time_limit
                )
                for attempt_id, started_at in rows
            )

        logger.debug(f"Found {len(overdue)} overdue attempts across {len(limited_quizzes)} timed quizzes")

        return overdue


# Global instance
time_limit_enforcer = TimeLimitEnforcer()

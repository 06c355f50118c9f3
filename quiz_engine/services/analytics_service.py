"""
Analytics service for quiz and question result aggregation
"""
import logging
from collections import Counter
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Any
from uuid import UUID
from sqlalchemy import func
from sqlalchemy.orm import Session

from quiz_engine.models import QuizAttempt, QuizResponse, QuestionOption, AttemptStatus
from quiz_engine.utils.cache import cache_service, CacheService

logger = logging.getLogger(__name__)


def _round_half_up(value) -> int:
    return int(Decimal(str(value or 0)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class AnalyticsService:
    """Service for aggregate attempt and response statistics"""

    def __init__(self, cache: CacheService = None):
        self.cache = cache or cache_service

    def get_quiz_statistics(self, db: Session, quiz_id: UUID) -> Dict[str, Any]:
        """
        Get attempt statistics for a quiz

        Args:
            db: Database session
            quiz_id: Quiz UUID

        Returns:
            Dictionary with attempt counts per status, pass rate and
            average percentage of completed attempts
        """
        cache_key = self.cache.quiz_stats_key(quiz_id)
        cached = self.cache.get(cache_key)
        if cached:
            return cached

        status_counts = dict(
            db.query(QuizAttempt.status, func.count(QuizAttempt.id))
            .filter(QuizAttempt.quiz_id == quiz_id)
            .group_by(QuizAttempt.status)
            .all()
        )

        completed_filter = (
            QuizAttempt.quiz_id == quiz_id,
            QuizAttempt.status == AttemptStatus.COMPLETED
        )

        passed = db.query(func.count(QuizAttempt.id)).filter(
            *completed_filter, QuizAttempt.passed.is_(True)
        ).scalar() or 0

        avg_score = db.query(func.avg(QuizAttempt.percentage_score)).filter(*completed_filter).scalar()

        total = sum(status_counts.values())
        completed = status_counts.get(AttemptStatus.COMPLETED, 0)

        stats = {
            "quiz_id": str(quiz_id),
            "total_attempts": total,
            "in_progress": status_counts.get(AttemptStatus.IN_PROGRESS, 0),
            "completed": completed,
            "abandoned": status_counts.get(AttemptStatus.ABANDONED, 0),
            "expired": status_counts.get(AttemptStatus.EXPIRED, 0),
            "passed": passed,
            "failed": completed - passed,
            "pass_rate": _round_half_up(passed * 100 / completed) if completed else 0,
            "average_score": _round_half_up(avg_score)
        }

        self.cache.set(cache_key, stats)

        logger.info(f"Quiz statistics computed for {quiz_id}: {total} attempts, {completed} completed")

        return stats

    def get_question_statistics(self, db: Session, question_id: UUID) -> Dict[str, Any]:
        """
        Get response statistics for a question

        Only graded responses count toward accuracy.
        """
        total = db.query(func.count(QuizResponse.id)).filter(
            QuizResponse.question_id == question_id
        ).scalar() or 0

        correct = db.query(func.count(QuizResponse.id)).filter(
            QuizResponse.question_id == question_id,
            QuizResponse.is_correct.is_(True)
        ).scalar() or 0

        incorrect = db.query(func.count(QuizResponse.id)).filter(
            QuizResponse.question_id == question_id,
            QuizResponse.is_correct.is_(False)
        ).scalar() or 0

        avg_time = db.query(func.avg(QuizResponse.time_spent_seconds)).filter(
            QuizResponse.question_id == question_id,
            QuizResponse.time_spent_seconds.isnot(None)
        ).scalar()

        graded = correct + incorrect

        return {
            "question_id": str(question_id),
            "total_responses": total,
            "correct_responses": correct,
            "incorrect_responses": incorrect,
            "ungraded_responses": total - graded,
            "accuracy": _round_half_up(correct * 100 / graded) if graded else 0,
            "average_time_spent": _round_half_up(avg_time)
        }

    def get_common_wrong_answers(self, db: Session, question_id: UUID, limit: int = 5) -> Dict[str, Any]:
        """
        Most frequent incorrect selections for a question

        Selections are compared as sets, so picking B then A counts the same
        as A then B. Ties are ordered by option ids to keep the list stable.
        """
        responses = db.query(QuizResponse).filter(
            QuizResponse.question_id == question_id,
            QuizResponse.is_correct.is_(False)
        ).all()

        counts = Counter(tuple(sorted(response.selected_ids, key=str)) for response in responses)
        option_texts = dict(
            db.query(QuestionOption.id, QuestionOption.option_text)
            .filter(QuestionOption.question_id == question_id)
            .all()
        )

        ranked = sorted(counts.items(), key=lambda item: (-item[1], [str(i) for i in item[0]]))[:limit]

        return {
            "question_id": str(question_id),
            "answers": [
                {
                    "selected_option_ids": list(selection),
                    "option_texts": [option_texts.get(option_id, "") for option_id in selection],
                    "frequency": frequency
                }
                for selection, frequency in ranked
            ]
        }

    def get_learner_statistics(self, db: Session, user_id: UUID) -> Dict[str, Any]:
        """Attempt outcomes of one learner across every quiz"""
        status_counts = dict(
            db.query(QuizAttempt.status, func.count(QuizAttempt.id))
            .filter(QuizAttempt.user_id == user_id)
            .group_by(QuizAttempt.status)
            .all()
        )

        completed_filter = (
            QuizAttempt.user_id == user_id,
            QuizAttempt.status == AttemptStatus.COMPLETED
        )

        passed = db.query(func.count(QuizAttempt.id)).filter(
            *completed_filter, QuizAttempt.passed.is_(True)
        ).scalar() or 0

        avg_score = db.query(func.avg(QuizAttempt.percentage_score)).filter(*completed_filter).scalar()

        completed = status_counts.get(AttemptStatus.COMPLETED, 0)

        return {
            "user_id": str(user_id),
            "total_attempts": sum(status_counts.values()),
            "completed": completed,
            "passed": passed,
            "failed": completed - passed,
            "pass_rate": _round_half_up(passed * 100 / completed) if completed else 0,
            "average_score": _round_half_up(avg_score)
        }


# Global instance
analytics_service = AnalyticsService()

"""
Quiz grading service
Option-based questions: exact set match against the answer key
Free text: not auto-gradable, left for manual review
"""
import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
from uuid import UUID
from sqlalchemy.orm import Session

from quiz_engine.models import QuizAttempt, QuizResponse, QuestionType
from quiz_engine.services.question_bank import question_bank, AnswerKeyEntry, QuestionBank

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResponseGrade:
    is_correct: bool
    points_earned: float


@dataclass
class GradeResult:
    """Outcome of scoring one attempt"""
    attempt_id: UUID
    earned_points: float
    total_points: int
    percentage: int
    passed: bool
    graded_responses: int = 0
    ungraded_responses: int = 0


class AllOrNothingPolicy:
    """
    Full points only when the selected set equals the correct set

    For single-answer types this means exactly the one correct option was
    picked; for multiple select any missing or extra option scores zero.
    """

    name = "all_or_nothing"

    def grade(self, entry: AnswerKeyEntry, selected: frozenset) -> ResponseGrade:
        if selected == entry.correct_option_ids:
            return ResponseGrade(True, float(entry.points))
        return ResponseGrade(False, 0.0)


class PartialCreditPolicy(AllOrNothingPolicy):
    """
    Multiple select earns points * max(0, hits - wrong) / |correct|

    Single-answer types stay all-or-nothing.
    """

    name = "partial_credit"

    def grade(self, entry: AnswerKeyEntry, selected: frozenset) -> ResponseGrade:
        if entry.question_type != QuestionType.MULTIPLE_SELECT or not entry.correct_option_ids:
            return super().grade(entry, selected)

        hits = len(selected & entry.correct_option_ids)
        wrong = len(selected - entry.correct_option_ids)
        fraction = max(0, hits - wrong) / len(entry.correct_option_ids)

        return ResponseGrade(
            selected == entry.correct_option_ids,
            round(entry.points * fraction, 2)
        )


def percentage_of(earned: float, total: int) -> int:
    """Whole-number percentage rounded half up; 0 when nothing is gradable"""
    if total <= 0:
        return 0
    ratio = Decimal(str(earned)) * 100 / Decimal(total)
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class GradingEngine:
    """
    Service for grading quiz attempts

    Strategy:
    - Responses are stored raw and graded together at completion
    - The answer key is read once per grading run
    - Per-question scoring is delegated to a pluggable policy
    - Re-running score() on the same responses reproduces the same result
    """

    def __init__(self, policy: Optional[AllOrNothingPolicy] = None, bank: Optional[QuestionBank] = None):
        self.policy = policy or AllOrNothingPolicy()
        self.bank = bank or question_bank

    def score(self, db: Session, attempt: QuizAttempt) -> GradeResult:
        """
        Grade every response of an attempt and compute the aggregate

        Per-response is_correct and points_earned are written to the session
        (flushed, not committed) so the caller can persist them atomically
        with the attempt's status transition.

        Args:
            db: Database session
            attempt: Attempt to grade

        Returns:
            GradeResult with percentage and pass/fail
        """
        key = self.bank.answer_key(db, attempt.quiz_id)
        responses = db.query(QuizResponse).filter(QuizResponse.attempt_id == attempt.id).all()

        total_points = sum(entry.points for entry in key.values() if entry.auto_gradable)
        result = GradeResult(
            attempt_id=attempt.id,
            earned_points=0.0,
            total_points=total_points,
            percentage=0,
            passed=False
        )

        for response in responses:
            grade = self._grade_response(key.get(response.question_id), response)

            if grade is None:
                response.is_correct = None
                response.points_earned = None
                result.ungraded_responses += 1
                continue

            response.is_correct = grade.is_correct
            response.points_earned = grade.points_earned
            result.earned_points += grade.points_earned
            result.graded_responses += 1

        result.percentage = percentage_of(result.earned_points, total_points)
        result.passed = result.percentage >= attempt.quiz.passing_score

        db.flush()

        logger.info(
            f"Attempt {attempt.id} graded ({self.policy.name}): "
            f"{result.earned_points:g}/{total_points} = {result.percentage}%, passed={result.passed}"
        )

        return result

    def _grade_response(
        self,
        entry: Optional[AnswerKeyEntry],
        response: QuizResponse
    ) -> Optional[ResponseGrade]:
        """Grade one response; None means it cannot be graded automatically"""
        if entry is None:
            logger.warning(f"Response {response.id} references a question missing from the answer key")
            return None

        if not entry.auto_gradable:
            return None

        return self.policy.grade(entry, response.selected_ids)


# Global instance
grading_engine = GradingEngine()

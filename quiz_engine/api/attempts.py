"""
Quiz attempt API endpoints
"""
from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID
import logging

from quiz_engine.database import get_db
from quiz_engine.schemas.attempt import (
    Principal,
    ResponseSubmission,
    ResponseOut,
    AttemptOut,
    AttemptDetail,
    AttemptPage,
    PresentedQuiz,
    QuizStatistics,
    QuestionStatistics,
    CommonWrongAnswers,
    LearnerStatistics,
    SweepResult,
)
from quiz_engine.services.quiz_attempt_service import quiz_attempt_service, QuizAttemptService


router = APIRouter(prefix="/api", tags=["attempts"])
logger = logging.getLogger(__name__)


def get_principal(
    x_user_id: Optional[UUID] = Header(None),
    x_user_role: str = Header("student", pattern="^(student|instructor|admin)$")
) -> Principal:
    """Acting user as forwarded by the authentication gateway"""
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return Principal(user_id=x_user_id, role=x_user_role)


def get_attempt_service() -> QuizAttemptService:
    return quiz_attempt_service


@router.post("/quizzes/{quiz_id}/attempts", response_model=AttemptOut, status_code=201)
async def start_attempt(
    quiz_id: UUID,
    principal: Principal = Depends(get_principal),
    service: QuizAttemptService = Depends(get_attempt_service),
    db: Session = Depends(get_db)
):
    """
    Start a new attempt

    - 403 when not enrolled or out of attempts
    - 409 when an attempt is already in progress
    """
    logger.info(f"Starting attempt on quiz {quiz_id} for user {principal.user_id}")

    attempt = service.start_attempt(db, principal, quiz_id)
    return AttemptOut(**attempt)


@router.get("/quizzes/{quiz_id}/attempts", response_model=AttemptPage)
async def list_attempts(
    quiz_id: UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    principal: Principal = Depends(get_principal),
    service: QuizAttemptService = Depends(get_attempt_service),
    db: Session = Depends(get_db)
):
    """Acting user's attempts on a quiz, newest first"""
    result = service.get_user_attempts(db, principal, quiz_id, page=page, limit=limit)
    return AttemptPage(**result)


@router.get("/quizzes/{quiz_id}/results", response_model=AttemptPage)
async def list_quiz_results(
    quiz_id: UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    principal: Principal = Depends(get_principal),
    service: QuizAttemptService = Depends(get_attempt_service),
    db: Session = Depends(get_db)
):
    """Completed attempts of all learners, best score first (instructors and admins)"""
    result = service.get_quiz_results(db, principal, quiz_id, page=page, limit=limit)
    return AttemptPage(**result)


@router.get("/quizzes/{quiz_id}/best-attempt", response_model=AttemptOut)
async def get_best_attempt(
    quiz_id: UUID,
    principal: Principal = Depends(get_principal),
    service: QuizAttemptService = Depends(get_attempt_service),
    db: Session = Depends(get_db)
):
    """Highest-scoring completed attempt"""
    attempt = service.get_best_attempt(db, principal, quiz_id)

    if attempt is None:
        raise HTTPException(status_code=404, detail="No completed attempts for this quiz")

    return AttemptOut(**attempt)


@router.get("/quizzes/{quiz_id}/statistics", response_model=QuizStatistics)
async def get_quiz_statistics(
    quiz_id: UUID,
    principal: Principal = Depends(get_principal),
    service: QuizAttemptService = Depends(get_attempt_service),
    db: Session = Depends(get_db)
):
    """
    Attempt statistics for a quiz (instructors and admins)

    Returns:
    - Attempt counts per status
    - Passed/failed counts and pass rate
    - Average score of completed attempts
    """
    stats = service.get_quiz_statistics(db, principal, quiz_id)
    return QuizStatistics(**stats)


@router.get("/questions/{question_id}/statistics", response_model=QuestionStatistics)
async def get_question_statistics(
    question_id: UUID,
    principal: Principal = Depends(get_principal),
    service: QuizAttemptService = Depends(get_attempt_service),
    db: Session = Depends(get_db)
):
    stats = service.get_question_statistics(db, principal, question_id)
    return QuestionStatistics(**stats)


@router.get("/questions/{question_id}/common-wrong-answers", response_model=CommonWrongAnswers)
async def get_common_wrong_answers(
    question_id: UUID,
    limit: int = Query(5, ge=1, le=20),
    principal: Principal = Depends(get_principal),
    service: QuizAttemptService = Depends(get_attempt_service),
    db: Session = Depends(get_db)
):
    answers = service.get_common_wrong_answers(db, principal, question_id, limit=limit)
    return CommonWrongAnswers(**answers)


@router.get("/users/{user_id}/attempt-statistics", response_model=LearnerStatistics)
async def get_learner_statistics(
    user_id: UUID,
    principal: Principal = Depends(get_principal),
    service: QuizAttemptService = Depends(get_attempt_service),
    db: Session = Depends(get_db)
):
    """Attempt totals across all quizzes; learners may only read their own"""
    stats = service.get_learner_statistics(db, principal, user_id)
    return LearnerStatistics(**stats)


@router.get("/attempts/{attempt_id}", response_model=AttemptDetail, response_model_exclude_unset=True)
async def get_attempt(
    attempt_id: UUID,
    include_responses: bool = Query(False),
    principal: Principal = Depends(get_principal),
    service: QuizAttemptService = Depends(get_attempt_service),
    db: Session = Depends(get_db)
):
    """Attempt details, with responses when requested"""
    attempt = service.get_attempt(db, principal, attempt_id, include_responses=include_responses)
    return AttemptDetail(**attempt)


@router.get("/attempts/{attempt_id}/questions", response_model=PresentedQuiz)
async def get_attempt_questions(
    attempt_id: UUID,
    principal: Principal = Depends(get_principal),
    service: QuizAttemptService = Depends(get_attempt_service),
    db: Session = Depends(get_db)
):
    """
    Questions for an in-progress attempt

    Correct answers and explanations are never included. Order is shuffled
    per request when the quiz asks for it.
    """
    presentation = service.get_quiz_for_attempt(db, principal, attempt_id)
    return PresentedQuiz(**presentation)


@router.post("/attempts/{attempt_id}/responses", response_model=ResponseOut, status_code=201)
async def submit_response(
    attempt_id: UUID,
    submission: ResponseSubmission,
    principal: Principal = Depends(get_principal),
    service: QuizAttemptService = Depends(get_attempt_service),
    db: Session = Depends(get_db)
):
    """Record the answer to one question; each question can be answered once"""
    response = service.submit_response(
        db,
        principal,
        attempt_id,
        submission.question_id,
        selected_option_ids=submission.selected_option_ids,
        text_answer=submission.text_answer,
        time_spent_seconds=submission.time_spent_seconds
    )
    return ResponseOut(**response)


@router.post("/attempts/{attempt_id}/complete", response_model=AttemptOut)
async def complete_attempt(
    attempt_id: UUID,
    principal: Principal = Depends(get_principal),
    service: QuizAttemptService = Depends(get_attempt_service),
    db: Session = Depends(get_db)
):
    """
    Finish and grade an attempt

    An attempt submitted after its deadline comes back as expired, ungraded.
    """
    logger.info(f"Completing attempt {attempt_id} for user {principal.user_id}")

    attempt = service.complete_attempt(db, principal, attempt_id)
    return AttemptOut(**attempt)


@router.post("/attempts/{attempt_id}/abandon", response_model=AttemptOut)
async def abandon_attempt(
    attempt_id: UUID,
    principal: Principal = Depends(get_principal),
    service: QuizAttemptService = Depends(get_attempt_service),
    db: Session = Depends(get_db)
):
    attempt = service.abandon_attempt(db, principal, attempt_id)
    return AttemptOut(**attempt)


@router.post("/admin/attempts/sweep", response_model=SweepResult)
async def sweep_expired_attempts(
    principal: Principal = Depends(get_principal),
    service: QuizAttemptService = Depends(get_attempt_service),
    db: Session = Depends(get_db)
):
    """Expire every in-progress attempt past its deadline (admins)"""
    result = service.sweep_expired_attempts(db, principal)
    return SweepResult(**result)


@router.post("/admin/attempts/{attempt_id}/regrade", response_model=AttemptOut)
async def regrade_attempt(
    attempt_id: UUID,
    principal: Principal = Depends(get_principal),
    service: QuizAttemptService = Depends(get_attempt_service),
    db: Session = Depends(get_db)
):
    """Re-score a completed attempt against the current answer key (admins)"""
    attempt = service.regrade_attempt(db, principal, attempt_id)
    return AttemptOut(**attempt)

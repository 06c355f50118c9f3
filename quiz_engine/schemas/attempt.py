"""
Pydantic schemas for attempt-related requests and responses
"""
from pydantic import BaseModel, Field
from typing import List, Optional
from uuid import UUID
from datetime import datetime


class Principal(BaseModel):
    """Acting user as supplied by the authentication layer"""
    user_id: UUID
    role: str = Field("student", pattern="^(student|instructor|admin)$")

    @property
    def is_staff(self) -> bool:
        return self.role in ("instructor", "admin")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class ResponseSubmission(BaseModel):
    """Schema for answering one question"""
    question_id: UUID
    selected_option_ids: List[UUID] = Field(default_factory=list, description="Chosen option ids")
    text_answer: Optional[str] = Field(None, description="Free-text answer")
    time_spent_seconds: Optional[int] = Field(None, ge=0, description="Time spent on the question")


class ResponseOut(BaseModel):
    """Stored response"""
    id: UUID
    attempt_id: UUID
    question_id: UUID
    selected_option_ids: List[UUID]
    text_answer: Optional[str] = None
    is_correct: Optional[bool] = None
    points_earned: Optional[float] = None
    time_spent_seconds: Optional[int] = None
    answered_at: datetime
    correct_option_ids: Optional[List[UUID]] = None  # Only revealed after the attempt ends

    class Config:
        from_attributes = True


class AttemptOut(BaseModel):
    """Attempt summary"""
    id: UUID
    quiz_id: UUID
    user_id: UUID
    attempt_number: int
    status: str
    started_at: datetime
    submitted_at: Optional[datetime] = None
    percentage_score: Optional[int] = None
    passed: Optional[bool] = None
    time_spent_seconds: Optional[int] = None
    deadline: Optional[datetime] = None

    class Config:
        from_attributes = True


class AttemptDetail(AttemptOut):
    """Attempt with its responses"""
    responses: List[ResponseOut] = []


class AttemptPage(BaseModel):
    """Paginated list of attempts"""
    data: List[AttemptOut]
    page: int
    limit: int
    total: int
    total_pages: int


class PresentedOption(BaseModel):
    """Option as shown to a learner"""
    id: UUID
    option_text: str
    position: float
    is_correct: Optional[bool] = None


class PresentedQuestion(BaseModel):
    """Question as shown to a learner"""
    id: UUID
    question_type: str
    question_text: str
    points: int
    position: float
    is_required: bool
    explanation: Optional[str] = None
    options: List[PresentedOption]


class PresentedQuiz(BaseModel):
    """Question list for an attempt, possibly shuffled"""
    quiz_id: UUID
    title: str
    time_limit_minutes: Optional[int] = None
    shuffled: bool
    questions: List[PresentedQuestion]
    answered_question_ids: List[UUID] = []


class QuizStatistics(BaseModel):
    """Aggregate attempt statistics for a quiz"""
    quiz_id: UUID
    total_attempts: int
    in_progress: int
    completed: int
    abandoned: int
    expired: int
    passed: int
    failed: int
    pass_rate: int
    average_score: int


class QuestionStatistics(BaseModel):
    """Aggregate response statistics for a question"""
    question_id: UUID
    total_responses: int
    correct_responses: int
    incorrect_responses: int
    ungraded_responses: int
    accuracy: int
    average_time_spent: int


class WrongAnswer(BaseModel):
    """One incorrect selection and how often learners made it"""
    selected_option_ids: List[UUID]
    option_texts: List[str]
    frequency: int


class CommonWrongAnswers(BaseModel):
    """Most frequent incorrect selections for a question"""
    question_id: UUID
    answers: List[WrongAnswer]


class LearnerStatistics(BaseModel):
    """Attempt outcomes of one learner across all quizzes"""
    user_id: UUID
    total_attempts: int
    completed: int
    passed: int
    failed: int
    pass_rate: int = Field(..., description="Passed share of completed attempts, in percent")
    average_score: int


class SweepResult(BaseModel):
    """Outcome of one expiry sweep"""
    scanned: int
    expired: int
    skipped: int
    failed: int
    expired_attempt_ids: List[UUID] = []

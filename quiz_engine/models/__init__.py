"""
Database models package
"""
from quiz_engine.models.quiz import Quiz
from quiz_engine.models.question import Question, QuestionOption, QuestionType
from quiz_engine.models.quiz_attempt import QuizAttempt, AttemptStatus
from quiz_engine.models.quiz_response import QuizResponse
from quiz_engine.models.enrollment import Enrollment

__all__ = [
    "Quiz",
    "Question",
    "QuestionOption",
    "QuestionType",
    "QuizAttempt",
    "AttemptStatus",
    "QuizResponse",
    "Enrollment",
]

import os
import uuid
from datetime import datetime

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["CACHE_ENABLED"] = "false"
os.environ["SWEEP_ENABLED"] = "false"

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from quiz_engine.database import Base
from quiz_engine.models import Quiz, QuestionType
from quiz_engine.schemas.attempt import Principal
from quiz_engine.services.analytics_service import AnalyticsService
from quiz_engine.services.attempt_lifecycle import AttemptLifecycleManager
from quiz_engine.services.enrollment_gateway import EnrollmentGateway
from quiz_engine.services.question_bank import question_bank
from quiz_engine.services.quiz_attempt_service import QuizAttemptService
from quiz_engine.utils.cache import CacheService


COURSE_ID = uuid.UUID("6f1c2d7e-0000-4000-8000-000000000001")
NOW = datetime(2026, 3, 2, 9, 0, 0)


class FakeEnrollmentGateway(EnrollmentGateway):
    def __init__(self):
        self.enrolled = set()

    def enroll(self, learner_id, course_id=COURSE_ID):
        self.enrolled.add((learner_id, course_id))

    def is_enrolled(self, db, learner_id, course_id):
        return (learner_id, course_id) in self.enrolled


@pytest.fixture
def engine(tmp_path):
    # File-backed so separate sessions see each other's commits
    engine = create_engine(
        f"sqlite:///{tmp_path / 'quiz_engine.db'}",
        connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def cache():
    return CacheService(enabled=False)


@pytest.fixture
def lifecycle(cache):
    return AttemptLifecycleManager(cache=cache)


@pytest.fixture
def enrollment():
    return FakeEnrollmentGateway()


@pytest.fixture
def service(lifecycle, cache, enrollment):
    return QuizAttemptService(
        lifecycle=lifecycle,
        analytics=AnalyticsService(cache=cache),
        enrollment=enrollment
    )


@pytest.fixture
def learner(enrollment):
    principal = Principal(user_id=uuid.uuid4(), role="student")
    enrollment.enroll(principal.user_id)
    return principal


@pytest.fixture
def instructor():
    return Principal(user_id=uuid.uuid4(), role="instructor")


@pytest.fixture
def admin():
    return Principal(user_id=uuid.uuid4(), role="admin")


@pytest.fixture
def make_quiz(db):
    def _make(**overrides):
        values = {
            "lesson_id": uuid.uuid4(),
            "course_id": COURSE_ID,
            "title": "Cell biology checkpoint",
            "time_limit_minutes": None,
            "attempt_limit": 3,
            "passing_score": 70,
            "shuffle_questions": False,
            "show_correct_answers": True,
            "is_active": True,
        }
        values.update(overrides)
        quiz = Quiz(**values)
        db.add(quiz)
        db.commit()
        db.refresh(quiz)
        return quiz

    return _make


@pytest.fixture
def add_question(db):
    """Adds an option question; `correct` holds the indexes of correct options"""
    def _add(quiz, question_type=QuestionType.MULTIPLE_CHOICE, correct=(0,), option_count=4, points=1):
        if question_type == QuestionType.SHORT_ANSWER:
            options = []
        else:
            if question_type == QuestionType.TRUE_FALSE:
                option_count = 2
            options = [
                {"option_text": f"Option {chr(65 + index)}", "is_correct": index in correct}
                for index in range(option_count)
            ]
        return question_bank.add_question(
            db,
            quiz.id,
            question_type,
            f"Question {uuid.uuid4().hex[:6]}",
            options=options,
            points=points,
            explanation="Because the textbook says so"
        )

    return _add


def option_ids(question, *indexes):
    """Option ids of a question by authored position"""
    return [question.options[index].id for index in indexes]

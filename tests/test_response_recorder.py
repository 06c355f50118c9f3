from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from quiz_engine.exceptions import ConflictError, InvalidStateError, NotFoundError, ValidationError
from quiz_engine.models import AttemptStatus, QuestionType, QuizResponse
from quiz_engine.services.response_recorder import ResponseRecorder
from tests.conftest import option_ids


@pytest.fixture
def quiz(make_quiz):
    return make_quiz(time_limit_minutes=30)


@pytest.fixture
def attempt(db, quiz, lifecycle, learner, now):
    return lifecycle.start(db, learner.user_id, quiz.id, now=now)


def test_records_selected_options(db, quiz, attempt, add_question, lifecycle, now):
    question = add_question(quiz, QuestionType.MULTIPLE_SELECT, correct=(0, 2))

    response = lifecycle.record_response(
        db, attempt.id, question.id,
        selected_option_ids=option_ids(question, 2, 0),
        time_spent_seconds=42,
        now=now + timedelta(minutes=1)
    )

    assert response.selected_ids == frozenset(option_ids(question, 0, 2))
    assert response.is_correct is None
    assert response.points_earned is None
    assert response.time_spent_seconds == 42
    assert response.answered_at == now + timedelta(minutes=1)


def test_second_answer_to_same_question_conflicts(db, quiz, attempt, add_question, lifecycle, now):
    question = add_question(quiz)
    lifecycle.record_response(db, attempt.id, question.id, selected_option_ids=option_ids(question, 1), now=now)

    with pytest.raises(ConflictError):
        lifecycle.record_response(db, attempt.id, question.id, selected_option_ids=option_ids(question, 0), now=now)

    stored = db.query(QuizResponse).filter(QuizResponse.attempt_id == attempt.id).all()
    assert len(stored) == 1
    assert stored[0].selected_ids == frozenset(option_ids(question, 1))


def test_storage_rejects_duplicate_response(db, quiz, attempt, add_question, now):
    question = add_question(quiz)
    db.add(QuizResponse(attempt_id=attempt.id, question_id=question.id, selected_option_ids=[], answered_at=now))
    db.commit()

    db.add(QuizResponse(attempt_id=attempt.id, question_id=question.id, selected_option_ids=[], answered_at=now))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_question_from_another_quiz(db, make_quiz, attempt, add_question, lifecycle, now):
    other_question = add_question(make_quiz())

    with pytest.raises(NotFoundError):
        lifecycle.record_response(db, attempt.id, other_question.id, selected_option_ids=[], now=now)


class TestSelectionValidation:
    def test_option_of_another_question(self, db, quiz, attempt, add_question, lifecycle, now):
        question = add_question(quiz)
        other = add_question(quiz)

        with pytest.raises(ValidationError):
            lifecycle.record_response(db, attempt.id, question.id, selected_option_ids=option_ids(other, 0), now=now)

    def test_single_answer_type_takes_one_option(self, db, quiz, attempt, add_question, lifecycle, now):
        question = add_question(quiz)

        with pytest.raises(ValidationError):
            lifecycle.record_response(db, attempt.id, question.id, selected_option_ids=option_ids(question, 0, 1), now=now)

    def test_repeated_option(self, db, quiz, attempt, add_question, lifecycle, now):
        question = add_question(quiz, QuestionType.MULTIPLE_SELECT, correct=(0, 1))

        with pytest.raises(ValidationError):
            lifecycle.record_response(db, attempt.id, question.id, selected_option_ids=option_ids(question, 0, 0), now=now)

    def test_text_on_option_question(self, db, quiz, attempt, add_question, lifecycle, now):
        question = add_question(quiz, QuestionType.TRUE_FALSE)

        with pytest.raises(ValidationError):
            lifecycle.record_response(db, attempt.id, question.id, text_answer="True", now=now)

    def test_options_on_short_answer(self, db, quiz, attempt, add_question, lifecycle, now):
        essay = add_question(quiz, QuestionType.SHORT_ANSWER)
        choice = add_question(quiz)

        with pytest.raises(ValidationError):
            lifecycle.record_response(db, attempt.id, essay.id, selected_option_ids=option_ids(choice, 0), now=now)

    def test_empty_selection_is_allowed(self, db, quiz, attempt, add_question, lifecycle, now):
        question = add_question(quiz)

        response = lifecycle.record_response(db, attempt.id, question.id, selected_option_ids=[], now=now)

        assert response.selected_ids == frozenset()


class TestTextAnswers:
    def test_text_is_trimmed(self, db, quiz, attempt, add_question, lifecycle, now):
        essay = add_question(quiz, QuestionType.SHORT_ANSWER)

        response = lifecycle.record_response(db, attempt.id, essay.id, text_answer="  Diffusion of water  ", now=now)

        assert response.text_answer == "Diffusion of water"

    def test_blank_text_is_stored_as_none(self, db, quiz, attempt, add_question, lifecycle, now):
        essay = add_question(quiz, QuestionType.SHORT_ANSWER)

        response = lifecycle.record_response(db, attempt.id, essay.id, text_answer="   ", now=now)

        assert response.text_answer is None

    def test_text_length_limit(self, db, quiz, attempt, add_question, now):
        essay = add_question(quiz, QuestionType.SHORT_ANSWER)
        recorder = ResponseRecorder(max_text_length=10)

        with pytest.raises(ValidationError):
            recorder.submit(db, attempt, essay.id, text_answer="x" * 11, now=now)

        response = recorder.submit(db, attempt, essay.id, text_answer="x" * 10, now=now)
        assert response.text_answer == "x" * 10


def test_negative_time_spent(db, quiz, attempt, add_question, now):
    question = add_question(quiz)

    with pytest.raises(ValidationError):
        ResponseRecorder().submit(db, attempt, question.id, selected_option_ids=[], time_spent_seconds=-1, now=now)


def test_answer_after_completion(db, quiz, attempt, add_question, lifecycle, now):
    question = add_question(quiz)
    lifecycle.complete(db, attempt.id, now=now + timedelta(minutes=5))

    with pytest.raises(InvalidStateError):
        lifecycle.record_response(db, attempt.id, question.id, selected_option_ids=[], now=now + timedelta(minutes=6))


def test_answer_after_deadline_expires_attempt(db, quiz, attempt, add_question, lifecycle, now):
    question = add_question(quiz)

    with pytest.raises(InvalidStateError):
        lifecycle.record_response(
            db, attempt.id, question.id,
            selected_option_ids=option_ids(question, 0),
            now=now + timedelta(minutes=30)
        )

    db.refresh(attempt)
    assert attempt.status == AttemptStatus.EXPIRED
    assert attempt.time_spent_seconds == 30 * 60
    assert db.query(QuizResponse).count() == 0


def test_answer_just_before_deadline(db, quiz, attempt, add_question, lifecycle, now):
    question = add_question(quiz)

    response = lifecycle.record_response(
        db, attempt.id, question.id,
        selected_option_ids=option_ids(question, 0),
        now=now + timedelta(minutes=30) - timedelta(seconds=1)
    )

    assert response.id is not None


class TestConcurrentFinalization:
    """Each session holds its own copy of the attempt row"""

    def test_answer_rejected_after_another_session_completed(
        self, db, session_factory, quiz, attempt, add_question, lifecycle, now
    ):
        first = add_question(quiz)
        second = add_question(quiz)
        assert attempt.status == AttemptStatus.IN_PROGRESS

        other = session_factory()
        try:
            lifecycle.record_response(other, attempt.id, first.id, selected_option_ids=option_ids(first, 0), now=now)
            lifecycle.complete(other, attempt.id, now=now + timedelta(minutes=2))
        finally:
            other.close()

        # This session still sees the attempt as in progress
        assert attempt.status == AttemptStatus.IN_PROGRESS
        with pytest.raises(InvalidStateError):
            ResponseRecorder().submit(
                db, attempt, second.id,
                selected_option_ids=option_ids(second, 0),
                now=now + timedelta(minutes=3)
            )

        assert db.query(QuizResponse).filter(QuizResponse.attempt_id == attempt.id).count() == 1
        db.refresh(attempt)
        assert attempt.status == AttemptStatus.COMPLETED
        assert attempt.percentage_score == 50
        assert lifecycle.regrade(db, attempt.id, now=now + timedelta(minutes=4)).percentage_score == 50

    def test_answer_rejected_after_another_session_abandoned(
        self, db, session_factory, quiz, attempt, add_question, lifecycle, now
    ):
        question = add_question(quiz)
        assert attempt.status == AttemptStatus.IN_PROGRESS

        other = session_factory()
        try:
            lifecycle.abandon(other, attempt.id, now=now + timedelta(minutes=1))
        finally:
            other.close()

        with pytest.raises(InvalidStateError):
            ResponseRecorder().submit(db, attempt, question.id, selected_option_ids=[], now=now + timedelta(minutes=2))

        assert db.query(QuizResponse).count() == 0

    def test_recorded_answer_bumps_revision(self, db, quiz, attempt, add_question, lifecycle, now):
        question = add_question(quiz)
        assert attempt.revision == 0

        lifecycle.record_response(db, attempt.id, question.id, selected_option_ids=[], now=now + timedelta(minutes=1))

        db.refresh(attempt)
        assert attempt.revision == 1
        assert attempt.updated_at == now + timedelta(minutes=1)

import uuid

import pytest

from quiz_engine.exceptions import ConflictError, NotFoundError, ValidationError
from quiz_engine.models import QuestionType
from quiz_engine.services.question_bank import QuestionBank, question_bank, validate_question


class ReversingRandom:
    """Deterministic stand-in for the shuffle source"""

    def shuffle(self, items):
        items.reverse()


def _options(*flags):
    return [{"option_text": f"Option {index}", "is_correct": flag} for index, flag in enumerate(flags)]


class TestValidateQuestion:
    def test_multiple_choice_requires_exactly_one_correct(self):
        assert validate_question(QuestionType.MULTIPLE_CHOICE, _options(True, False, False)) == []
        assert validate_question(QuestionType.MULTIPLE_CHOICE, _options(True, True, False))
        assert validate_question(QuestionType.MULTIPLE_CHOICE, _options(False, False))

    def test_multiple_select_requires_at_least_one_correct(self):
        assert validate_question(QuestionType.MULTIPLE_SELECT, _options(True, False, True)) == []
        assert validate_question(QuestionType.MULTIPLE_SELECT, _options(False, False, False))

    def test_true_false_needs_two_options(self):
        assert validate_question(QuestionType.TRUE_FALSE, _options(True, False)) == []
        assert validate_question(QuestionType.TRUE_FALSE, _options(True, False, False))

    def test_option_questions_need_two_options(self):
        errors = validate_question(QuestionType.MULTIPLE_SELECT, _options(True))
        assert "Question must have at least 2 options" in errors

    def test_short_answer_rejects_options(self):
        assert validate_question(QuestionType.SHORT_ANSWER, []) == []
        assert validate_question(QuestionType.SHORT_ANSWER, _options(True, False))

    def test_unknown_type(self):
        assert validate_question("essay", []) == ["Invalid question type: essay"]


def test_add_question_assigns_increasing_positions(db, make_quiz, add_question):
    quiz = make_quiz()

    first = add_question(quiz)
    second = add_question(quiz, QuestionType.TRUE_FALSE)

    assert first.position == 1
    assert second.position == 2
    assert [option.option_text for option in first.options] == ["Option A", "Option B", "Option C", "Option D"]


def test_add_question_rejects_invalid_definition(db, make_quiz):
    quiz = make_quiz()

    with pytest.raises(ValidationError):
        question_bank.add_question(db, quiz.id, QuestionType.MULTIPLE_CHOICE, "Pick one", options=_options(True, True))

    with pytest.raises(ValidationError):
        question_bank.add_question(db, quiz.id, QuestionType.SHORT_ANSWER, "   ")

    with pytest.raises(ValidationError):
        question_bank.add_question(db, quiz.id, QuestionType.SHORT_ANSWER, "Explain", points=0)


def test_add_question_to_missing_quiz(db):
    with pytest.raises(NotFoundError):
        question_bank.add_question(db, uuid.uuid4(), QuestionType.SHORT_ANSWER, "Explain osmosis")


def test_answer_key_marks_free_text_as_not_gradable(db, make_quiz, add_question):
    quiz = make_quiz()
    choice = add_question(quiz, QuestionType.MULTIPLE_SELECT, correct=(0, 2), points=2)
    essay = add_question(quiz, QuestionType.SHORT_ANSWER)

    key = question_bank.answer_key(db, quiz.id)

    assert key[choice.id].correct_option_ids == frozenset({choice.options[0].id, choice.options[2].id})
    assert key[choice.id].points == 2
    assert key[choice.id].auto_gradable
    assert not key[essay.id].auto_gradable
    assert key[essay.id].correct_option_ids == frozenset()


def test_get_quiz_config(db, make_quiz):
    quiz = make_quiz(time_limit_minutes=20, attempt_limit=2, passing_score=80)

    config = question_bank.get_quiz_config(db, quiz.id)

    assert config.time_limit_minutes == 20
    assert config.attempt_limit == 2
    assert config.passing_score == 80
    assert config.is_active


def test_get_quiz_requiring_active(db, make_quiz):
    quiz = make_quiz(is_active=False)

    assert question_bank.get_quiz(db, quiz.id).id == quiz.id
    with pytest.raises(NotFoundError):
        question_bank.get_quiz(db, quiz.id, require_active=True)


class TestPresent:
    def test_hides_answer_key(self, db, make_quiz, add_question):
        quiz = make_quiz()
        add_question(quiz)

        presentation = question_bank.present(db, quiz.id)
        question = presentation["questions"][0]

        assert question["explanation"] is None
        assert all("is_correct" not in option for option in question["options"])

    def test_includes_answers_on_request(self, db, make_quiz, add_question):
        quiz = make_quiz()
        add_question(quiz, correct=(1,))

        presentation = question_bank.present(db, quiz.id, include_answers=True)
        question = presentation["questions"][0]

        assert question["explanation"] == "Because the textbook says so"
        assert [option["is_correct"] for option in question["options"]] == [False, True, False, False]

    def test_authored_order_without_shuffle(self, db, make_quiz, add_question):
        quiz = make_quiz(shuffle_questions=False)
        questions = [add_question(quiz) for _ in range(3)]

        presentation = QuestionBank(rng=ReversingRandom()).present(db, quiz.id)

        assert presentation["shuffled"] is False
        assert [q["id"] for q in presentation["questions"]] == [q.id for q in questions]

    def test_shuffles_questions_and_options(self, db, make_quiz, add_question):
        quiz = make_quiz(shuffle_questions=True)
        questions = [add_question(quiz) for _ in range(3)]

        presentation = QuestionBank(rng=ReversingRandom()).present(db, quiz.id)

        assert presentation["shuffled"] is True
        assert [q["id"] for q in presentation["questions"]] == [q.id for q in reversed(questions)]
        first = presentation["questions"][0]
        assert [option["id"] for option in first["options"]] == [o.id for o in reversed(questions[-1].options)]

    def test_shuffle_keeps_every_question(self, db, make_quiz, add_question):
        quiz = make_quiz(shuffle_questions=True)
        questions = [add_question(quiz) for _ in range(5)]

        presentation = question_bank.present(db, quiz.id)

        assert {q["id"] for q in presentation["questions"]} == {q.id for q in questions}
        for presented in presentation["questions"]:
            assert len(presented["options"]) == 4


def test_delete_question_blocked_once_attempted(db, make_quiz, add_question, lifecycle, learner, now):
    quiz = make_quiz()
    question = add_question(quiz)
    spare = add_question(quiz)

    question_bank.delete_question(db, spare.id)
    assert len(question_bank.get_questions(db, quiz.id)) == 1

    lifecycle.start(db, learner.user_id, quiz.id, now=now)

    with pytest.raises(ConflictError):
        question_bank.delete_question(db, question.id)

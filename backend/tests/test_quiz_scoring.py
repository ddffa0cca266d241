from __future__ import annotations

from types import SimpleNamespace

import pytest
from pydantic import ValidationError
from sqlalchemy.exc import OperationalError

from studyaid.core.errors import InvalidInput, NotFound, PersistenceError
from studyaid.models.quiz import Quiz, QuizQuestion
from studyaid.models.quiz_attempt import QuizAttempt
from studyaid.schemas.quiz import QuizSubmitRequest, SubmittedAnswer
from studyaid.services import quiz_service


class _FakeQuery:
    def __init__(self, rows):
        self.rows = rows

    def filter(self, *args, **kwargs):
        return self

    def order_by(self, *args, **kwargs):
        return self

    def first(self):
        return self.rows[0] if self.rows else None

    def all(self):
        return list(self.rows)


class _FakeDB:
    def __init__(self, quiz=None, fail_commit=False):
        self.quiz = quiz
        self.fail_commit = fail_commit
        self.added = []
        self.committed = False
        self.rolled_back = False

    def query(self, entity):
        if entity is Quiz:
            return _FakeQuery([self.quiz] if self.quiz else [])
        return _FakeQuery([])

    def add(self, obj):
        self.added.append(obj)

    def commit(self):
        if self.fail_commit:
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))
        self.committed = True

    def rollback(self):
        self.rolled_back = True

    def refresh(self, obj):
        obj.id = 99


def _quiz(owner_id=1, keys=(0, 1, 2)):
    quiz = Quiz(id=5, user_id=owner_id, topic="Cells")
    quiz.questions = [
        QuizQuestion(order_no=i, question_text=f"Q{i}", options=["a", "b", "c", "d"], correct_index=k)
        for i, k in enumerate(keys)
    ]
    return quiz


def _answers(*pairs):
    return [SubmittedAnswer(question_index=qi, selected_option_index=oi) for qi, oi in pairs]


def test_score_answers_counts_matches():
    questions = _quiz(keys=(0, 1, 2)).questions

    assert quiz_service.score_answers(questions, _answers((0, 0), (1, 1), (2, 2))) == 3
    assert quiz_service.score_answers(questions, _answers((0, 0), (1, 3), (2, 3))) == 1
    assert quiz_service.score_answers(questions, _answers((0, 3), (1, 3), (2, 3))) == 0


def test_score_answers_ignores_unknown_and_duplicate_indices():
    questions = _quiz(keys=(0, 1, 2)).questions

    # First answer for an index wins; index 7 does not exist
    answers = _answers((0, 0), (0, 3), (7, 0))
    assert quiz_service.score_answers(questions, answers) == 1


def test_missing_answers_count_as_wrong():
    questions = _quiz(keys=(0, 1, 2)).questions
    assert quiz_service.score_answers(questions, _answers((2, 2))) == 1


def test_score_and_store_attempt_persists_result():
    db = _FakeDB(quiz=_quiz())

    rec = quiz_service.score_and_store_attempt(
        db, quiz_id=5, user_id=1, answers=_answers((0, 0), (1, 2), (2, 2)), duration_sec=120
    )

    assert db.committed is True
    assert rec.id == 99
    assert rec.score == 2
    assert rec.total_questions == 3
    assert rec.duration_sec == 120

    stored = db.added[0]
    assert isinstance(stored, QuizAttempt)
    assert stored.answers_json[1] == {"questionIndex": 1, "selectedOptionIndex": 2}


def test_fewer_answers_than_questions_is_allowed(caplog):
    db = _FakeDB(quiz=_quiz())

    rec = quiz_service.score_and_store_attempt(db, quiz_id=5, user_id=1, answers=_answers((0, 0)))

    assert rec.score == 1
    assert rec.total_questions == 3
    assert "answered 1 questions" in caplog.text


def test_empty_answers_rejected_before_lookup():
    db = _FakeDB(quiz=None)

    with pytest.raises(InvalidInput):
        quiz_service.score_and_store_attempt(db, quiz_id=5, user_id=1, answers=[])
    assert db.added == []


def test_unknown_quiz_is_not_found():
    db = _FakeDB(quiz=None)

    with pytest.raises(NotFound):
        quiz_service.score_and_store_attempt(db, quiz_id=404, user_id=1, answers=_answers((0, 0)))
    assert db.committed is False


def test_other_users_quiz_is_not_found():
    db = _FakeDB(quiz=_quiz(owner_id=2))

    with pytest.raises(NotFound):
        quiz_service.score_and_store_attempt(db, quiz_id=5, user_id=1, answers=_answers((0, 0)))
    assert db.added == []


def test_commit_failure_rolls_back():
    db = _FakeDB(quiz=_quiz(), fail_commit=True)

    with pytest.raises(PersistenceError) as exc:
        quiz_service.score_and_store_attempt(db, quiz_id=5, user_id=1, answers=_answers((0, 0)))

    assert db.rolled_back is True
    assert exc.value.message == "Failed to save quiz attempt."


def test_submit_payload_accepts_legacy_answer_key():
    payload = QuizSubmitRequest.model_validate(
        {"answers": [{"questionIndex": 0, "selectedAnswerIndex": 2}], "durationSec": 30}
    )

    assert payload.answers[0].selected_option_index == 2
    assert payload.duration_sec == 30
    assert payload.answers[0].to_wire() == {"questionIndex": 0, "selectedOptionIndex": 2}


def test_submit_route_wraps_attempt(monkeypatch):
    from studyaid.api.routes import quizzes

    captured = {}

    def _fake(db, **kwargs):
        captured.update(kwargs)
        return quiz_service.AttemptRecord(
            id=1, quiz_id=5, user_id=1, answers=kwargs["answers"], total_questions=3, score=2
        )

    monkeypatch.setattr(quizzes.quiz_service, "score_and_store_attempt", _fake)

    req = SimpleNamespace(state=SimpleNamespace(request_id="rid-1"))
    payload = QuizSubmitRequest(answers=_answers((0, 1)), duration_sec=10)
    out = quizzes.submit_quiz(request=req, quiz_id=5, payload=payload, db=object(), user=SimpleNamespace(id=1))

    assert captured["quiz_id"] == 5
    assert captured["duration_sec"] == 10
    assert out["request_id"] == "rid-1"
    assert out["error"] is None
    assert out["data"]["score"] == 2
    assert out["data"]["totalQuestions"] == 3


def test_two_question_example():
    questions = _quiz(keys=(2, 0)).questions

    assert quiz_service.score_answers(questions, _answers((0, 2), (1, 1))) == 1


def test_score_does_not_depend_on_answer_order():
    questions = _quiz(keys=(3, 1, 0, 2)).questions
    answers = _answers((0, 3), (1, 0), (2, 0), (3, 2))

    assert quiz_service.score_answers(questions, answers) == 3
    assert quiz_service.score_answers(questions, list(reversed(answers))) == 3


@pytest.mark.parametrize(
    "answer",
    [
        {"questionIndex": True, "selectedOptionIndex": 2},
        {"questionIndex": 0, "selectedOptionIndex": "2"},
        {"questionIndex": 0, "selectedAnswerIndex": 1.0},
    ],
)
def test_submitted_indices_must_be_integers(answer):
    with pytest.raises(ValidationError):
        QuizSubmitRequest.model_validate({"answers": [answer]})

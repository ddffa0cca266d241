from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from studyaid.core.errors import InvalidInput, NotFound
from studyaid.db.session import commit_or_raise
from studyaid.models.quiz import Quiz, QuizQuestion
from studyaid.models.quiz_attempt import QuizAttempt
from studyaid.schemas.quiz import AttemptRecord, AttemptSummary, GeneratedQuestion, QuizRecord, SubmittedAnswer

logger = logging.getLogger(__name__)


def quiz_to_record(quiz: Quiz) -> QuizRecord:
    return QuizRecord(
        id=quiz.id,
        owner_id=quiz.user_id,
        topic=quiz.topic,
        source_file_id=quiz.source_file_id,
        questions=[
            GeneratedQuestion(
                questionText=q.question_text,
                options=list(q.options or []),
                correctAnswerIndex=int(q.correct_index),
            )
            for q in quiz.questions
        ],
        created_at=quiz.created_at,
    )


def attempt_to_record(attempt: QuizAttempt) -> AttemptRecord:
    return AttemptRecord(
        id=attempt.id,
        quiz_id=attempt.quiz_id,
        user_id=attempt.user_id,
        answers=[SubmittedAnswer.model_validate(a) for a in (attempt.answers_json or [])],
        total_questions=attempt.total_questions,
        score=attempt.score,
        duration_sec=attempt.duration_sec or 0,
        created_at=attempt.created_at,
    )


def create_quiz(
    db: Session,
    *,
    user_id: int,
    topic: str,
    questions: Sequence[GeneratedQuestion],
    source_file_id: Optional[str] = None,
) -> Quiz:
    quiz = Quiz(user_id=int(user_id), topic=topic, source_file_id=source_file_id)
    quiz.questions = [
        QuizQuestion(
            order_no=idx,
            question_text=q.question_text,
            options=list(q.options),
            correct_index=int(q.correct_answer_index),
        )
        for idx, q in enumerate(questions)
    ]
    db.add(quiz)
    commit_or_raise(db, "quiz")
    db.refresh(quiz)
    logger.info("Saved quiz id=%s with %d questions for user %s", quiz.id, len(quiz.questions), user_id)
    return quiz


def get_owned_quiz(db: Session, *, quiz_id: int, user_id: int) -> Quiz:
    """Fetch a quiz the caller owns. Someone else's quiz is reported as missing."""
    quiz = db.query(Quiz).filter(Quiz.id == int(quiz_id)).first()
    if not quiz or int(quiz.user_id) != int(user_id):
        raise NotFound("Quiz not found.")
    return quiz


def list_quizzes(db: Session, *, user_id: int) -> List[Quiz]:
    return (
        db.query(Quiz)
        .filter(Quiz.user_id == int(user_id))
        .order_by(Quiz.created_at.desc(), Quiz.id.desc())
        .all()
    )


def score_answers(questions: Sequence[QuizQuestion], answers: Sequence[SubmittedAnswer]) -> int:
    """Count questions whose submitted option equals the answer key.

    Position ``i`` in ``questions`` is matched with the first answer whose
    ``question_index`` is ``i``; questions without an answer count as wrong.
    """
    by_index: Dict[int, int] = {}
    for a in answers:
        by_index.setdefault(int(a.question_index), int(a.selected_option_index))

    score = 0
    for idx, q in enumerate(questions):
        chosen = by_index.get(idx)
        if chosen is not None and chosen == int(q.correct_index):
            score += 1
    return score


def score_and_store_attempt(
    db: Session,
    *,
    quiz_id: int,
    user_id: int,
    answers: Sequence[SubmittedAnswer],
    duration_sec: int = 0,
) -> AttemptRecord:
    """Score a submission and persist it as a new, immutable attempt.

    Raises:
        InvalidInput: ``answers`` is empty.
        NotFound: the quiz does not exist or belongs to another user. Nothing is written.
        PersistenceError: the attempt could not be saved. Nothing is left behind.
    """
    if not answers:
        raise InvalidInput("Answers array is required and cannot be empty.")

    quiz = get_owned_quiz(db, quiz_id=quiz_id, user_id=user_id)
    questions = list(quiz.questions)
    total = len(questions)

    if len(answers) != total:
        logger.warning("User %s answered %d questions but quiz %s has %d", user_id, len(answers), quiz.id, total)

    score = score_answers(questions, answers)

    attempt = QuizAttempt(
        quiz_id=quiz.id,
        user_id=int(user_id),
        answers_json=[
            {"questionIndex": int(a.question_index), "selectedOptionIndex": int(a.selected_option_index)}
            for a in answers
        ],
        score=score,
        total_questions=total,
        duration_sec=int(duration_sec or 0),
    )
    db.add(attempt)
    commit_or_raise(db, "quiz attempt")
    db.refresh(attempt)

    logger.info("Attempt id=%s on quiz %s: %d/%d", attempt.id, quiz.id, score, total)
    return attempt_to_record(attempt)


def list_attempts(db: Session, *, user_id: int, quiz_id: Optional[int] = None) -> List[AttemptSummary]:
    q = db.query(QuizAttempt).filter(QuizAttempt.user_id == int(user_id))
    if quiz_id is not None:
        q = q.filter(QuizAttempt.quiz_id == int(quiz_id))
    rows = q.order_by(QuizAttempt.created_at.desc(), QuizAttempt.id.desc()).all()

    out: List[AttemptSummary] = []
    for row in rows:
        rec = attempt_to_record(row)
        topic = row.quiz.topic if row.quiz is not None else None
        out.append(AttemptSummary(**rec.model_dump(), quiz_topic=topic))
    return out

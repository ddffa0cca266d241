from __future__ import annotations

import calendar
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from studyaid.models.flashcard_set import FlashcardSet
from studyaid.models.quiz_attempt import QuizAttempt
from studyaid.models.user import User
from studyaid.schemas.dashboard import ActivityItem, DashboardOut, PerformancePoint, StatCard
from studyaid.schemas.quiz import QuizStats


def _utc(dt: Optional[datetime]) -> datetime:
    # SQLite hands back naive timestamps; they are stored as UTC
    if dt is None:
        return datetime.now(timezone.utc)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _round_half_up(x: float) -> int:
    return int(x + 0.5)


def _percent(attempt: QuizAttempt) -> float:
    total = int(attempt.total_questions or 0)
    return (int(attempt.score or 0) / total) * 100.0 if total else 0.0


def time_ago(when: datetime, now: Optional[datetime] = None) -> str:
    now = _utc(now) if now is not None else datetime.now(timezone.utc)
    seconds = int((now - _utc(when)).total_seconds())

    for unit_seconds, suffix in ((31536000, "y"), (2592000, "mo"), (86400, "d"), (3600, "h"), (60, "m")):
        n = seconds // unit_seconds
        if n >= 1:
            return f"{n}{suffix} ago"
    return "just now"


def _user_attempts(db: Session, user_id: int) -> List[QuizAttempt]:
    return (
        db.query(QuizAttempt)
        .filter(QuizAttempt.user_id == int(user_id))
        .order_by(QuizAttempt.created_at.desc(), QuizAttempt.id.desc())
        .all()
    )


def _user_flashcard_sets(db: Session, user_id: int) -> List[FlashcardSet]:
    return (
        db.query(FlashcardSet)
        .filter(FlashcardSet.user_id == int(user_id))
        .order_by(FlashcardSet.created_at.desc(), FlashcardSet.id.desc())
        .all()
    )


def quiz_stats(attempts: Sequence[QuizAttempt]) -> QuizStats:
    total_score = sum(int(a.score or 0) for a in attempts)
    total_questions = sum(int(a.total_questions or 0) for a in attempts)
    average = (total_score / total_questions) * 100 if total_questions > 0 else 0.0
    return QuizStats(
        total_attempts=len(attempts),
        total_score=total_score,
        total_questions=total_questions,
        average_score=round(average, 2),
    )


def get_user_quiz_stats(db: Session, *, user_id: int) -> QuizStats:
    return quiz_stats(_user_attempts(db, user_id))


def stat_cards(attempts: Sequence[QuizAttempt], flashcard_set_count: int) -> List[StatCard]:
    avg = _round_half_up(sum(_percent(a) for a in attempts) / len(attempts)) if attempts else 0
    study_seconds = sum(int(a.duration_sec or 0) for a in attempts)
    hours, minutes = study_seconds // 3600, (study_seconds % 3600) // 60

    return [
        StatCard(title="Quizzes Taken", value=str(len(attempts)), icon="BookOpenIcon", color="cyan"),
        StatCard(title="Average Score", value=f"{avg}%", icon="CheckCircleIcon", color="green"),
        StatCard(title="Study Time", value=f"{hours}h {minutes}m", icon="ClockIcon", color="purple"),
        StatCard(title="Flashcard Sets", value=str(flashcard_set_count), icon="ChartBarIcon", color="pink"),
    ]


def recent_activity(
    attempts: Sequence[QuizAttempt],
    flashcard_sets: Sequence[FlashcardSet],
    *,
    limit: int = 10,
    now: Optional[datetime] = None,
) -> List[ActivityItem]:
    rows: List[Dict[str, Any]] = []
    for a in attempts:
        rows.append(
            {
                "id": a.id,
                "type": "quiz",
                "topic": a.quiz.topic if a.quiz is not None else "",
                "score": f"{a.score}/{a.total_questions}",
                "at": _utc(a.created_at),
            }
        )
    for fs in flashcard_sets:
        rows.append(
            {
                "id": fs.id,
                "type": "flashcards",
                "topic": fs.topic,
                "score": f"{len(fs.cards)} cards",
                "at": _utc(fs.created_at),
            }
        )

    rows.sort(key=lambda r: r["at"], reverse=True)
    return [
        ActivityItem(id=r["id"], type=r["type"], topic=r["topic"], score=r["score"], time=time_ago(r["at"], now))
        for r in rows[: max(0, int(limit))]
    ]


def _shift_month(year: int, month: int, back: int) -> tuple[int, int]:
    idx = year * 12 + (month - 1) - back
    return idx // 12, idx % 12 + 1


def performance(attempts: Sequence[QuizAttempt], *, months: int = 5, now: Optional[datetime] = None) -> List[PerformancePoint]:
    """Average score percentage per calendar month, oldest month first."""
    now = _utc(now) if now is not None else datetime.now(timezone.utc)

    buckets: Dict[tuple[int, int], List[float]] = {}
    for a in attempts:
        at = _utc(a.created_at)
        buckets.setdefault((at.year, at.month), []).append(_percent(a))

    points: List[PerformancePoint] = []
    for back in range(months - 1, -1, -1):
        year, month = _shift_month(now.year, now.month, back)
        scores = buckets.get((year, month), [])
        value = _round_half_up(sum(scores) / len(scores)) if scores else 0
        points.append(PerformancePoint(label=calendar.month_abbr[month], value=value))
    return points


def get_dashboard_stats(db: Session, *, user_id: int) -> List[StatCard]:
    return stat_cards(_user_attempts(db, user_id), len(_user_flashcard_sets(db, user_id)))


def get_recent_activity(db: Session, *, user_id: int, limit: int = 10) -> List[ActivityItem]:
    return recent_activity(_user_attempts(db, user_id), _user_flashcard_sets(db, user_id), limit=limit)


def get_performance(db: Session, *, user_id: int, months: int = 5) -> List[PerformancePoint]:
    return performance(_user_attempts(db, user_id), months=months)


def get_dashboard(db: Session, *, user: User) -> DashboardOut:
    attempts = _user_attempts(db, user.id)
    sets = _user_flashcard_sets(db, user.id)
    return DashboardOut(
        user_name=user.username or "User",
        stats=stat_cards(attempts, len(sets)),
        recent_activity=recent_activity(attempts, sets, limit=5),
        performance=performance(attempts, months=5),
    )

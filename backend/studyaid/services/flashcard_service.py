from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from studyaid.core.errors import NotFound
from studyaid.db.session import commit_or_raise
from studyaid.models.flashcard_set import Flashcard, FlashcardSet
from studyaid.schemas.flashcard import FlashcardItem, FlashcardSetRecord

logger = logging.getLogger(__name__)


def flashcard_set_to_record(fs: FlashcardSet) -> FlashcardSetRecord:
    return FlashcardSetRecord(
        id=fs.id,
        owner_id=fs.user_id,
        topic=fs.topic,
        source_file_id=fs.source_file_id,
        cards=[FlashcardItem(question=c.question, answer=c.answer) for c in fs.cards],
        created_at=fs.created_at,
    )


def create_flashcard_set(
    db: Session,
    *,
    user_id: int,
    topic: str,
    cards: Sequence[FlashcardItem],
    source_file_id: Optional[str] = None,
) -> FlashcardSet:
    fs = FlashcardSet(user_id=int(user_id), topic=topic, source_file_id=source_file_id)
    fs.cards = [Flashcard(order_no=idx, question=c.question, answer=c.answer) for idx, c in enumerate(cards)]
    db.add(fs)
    commit_or_raise(db, "flashcard set")
    db.refresh(fs)
    logger.info("Saved flashcard set id=%s with %d cards for user %s", fs.id, len(fs.cards), user_id)
    return fs


def list_flashcard_sets(db: Session, *, user_id: int) -> List[FlashcardSet]:
    return (
        db.query(FlashcardSet)
        .filter(FlashcardSet.user_id == int(user_id))
        .order_by(FlashcardSet.created_at.desc(), FlashcardSet.id.desc())
        .all()
    )


def get_owned_flashcard_set(db: Session, *, set_id: int, user_id: int) -> FlashcardSet:
    fs = db.query(FlashcardSet).filter(FlashcardSet.id == int(set_id)).first()
    if not fs or int(fs.user_id) != int(user_id):
        raise NotFound("Flashcard set not found.")
    return fs

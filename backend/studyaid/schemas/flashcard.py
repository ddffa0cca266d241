from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from studyaid.schemas.common import CamelModel
from studyaid.schemas.quiz import RECORD_CONFIG, NonEmptyText, RecordText


class FlashcardItem(CamelModel):
    model_config = RECORD_CONFIG

    question: RecordText
    answer: RecordText


class FlashcardGenerateRequest(CamelModel):
    file_id: NonEmptyText
    prompt: NonEmptyText


class FlashcardSetRecord(CamelModel):
    id: int
    owner_id: int
    topic: str
    source_file_id: Optional[str] = None
    cards: List[FlashcardItem]
    created_at: Optional[datetime] = None

from __future__ import annotations

from datetime import datetime
from typing import Annotated, List, Optional

from pydantic import AfterValidator, AliasChoices, ConfigDict, Field, StrictInt, StrictStr, StringConstraints
from pydantic.alias_generators import to_camel

from studyaid.schemas.common import CamelModel

# Request input: surrounding whitespace is dropped
NonEmptyText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, strict=True)]


def _not_blank(v: str) -> str:
    if not v.strip():
        raise ValueError("must not be blank")
    return v


# Model output: must contain something, kept exactly as generated
RecordText = Annotated[StrictStr, AfterValidator(_not_blank)]

# LLM records only accept the camelCase keys the prompt asks for
RECORD_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=False, from_attributes=True)


class GeneratedQuestion(CamelModel):
    """One multiple-choice question as produced by the model and stored on a quiz."""

    model_config = RECORD_CONFIG

    question_text: RecordText
    options: Annotated[List[StrictStr], Field(min_length=4, max_length=4)]
    correct_answer_index: Annotated[StrictInt, Field(ge=0, le=3)]


class QuizGenerateRequest(CamelModel):
    file_id: NonEmptyText
    prompt: NonEmptyText


class QuizRecord(CamelModel):
    id: int
    owner_id: int
    topic: str
    source_file_id: Optional[str] = None
    questions: List[GeneratedQuestion]
    created_at: Optional[datetime] = None


class SubmittedAnswer(CamelModel):
    question_index: StrictInt
    # The original web client posts "selectedAnswerIndex"
    selected_option_index: StrictInt = Field(
        validation_alias=AliasChoices("selectedOptionIndex", "selectedAnswerIndex", "selected_option_index"),
        serialization_alias="selectedOptionIndex",
    )


class QuizSubmitRequest(CamelModel):
    answers: List[SubmittedAnswer]
    duration_sec: int = Field(default=0, ge=0)


class AttemptRecord(CamelModel):
    id: int
    quiz_id: int
    user_id: int
    answers: List[SubmittedAnswer]
    total_questions: int
    score: int
    duration_sec: int = 0
    created_at: Optional[datetime] = None


class AttemptSummary(AttemptRecord):
    quiz_topic: Optional[str] = None


class QuizStats(CamelModel):
    total_attempts: int
    total_score: int
    total_questions: int
    average_score: float

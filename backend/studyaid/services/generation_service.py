"""Cached document text + user instruction -> LLM -> normalized records -> database."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from sqlalchemy.orm import Session

from studyaid.core.config import settings
from studyaid.core.errors import GenerationError, InvalidInput, NotFound
from studyaid.models.flashcard_set import FlashcardSet
from studyaid.models.quiz import Quiz
from studyaid.services.flashcard_service import create_flashcard_set
from studyaid.services.quiz_service import create_quiz
from studyaid.services.response_normalizer import RecordShape, normalize_response
from studyaid.services.text_cache import TextCache, cache_key

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "...[truncated]"


class CompletionClient(Protocol):
    def complete(self, prompt: str) -> str: ...


FLASHCARD_PROMPT = """Based on the following document text, fulfill the user's request.

Document Text:
{document}

User Request: {request}

Return ONLY a valid JSON array. No markdown, no code blocks, no explanations.
Format: [{{"question": "What is X?", "answer": "X is Y."}}]

Do NOT wrap your response in ```json or any other formatting."""


QUIZ_PROMPT = """Based on the following document text, fulfill the user's request.

Document Text:
{document}

User Request: {request}

IMPORTANT INSTRUCTIONS:
1. Generate quiz questions based on the document content
2. Return ONLY a valid JSON array - no markdown, no code blocks, no explanations
3. Each object must have: "questionText", "options" (array of 4 strings), and "correctAnswerIndex" (0-3)
4. Ensure all questions are relevant to the document content

Response format example (respond with ONLY the JSON array):
[
  {{
    "questionText": "What is the main topic discussed?",
    "options": ["Option A", "Option B", "Option C", "Option D"],
    "correctAnswerIndex": 0
  }}
]"""


def truncate_document(text: str, max_chars: Optional[int] = None) -> str:
    limit = int(max_chars if max_chars is not None else settings.LLM_MAX_CONTEXT_CHARS)
    if limit <= 0 or len(text) <= limit:
        return text
    return text[:limit] + TRUNCATION_MARKER


def build_prompt(shape: RecordShape, document_text: str, request: str) -> str:
    template = FLASHCARD_PROMPT if shape is RecordShape.FLASHCARD else QUIZ_PROMPT
    return template.format(document=truncate_document(document_text), request=request.strip())


def _cached_text(cache: TextCache, *, user_id: int, file_id: str, prompt: str) -> str:
    if not (file_id or "").strip():
        raise InvalidInput("fileId is required.")
    if not (prompt or "").strip():
        raise InvalidInput("prompt is required.")

    text = cache.get(cache_key(user_id, file_id))
    if not text:
        logger.warning("No cached text for user %s file %r", user_id, file_id)
        raise NotFound("File not processed or expired. Please upload the PDF again.")
    return text


def _generate(llm: CompletionClient, shape: RecordShape, document_text: str, prompt: str):
    completion = llm.complete(build_prompt(shape, document_text, prompt))
    try:
        return normalize_response(completion, shape)
    except GenerationError as exc:
        logger.warning("Could not use %s completion: %s %s", shape.value, exc.code, exc.message)
        raise


def generate_quiz(
    db: Session,
    cache: TextCache,
    llm: CompletionClient,
    *,
    user_id: int,
    file_id: str,
    prompt: str,
) -> Quiz:
    text = _cached_text(cache, user_id=user_id, file_id=file_id, prompt=prompt)
    logger.info("Generating quiz for user %s from %r (%d chars)", user_id, file_id, len(text))
    questions = _generate(llm, RecordShape.QUIZ_QUESTION, text, prompt)
    return create_quiz(db, user_id=user_id, topic=prompt.strip(), questions=questions, source_file_id=file_id)


def generate_flashcards(
    db: Session,
    cache: TextCache,
    llm: CompletionClient,
    *,
    user_id: int,
    file_id: str,
    prompt: str,
) -> FlashcardSet:
    text = _cached_text(cache, user_id=user_id, file_id=file_id, prompt=prompt)
    logger.info("Generating flashcards for user %s from %r (%d chars)", user_id, file_id, len(text))
    cards = _generate(llm, RecordShape.FLASHCARD, text, prompt)
    return create_flashcard_set(db, user_id=user_id, topic=prompt.strip(), cards=cards, source_file_id=file_id)

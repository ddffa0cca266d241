"""Turn a free-text LLM completion into validated flashcard / quiz records.

Completions are unreliable in formatting: markdown fences, a leading
"Here is your JSON:", trailing commentary. Cleanup runs in a fixed order and
stops at the first strategy that yields parseable JSON:

1. trim whitespace
2. strip at most one leading and one trailing fence (```json, ```, stray backticks)
3. slice from the first ``[``/``{`` to the last ``]`` (or ``}`` when there is no ``]``)
4. strict ``json.loads``
5. fallback: greedy ``[...]`` search over the fence-stripped text, strict parse
6. give up with ``MalformedOutput``

The parsed payload is then decoded into typed records (``decode_records``).
Only structure is checked, never whether the content matches the document.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ValidationError

from studyaid.core.config import settings
from studyaid.core.errors import EmptyResponse, MalformedOutput, SchemaViolation
from studyaid.schemas.flashcard import FlashcardItem
from studyaid.schemas.quiz import GeneratedQuestion

logger = logging.getLogger(__name__)

_LEADING_FENCE_RE = re.compile(r"^(?:```[A-Za-z0-9_+-]*[ \t]*\r?\n?|`+)")
_TRAILING_FENCE_RE = re.compile(r"(?:\s*```|`+)$")


class RecordShape(str, Enum):
    FLASHCARD = "flashcard"
    QUIZ_QUESTION = "quiz_question"

    @property
    def model(self) -> Type[BaseModel]:
        return FlashcardItem if self is RecordShape.FLASHCARD else GeneratedQuestion

    @property
    def expected(self) -> str:
        if self is RecordShape.FLASHCARD:
            return '{"question": non-empty str, "answer": non-empty str}'
        return '{"questionText": non-empty str, "options": [str, str, str, str], "correctAnswerIndex": int 0-3}'


@dataclass(frozen=True)
class DecodeResult:
    """Outcome of decoding a parsed payload: either records, or where it broke."""

    ok: bool
    records: List[BaseModel] = field(default_factory=list)
    index: Optional[int] = None
    expected: str = ""
    found: Any = None
    errors: List[Dict[str, str]] = field(default_factory=list)


def _describe(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): type(v).__name__ for k, v in value.items()}
    if isinstance(value, list):
        return f"array of {len(value)}"
    return type(value).__name__


def _strip_fences(text: str) -> str:
    text = _LEADING_FENCE_RE.sub("", text, count=1)
    text = _TRAILING_FENCE_RE.sub("", text, count=1)
    return text.strip()


def _slice_json(text: str) -> str:
    starts = [i for i in (text.find("["), text.find("{")) if i >= 0]
    if starts and min(starts) > 0:
        text = text[min(starts):]

    end = text.rfind("]")
    if end < 0:
        end = text.rfind("}")
    if end >= 0:
        text = text[: end + 1]
    return text.strip()


def _outer_array(text: str) -> Optional[str]:
    """Widest ``[...]`` span in ``text``: first ``[`` through the last ``]``."""
    start = text.find("[")
    end = text.rfind("]")
    if start < 0 or end <= start:
        return None
    return text[start : end + 1]


def extract_json_payload(raw: Optional[str], *, strict: Optional[bool] = None) -> Any:
    """Recover a JSON value from a completion (steps 1-6)."""
    if strict is None:
        strict = settings.NORMALIZER_STRICT

    text = (raw or "").strip()
    if not text:
        raise EmptyResponse("Empty response from AI service")

    logger.debug("Normalizing completion: %d chars, head=%r", len(text), text[:200])

    fenced = _strip_fences(text)
    candidate = _slice_json(fenced)

    try:
        return json.loads(candidate)
    except (ValueError, RecursionError) as exc:
        first_error = exc

    if not strict:
        outer = _outer_array(fenced)
        if outer:
            try:
                payload = json.loads(outer)
            except (ValueError, RecursionError) as retry_exc:
                logger.warning("Fallback array extraction also failed: %s", retry_exc)
            else:
                logger.info("Recovered completion with fallback array extraction")
                return payload

    logger.warning("Completion is not valid JSON: %s (head=%r)", first_error, candidate[:200])
    raise MalformedOutput(
        f"AI returned invalid JSON format: {first_error}",
        {"parse_error": str(first_error)},
    )


def decode_records(payload: Any, shape: RecordShape) -> DecodeResult:
    """Validate a parsed payload against ``shape`` without raising."""
    if not isinstance(payload, list) or not payload:
        return DecodeResult(
            ok=False,
            expected=f"non-empty array of {shape.expected}",
            found="empty array" if isinstance(payload, list) else _describe(payload),
        )

    model = shape.model
    records: List[BaseModel] = []
    for idx, item in enumerate(payload):
        try:
            records.append(model.model_validate(item))
        except ValidationError as exc:
            errors = [
                {"loc": ".".join(str(p) for p in err.get("loc", ())), "msg": str(err.get("msg", ""))}
                for err in exc.errors()
            ]
            return DecodeResult(ok=False, index=idx, expected=shape.expected, found=_describe(item), errors=errors)

    return DecodeResult(ok=True, records=records)


def normalize_response(raw: Optional[str], shape: RecordShape, *, strict: Optional[bool] = None) -> List[BaseModel]:
    """Full pipeline: completion text -> ordered, validated records.

    Raises:
        EmptyResponse: ``raw`` is empty or absent.
        MalformedOutput: no JSON could be recovered.
        SchemaViolation: JSON parsed but an element (or the top level) has the wrong shape.
    """
    payload = extract_json_payload(raw, strict=strict)
    result = decode_records(payload, shape)
    if not result.ok:
        where = "top level" if result.index is None else f"index {result.index}"
        raise SchemaViolation(
            f"Invalid {shape.value} at {where}: expected {result.expected}, found {result.found}",
            index=result.index,
            expected=result.expected,
            found=result.found,
        )

    logger.debug("Decoded %d %s records", len(result.records), shape.value)
    return result.records

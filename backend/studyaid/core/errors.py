"""Domain errors raised by services and mapped onto HTTP responses in main.py."""

from __future__ import annotations

from typing import Any, Dict, Optional


class StudyAidError(Exception):
    code = "INTERNAL_ERROR"
    status_code = 500
    # Shown to clients instead of `message` when set
    public_message: Optional[str] = None

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def with_public_message(self, message: str) -> "StudyAidError":
        self.public_message = message
        return self


# --- Response normalizer ---


class GenerationError(StudyAidError):
    """Any failure that turns an LLM completion into no usable records."""

    status_code = 502
    public_message = "Failed to generate content."


class EmptyResponse(GenerationError):
    code = "EMPTY_RESPONSE"


class MalformedOutput(GenerationError):
    code = "MALFORMED_OUTPUT"


class SchemaViolation(GenerationError):
    code = "SCHEMA_VIOLATION"

    def __init__(self, message: str, *, index: Optional[int], expected: str, found: Any):
        super().__init__(message, {"index": index, "expected": expected, "found": found})
        self.index = index
        self.expected = expected
        self.found = found


class UpstreamServiceError(GenerationError):
    code = "UPSTREAM_ERROR"


# --- Scorer / persistence ---


class NotFound(StudyAidError):
    code = "NOT_FOUND"
    status_code = 404


class InvalidInput(StudyAidError):
    code = "INVALID_INPUT"
    status_code = 400


class Conflict(StudyAidError):
    code = "CONFLICT"
    status_code = 409


class PersistenceError(StudyAidError):
    code = "PERSISTENCE_ERROR"
    status_code = 500

from __future__ import annotations

import io
import logging
import os
import re
import unicodedata
from typing import Optional

from studyaid.core.config import settings
from studyaid.core.errors import InvalidInput
from studyaid.services.text_cache import TextCache, cache_key

logger = logging.getLogger(__name__)

_SPACES_RE = re.compile(r"[ \t\u00a0]+")
_BLANK_LINES_RE = re.compile(r"\n{3,}")


def is_pdf(mime_type: Optional[str], filename: Optional[str]) -> bool:
    mt = (mime_type or "").lower()
    fn = (filename or "").lower()
    return mt == "application/pdf" or fn.endswith(".pdf")


def derive_file_id(filename: Optional[str]) -> str:
    """Opaque id for an upload: the file's base name, as the web client expects."""
    name = os.path.basename((filename or "").replace("\\", "/")).strip()
    return name or "document.pdf"


def _clean_page_text(text: str) -> str:
    text = unicodedata.normalize("NFC", text or "")
    text = text.replace("\x00", "").replace("\r\n", "\n").replace("\r", "\n")
    lines = [_SPACES_RE.sub(" ", ln).strip() for ln in text.split("\n")]
    return _BLANK_LINES_RE.sub("\n\n", "\n".join(lines)).strip()


def extract_text_from_pdf(data: bytes) -> str:
    """Return the text layer of a PDF, pages separated by blank lines."""
    from pypdf import PdfReader
    from pypdf.errors import PyPdfError

    try:
        reader = PdfReader(io.BytesIO(data))
        pages = [_clean_page_text(page.extract_text() or "") for page in reader.pages]
    except (PyPdfError, ValueError, KeyError, OSError) as exc:
        logger.warning("Could not read PDF: %s", exc)
        raise InvalidInput("Failed to process PDF.", {"reason": str(exc)}) from exc

    return "\n\n".join(p for p in pages if p)


def read_upload(data: bytes, *, filename: Optional[str], mime_type: Optional[str]) -> str:
    """Validate an uploaded file and return its extracted text."""
    if not data:
        raise InvalidInput("No file uploaded.")
    if not is_pdf(mime_type, filename):
        raise InvalidInput("Only PDF files are supported.")

    max_bytes = int(settings.MAX_UPLOAD_MB) * 1024 * 1024
    if len(data) > max_bytes:
        raise InvalidInput(f"File is larger than {settings.MAX_UPLOAD_MB} MB.")

    text = extract_text_from_pdf(data)
    if not text.strip():
        raise InvalidInput("No extractable text found in PDF.")

    logger.info("Extracted %d chars from %s", len(text), filename)
    return text


def store_upload(cache: TextCache, *, user_id: int, data: bytes, filename: Optional[str], mime_type: Optional[str]) -> str:
    """Extract an upload and cache its text for the caller. Returns the file id."""
    text = read_upload(data, filename=filename, mime_type=mime_type)
    file_id = derive_file_id(filename)
    cache.set(cache_key(user_id, file_id), text)
    return file_id

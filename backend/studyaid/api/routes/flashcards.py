from __future__ import annotations

from fastapi import APIRouter, Depends, File, Request, UploadFile
from sqlalchemy.orm import Session

from studyaid.api.deps import get_llm_client, get_text_cache, require_user
from studyaid.core.errors import GenerationError
from studyaid.db.session import get_db
from studyaid.models.user import User
from studyaid.schemas.flashcard import FlashcardGenerateRequest
from studyaid.services import document_service, flashcard_service, generation_service
from studyaid.services.llm_service import LLMClient
from studyaid.services.text_cache import TextCache

router = APIRouter(tags=["flashcards"])


@router.post("/flashcards/upload")
def upload_pdf_for_flashcards(
    request: Request,
    file: UploadFile = File(...),
    user: User = Depends(require_user),
    cache: TextCache = Depends(get_text_cache),
):
    file_id = document_service.store_upload(
        cache, user_id=user.id, data=file.file.read(), filename=file.filename, mime_type=file.content_type
    )
    return {"request_id": request.state.request_id, "data": {"fileId": file_id}, "error": None}


@router.post("/flashcards/generate", status_code=201)
def generate_flashcards(
    request: Request,
    payload: FlashcardGenerateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
    cache: TextCache = Depends(get_text_cache),
    llm: LLMClient = Depends(get_llm_client),
):
    try:
        fs = generation_service.generate_flashcards(
            db, cache, llm, user_id=user.id, file_id=payload.file_id, prompt=payload.prompt
        )
    except GenerationError as exc:
        raise exc.with_public_message("Failed to generate flashcards.")
    data = flashcard_service.flashcard_set_to_record(fs).to_wire()
    return {"request_id": request.state.request_id, "data": data, "error": None}


@router.get("/flashcards")
def list_flashcard_sets(request: Request, db: Session = Depends(get_db), user: User = Depends(require_user)):
    data = [
        flashcard_service.flashcard_set_to_record(fs).to_wire()
        for fs in flashcard_service.list_flashcard_sets(db, user_id=user.id)
    ]
    return {"request_id": request.state.request_id, "data": data, "error": None}


@router.get("/flashcards/{set_id}")
def get_flashcard_set(request: Request, set_id: int, db: Session = Depends(get_db), user: User = Depends(require_user)):
    fs = flashcard_service.get_owned_flashcard_set(db, set_id=set_id, user_id=user.id)
    return {"request_id": request.state.request_id, "data": flashcard_service.flashcard_set_to_record(fs).to_wire(), "error": None}

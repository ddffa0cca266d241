from __future__ import annotations

from fastapi import APIRouter, Depends, File, Request, UploadFile
from sqlalchemy.orm import Session

from studyaid.api.deps import get_llm_client, get_text_cache, require_user
from studyaid.core.errors import GenerationError
from studyaid.db.session import get_db
from studyaid.models.user import User
from studyaid.schemas.quiz import QuizGenerateRequest, QuizSubmitRequest
from studyaid.services import dashboard_service, document_service, generation_service, quiz_service
from studyaid.services.llm_service import LLMClient
from studyaid.services.text_cache import TextCache

router = APIRouter(tags=["quizzes"])


@router.post("/quizzes/upload")
def upload_pdf_for_quiz(
    request: Request,
    file: UploadFile = File(...),
    user: User = Depends(require_user),
    cache: TextCache = Depends(get_text_cache),
):
    file_id = document_service.store_upload(
        cache, user_id=user.id, data=file.file.read(), filename=file.filename, mime_type=file.content_type
    )
    return {"request_id": request.state.request_id, "data": {"fileId": file_id}, "error": None}


@router.post("/quizzes/generate", status_code=201)
def generate_quiz(
    request: Request,
    payload: QuizGenerateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
    cache: TextCache = Depends(get_text_cache),
    llm: LLMClient = Depends(get_llm_client),
):
    try:
        quiz = generation_service.generate_quiz(db, cache, llm, user_id=user.id, file_id=payload.file_id, prompt=payload.prompt)
    except GenerationError as exc:
        raise exc.with_public_message("Failed to generate quiz.")
    data = quiz_service.quiz_to_record(quiz).to_wire()
    return {"request_id": request.state.request_id, "data": data, "error": None}


@router.get("/quizzes")
def list_quizzes(request: Request, db: Session = Depends(get_db), user: User = Depends(require_user)):
    data = [quiz_service.quiz_to_record(q).to_wire() for q in quiz_service.list_quizzes(db, user_id=user.id)]
    return {"request_id": request.state.request_id, "data": data, "error": None}


@router.get("/quizzes/attempts")
def list_my_attempts(request: Request, db: Session = Depends(get_db), user: User = Depends(require_user)):
    data = [a.to_wire() for a in quiz_service.list_attempts(db, user_id=user.id)]
    return {"request_id": request.state.request_id, "data": data, "error": None}


@router.get("/quizzes/stats")
def my_quiz_stats(request: Request, db: Session = Depends(get_db), user: User = Depends(require_user)):
    data = dashboard_service.get_user_quiz_stats(db, user_id=user.id).to_wire()
    return {"request_id": request.state.request_id, "data": data, "error": None}


@router.get("/quizzes/{quiz_id}")
def get_quiz(request: Request, quiz_id: int, db: Session = Depends(get_db), user: User = Depends(require_user)):
    quiz = quiz_service.get_owned_quiz(db, quiz_id=quiz_id, user_id=user.id)
    return {"request_id": request.state.request_id, "data": quiz_service.quiz_to_record(quiz).to_wire(), "error": None}


@router.get("/quizzes/{quiz_id}/attempts")
def list_quiz_attempts(request: Request, quiz_id: int, db: Session = Depends(get_db), user: User = Depends(require_user)):
    quiz_service.get_owned_quiz(db, quiz_id=quiz_id, user_id=user.id)
    data = [a.to_wire() for a in quiz_service.list_attempts(db, user_id=user.id, quiz_id=quiz_id)]
    return {"request_id": request.state.request_id, "data": data, "error": None}


@router.post("/quizzes/{quiz_id}/submit", status_code=201)
def submit_quiz(
    request: Request,
    quiz_id: int,
    payload: QuizSubmitRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    attempt = quiz_service.score_and_store_attempt(
        db, quiz_id=quiz_id, user_id=user.id, answers=payload.answers, duration_sec=payload.duration_sec
    )
    return {"request_id": request.state.request_id, "data": attempt.to_wire(), "error": None}

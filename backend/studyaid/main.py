from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from studyaid.api.routes.auth import router as auth_router
from studyaid.api.routes.dashboard import router as dashboard_router
from studyaid.api.routes.flashcards import router as flashcards_router
from studyaid.api.routes.health import router as health_router
from studyaid.api.routes.quizzes import router as quizzes_router
from studyaid.core.config import settings
from studyaid.core.errors import StudyAidError
from studyaid.core.logging import configure_logging
from studyaid.db.session import init_db
from studyaid.services.text_cache import build_text_cache

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


def envelope(request_id: str, data: Any = None, error: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {"request_id": request_id, "data": data, "error": error}


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
)

app.state.text_cache = build_text_cache()
app.state.llm_client = None

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = req_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = req_id
    return response


@app.exception_handler(StudyAidError)
async def studyaid_exception_handler(request: Request, exc: StudyAidError):
    req_id = getattr(request.state, "request_id", str(uuid.uuid4()))

    if exc.status_code < 500:
        error: Dict[str, Any] = {"code": exc.code, "message": exc.message}
        if exc.details:
            error["details"] = exc.details
    else:
        logger.warning("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
        error = {"code": exc.code, "message": exc.public_message or exc.message}
        # Raw model output and parser errors stay server side outside dev
        if settings.is_dev:
            error["details"] = {"reason": exc.message, **exc.details}

    return JSONResponse(status_code=exc.status_code, content=envelope(request_id=req_id, data=None, error=error))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    req_id = getattr(request.state, "request_id", str(uuid.uuid4()))
    return JSONResponse(
        status_code=exc.status_code,
        content=envelope(
            request_id=req_id,
            data=None,
            error={"code": "HTTP_ERROR", "message": str(exc.detail)},
        ),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    req_id = getattr(request.state, "request_id", str(uuid.uuid4()))
    return JSONResponse(
        status_code=422,
        content=envelope(
            request_id=req_id,
            data=None,
            error={
                "code": "VALIDATION_ERROR",
                "message": "Invalid request",
                "details": {"errors": exc.errors()},
            },
        ),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    req_id = getattr(request.state, "request_id", str(uuid.uuid4()))
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    message = str(exc) if settings.is_dev else "Internal server error."
    return JSONResponse(
        status_code=500,
        content=envelope(
            request_id=req_id,
            data=None,
            error={"code": "INTERNAL_ERROR", "message": message},
        ),
    )


@app.on_event("startup")
def create_tables():
    init_db()


app.include_router(health_router, prefix="/api")
app.include_router(auth_router, prefix="/api")
app.include_router(quizzes_router, prefix="/api")
app.include_router(flashcards_router, prefix="/api")
app.include_router(dashboard_router, prefix="/api")

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from studyaid.api.deps import require_user
from studyaid.core.security import issue_access_token
from studyaid.db.session import get_db
from studyaid.models.user import User
from studyaid.schemas.auth import AuthResponse, LoginRequest, RegisterRequest, TokenResponse, UserOut
from studyaid.services.user_service import authenticate, create_user


router = APIRouter(tags=["auth"])


def _user_out(u: User) -> UserOut:
    return UserOut(id=int(u.id), username=str(u.username), email=str(u.email))


def _auth_response(u: User) -> dict:
    token = TokenResponse(
        access_token=issue_access_token(u.id, username=u.username, email=u.email)
    )
    return AuthResponse(token=token, user=_user_out(u)).model_dump()


@router.post("/auth/register", status_code=201)
def register(request: Request, payload: RegisterRequest, db: Session = Depends(get_db)):
    u = create_user(db, username=payload.username, email=payload.email, password=payload.password)
    return {"request_id": request.state.request_id, "data": _auth_response(u), "error": None}


@router.post("/auth/login")
def login(request: Request, payload: LoginRequest, db: Session = Depends(get_db)):
    u = authenticate(db, email=payload.email, password=payload.password)
    if not u:
        raise HTTPException(status_code=401, detail="Invalid credentials.")
    if not u.is_active:
        raise HTTPException(status_code=403, detail="User is inactive.")
    return {"request_id": request.state.request_id, "data": _auth_response(u), "error": None}


@router.get("/auth/me")
def me(request: Request, user: User = Depends(require_user)):
    return {"request_id": request.state.request_id, "data": _user_out(user).model_dump(), "error": None}

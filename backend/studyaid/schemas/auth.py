from __future__ import annotations

from pydantic import BaseModel, Field

from studyaid.schemas.quiz import NonEmptyText


class RegisterRequest(BaseModel):
    username: NonEmptyText
    email: NonEmptyText
    password: str = Field(min_length=6, max_length=200)


class LoginRequest(BaseModel):
    email: NonEmptyText
    password: str = Field(min_length=1)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserOut(BaseModel):
    id: int
    username: str
    email: str


class AuthResponse(BaseModel):
    token: TokenResponse
    user: UserOut

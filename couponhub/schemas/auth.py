from __future__ import annotations

from typing import Optional

from pydantic import EmailStr, Field

from couponhub.schemas.common import CamelIn, CamelModel


class RegisterRequest(CamelIn):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=100)
    phone: Optional[str] = Field(None, max_length=32)


class LoginRequest(CamelIn):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=200)


class RefreshRequest(CamelIn):
    refresh_token: str = Field(..., min_length=1)


class TokenPair(CamelModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class PasswordResetRequest(CamelIn):
    email: EmailStr


class PasswordResetConfirm(CamelIn):
    token: str = Field(..., min_length=10, max_length=128)
    password: str = Field(..., min_length=6, max_length=100)


class CsrfTokenOut(CamelModel):
    csrf_token: str

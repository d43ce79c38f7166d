"""Pydantic schemas for registration, login, and token validation.

Learn: `role` is accepted as a plain string on purpose. An unknown role
must come back as a 400 "invalid role" from the service, not as a 422
from request validation, so clients get one consistent message.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from authcore.schemas.user import EMAIL_PATTERN, UserProfile


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=50)
    email: str = Field(..., min_length=3, max_length=100, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=1, max_length=128)
    role: str = Field(..., min_length=1, description="VISITOR, PROPOSER or ADMIN")


class RegisterResponse(BaseModel):
    message: str
    user: UserProfile


class ResendVerificationRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=100, pattern=EMAIL_PATTERN)


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime


class ValidateResponse(BaseModel):
    valid: bool
    email: Optional[str] = None
    role: Optional[str] = None
    expires_at: Optional[datetime] = None
    error: Optional[str] = None

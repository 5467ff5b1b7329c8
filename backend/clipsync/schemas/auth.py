"""
ClipSync Backend — Account Request/Response Schemas
====================================================

What:  Pydantic models for registration, login, refresh, profile, password change.
Why:   Shape validation happens here (422 on malformed bodies); business rules
       (username charset, password length) are enforced again in AuthService
       so non-HTTP callers such as the admin CLI get the same checks.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from clipsync.schemas.common import ensure_utc


class RegisterRequest(BaseModel):
    username: str = Field(min_length=3, max_length=50, description="3-50 chars: letters, digits, _ and -")
    email: EmailStr
    password: str = Field(min_length=6, max_length=100)


class LoginRequest(BaseModel):
    username: str = Field(min_length=1, description="Username or email")
    password: str = Field(min_length=1)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=6, max_length=100)


class UserResponse(BaseModel):
    """Public profile. Hash, salt and stored token are never exposed."""
    id: str
    username: str
    email: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("created_at", "updated_at")
    @classmethod
    def _as_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class LoginResponse(BaseModel):
    token: str
    expires_at: datetime
    user: UserResponse


class RefreshResponse(BaseModel):
    token: str
    expires_at: datetime


class AuthenticatedUser(BaseModel):
    """
    Identity extracted from a verified token.

    Produced by the auth dependency without touching the store; every
    clipboard query is scoped by `user_id` from this object.
    """
    user_id: str
    username: str
    email: str
    expires_at: Optional[datetime] = None

"""Pydantic schemas for registration, login, and token validation.

Pydantic v2 models validate request/response data. Separate request
schemas (input) from read schemas (output) for clean APIs. No read
schema carries the password hash.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from gatekeep.db.models import DEFAULT_ROLES, USERNAME_MAX_LENGTH


# ─── Registration / login ───────────────────────────────

class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=USERNAME_MAX_LENGTH)
    password: str = Field(..., min_length=1, max_length=255)
    roles: str = Field(default=DEFAULT_ROLES, max_length=255)
    email: EmailStr


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class UserRead(BaseModel):
    id: uuid.UUID
    username: str
    roles: str
    email: str
    created_at: datetime

    model_config = {"from_attributes": True}


class LoginResponse(BaseModel):
    username: str
    access_token: str
    token_type: str = "bearer"
    roles: str
    expires_at: datetime
    expires_in: int  # seconds


# ─── Tokens ─────────────────────────────────────────────

class TokenClaims(BaseModel):
    """Claims recovered from a validated token."""

    subject: str
    username: str
    email: str = ""
    roles: list[str] = Field(default_factory=list)
    token_id: str
    issued_at: datetime
    expires_at: datetime
    issuer: str
    audience: str

    model_config = {"frozen": True}

    def has_any_role(self, *roles: str) -> bool:
        return any(r in self.roles for r in roles)


class ValidateRequest(BaseModel):
    token: Optional[str] = None


class ValidateResponse(BaseModel):
    valid: bool
    message: str
    claims: Optional[TokenClaims] = None

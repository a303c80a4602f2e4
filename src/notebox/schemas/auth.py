"""Pydantic schemas for registration, login and sessions."""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class RegisterRequest(BaseModel):
    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=256)


class LoginRequest(BaseModel):
    email: str
    password: str


class IdentityRead(BaseModel):
    id: uuid.UUID
    email: str
    credential_kind: str
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class SessionResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    identity: IdentityRead

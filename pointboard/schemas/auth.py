"""Account schemas."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel


class RegisterRequest(BaseModel):
    username: str
    password: str
    admin_code: str | None = None


class LoginRequest(BaseModel):
    username: str
    password: str


class UserResponse(BaseModel):
    id: uuid.UUID
    username: str
    role: str
    total_points: int
    created_at: datetime | None = None

    model_config = {"from_attributes": True}

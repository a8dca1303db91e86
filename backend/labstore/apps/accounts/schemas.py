# backend/labstore/apps/accounts/schemas.py

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=64)
    password: str = Field(..., min_length=1)


class AdminRead(BaseModel):
    id: int
    username: str
    created_at: datetime

    class Config:
        from_attributes = True


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    admin: AdminRead


class ChangeCredentialsRequest(BaseModel):
    new_username: str = Field(..., max_length=64)
    new_password: str


class ActionResult(BaseModel):
    success: bool = True
    message: str

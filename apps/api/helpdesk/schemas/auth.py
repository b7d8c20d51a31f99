"""Authentication-related Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from helpdesk.db.enums import UserRole


class RegisterRequest(BaseModel):
    """Self-service customer registration."""
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(min_length=8, max_length=72)
    display_name: str = Field(min_length=1, max_length=255)
    organization_department: str | None = Field(default=None, max_length=100)


class LoginRequest(BaseModel):
    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=256)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1, max_length=512)


class LogoutRequest(BaseModel):
    """Refresh token is optional; without it the current session chain is revoked."""
    refresh_token: str | None = Field(default=None, max_length=512)


class TokenResponse(BaseModel):
    """Issued access + refresh token pair."""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_at: datetime
    refresh_expires_at: datetime


class MeResponse(BaseModel):
    """Response schema for GET /auth/me endpoint."""
    user_id: UUID
    email: str
    display_name: str
    role: UserRole
    capabilities: list[str]
    department_id: UUID | None = None
    last_login_at: datetime | None = None

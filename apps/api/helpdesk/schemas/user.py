"""User administration schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from helpdesk.db.enums import UserRole


class UserCreate(BaseModel):
    """Admin-created identity of any variant."""
    role: UserRole
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(min_length=8, max_length=72)
    display_name: str = Field(min_length=1, max_length=255)
    # Customer
    organization_department: str | None = Field(default=None, max_length=100)
    # Agent
    department_id: UUID | None = None
    specialization: str | None = Field(default=None, max_length=100)
    level: int | None = Field(default=None, ge=1)
    is_available: bool = True
    # Admin
    can_manage_users: bool = False
    can_manage_system: bool = False
    can_view_reports: bool = False
    can_manage_departments: bool = False


class UserUpdate(BaseModel):
    display_name: str | None = Field(default=None, min_length=1, max_length=255)
    department_id: UUID | None = None
    specialization: str | None = Field(default=None, max_length=100)
    level: int | None = Field(default=None, ge=1)
    is_available: bool | None = None


class UserStatusChange(BaseModel):
    is_active: bool


class UserRead(BaseModel):
    id: UUID
    email: str
    display_name: str
    role: UserRole
    is_active: bool
    last_login_at: datetime | None = None
    created_at: datetime
    department_id: UUID | None = None
    level: int | None = None

    model_config = {"from_attributes": True}

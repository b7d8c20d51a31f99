"""Department schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class DepartmentCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=1000)
    color: str | None = Field(default=None, pattern=r"^#[0-9a-fA-F]{6}$")
    sla_hours: float | None = Field(default=None, gt=0)


class DepartmentRead(BaseModel):
    id: UUID
    name: str
    description: str | None = None
    color: str | None = None
    is_active: bool
    sla_hours: float | None = None
    created_at: datetime

    model_config = {"from_attributes": True}

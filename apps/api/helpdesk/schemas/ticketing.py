"""Pydantic schemas for ticket lifecycle APIs."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from helpdesk.db.enums import MessageType, TicketPriority, TicketStatus


class TicketCreate(BaseModel):
    """Open a ticket. Staff creating on behalf must set customer_id."""

    subject: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=2000)
    department_id: UUID
    priority: TicketPriority = TicketPriority.NORMAL
    customer_id: UUID | None = None


class TicketUpdate(BaseModel):
    subject: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, min_length=1, max_length=2000)
    priority: TicketPriority | None = None


class TicketStatusChange(BaseModel):
    status: TicketStatus
    assignee_id: UUID | None = None


class TicketAssign(BaseModel):
    agent_id: UUID


class TicketRate(BaseModel):
    rating: int = Field(ge=1, le=5)
    feedback: str | None = Field(default=None, max_length=2000)


class TicketRead(BaseModel):
    """Ticket detail with read-time SLA figures."""

    id: UUID
    number: str
    subject: str
    description: str
    status: TicketStatus
    priority: TicketPriority
    department_id: UUID
    customer_id: UUID
    assigned_agent_id: UUID | None = None
    sla_hours: float
    first_response_at: datetime | None = None
    resolved_at: datetime | None = None
    closed_at: datetime | None = None
    last_message_at: datetime | None = None
    customer_rating: int | None = None
    customer_feedback: str | None = None
    version: int
    created_at: datetime
    updated_at: datetime

    # Derived
    first_response_time_hours: float | None = None
    resolution_time_hours: float | None = None
    is_overdue: bool = False
    message_count: int = 0


class MessageCreate(BaseModel):
    content: str = Field(min_length=1, max_length=5000)
    type: MessageType | None = None
    is_internal: bool = False


class MessageEdit(BaseModel):
    content: str = Field(min_length=1, max_length=5000)


class MessageRead(BaseModel):
    id: UUID
    ticket_id: UUID
    author_id: UUID
    content: str
    type: MessageType
    is_internal: bool
    edited_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}

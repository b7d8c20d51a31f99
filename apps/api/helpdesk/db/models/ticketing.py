"""Department, ticket, message and ticket-event ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from helpdesk.db.base import Base, SoftDeleteMixin, TimestampMixin
from helpdesk.db.enums import MessageType, TicketEventType, TicketPriority, TicketStatus

if TYPE_CHECKING:
    from helpdesk.db.models import Agent, User


def _enum_type(enum_cls, *, name: str) -> Enum:
    """Store str-enums by value, as a CHECK-constrained string on every backend."""
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        create_constraint=True,
        length=30,
        values_callable=lambda members: [member.value for member in members],
    )


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class Department(TimestampMixin, SoftDeleteMixin, Base):
    """Support department; tickets are routed to exactly one."""

    __tablename__ = "departments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    color: Mapped[str | None] = mapped_column(
        String(7),
        nullable=True,  # Hex color e.g. '#0066cc'
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("true"), nullable=False
    )
    sla_hours: Mapped[float | None] = mapped_column(
        Float, nullable=True, comment="Baseline SLA override before priority scaling"
    )

    agents: Mapped[list["Agent"]] = relationship(back_populates="department")
    tickets: Mapped[list["Ticket"]] = relationship(
        back_populates="department", passive_deletes="all"
    )


class Ticket(TimestampMixin, SoftDeleteMixin, Base):
    """
    Support ticket.

    ``version`` is the optimistic-concurrency counter: every UPDATE is issued
    as ``... WHERE version = :old`` and a lost race raises StaleDataError.

    ``number`` and ``customer_id`` never change after creation.
    """

    __tablename__ = "tickets"
    __table_args__ = (
        CheckConstraint(
            "customer_rating IS NULL OR (customer_rating >= 1 AND customer_rating <= 5)",
            name="ck_tickets_rating_range",
        ),
        Index("idx_tickets_status", "status"),
        Index("idx_tickets_customer", "customer_id"),
        Index("idx_tickets_assignee", "assigned_agent_id"),
        Index("idx_tickets_department", "department_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    subject: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[TicketPriority] = mapped_column(
        _enum_type(TicketPriority, name="ticket_priority"),
        default=TicketPriority.NORMAL,
        nullable=False,
    )
    status: Mapped[TicketStatus] = mapped_column(
        _enum_type(TicketStatus, name="ticket_status"),
        default=TicketStatus.OPEN,
        nullable=False,
    )
    department_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("departments.id", ondelete="RESTRICT"), nullable=False
    )
    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    assigned_agent_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    sla_hours: Mapped[float] = mapped_column(Float, nullable=False)

    # SLA timestamps
    first_response_at: Mapped[datetime | None] = mapped_column(nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    last_message_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Customer satisfaction
    customer_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    customer_feedback: Mapped[str | None] = mapped_column(Text, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    department: Mapped["Department"] = relationship(back_populates="tickets")
    customer: Mapped["User"] = relationship(foreign_keys=[customer_id])
    assigned_agent: Mapped["User | None"] = relationship(foreign_keys=[assigned_agent_id])
    messages: Mapped[list["TicketMessage"]] = relationship(
        back_populates="ticket",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="TicketMessage.created_at",
    )
    events: Mapped[list["TicketEvent"]] = relationship(
        back_populates="ticket",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="TicketEvent.created_at",
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in (TicketStatus.CLOSED, TicketStatus.CANCELLED)


class TicketMessage(TimestampMixin, SoftDeleteMixin, Base):
    """
    Message on a ticket.

    Internal messages are staff-only: never authored by, nor shown to, a
    customer. Edits keep the first version in ``original_content``.
    """

    __tablename__ = "ticket_messages"
    __table_args__ = (
        Index("idx_ticket_messages_ticket", "ticket_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    ticket_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False
    )
    author_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[MessageType] = mapped_column(
        _enum_type(MessageType, name="message_type"), nullable=False
    )
    is_internal: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false"), nullable=False
    )
    edited_at: Mapped[datetime | None] = mapped_column(nullable=True)
    original_content: Mapped[str | None] = mapped_column(Text, nullable=True)

    ticket: Mapped["Ticket"] = relationship(back_populates="messages")
    author: Mapped["User"] = relationship()


class TicketEvent(Base):
    """Append-only ticket activity log."""

    __tablename__ = "ticket_events"
    __table_args__ = (
        Index("idx_ticket_events_ticket", "ticket_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    ticket_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False
    )
    actor_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    event_type: Mapped[TicketEventType] = mapped_column(
        _enum_type(TicketEventType, name="ticket_event_type"), nullable=False
    )
    event_data: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=_now_utc, nullable=False)

    ticket: Mapped["Ticket"] = relationship(back_populates="events")


class TicketCounter(Base):
    """
    Atomic counter for sequential ticket numbers.

    Uses INSERT...ON CONFLICT for atomic increment without race conditions.
    """

    __tablename__ = "ticket_counters"

    counter_type: Mapped[str] = mapped_column(String(50), primary_key=True)
    current_value: Mapped[int] = mapped_column(BigInteger, server_default=text("0"), nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(nullable=True)

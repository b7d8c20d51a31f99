"""Identity and refresh-token ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from helpdesk.db.base import Base, SoftDeleteMixin, TimestampMixin
from helpdesk.db.enums import UserRole

if TYPE_CHECKING:
    from helpdesk.db.models import Department, Ticket


class User(TimestampMixin, SoftDeleteMixin, Base):
    """
    Application identity.

    One table for every variant, discriminated by ``role``; email is unique
    across all of them. Emails are stored lower-cased so lookups are
    case-insensitive on every backend.

    Variant-specific columns are nullable at the table level and only
    meaningful for the matching subclass.
    """

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("level IS NULL OR level >= 1", name="ck_users_agent_level"),
        Index("idx_users_role", "role"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("true"), nullable=False
    )
    last_login_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __mapper_args__ = {
        "polymorphic_on": "role",
        "polymorphic_abstract": True,
    }

    refresh_tokens: Mapped[list["RefreshToken"]] = relationship(
        back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )

    @property
    def user_role(self) -> UserRole:
        return UserRole(self.role)


class Customer(User):
    """Requester. Sees and acts on their own tickets only."""

    organization_department: Mapped[str | None] = mapped_column(
        String(100), nullable=True, comment="Free-text label, e.g. 'Finance'"
    )

    __mapper_args__ = {"polymorphic_identity": UserRole.CUSTOMER.value}


class Agent(User):
    """Support staff member belonging to at most one department."""

    specialization: Mapped[str | None] = mapped_column(String(100), nullable=True)
    level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_available: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    department_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("departments.id", ondelete="SET NULL"), nullable=True
    )

    __mapper_args__ = {"polymorphic_identity": UserRole.AGENT.value}

    department: Mapped["Department | None"] = relationship(back_populates="agents")
    assigned_tickets: Mapped[list["Ticket"]] = relationship(
        primaryjoin="Agent.id == foreign(Ticket.assigned_agent_id)",
        viewonly=True,
    )

    @property
    def assigned_ticket_ids(self) -> list[uuid.UUID]:
        """Derived from the tickets currently assigned to this agent."""
        return [ticket.id for ticket in self.assigned_tickets]


Index("idx_users_department", Agent.department_id)


class Admin(User):
    """Staff with every ticket capability; administration is gated per flag."""

    can_manage_users: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    can_manage_system: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    can_view_reports: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    can_manage_departments: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    __mapper_args__ = {"polymorphic_identity": UserRole.ADMIN.value}


class RefreshToken(Base):
    """
    Opaque refresh token, stored as a SHA256 hash.

    Every login starts a new family (session chain). Rotation marks the
    presented row ``rotated_at`` and inserts its successor with the same
    ``family_id``; presenting a rotated row again revokes the whole family.
    """

    __tablename__ = "refresh_tokens"
    __table_args__ = (
        Index("idx_refresh_tokens_family", "family_id"),
        Index("idx_refresh_tokens_user", "user_id"),
        Index("idx_refresh_tokens_expires", "expires_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    family_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    token_hash: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
        comment="SHA256 hash of the refresh token",
    )
    issued_at: Mapped[datetime] = mapped_column(nullable=False)
    expires_at: Mapped[datetime] = mapped_column(nullable=False)
    rotated_at: Mapped[datetime | None] = mapped_column(nullable=True)
    replaced_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("refresh_tokens.id", ondelete="SET NULL"), nullable=True
    )
    revoked_at: Mapped[datetime | None] = mapped_column(nullable=True)
    revoked_reason: Mapped[str | None] = mapped_column(
        String(50), nullable=True  # 'logout', 'reuse_detected', 'user_deleted'
    )

    user: Mapped["User"] = relationship(back_populates="refresh_tokens")

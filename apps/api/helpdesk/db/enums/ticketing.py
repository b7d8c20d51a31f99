"""Ticketing enums."""

from enum import Enum


class TicketStatus(str, Enum):
    """Ticket lifecycle status."""

    OPEN = "open"
    IN_PROGRESS = "in_progress"
    WAITING_CUSTOMER = "waiting_customer"
    WAITING_AGENT = "waiting_agent"
    RESOLVED = "resolved"
    CLOSED = "closed"
    CANCELLED = "cancelled"


class TicketPriority(str, Enum):
    """Ticket priority level."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class MessageType(str, Enum):
    """Who (or what) produced a ticket message."""

    CUSTOMER = "customer"
    AGENT = "agent"
    INTERNAL_NOTE = "internal_note"
    SYSTEM = "system"


class TicketEventType(str, Enum):
    """Append-only ticket event kinds."""

    CREATED = "created"
    UPDATED = "updated"
    STATUS_CHANGED = "status_changed"
    ASSIGNED = "assigned"
    MESSAGE_POSTED = "message_posted"
    RATED = "rated"
    DELETED = "deleted"

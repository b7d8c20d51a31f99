"""Enum definitions for application constants."""

from helpdesk.db.enums.auth import UserRole
from helpdesk.db.enums.ticketing import (
    MessageType,
    TicketEventType,
    TicketPriority,
    TicketStatus,
)

__all__ = [
    "MessageType",
    "TicketEventType",
    "TicketPriority",
    "TicketStatus",
    "UserRole",
]

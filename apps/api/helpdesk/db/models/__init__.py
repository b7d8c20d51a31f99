"""SQLAlchemy ORM models."""

from helpdesk.db.models.auth import Admin, Agent, Customer, RefreshToken, User
from helpdesk.db.models.ticketing import (
    Department,
    Ticket,
    TicketCounter,
    TicketEvent,
    TicketMessage,
)

__all__ = [
    "Admin",
    "Agent",
    "Customer",
    "Department",
    "RefreshToken",
    "Ticket",
    "TicketCounter",
    "TicketEvent",
    "TicketMessage",
    "User",
]

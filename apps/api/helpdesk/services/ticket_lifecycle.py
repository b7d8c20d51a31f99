"""Ticket state machine and SLA math.

Pure functions over ticket objects; nothing here touches the database.
"""

from datetime import datetime
from typing import TYPE_CHECKING

from helpdesk.core.config import settings
from helpdesk.core.exceptions import InvalidTransitionError
from helpdesk.db.enums import TicketPriority, TicketStatus

if TYPE_CHECKING:
    from helpdesk.db.models import Department, Ticket

S = TicketStatus

TERMINAL_STATUSES: frozenset[TicketStatus] = frozenset({S.CLOSED, S.CANCELLED})

ALLOWED_TRANSITIONS: dict[TicketStatus, frozenset[TicketStatus]] = {
    S.OPEN: frozenset({S.IN_PROGRESS, S.CANCELLED}),
    S.IN_PROGRESS: frozenset({S.WAITING_CUSTOMER, S.WAITING_AGENT, S.RESOLVED, S.CANCELLED}),
    S.WAITING_CUSTOMER: frozenset({S.IN_PROGRESS, S.WAITING_AGENT, S.RESOLVED, S.CANCELLED}),
    S.WAITING_AGENT: frozenset({S.IN_PROGRESS, S.WAITING_CUSTOMER, S.RESOLVED, S.CANCELLED}),
    S.RESOLVED: frozenset({S.CLOSED, S.IN_PROGRESS, S.WAITING_AGENT, S.CANCELLED}),
    S.CLOSED: frozenset(),
    S.CANCELLED: frozenset(),
}

# Entering these needs someone to own the work
REQUIRES_ASSIGNEE: frozenset[TicketStatus] = frozenset({S.IN_PROGRESS, S.RESOLVED})


def is_terminal(status: TicketStatus) -> bool:
    return status in TERMINAL_STATUSES


def can_transition(current: TicketStatus, target: TicketStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def check_transition(ticket: "Ticket", target: TicketStatus) -> None:
    """Raise InvalidTransitionError unless ``ticket`` may move to ``target`` now."""
    current = TicketStatus(ticket.status)
    if not can_transition(current, target):
        raise InvalidTransitionError(current.value, target.value)
    if target in REQUIRES_ASSIGNEE and ticket.assigned_agent_id is None:
        raise InvalidTransitionError(
            current.value,
            target.value,
            f"Ticket must be assigned before moving to {target.value}",
        )


def apply_transition(ticket: "Ticket", target: TicketStatus, now: datetime) -> TicketStatus:
    """
    Move ``ticket`` to ``target`` and maintain the SLA timestamps.

    Returns the previous status.
    """
    check_transition(ticket, target)
    previous = TicketStatus(ticket.status)
    ticket.status = target
    if target == S.RESOLVED:
        if ticket.resolved_at is None:
            ticket.resolved_at = now
    elif previous == S.RESOLVED and target in (S.IN_PROGRESS, S.WAITING_AGENT):
        ticket.resolved_at = None
    if target == S.CLOSED:
        ticket.closed_at = now
    return previous


def reply_target(status: TicketStatus, *, from_customer: bool) -> TicketStatus | None:
    """Status a public reply moves the ticket to, or None to stay put."""
    if from_customer:
        if status in (S.RESOLVED, S.WAITING_CUSTOMER):
            return S.WAITING_AGENT
        return None
    if status == S.WAITING_AGENT:
        return S.WAITING_CUSTOMER
    return None


# =============================================================================
# SLA
# =============================================================================

def resolve_sla_hours(priority: TicketPriority, department: "Department | None" = None) -> float:
    """Department baseline (or SLA_BASE_HOURS) scaled by the priority factor."""
    base = settings.SLA_BASE_HOURS
    if department is not None and department.sla_hours:
        base = department.sla_hours
    factor = settings.SLA_PRIORITY_FACTORS.get(TicketPriority(priority).value, 1.0)
    return round(base * factor, 2)


def _hours_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600


def first_response_time_hours(ticket: "Ticket") -> float | None:
    if ticket.first_response_at is None:
        return None
    return _hours_between(ticket.created_at, ticket.first_response_at)


def resolution_time_hours(ticket: "Ticket") -> float | None:
    if ticket.resolved_at is None:
        return None
    return _hours_between(ticket.created_at, ticket.resolved_at)


def elapsed_hours(ticket: "Ticket", now: datetime) -> float:
    return _hours_between(ticket.created_at, now)


def is_overdue(ticket: "Ticket", now: datetime) -> bool:
    """Non-terminal and open for longer than its SLA threshold."""
    if is_terminal(TicketStatus(ticket.status)):
        return False
    return elapsed_hours(ticket, now) > ticket.sla_hours

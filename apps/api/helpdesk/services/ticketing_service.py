"""Ticket lifecycle operations - create, assign, transition, messages, rating.

Every operation authorizes through the guard, mutates the ticket through
``ticket_lifecycle`` and commits once. Concurrent writers on the same ticket
are serialized by ``Ticket.version``; the loser gets ConflictError.
"""

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import func, select, text
from sqlalchemy.orm import Session

from helpdesk.core.exceptions import (
    DenyReason,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ValidationFailedError,
)
from helpdesk.core.permissions import Capability
from helpdesk.core.policies import Action
from helpdesk.db.enums import (
    MessageType,
    TicketEventType,
    TicketPriority,
    TicketStatus,
    UserRole,
)
from helpdesk.db.models import (
    Admin,
    Agent,
    Customer,
    Department,
    Ticket,
    TicketEvent,
    TicketMessage,
    User,
)
from helpdesk.db.session import commit, retry_read
from helpdesk.services import ticket_lifecycle
from helpdesk.services.authorization_service import (
    ActorContext,
    NewTicketScope,
    require,
)

logger = logging.getLogger(__name__)

MAX_SUBJECT_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 2000
MAX_MESSAGE_LENGTH = 5000

RATEABLE_STATUSES = (TicketStatus.RESOLVED, TicketStatus.CLOSED)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _clean_text(value: str, field: str, max_length: int) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationFailedError(f"{field} is required")
    if len(cleaned) > max_length:
        raise ValidationFailedError(f"{field} must be at most {max_length} characters")
    return cleaned


def _record_event(
    db: Session,
    ticket: Ticket,
    event_type: TicketEventType,
    actor: ActorContext | None,
    now: datetime,
    data: dict[str, Any] | None = None,
) -> None:
    db.add(
        TicketEvent(
            ticket_id=ticket.id,
            actor_id=actor.user_id if actor else None,
            event_type=event_type,
            event_data=data or {},
            created_at=now,
        )
    )


def _ensure_mutable(ticket: Ticket) -> None:
    status = TicketStatus(ticket.status)
    if ticket_lifecycle.is_terminal(status):
        raise InvalidTransitionError(
            status.value, status.value, f"Ticket is {status.value} and can no longer change"
        )


# =============================================================================
# Numbering
# =============================================================================

def generate_ticket_number(db: Session) -> str:
    """Generate next sequential ticket number."""
    result = db.execute(
        text(
            """
            INSERT INTO ticket_counters (counter_type, current_value, updated_at)
            VALUES ('ticket_number', 1, CURRENT_TIMESTAMP)
            ON CONFLICT (counter_type)
            DO UPDATE SET current_value = ticket_counters.current_value + 1,
                          updated_at = CURRENT_TIMESTAMP
            RETURNING current_value
            """
        )
    ).scalar_one_or_none()
    if result is None:
        raise RuntimeError("Failed to generate ticket number")
    return f"TCK-{result:06d}"


# =============================================================================
# Lookups
# =============================================================================

@retry_read
def find_ticket(db: Session, ticket_id: UUID) -> Ticket | None:
    return db.scalar(select(Ticket).where(Ticket.id == ticket_id))


def _get_authorized(
    db: Session,
    actor: ActorContext,
    ticket_id: UUID,
    action: Action,
    *,
    target_status: TicketStatus | None = None,
) -> Ticket:
    ticket = find_ticket(db, ticket_id)
    if ticket is None:
        raise NotFoundError("Ticket not found")
    require(actor, action, ticket, target_status=target_status)
    return ticket


def _active_department(db: Session, department_id: UUID) -> Department:
    department = db.scalar(
        select(Department).where(Department.id == department_id, Department.is_active.is_(True))
    )
    if department is None:
        raise ValidationFailedError("Unknown or inactive department")
    return department


def _validate_assignee(db: Session, ticket: Ticket, assignee_id: UUID) -> User:
    """Assignee must be a live, available agent of the ticket's department, or a live admin."""
    assignee = db.scalar(select(User).where(User.id == assignee_id))
    if assignee is None or not assignee.is_active:
        raise ValidationFailedError("Assignee not found or inactive")
    if isinstance(assignee, Admin):
        return assignee
    if not isinstance(assignee, Agent):
        raise ValidationFailedError("Tickets can only be assigned to agents or admins")
    if assignee.department_id != ticket.department_id:
        raise ValidationFailedError("Agent does not belong to the ticket's department")
    if not assignee.is_available:
        raise ValidationFailedError("Agent is not available")
    return assignee


def get_ticket(db: Session, actor: ActorContext, ticket_id: UUID) -> Ticket:
    """Guarded read."""
    return _get_authorized(db, actor, ticket_id, Action.READ)


# =============================================================================
# Create / update / delete
# =============================================================================

def create_ticket(
    db: Session,
    actor: ActorContext,
    *,
    subject: str,
    description: str,
    department_id: UUID,
    priority: TicketPriority = TicketPriority.NORMAL,
    customer_id: UUID | None = None,
    now: datetime | None = None,
) -> Ticket:
    """
    Open a ticket for a customer.

    Customers open tickets for themselves; staff need the create-on-behalf
    capability and must name the customer.
    """
    if customer_id is None:
        if actor.role != UserRole.CUSTOMER:
            raise ValidationFailedError("customer_id is required when creating on behalf")
        customer_id = actor.user_id

    require(actor, Action.CREATE, NewTicketScope(customer_id=customer_id, department_id=department_id))

    subject = _clean_text(subject, "Subject", MAX_SUBJECT_LENGTH)
    description = _clean_text(description, "Description", MAX_DESCRIPTION_LENGTH)
    department = _active_department(db, department_id)
    customer = db.scalar(select(Customer).where(Customer.id == customer_id))
    if customer is None or not customer.is_active:
        raise ValidationFailedError("Unknown or inactive customer")

    now = now or _now_utc()
    priority = TicketPriority(priority)
    ticket = Ticket(
        id=uuid4(),
        number=generate_ticket_number(db),
        subject=subject,
        description=description,
        priority=priority,
        status=TicketStatus.OPEN,
        department_id=department.id,
        customer_id=customer.id,
        sla_hours=ticket_lifecycle.resolve_sla_hours(priority, department),
        created_at=now,
        updated_at=now,
    )
    db.add(ticket)
    _record_event(
        db,
        ticket,
        TicketEventType.CREATED,
        actor,
        now,
        {"priority": priority.value, "department_id": str(department.id)},
    )
    commit(db)
    db.refresh(ticket)
    logger.info(
        "Ticket created ticket=%s number=%s actor=%s", ticket.id, ticket.number, actor.user_id
    )
    return ticket


def update_ticket(
    db: Session,
    actor: ActorContext,
    ticket_id: UUID,
    *,
    subject: str | None = None,
    description: str | None = None,
    priority: TicketPriority | None = None,
    now: datetime | None = None,
) -> Ticket:
    """Edit subject, description or priority. The customer is immutable."""
    ticket = _get_authorized(db, actor, ticket_id, Action.UPDATE)
    _ensure_mutable(ticket)

    changes: dict[str, Any] = {}
    if subject is not None:
        ticket.subject = _clean_text(subject, "Subject", MAX_SUBJECT_LENGTH)
        changes["subject"] = True
    if description is not None:
        ticket.description = _clean_text(description, "Description", MAX_DESCRIPTION_LENGTH)
        changes["description"] = True
    if priority is not None and TicketPriority(priority) != ticket.priority:
        if not actor.is_staff:
            raise ForbiddenError(DenyReason.INSUFFICIENT_ROLE)
        old_priority = TicketPriority(ticket.priority)
        ticket.priority = TicketPriority(priority)
        ticket.sla_hours = ticket_lifecycle.resolve_sla_hours(ticket.priority, ticket.department)
        changes["priority"] = {"from": old_priority.value, "to": ticket.priority.value}

    if not changes:
        return ticket

    _record_event(db, ticket, TicketEventType.UPDATED, actor, now or _now_utc(), changes)
    commit(db)
    db.refresh(ticket)
    return ticket


def soft_delete_ticket(
    db: Session, actor: ActorContext, ticket_id: UUID, now: datetime | None = None
) -> None:
    ticket = _get_authorized(db, actor, ticket_id, Action.DELETE)
    now = now or _now_utc()
    ticket.is_deleted = True
    ticket.deleted_at = now
    _record_event(db, ticket, TicketEventType.DELETED, actor, now)
    commit(db)
    logger.info("Ticket soft-deleted ticket=%s actor=%s", ticket.id, actor.user_id)


# =============================================================================
# Status / assignment
# =============================================================================

def _status_event(
    db: Session,
    ticket: Ticket,
    actor: ActorContext,
    previous: TicketStatus,
    now: datetime,
    trigger: str,
) -> None:
    _record_event(
        db,
        ticket,
        TicketEventType.STATUS_CHANGED,
        actor,
        now,
        {"from": previous.value, "to": TicketStatus(ticket.status).value, "trigger": trigger},
    )


def transition_status(
    db: Session,
    ticket_id: UUID,
    new_status: TicketStatus,
    actor: ActorContext,
    assignee_id: UUID | None = None,
    now: datetime | None = None,
) -> Ticket:
    """
    Move a ticket through the lifecycle.

    ``assignee_id`` lets an open ticket be taken and started in one call.
    """
    new_status = TicketStatus(new_status)
    ticket = _get_authorized(
        db, actor, ticket_id, Action.TRANSITION_STATUS, target_status=new_status
    )
    now = now or _now_utc()

    if not ticket_lifecycle.can_transition(TicketStatus(ticket.status), new_status):
        raise InvalidTransitionError(TicketStatus(ticket.status).value, new_status.value)

    if assignee_id is not None and assignee_id != ticket.assigned_agent_id:
        require(actor, Action.ASSIGN, ticket)
        assignee = _validate_assignee(db, ticket, assignee_id)
        ticket.assigned_agent_id = assignee.id
        _record_event(db, ticket, TicketEventType.ASSIGNED, actor, now, {"assignee_id": str(assignee.id)})

    previous = ticket_lifecycle.apply_transition(ticket, new_status, now)
    _status_event(db, ticket, actor, previous, now, "manual")
    commit(db)
    db.refresh(ticket)
    logger.info(
        "Ticket status changed ticket=%s %s->%s actor=%s",
        ticket.id,
        previous.value,
        new_status.value,
        actor.user_id,
    )
    return ticket


def assign(
    db: Session,
    ticket_id: UUID,
    agent_id: UUID,
    actor: ActorContext,
    now: datetime | None = None,
) -> Ticket:
    """
    Assign a ticket. Re-assigning the current assignee is a no-op.

    An open ticket moves to in_progress.
    """
    ticket = _get_authorized(db, actor, ticket_id, Action.ASSIGN)
    if ticket.assigned_agent_id == agent_id:
        return ticket
    _ensure_mutable(ticket)

    assignee = _validate_assignee(db, ticket, agent_id)
    now = now or _now_utc()
    previous_assignee = ticket.assigned_agent_id
    ticket.assigned_agent_id = assignee.id
    _record_event(
        db,
        ticket,
        TicketEventType.ASSIGNED,
        actor,
        now,
        {
            "from": str(previous_assignee) if previous_assignee else None,
            "to": str(assignee.id),
        },
    )
    if ticket.status == TicketStatus.OPEN:
        previous = ticket_lifecycle.apply_transition(ticket, TicketStatus.IN_PROGRESS, now)
        _status_event(db, ticket, actor, previous, now, "assignment")

    commit(db)
    db.refresh(ticket)
    logger.info("Ticket assigned ticket=%s assignee=%s actor=%s", ticket.id, assignee.id, actor.user_id)
    return ticket


# =============================================================================
# Messages
# =============================================================================

def _resolve_message_type(
    actor: ActorContext, message_type: MessageType | None, is_internal: bool
) -> MessageType:
    if message_type is None:
        if is_internal:
            return MessageType.INTERNAL_NOTE
        return MessageType.AGENT if actor.is_staff else MessageType.CUSTOMER

    message_type = MessageType(message_type)
    if message_type == MessageType.SYSTEM:
        raise ValidationFailedError("System messages cannot be posted")
    if actor.role == UserRole.CUSTOMER:
        if is_internal or message_type != MessageType.CUSTOMER:
            raise ForbiddenError(DenyReason.INSUFFICIENT_ROLE)
        return MessageType.CUSTOMER
    if message_type == MessageType.CUSTOMER:
        raise ValidationFailedError("Staff cannot post customer messages")
    if is_internal:
        return MessageType.INTERNAL_NOTE
    return message_type


def post_message(
    db: Session,
    ticket_id: UUID,
    content: str,
    actor: ActorContext,
    *,
    message_type: MessageType | None = None,
    is_internal: bool = False,
    now: datetime | None = None,
) -> TicketMessage:
    """
    Add a message to a ticket.

    The first staff message, internal notes included, stamps
    first_response_at (once). Public replies also move the ticket between the
    waiting states.
    """
    if actor.role == UserRole.CUSTOMER and (
        is_internal or message_type in (MessageType.INTERNAL_NOTE, MessageType.AGENT)
    ):
        # Refuse before touching the ticket
        raise ForbiddenError(DenyReason.INSUFFICIENT_ROLE)

    resolved_type = _resolve_message_type(actor, message_type, is_internal)
    internal = resolved_type == MessageType.INTERNAL_NOTE
    action = Action.POST_INTERNAL_NOTE if internal else Action.POST_MESSAGE

    ticket = _get_authorized(db, actor, ticket_id, action)
    _ensure_mutable(ticket)
    content = _clean_text(content, "Content", MAX_MESSAGE_LENGTH)
    now = now or _now_utc()

    message = TicketMessage(
        id=uuid4(),
        ticket_id=ticket.id,
        author_id=actor.user_id,
        content=content,
        type=resolved_type,
        is_internal=internal,
    )
    db.add(message)
    # Touching the ticket bumps its version, serializing concurrent posts
    ticket.last_message_at = now
    from_customer = actor.role == UserRole.CUSTOMER
    if not from_customer and ticket.first_response_at is None:
        ticket.first_response_at = now

    if not internal:
        target = ticket_lifecycle.reply_target(
            TicketStatus(ticket.status), from_customer=from_customer
        )
        if target is not None:
            previous = ticket_lifecycle.apply_transition(ticket, target, now)
            _status_event(db, ticket, actor, previous, now, "message")

    _record_event(
        db,
        ticket,
        TicketEventType.MESSAGE_POSTED,
        actor,
        now,
        {"message_id": str(message.id), "type": resolved_type.value},
    )
    commit(db)
    db.refresh(message)
    logger.info(
        "Message posted ticket=%s message=%s type=%s actor=%s",
        ticket.id,
        message.id,
        resolved_type.value,
        actor.user_id,
    )
    return message


def list_messages(db: Session, actor: ActorContext, ticket_id: UUID) -> list[TicketMessage]:
    """Messages in posting order; internal notes only for callers who may see them."""
    ticket = _get_authorized(db, actor, ticket_id, Action.READ)
    stmt = (
        select(TicketMessage)
        .where(TicketMessage.ticket_id == ticket.id)
        .order_by(TicketMessage.created_at, TicketMessage.id)
    )
    if not actor.has(Capability.VIEW_INTERNAL_NOTES):
        stmt = stmt.where(TicketMessage.is_internal.is_(False))
    return list(db.scalars(stmt).all())


def edit_message(
    db: Session,
    actor: ActorContext,
    message_id: UUID,
    content: str,
    now: datetime | None = None,
) -> TicketMessage:
    """Author-only edit; the first version is kept in original_content."""
    message = db.scalar(select(TicketMessage).where(TicketMessage.id == message_id))
    if message is None:
        raise NotFoundError("Message not found")
    ticket = _get_authorized(db, actor, message.ticket_id, Action.READ)
    if message.author_id != actor.user_id:
        raise ForbiddenError(DenyReason.NOT_OWNER)
    _ensure_mutable(ticket)

    content = _clean_text(content, "Content", MAX_MESSAGE_LENGTH)
    if content == message.content:
        return message
    if message.original_content is None:
        message.original_content = message.content
    message.content = content
    message.edited_at = now or _now_utc()
    commit(db)
    db.refresh(message)
    return message


# =============================================================================
# Rating
# =============================================================================

def rate_ticket(
    db: Session,
    actor: ActorContext,
    ticket_id: UUID,
    rating: int,
    feedback: str | None = None,
    now: datetime | None = None,
) -> Ticket:
    """Owning customer rates a resolved or closed ticket (1-5)."""
    ticket = _get_authorized(db, actor, ticket_id, Action.RATE)
    if ticket.customer_id != actor.user_id:
        raise ForbiddenError(DenyReason.NOT_OWNER)
    if not 1 <= rating <= 5:
        raise ValidationFailedError("Rating must be between 1 and 5")
    if TicketStatus(ticket.status) not in RATEABLE_STATUSES:
        raise ValidationFailedError("Only resolved or closed tickets can be rated")

    ticket.customer_rating = rating
    ticket.customer_feedback = feedback.strip() if feedback else None
    _record_event(db, ticket, TicketEventType.RATED, actor, now or _now_utc(), {"rating": rating})
    commit(db)
    db.refresh(ticket)
    return ticket


# =============================================================================
# Derived metrics
# =============================================================================

def ticket_metrics(
    db: Session,
    ticket: Ticket,
    *,
    include_internal: bool = True,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Read-time SLA figures for a ticket."""
    now = now or _now_utc()
    stmt = select(func.count(TicketMessage.id)).where(TicketMessage.ticket_id == ticket.id)
    if not include_internal:
        stmt = stmt.where(TicketMessage.is_internal.is_(False))
    message_count = db.scalar(stmt) or 0
    return {
        "first_response_time_hours": ticket_lifecycle.first_response_time_hours(ticket),
        "resolution_time_hours": ticket_lifecycle.resolution_time_hours(ticket),
        "is_overdue": ticket_lifecycle.is_overdue(ticket, now),
        "message_count": message_count,
    }

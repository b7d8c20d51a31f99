"""Ticket lifecycle APIs."""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from helpdesk.core.deps import get_current_actor, get_db
from helpdesk.core.permissions import Capability
from helpdesk.db.models import Ticket
from helpdesk.schemas.ticketing import (
    MessageCreate,
    MessageEdit,
    MessageRead,
    TicketAssign,
    TicketCreate,
    TicketRate,
    TicketRead,
    TicketStatusChange,
    TicketUpdate,
)
from helpdesk.services import ticketing_service
from helpdesk.services.authorization_service import ActorContext

router = APIRouter(prefix="/tickets", tags=["Tickets"])
messages_router = APIRouter(prefix="/messages", tags=["Tickets"])


def _ticket_read(db: Session, ticket: Ticket, actor: ActorContext) -> TicketRead:
    metrics = ticketing_service.ticket_metrics(
        db, ticket, include_internal=actor.has(Capability.VIEW_INTERNAL_NOTES)
    )
    return TicketRead(
        id=ticket.id,
        number=ticket.number,
        subject=ticket.subject,
        description=ticket.description,
        status=ticket.status,
        priority=ticket.priority,
        department_id=ticket.department_id,
        customer_id=ticket.customer_id,
        assigned_agent_id=ticket.assigned_agent_id,
        sla_hours=ticket.sla_hours,
        first_response_at=ticket.first_response_at,
        resolved_at=ticket.resolved_at,
        closed_at=ticket.closed_at,
        last_message_at=ticket.last_message_at,
        customer_rating=ticket.customer_rating,
        customer_feedback=ticket.customer_feedback,
        version=ticket.version,
        created_at=ticket.created_at,
        updated_at=ticket.updated_at,
        **metrics,
    )


@router.post("", response_model=TicketRead, status_code=status.HTTP_201_CREATED)
def create_ticket(
    body: TicketCreate,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ticket = ticketing_service.create_ticket(
        db,
        actor,
        subject=body.subject,
        description=body.description,
        department_id=body.department_id,
        priority=body.priority,
        customer_id=body.customer_id,
    )
    return _ticket_read(db, ticket, actor)


@router.get("/{ticket_id}", response_model=TicketRead)
def get_ticket(
    ticket_id: UUID,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ticket = ticketing_service.get_ticket(db, actor, ticket_id)
    return _ticket_read(db, ticket, actor)


@router.patch("/{ticket_id}", response_model=TicketRead)
def update_ticket(
    ticket_id: UUID,
    body: TicketUpdate,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ticket = ticketing_service.update_ticket(
        db,
        actor,
        ticket_id,
        subject=body.subject,
        description=body.description,
        priority=body.priority,
    )
    return _ticket_read(db, ticket, actor)


@router.delete("/{ticket_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_ticket(
    ticket_id: UUID,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> None:
    ticketing_service.soft_delete_ticket(db, actor, ticket_id)


@router.post("/{ticket_id}/status", response_model=TicketRead)
def change_status(
    ticket_id: UUID,
    body: TicketStatusChange,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ticket = ticketing_service.transition_status(
        db, ticket_id, body.status, actor, assignee_id=body.assignee_id
    )
    return _ticket_read(db, ticket, actor)


@router.post("/{ticket_id}/assign", response_model=TicketRead)
def assign_ticket(
    ticket_id: UUID,
    body: TicketAssign,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ticket = ticketing_service.assign(db, ticket_id, body.agent_id, actor)
    return _ticket_read(db, ticket, actor)


@router.post("/{ticket_id}/rating", response_model=TicketRead)
def rate_ticket(
    ticket_id: UUID,
    body: TicketRate,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ticket = ticketing_service.rate_ticket(db, actor, ticket_id, body.rating, body.feedback)
    return _ticket_read(db, ticket, actor)


@router.get("/{ticket_id}/messages", response_model=list[MessageRead])
def list_messages(
    ticket_id: UUID,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Messages in posting order; internal notes are hidden from customers."""
    return ticketing_service.list_messages(db, actor, ticket_id)


@router.post(
    "/{ticket_id}/messages", response_model=MessageRead, status_code=status.HTTP_201_CREATED
)
def post_message(
    ticket_id: UUID,
    body: MessageCreate,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return ticketing_service.post_message(
        db,
        ticket_id,
        body.content,
        actor,
        message_type=body.type,
        is_internal=body.is_internal,
    )


@messages_router.patch("/{message_id}", response_model=MessageRead)
def edit_message(
    message_id: UUID,
    body: MessageEdit,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return ticketing_service.edit_message(db, actor, message_id, body.content)

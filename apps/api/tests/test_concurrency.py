"""Racing writers on separate sessions: exactly one wins."""

import pytest
from sqlalchemy import select

from helpdesk.core.exceptions import ConflictError, UnauthenticatedError
from helpdesk.core.security import hash_token
from helpdesk.db.enums import TicketStatus
from helpdesk.db.models import RefreshToken, Ticket
from helpdesk.db.session import SessionLocal
from helpdesk.services import session_service, ticketing_service

from conftest import actor_for


@pytest.fixture
def sessions(db):
    first, second = SessionLocal(), SessionLocal()
    yield first, second
    first.close()
    second.close()


def test_concurrent_assign_one_conflicts(db, sessions, admin, agent, second_agent, make_ticket):
    ticket_id = make_ticket().id
    actor = actor_for(admin)
    first, second = sessions

    # Both writers hold the ticket at version 1; the identity map only keeps
    # instances that are still referenced
    held = [s.scalar(select(Ticket).where(Ticket.id == ticket_id)) for s in sessions]
    assert [t.version for t in held] == [1, 1]

    winner = ticketing_service.assign(first, ticket_id, agent.id, actor)
    assert winner.assigned_agent_id == agent.id

    with pytest.raises(ConflictError):
        ticketing_service.assign(second, ticket_id, second_agent.id, actor)

    db.expire_all()
    stored = ticketing_service.find_ticket(db, ticket_id)
    assert stored.assigned_agent_id == agent.id
    assert stored.status == TicketStatus.IN_PROGRESS
    assert stored.version == 2


def test_concurrent_message_and_transition_conflict(
    db, sessions, admin, agent, customer, make_ticket
):
    ticket_id = ticketing_service.assign(db, make_ticket().id, agent.id, actor_for(admin)).id
    first, second = sessions

    held = [s.scalar(select(Ticket).where(Ticket.id == ticket_id)) for s in sessions]
    assert held[0].version == held[1].version

    ticketing_service.transition_status(first, ticket_id, TicketStatus.RESOLVED, actor_for(agent))
    with pytest.raises(ConflictError):
        ticketing_service.post_message(second, ticket_id, "Any news?", actor_for(customer))


def test_concurrent_refresh_single_winner(db, sessions, customer):
    issued = session_service.issue(db, customer)
    first, second = sessions
    token_hash = hash_token(issued.refresh_token)

    # Both exchanges read the token before either commits
    held = [
        s.scalar(select(RefreshToken).where(RefreshToken.token_hash == token_hash))
        for s in sessions
    ]
    assert all(row.rotated_at is None for row in held)

    rotated = session_service.refresh(first, issued.refresh_token)
    assert rotated.session_id == issued.session_id

    with pytest.raises(UnauthenticatedError):
        session_service.refresh(second, issued.refresh_token)

    # The losing exchange is treated as reuse: the chain is gone
    assert not session_service.is_family_active(db, issued.session_id)

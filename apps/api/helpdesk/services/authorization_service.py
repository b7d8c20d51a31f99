"""Authorization guard - role, ownership and assignment checks.

``can`` is a pure decision over an actor, an action and (optionally) the
ticket it targets. ``authorize`` wraps it with token validation and the
actor/ticket loads; nothing about a ticket is read before the caller is
authenticated.
"""

import logging
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from helpdesk.core.exceptions import (
    DenyReason,
    ForbiddenError,
    NotFoundError,
    UnauthenticatedError,
)
from helpdesk.core.permissions import Capability, capabilities_for
from helpdesk.core.policies import ADMINISTRATIVE_ACTIONS, Action, required_capability
from helpdesk.db.enums import TicketStatus, UserRole
from helpdesk.db.models import Agent, Ticket, User
from helpdesk.db.session import retry_read
from helpdesk.services import session_service

logger = logging.getLogger(__name__)

# The only status a customer may request (confirming a resolution)
CUSTOMER_SETTABLE_STATUSES: frozenset[TicketStatus] = frozenset({TicketStatus.CLOSED})


class TicketScope(Protocol):
    """Fields the guard reads from a ticket (or a ticket about to be created)."""

    customer_id: UUID
    department_id: UUID
    assigned_agent_id: UUID | None


@dataclass(frozen=True)
class NewTicketScope:
    customer_id: UUID
    department_id: UUID
    assigned_agent_id: UUID | None = None


@dataclass(frozen=True)
class ActorContext:
    """Authenticated caller, resolved from an access token."""

    user_id: UUID
    role: UserRole
    capabilities: frozenset[Capability]
    session_id: UUID | None = None
    department_id: UUID | None = None

    def has(self, capability: Capability) -> bool:
        return capability in self.capabilities

    @property
    def is_staff(self) -> bool:
        return self.role in (UserRole.AGENT, UserRole.ADMIN)

    @classmethod
    def from_user(cls, user: User, session_id: UUID | None = None) -> "ActorContext":
        return cls(
            user_id=user.id,
            role=UserRole(user.role),
            capabilities=capabilities_for(user),
            session_id=session_id,
            department_id=user.department_id if isinstance(user, Agent) else None,
        )


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: DenyReason | None = None

    @classmethod
    def allow(cls) -> "Decision":
        return cls(True)

    @classmethod
    def deny(cls, reason: DenyReason) -> "Decision":
        return cls(False, reason)


# =============================================================================
# Pure guard
# =============================================================================

def _needed_capability(actor: ActorContext, action: Action, target_status: TicketStatus | None) -> Capability:
    if action == Action.CREATE and actor.role != UserRole.CUSTOMER:
        return Capability.CREATE_ON_BEHALF
    if action == Action.TRANSITION_STATUS and target_status == TicketStatus.CANCELLED:
        return Capability.CANCEL_TICKETS
    return required_capability(action)


def can(
    actor: ActorContext | None,
    action: Action,
    ticket: TicketScope | None = None,
    *,
    target_status: TicketStatus | None = None,
) -> Decision:
    """
    Decide whether ``actor`` may perform ``action``.

    Precedence: authentication, administrative flags, admin bypass, then
    scope (agent department/assignment, customer ownership) before the
    role's capabilities.
    """
    if actor is None:
        return Decision.deny(DenyReason.NOT_AUTHENTICATED)

    if action in ADMINISTRATIVE_ACTIONS:
        if actor.has(required_capability(action)):
            return Decision.allow()
        return Decision.deny(DenyReason.INSUFFICIENT_ROLE)

    if actor.role == UserRole.ADMIN:
        return Decision.allow()

    if actor.role == UserRole.AGENT:
        if ticket is not None and not (
            ticket.assigned_agent_id == actor.user_id
            or (actor.department_id is not None and ticket.department_id == actor.department_id)
        ):
            return Decision.deny(DenyReason.NOT_ASSIGNED)
        if not actor.has(_needed_capability(actor, action, target_status)):
            return Decision.deny(DenyReason.INSUFFICIENT_ROLE)
        return Decision.allow()

    if actor.role == UserRole.CUSTOMER:
        if ticket is not None and ticket.customer_id != actor.user_id:
            return Decision.deny(DenyReason.NOT_OWNER)
        if not actor.has(_needed_capability(actor, action, target_status)):
            return Decision.deny(DenyReason.INSUFFICIENT_ROLE)
        if action == Action.TRANSITION_STATUS and target_status not in CUSTOMER_SETTABLE_STATUSES:
            return Decision.deny(DenyReason.INSUFFICIENT_ROLE)
        return Decision.allow()

    return Decision.deny(DenyReason.INSUFFICIENT_ROLE)


def require(
    actor: ActorContext | None,
    action: Action,
    ticket: TicketScope | None = None,
    *,
    target_status: TicketStatus | None = None,
) -> None:
    """Raise when the guard denies; the reason is logged, never returned."""
    decision = can(actor, action, ticket, target_status=target_status)
    if decision.allowed:
        return
    if decision.reason == DenyReason.NOT_AUTHENTICATED:
        raise UnauthenticatedError()
    logger.info(
        "Denied action=%s actor=%s reason=%s ticket=%s",
        action.value,
        actor.user_id if actor else None,
        decision.reason.value if decision.reason else None,
        getattr(ticket, "id", None),
    )
    raise ForbiddenError(decision.reason)


# =============================================================================
# Token -> actor -> decision
# =============================================================================

def load_actor(db: Session, access_token: str | None) -> ActorContext:
    """Validate an access token and load the live identity behind it."""
    from helpdesk.services import identity_service

    if not access_token:
        raise UnauthenticatedError()
    claims = session_service.validate(access_token)
    if not session_service.is_family_active(db, claims.session_id):
        raise UnauthenticatedError(session_service.INVALID_SESSION)
    user = identity_service.find_by_id(db, claims.user_id)
    if user is None or not user.is_active:
        raise UnauthenticatedError(session_service.INVALID_SESSION)
    return ActorContext.from_user(user, session_id=claims.session_id)


@retry_read
def _load_ticket(db: Session, ticket_id: UUID) -> Ticket | None:
    return db.scalar(select(Ticket).where(Ticket.id == ticket_id))


def authorize(
    db: Session,
    access_token: str | None,
    action: Action,
    ticket_id: UUID | None = None,
    *,
    target_status: TicketStatus | None = None,
) -> ActorContext:
    """
    Full check for one request.

    Raises UnauthenticatedError, NotFoundError or ForbiddenError.
    """
    actor = load_actor(db, access_token)
    ticket = None
    if ticket_id is not None:
        ticket = _load_ticket(db, ticket_id)
        if ticket is None:
            raise NotFoundError("Ticket not found")
    require(actor, action, ticket, target_status=target_status)
    return actor

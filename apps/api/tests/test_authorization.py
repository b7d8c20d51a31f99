"""Authorization guard: decision precedence and token-backed checks."""

from types import SimpleNamespace
from uuid import uuid4

import pytest

from helpdesk.core.exceptions import (
    DenyReason,
    ForbiddenError,
    NotFoundError,
    UnauthenticatedError,
)
from helpdesk.core.permissions import (
    ADMINISTRATIVE_CAPABILITIES,
    CAPABILITY_REGISTRY,
    Capability,
    derive_capabilities,
)
from helpdesk.core.policies import Action
from helpdesk.db.enums import TicketStatus, UserRole
from helpdesk.services import identity_service, session_service
from helpdesk.services.authorization_service import (
    ActorContext,
    NewTicketScope,
    authorize,
    can,
    load_actor,
    require,
)

CUSTOMER_ID = uuid4()
AGENT_ID = uuid4()
DEPT_A = uuid4()
DEPT_B = uuid4()


def _customer(user_id=CUSTOMER_ID) -> ActorContext:
    return ActorContext(
        user_id=user_id,
        role=UserRole.CUSTOMER,
        capabilities=derive_capabilities(UserRole.CUSTOMER),
    )


def _agent(department_id=DEPT_A, level: int = 1) -> ActorContext:
    return ActorContext(
        user_id=AGENT_ID,
        role=UserRole.AGENT,
        capabilities=derive_capabilities(UserRole.AGENT, agent_level=level),
        department_id=department_id,
    )


def _admin(**flags) -> ActorContext:
    return ActorContext(
        user_id=uuid4(),
        role=UserRole.ADMIN,
        capabilities=derive_capabilities(UserRole.ADMIN, **flags),
    )


def _ticket(customer_id=CUSTOMER_ID, department_id=DEPT_A, assigned_agent_id=None):
    return SimpleNamespace(
        id=uuid4(),
        customer_id=customer_id,
        department_id=department_id,
        assigned_agent_id=assigned_agent_id,
    )


# =============================================================================
# Pure decisions
# =============================================================================

def test_no_actor_is_not_authenticated():
    decision = can(None, Action.READ, _ticket())
    assert not decision.allowed
    assert decision.reason == DenyReason.NOT_AUTHENTICATED


def test_customer_reads_only_own_tickets():
    assert can(_customer(), Action.READ, _ticket()).allowed

    decision = can(_customer(), Action.READ, _ticket(customer_id=uuid4()))
    assert decision.reason == DenyReason.NOT_OWNER


def test_customer_ownership_checked_before_role():
    # Even an action customers never hold reports not_owner on a foreign ticket
    decision = can(_customer(), Action.ASSIGN, _ticket(customer_id=uuid4()))
    assert decision.reason == DenyReason.NOT_OWNER

    decision = can(_customer(), Action.ASSIGN, _ticket())
    assert decision.reason == DenyReason.INSUFFICIENT_ROLE


@pytest.mark.parametrize(
    "target,allowed",
    [
        (TicketStatus.CLOSED, True),
        (TicketStatus.RESOLVED, False),
        (TicketStatus.IN_PROGRESS, False),
        (TicketStatus.CANCELLED, False),
    ],
)
def test_customer_may_only_confirm_closure(target, allowed):
    decision = can(_customer(), Action.TRANSITION_STATUS, _ticket(), target_status=target)
    assert decision.allowed is allowed
    if not allowed:
        assert decision.reason == DenyReason.INSUFFICIENT_ROLE


def test_customer_cannot_touch_internal_notes():
    assert can(_customer(), Action.POST_INTERNAL_NOTE, _ticket()).reason == DenyReason.INSUFFICIENT_ROLE
    assert not can(_customer(), Action.VIEW_INTERNAL_NOTES, _ticket()).allowed


def test_agent_scope_by_department_or_assignment():
    assert can(_agent(), Action.READ, _ticket()).allowed
    assert can(_agent(DEPT_B), Action.READ, _ticket(assigned_agent_id=AGENT_ID)).allowed

    decision = can(_agent(DEPT_B), Action.READ, _ticket())
    assert decision.reason == DenyReason.NOT_ASSIGNED


def test_agent_scope_checked_before_capability():
    decision = can(_agent(DEPT_B), Action.DELETE, _ticket())
    assert decision.reason == DenyReason.NOT_ASSIGNED

    decision = can(_agent(), Action.DELETE, _ticket())
    assert decision.reason == DenyReason.INSUFFICIENT_ROLE


def test_agent_cancel_and_internal_notes():
    ticket = _ticket()
    assert can(_agent(), Action.TRANSITION_STATUS, ticket, target_status=TicketStatus.CANCELLED).allowed
    assert can(_agent(), Action.POST_INTERNAL_NOTE, ticket).allowed
    assert can(_agent(), Action.VIEW_INTERNAL_NOTES, ticket).allowed


def test_create_on_behalf_needs_level():
    scope = NewTicketScope(customer_id=CUSTOMER_ID, department_id=DEPT_A)
    assert can(_agent(level=1), Action.CREATE, scope).reason == DenyReason.INSUFFICIENT_ROLE
    assert can(_agent(level=3), Action.CREATE, scope).allowed
    assert can(_customer(), Action.CREATE, scope).allowed


def test_admin_bypasses_scope():
    ticket = _ticket(customer_id=uuid4(), department_id=DEPT_B)
    admin = _admin()
    for action in (Action.READ, Action.DELETE, Action.ASSIGN, Action.VIEW_INTERNAL_NOTES):
        assert can(admin, action, ticket).allowed


def test_administrative_actions_follow_flags():
    assert can(_admin(can_manage_departments=True), Action.MANAGE_DEPARTMENTS).allowed

    decision = can(_admin(can_view_reports=True), Action.MANAGE_DEPARTMENTS)
    assert decision.reason == DenyReason.INSUFFICIENT_ROLE
    assert can(_agent(level=5), Action.MANAGE_USERS).reason == DenyReason.INSUFFICIENT_ROLE
    assert not can(_customer(), Action.VIEW_REPORTS).allowed


def test_require_raises_with_reason():
    with pytest.raises(UnauthenticatedError):
        require(None, Action.READ)
    with pytest.raises(ForbiddenError) as exc:
        require(_customer(), Action.READ, _ticket(customer_id=uuid4()))
    assert exc.value.reason == DenyReason.NOT_OWNER


# =============================================================================
# Token-backed checks
# =============================================================================

def test_load_actor_from_token(db, agent, department):
    issued = session_service.issue(db, agent)
    actor = load_actor(db, issued.access_token)

    assert actor.user_id == agent.id
    assert actor.role == UserRole.AGENT
    assert actor.department_id == department.id
    assert actor.session_id == issued.session_id


def test_load_actor_rejects_missing_revoked_and_deleted(db, customer, other_customer):
    with pytest.raises(UnauthenticatedError):
        load_actor(db, None)

    revoked = session_service.issue(db, customer)
    session_service.revoke(db, revoked.refresh_token)
    with pytest.raises(UnauthenticatedError):
        load_actor(db, revoked.access_token)

    issued = session_service.issue(db, other_customer)
    identity_service.soft_delete_user(db, other_customer.id)
    with pytest.raises(UnauthenticatedError):
        load_actor(db, issued.access_token)


def test_authorize_ticket_not_found_after_authentication(db, customer):
    with pytest.raises(UnauthenticatedError):
        authorize(db, "garbage", Action.READ, uuid4())

    issued = session_service.issue(db, customer)
    with pytest.raises(NotFoundError):
        authorize(db, issued.access_token, Action.READ, uuid4())


def test_authorize_foreign_ticket(db, other_customer, make_ticket):
    ticket = make_ticket()
    issued = session_service.issue(db, other_customer)
    with pytest.raises(ForbiddenError) as exc:
        authorize(db, issued.access_token, Action.READ, ticket.id)
    assert exc.value.reason == DenyReason.NOT_OWNER


def test_authorize_administrative_action(db, admin, agent):
    actor = authorize(db, session_service.issue(db, admin).access_token, Action.MANAGE_DEPARTMENTS)
    assert actor.user_id == admin.id

    with pytest.raises(ForbiddenError):
        authorize(db, session_service.issue(db, agent).access_token, Action.MANAGE_DEPARTMENTS)


def test_capability_registry_is_complete():
    assert set(CAPABILITY_REGISTRY) == set(Capability)
    admin_flags = derive_capabilities(
        UserRole.ADMIN,
        can_manage_users=True,
        can_manage_system=True,
        can_view_reports=True,
        can_manage_departments=True,
    )
    assert ADMINISTRATIVE_CAPABILITIES <= admin_flags
    assert not ADMINISTRATIVE_CAPABILITIES & derive_capabilities(UserRole.AGENT, agent_level=9)

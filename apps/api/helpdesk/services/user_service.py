"""User administration - staff accounts, activation and removal.

Every operation requires the manage-users capability. Identity creation and
soft delete are delegated to ``identity_service`` so the email and restrict
rules live in one place.
"""

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from helpdesk.core.exceptions import (
    DenyReason,
    ForbiddenError,
    NotFoundError,
    ValidationFailedError,
)
from helpdesk.core.policies import Action
from helpdesk.db.enums import UserRole
from helpdesk.db.models import Agent, Department, User
from helpdesk.db.session import commit, retry_read
from helpdesk.services import identity_service, session_service
from helpdesk.services.authorization_service import ActorContext, require

logger = logging.getLogger(__name__)

ADMIN_FLAGS = (
    "can_manage_users",
    "can_manage_system",
    "can_view_reports",
    "can_manage_departments",
)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _get_user(db: Session, user_id: UUID) -> User:
    user = identity_service.find_by_id(db, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def _ensure_not_self(actor: ActorContext, user: User, verb: str) -> None:
    if user.id == actor.user_id:
        raise ForbiddenError(DenyReason.INSUFFICIENT_ROLE, f"Cannot {verb} yourself")


def _ensure_department(db: Session, department_id: UUID) -> None:
    if db.scalar(select(Department.id).where(Department.id == department_id)) is None:
        raise ValidationFailedError("Unknown department")


@retry_read
def _select_users(db: Session, role: UserRole | None) -> list[User]:
    stmt = select(User).order_by(User.display_name, User.email)
    if role is not None:
        stmt = stmt.where(User.role == UserRole(role).value)
    return list(db.scalars(stmt).all())


def list_users(db: Session, actor: ActorContext, role: UserRole | None = None) -> list[User]:
    require(actor, Action.MANAGE_USERS)
    return _select_users(db, role)


def get_user(db: Session, actor: ActorContext, user_id: UUID) -> User:
    require(actor, Action.MANAGE_USERS)
    return _get_user(db, user_id)


def create_user(
    db: Session,
    actor: ActorContext,
    *,
    role: UserRole,
    email: str,
    password: str,
    display_name: str,
    **attributes,
) -> User:
    """
    Create an identity of any variant.

    ``attributes`` carries the variant fields (agent department and level,
    admin flags, customer organization label).
    """
    require(actor, Action.MANAGE_USERS)
    role = UserRole(role)
    if role == UserRole.AGENT:
        user = identity_service.create_agent(
            db,
            email=email,
            password=password,
            display_name=display_name,
            department_id=attributes.get("department_id"),
            specialization=attributes.get("specialization"),
            level=attributes.get("level") or 1,
            is_available=attributes.get("is_available", True),
        )
    elif role == UserRole.ADMIN:
        user = identity_service.create_admin(
            db,
            email=email,
            password=password,
            display_name=display_name,
            **{flag: bool(attributes.get(flag)) for flag in ADMIN_FLAGS},
        )
    else:
        user = identity_service.register_customer(
            db,
            email=email,
            password=password,
            display_name=display_name,
            organization_department=attributes.get("organization_department"),
        )
    logger.info("User created user=%s role=%s actor=%s", user.id, role.value, actor.user_id)
    return user


def update_user(
    db: Session,
    actor: ActorContext,
    user_id: UUID,
    *,
    display_name: str | None = None,
    department_id: UUID | None = None,
    specialization: str | None = None,
    level: int | None = None,
    is_available: bool | None = None,
) -> User:
    """Edit profile fields. Agent-only fields are rejected for other variants."""
    require(actor, Action.MANAGE_USERS)
    user = _get_user(db, user_id)

    if display_name is not None:
        display_name = display_name.strip()
        if not display_name:
            raise ValidationFailedError("Display name is required")
        user.display_name = display_name

    agent_fields = (department_id, specialization, level, is_available)
    if any(value is not None for value in agent_fields):
        if not isinstance(user, Agent):
            raise ValidationFailedError("Only agents have department, level or availability")
        if department_id is not None:
            _ensure_department(db, department_id)
            user.department_id = department_id
        if specialization is not None:
            user.specialization = specialization
        if level is not None:
            if level < 1:
                raise ValidationFailedError("Agent level must be at least 1")
            user.level = level
        if is_available is not None:
            user.is_available = is_available

    commit(db)
    db.refresh(user)
    return user


def set_active(db: Session, actor: ActorContext, user_id: UUID, is_active: bool) -> User:
    """
    Activate or deactivate an identity.

    Deactivation revokes every session the identity holds; inactive
    identities cannot authenticate.
    """
    require(actor, Action.MANAGE_USERS)
    user = _get_user(db, user_id)
    if not is_active:
        _ensure_not_self(actor, user, "deactivate")
    if user.is_active == is_active:
        return user

    user.is_active = is_active
    revoked = 0
    if not is_active:
        revoked = session_service.revoke_all_for_user(db, user.id, "user_deactivated", now=_now_utc())
    commit(db)
    db.refresh(user)
    logger.info(
        "User status changed user=%s active=%s revoked_tokens=%d actor=%s",
        user.id,
        is_active,
        revoked,
        actor.user_id,
    )
    return user


def delete_user(db: Session, actor: ActorContext, user_id: UUID) -> None:
    """Soft delete. A customer who still owns tickets is refused."""
    require(actor, Action.MANAGE_USERS)
    user = _get_user(db, user_id)
    _ensure_not_self(actor, user, "delete")
    identity_service.soft_delete_user(db, user.id)
    logger.info("User deleted user=%s actor=%s", user.id, actor.user_id)

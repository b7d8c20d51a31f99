"""Identity store - lookup, credential verification and identity lifecycle."""

import logging
from datetime import datetime, timezone
from functools import lru_cache
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from helpdesk.core.exceptions import (
    ConflictError,
    NotFoundError,
    UnauthenticatedError,
    ValidationFailedError,
)
from helpdesk.core.permissions import Capability, capabilities_for
from helpdesk.core.security import MAX_PASSWORD_BYTES, hash_password, verify_password
from helpdesk.db.enums import TicketStatus
from helpdesk.db.models import Admin, Agent, Customer, Department, Ticket, User
from helpdesk.db.session import commit, include_deleted, retry_read
from helpdesk.services import session_service

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"
MIN_PASSWORD_LENGTH = 8

__all__ = [
    "Capability",
    "authenticate_user",
    "capabilities_for",
    "create_admin",
    "create_agent",
    "find_by_email",
    "find_by_id",
    "register_customer",
    "soft_delete_user",
    "verify_credential",
]


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def validate_password(password: str) -> None:
    """Reject secrets bcrypt cannot represent faithfully."""
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationFailedError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationFailedError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")


# =============================================================================
# Lookup
# =============================================================================

@retry_read
def find_by_email(db: Session, email: str) -> User | None:
    """Case-insensitive lookup; soft-deleted identities are never returned."""
    return db.scalar(select(User).where(User.email == normalize_email(email)))


@retry_read
def find_by_id(db: Session, user_id: UUID) -> User | None:
    return db.scalar(select(User).where(User.id == user_id))


# =============================================================================
# Credentials
# =============================================================================

@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return hash_password("timing-equalizer-secret")


def verify_credential(user: User, secret: str) -> bool:
    """Check a secret against the stored bcrypt hash (bounded by a timeout)."""
    return verify_password(secret, user.password_hash)


def authenticate_user(
    db: Session, email: str, secret: str, now: datetime | None = None
) -> User:
    """
    Resolve an identity from credentials.

    Unknown email, wrong secret and inactive account all raise the same
    UnauthenticatedError. Unknown emails still pay for one bcrypt check.
    """
    user = find_by_email(db, email)
    if user is None:
        verify_password(secret, _dummy_hash())
        logger.info("Login failed: unknown identity")
        raise UnauthenticatedError(INVALID_CREDENTIALS)

    if not verify_credential(user, secret):
        logger.info("Login failed: bad secret user=%s", user.id)
        raise UnauthenticatedError(INVALID_CREDENTIALS)

    if not user.is_active:
        logger.info("Login failed: inactive user=%s", user.id)
        raise UnauthenticatedError(INVALID_CREDENTIALS)

    user.last_login_at = now or _now_utc()
    commit(db)
    return user


# =============================================================================
# Identity lifecycle
# =============================================================================

def _ensure_email_free(db: Session, email: str) -> None:
    # Soft-deleted identities keep their email reserved
    existing = db.scalar(include_deleted(select(User.id).where(User.email == email)))
    if existing is not None:
        raise ConflictError("Email already registered")


def _create_identity(db: Session, user: User, password: str) -> User:
    validate_password(password)
    user.email = normalize_email(user.email)
    _ensure_email_free(db, user.email)
    user.password_hash = hash_password(password)
    db.add(user)
    commit(db)
    db.refresh(user)
    logger.info("Created %s identity user=%s", user.role, user.id)
    return user


def register_customer(
    db: Session,
    *,
    email: str,
    password: str,
    display_name: str,
    organization_department: str | None = None,
) -> Customer:
    return _create_identity(
        db,
        Customer(
            email=email,
            display_name=display_name,
            organization_department=organization_department,
        ),
        password,
    )


def create_agent(
    db: Session,
    *,
    email: str,
    password: str,
    display_name: str,
    department_id: UUID | None = None,
    specialization: str | None = None,
    level: int = 1,
    is_available: bool = True,
) -> Agent:
    if level < 1:
        raise ValidationFailedError("Agent level must be at least 1")
    if department_id is not None:
        department = db.scalar(select(Department).where(Department.id == department_id))
        if department is None:
            raise ValidationFailedError("Unknown department")
    return _create_identity(
        db,
        Agent(
            email=email,
            display_name=display_name,
            department_id=department_id,
            specialization=specialization,
            level=level,
            is_available=is_available,
        ),
        password,
    )


def create_admin(
    db: Session,
    *,
    email: str,
    password: str,
    display_name: str,
    can_manage_users: bool = False,
    can_manage_system: bool = False,
    can_view_reports: bool = False,
    can_manage_departments: bool = False,
) -> Admin:
    return _create_identity(
        db,
        Admin(
            email=email,
            display_name=display_name,
            can_manage_users=can_manage_users,
            can_manage_system=can_manage_system,
            can_view_reports=can_view_reports,
            can_manage_departments=can_manage_departments,
        ),
        password,
    )


def soft_delete_user(db: Session, user_id: UUID, now: datetime | None = None) -> User:
    """
    Flag an identity deleted.

    In the same transaction: every refresh-token family it holds is revoked
    and it is unassigned from tickets that are still live. A customer who
    still owns tickets cannot be removed.
    """
    user = find_by_id(db, user_id)
    if user is None:
        raise NotFoundError("User not found")

    if isinstance(user, Customer):
        owned = db.scalar(select(func.count(Ticket.id)).where(Ticket.customer_id == user.id))
        if owned:
            raise ConflictError("Customer still has tickets")

    now = now or _now_utc()
    user.is_deleted = True
    user.deleted_at = now
    user.is_active = False

    revoked = session_service.revoke_all_for_user(db, user.id, "user_deleted", now=now)

    assigned = db.scalars(
        select(Ticket).where(
            Ticket.assigned_agent_id == user.id,
            Ticket.status.not_in([TicketStatus.CLOSED, TicketStatus.CANCELLED]),
        )
    ).all()
    for ticket in assigned:
        ticket.assigned_agent_id = None

    commit(db)
    logger.info(
        "Soft-deleted user=%s revoked_tokens=%d unassigned_tickets=%d",
        user.id,
        revoked,
        len(assigned),
    )
    return user

"""Session service - access tokens plus rotating, hashed refresh tokens."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

import jwt
from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from helpdesk.core.config import settings
from helpdesk.core.exceptions import UnauthenticatedError
from helpdesk.core.security import (
    create_access_token,
    decode_access_token,
    generate_refresh_token,
    hash_token,
)
from helpdesk.db.models import RefreshToken, User
from helpdesk.db.session import commit, retry_read

logger = logging.getLogger(__name__)

INVALID_SESSION = "Invalid session"
INVALID_REFRESH = "Invalid or expired token"

REUSE_DETECTED = "reuse_detected"


@dataclass(frozen=True)
class IssuedSession:
    access_token: str
    refresh_token: str
    expires_at: datetime
    refresh_expires_at: datetime
    session_id: UUID
    token_type: str = "bearer"


@dataclass(frozen=True)
class AccessClaims:
    user_id: UUID
    role: str
    session_id: UUID
    issued_at: datetime
    expires_at: datetime


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _add_refresh_token(
    db: Session, user_id: UUID, family_id: UUID, now: datetime
) -> tuple[str, RefreshToken]:
    token = generate_refresh_token()
    row = RefreshToken(
        id=uuid4(),
        family_id=family_id,
        user_id=user_id,
        token_hash=hash_token(token),
        issued_at=now,
        expires_at=now + timedelta(days=settings.REFRESH_TOKEN_EXPIRES_DAYS),
    )
    db.add(row)
    return token, row


def _issued(user: User, refresh_token: str, row: RefreshToken, now: datetime) -> IssuedSession:
    access_token, expires_at = create_access_token(user.id, user.role, row.family_id, now=now)
    return IssuedSession(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_at=expires_at,
        refresh_expires_at=row.expires_at,
        session_id=row.family_id,
    )


# =============================================================================
# Issue / login
# =============================================================================

def issue(db: Session, user: User, now: datetime | None = None) -> IssuedSession:
    """Start a new session chain for an authenticated identity."""
    now = now or _now_utc()
    refresh_token, row = _add_refresh_token(db, user.id, uuid4(), now)
    commit(db)
    logger.info("Session issued user=%s family=%s", user.id, row.family_id)
    return _issued(user, refresh_token, row, now)


def login(db: Session, email: str, secret: str, now: datetime | None = None) -> IssuedSession:
    """Authenticate credentials and issue a session."""
    from helpdesk.services import identity_service

    user = identity_service.authenticate_user(db, email, secret, now=now)
    return issue(db, user, now=now)


# =============================================================================
# Validate
# =============================================================================

def validate(token: str) -> AccessClaims:
    """
    Verify an access token.

    Fails closed: bad signature, expiry, wrong issuer/audience and malformed
    claims all raise the same UnauthenticatedError.
    """
    try:
        payload = decode_access_token(token)
        return AccessClaims(
            user_id=UUID(payload["sub"]),
            role=payload["role"],
            session_id=UUID(payload["sid"]),
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )
    except (jwt.PyJWTError, KeyError, TypeError, ValueError) as exc:
        logger.debug("Access token rejected: %s", type(exc).__name__)
        raise UnauthenticatedError(INVALID_SESSION) from exc


@retry_read
def is_family_active(db: Session, family_id: UUID) -> bool:
    """A session chain is live while any of its tokens is unrevoked."""
    row = db.scalar(
        select(RefreshToken.id)
        .where(RefreshToken.family_id == family_id, RefreshToken.revoked_at.is_(None))
        .limit(1)
    )
    return row is not None


# =============================================================================
# Refresh (rotation + reuse detection)
# =============================================================================

def _revoke_family(db: Session, family_id: UUID, reason: str, now: datetime) -> int:
    result = db.execute(
        update(RefreshToken)
        .where(RefreshToken.family_id == family_id, RefreshToken.revoked_at.is_(None))
        .values(revoked_at=now, revoked_reason=reason)
    )
    return result.rowcount


def _handle_reuse(db: Session, row: RefreshToken, now: datetime) -> None:
    family_id, user_id = row.family_id, row.user_id
    db.rollback()
    revoked = _revoke_family(db, family_id, REUSE_DETECTED, now)
    commit(db)
    logger.warning(
        "Refresh token reuse detected user=%s family=%s revoked=%d",
        user_id,
        family_id,
        revoked,
    )


def refresh(db: Session, refresh_token: str, now: datetime | None = None) -> IssuedSession:
    """
    Exchange a refresh token for a new pair.

    The presented token is consumed with a compare-and-set UPDATE and its
    successor inserted in the same transaction. Presenting an already
    rotated token revokes the whole family.
    """
    from helpdesk.services import identity_service

    now = now or _now_utc()
    row = db.scalar(
        select(RefreshToken).where(RefreshToken.token_hash == hash_token(refresh_token))
    )
    if row is None or row.revoked_at is not None:
        raise UnauthenticatedError(INVALID_REFRESH)

    if row.rotated_at is not None:
        _handle_reuse(db, row, now)
        raise UnauthenticatedError(INVALID_REFRESH)

    if row.expires_at <= now:
        raise UnauthenticatedError(INVALID_REFRESH)

    user = identity_service.find_by_id(db, row.user_id)
    if user is None or not user.is_active:
        raise UnauthenticatedError(INVALID_REFRESH)

    new_token, successor = _add_refresh_token(db, user.id, row.family_id, now)
    db.flush()

    consumed = db.execute(
        update(RefreshToken)
        .where(
            RefreshToken.id == row.id,
            RefreshToken.rotated_at.is_(None),
            RefreshToken.revoked_at.is_(None),
        )
        .values(rotated_at=now, replaced_by_id=successor.id)
        .execution_options(synchronize_session=False)
    )
    if consumed.rowcount != 1:
        # Lost the race against a concurrent exchange of the same token
        _handle_reuse(db, row, now)
        raise UnauthenticatedError(INVALID_REFRESH)

    commit(db)
    logger.info("Session refreshed user=%s family=%s", user.id, row.family_id)
    return _issued(user, new_token, successor, now)


# =============================================================================
# Revoke / cleanup
# =============================================================================

def revoke(
    db: Session,
    refresh_token: str,
    now: datetime | None = None,
    *,
    user_id: UUID | None = None,
) -> bool:
    """
    Revoke the token's whole family, regardless of expiry.

    Idempotent. Returns False when the token was never issued, or when
    ``user_id`` is given and does not own it.
    """
    row = db.scalar(
        select(RefreshToken).where(RefreshToken.token_hash == hash_token(refresh_token))
    )
    if row is None:
        return False
    if user_id is not None and row.user_id != user_id:
        logger.warning("Logout with a foreign refresh token user=%s owner=%s", user_id, row.user_id)
        return False
    revoked = _revoke_family(db, row.family_id, "logout", now or _now_utc())
    commit(db)
    if revoked:
        logger.info("Session revoked user=%s family=%s", row.user_id, row.family_id)
    return True


def revoke_family(db: Session, family_id: UUID, reason: str = "logout") -> int:
    """Revoke a session chain by id (logout with only an access token)."""
    revoked = _revoke_family(db, family_id, reason, _now_utc())
    commit(db)
    return revoked


def revoke_all_for_user(
    db: Session, user_id: UUID, reason: str, now: datetime | None = None
) -> int:
    """Revoke every live token of an identity. Caller commits."""
    result = db.execute(
        update(RefreshToken)
        .where(RefreshToken.user_id == user_id, RefreshToken.revoked_at.is_(None))
        .values(revoked_at=now or _now_utc(), revoked_reason=reason)
    )
    return result.rowcount


def cleanup_expired(db: Session, now: datetime | None = None) -> int:
    """Delete expired refresh tokens. Returns count deleted."""
    result = db.execute(
        delete(RefreshToken).where(RefreshToken.expires_at < (now or _now_utc()))
    )
    commit(db)
    count = result.rowcount
    if count:
        logger.info("Cleaned up %d expired refresh tokens", count)
    return count

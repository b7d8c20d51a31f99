"""SessionManager: issue, validate, rotate, revoke."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest
from sqlalchemy import select

from helpdesk.core.config import settings
from helpdesk.core.exceptions import UnauthenticatedError
from helpdesk.core.security import create_access_token, hash_token
from helpdesk.db.models import RefreshToken
from helpdesk.services import session_service

from conftest import PASSWORD


def test_login_issues_token_pair(db, customer):
    issued = session_service.login(db, "customer@example.com", PASSWORD)

    claims = session_service.validate(issued.access_token)
    assert claims.user_id == customer.id
    assert claims.role == "customer"
    assert claims.session_id == issued.session_id
    assert issued.token_type == "bearer"
    assert issued.refresh_expires_at > issued.expires_at


def test_refresh_token_stored_hashed(db, customer):
    issued = session_service.issue(db, customer)
    rows = db.scalars(select(RefreshToken)).all()
    assert len(rows) == 1
    assert rows[0].token_hash == hash_token(issued.refresh_token)
    assert issued.refresh_token not in rows[0].token_hash


def test_access_token_valid_until_expiry(db, customer):
    now = datetime.now(timezone.utc)
    almost, _ = create_access_token(
        customer.id,
        "customer",
        customer.id,
        now=now - timedelta(minutes=settings.ACCESS_TOKEN_EXPIRES_MINUTES) + timedelta(seconds=30),
    )
    assert session_service.validate(almost).user_id == customer.id

    expired, expires_at = create_access_token(
        customer.id,
        "customer",
        customer.id,
        now=now - timedelta(minutes=settings.ACCESS_TOKEN_EXPIRES_MINUTES, seconds=1),
    )
    assert expires_at < now
    with pytest.raises(UnauthenticatedError) as exc:
        session_service.validate(expired)
    assert exc.value.message == "Invalid session"


@pytest.mark.parametrize(
    "claims_override",
    [
        {"iss": "someone-else"},
        {"aud": "another-client"},
    ],
)
def test_validate_rejects_wrong_issuer_or_audience(customer, claims_override):
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(customer.id),
        "role": "customer",
        "sid": str(customer.id),
        "iat": now,
        "exp": now + timedelta(minutes=5),
        "iss": settings.JWT_ISSUER,
        "aud": settings.JWT_AUDIENCE,
        **claims_override,
    }
    token = jwt.encode(payload, settings.JWT_SECRET, algorithm="HS256")
    with pytest.raises(UnauthenticatedError):
        session_service.validate(token)


def test_validate_rejects_tampered_and_garbage(db, customer):
    issued = session_service.issue(db, customer)
    with pytest.raises(UnauthenticatedError):
        session_service.validate(issued.access_token[:-2] + "xx")
    with pytest.raises(UnauthenticatedError):
        session_service.validate("not-a-jwt")


def test_validate_accepts_previous_secret(db, customer, monkeypatch):
    issued = session_service.issue(db, customer)
    monkeypatch.setattr(settings, "JWT_SECRET_PREVIOUS", settings.JWT_SECRET)
    monkeypatch.setattr(settings, "JWT_SECRET", "rotated-secret-key-with-enough-bytes-000")
    assert session_service.validate(issued.access_token).user_id == customer.id


def test_refresh_rotates(db, customer):
    first = session_service.issue(db, customer)
    second = session_service.refresh(db, first.refresh_token)

    assert second.refresh_token != first.refresh_token
    assert second.session_id == first.session_id
    assert session_service.validate(second.access_token).user_id == customer.id

    old = db.scalar(
        select(RefreshToken).where(RefreshToken.token_hash == hash_token(first.refresh_token))
    )
    db.refresh(old)
    assert old.rotated_at is not None
    assert old.replaced_by_id is not None


def test_refresh_reuse_revokes_family(db, customer, caplog):
    first = session_service.issue(db, customer)
    second = session_service.refresh(db, first.refresh_token)

    with caplog.at_level("WARNING"):
        with pytest.raises(UnauthenticatedError) as exc:
            session_service.refresh(db, first.refresh_token)
    assert exc.value.message == "Invalid or expired token"
    assert "reuse detected" in caplog.text

    # The still-valid successor is dead too
    with pytest.raises(UnauthenticatedError):
        session_service.refresh(db, second.refresh_token)
    assert not session_service.is_family_active(db, first.session_id)

    db.expire_all()
    rows = db.scalars(select(RefreshToken).where(RefreshToken.family_id == first.session_id)).all()
    assert {r.revoked_reason for r in rows} == {"reuse_detected"}


def test_reuse_leaves_other_sessions_alone(db, customer):
    phone = session_service.issue(db, customer)
    laptop = session_service.issue(db, customer)
    session_service.refresh(db, phone.refresh_token)

    with pytest.raises(UnauthenticatedError):
        session_service.refresh(db, phone.refresh_token)

    assert session_service.is_family_active(db, laptop.session_id)
    assert session_service.refresh(db, laptop.refresh_token).session_id == laptop.session_id


def test_refresh_rejects_unknown_and_expired(db, customer):
    with pytest.raises(UnauthenticatedError):
        session_service.refresh(db, "never-issued")

    past = datetime.now(timezone.utc) - timedelta(days=settings.REFRESH_TOKEN_EXPIRES_DAYS + 1)
    stale = session_service.issue(db, customer, now=past)
    with pytest.raises(UnauthenticatedError) as exc:
        session_service.refresh(db, stale.refresh_token)
    assert exc.value.message == "Invalid or expired token"


def test_refresh_rejects_deactivated_identity(db, customer):
    issued = session_service.issue(db, customer)
    customer.is_active = False
    db.commit()
    with pytest.raises(UnauthenticatedError):
        session_service.refresh(db, issued.refresh_token)


def test_revoke_is_idempotent(db, customer):
    issued = session_service.issue(db, customer)

    assert session_service.revoke(db, issued.refresh_token) is True
    assert session_service.revoke(db, issued.refresh_token) is True
    assert session_service.revoke(db, "never-issued") is False

    assert not session_service.is_family_active(db, issued.session_id)
    with pytest.raises(UnauthenticatedError):
        session_service.refresh(db, issued.refresh_token)


def test_revoke_checks_owner(db, customer, other_customer):
    issued = session_service.issue(db, customer)

    assert session_service.revoke(db, issued.refresh_token, user_id=other_customer.id) is False
    assert session_service.is_family_active(db, issued.session_id)

    assert session_service.revoke(db, issued.refresh_token, user_id=customer.id) is True
    assert not session_service.is_family_active(db, issued.session_id)


def test_revoke_ignores_expiry(db, customer):
    past = datetime.now(timezone.utc) - timedelta(days=settings.REFRESH_TOKEN_EXPIRES_DAYS + 1)
    stale = session_service.issue(db, customer, now=past)
    assert session_service.revoke(db, stale.refresh_token) is True
    assert not session_service.is_family_active(db, stale.session_id)


def test_cleanup_expired(db, customer):
    past = datetime.now(timezone.utc) - timedelta(days=settings.REFRESH_TOKEN_EXPIRES_DAYS + 1)
    session_service.issue(db, customer, now=past)
    live = session_service.issue(db, customer)

    assert session_service.cleanup_expired(db) == 1
    assert session_service.is_family_active(db, live.session_id)

"""Authentication endpoints: register, login, refresh, logout, me."""

import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from helpdesk.core.deps import get_current_actor, get_db
from helpdesk.core.exceptions import UnauthenticatedError
from helpdesk.core.rate_limit import auth_limit, limiter
from helpdesk.schemas.auth import (
    LoginRequest,
    LogoutRequest,
    MeResponse,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
)
from helpdesk.services import identity_service, session_service
from helpdesk.services.authorization_service import ActorContext

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


def _token_response(issued: session_service.IssuedSession) -> TokenResponse:
    return TokenResponse(
        access_token=issued.access_token,
        refresh_token=issued.refresh_token,
        token_type=issued.token_type,
        expires_at=issued.expires_at,
        refresh_expires_at=issued.refresh_expires_at,
    )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(auth_limit)
def register(request: Request, body: RegisterRequest, db: Session = Depends(get_db)):
    """Create a customer identity and sign it in."""
    user = identity_service.register_customer(
        db,
        email=body.email,
        password=body.password,
        display_name=body.display_name,
        organization_department=body.organization_department,
    )
    return _token_response(session_service.issue(db, user))


@router.post("/login", response_model=TokenResponse)
@limiter.limit(auth_limit)
def login(request: Request, body: LoginRequest, db: Session = Depends(get_db)):
    """
    Exchange credentials for an access + refresh token pair.

    Unknown email, wrong password and disabled account are indistinguishable.
    """
    return _token_response(session_service.login(db, body.email, body.password))


@router.post("/refresh", response_model=TokenResponse)
@limiter.limit(auth_limit)
def refresh(request: Request, body: RefreshRequest, db: Session = Depends(get_db)):
    """Rotate a refresh token. Replaying a used token revokes the whole session."""
    return _token_response(session_service.refresh(db, body.refresh_token))


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(
    body: LogoutRequest,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> None:
    """Revoke the session chain (idempotent)."""
    if body.refresh_token:
        session_service.revoke(db, body.refresh_token, user_id=actor.user_id)
    elif actor.session_id is not None:
        session_service.revoke_family(db, actor.session_id)
    else:
        raise UnauthenticatedError()


@router.get("/me", response_model=MeResponse)
def me(actor: ActorContext = Depends(get_current_actor), db: Session = Depends(get_db)):
    """Current identity and its derived capabilities."""
    user = identity_service.find_by_id(db, actor.user_id)
    if user is None:
        raise UnauthenticatedError()
    return MeResponse(
        user_id=user.id,
        email=user.email,
        display_name=user.display_name,
        role=actor.role,
        capabilities=sorted(c.value for c in actor.capabilities),
        department_id=actor.department_id,
        last_login_at=user.last_login_at,
    )

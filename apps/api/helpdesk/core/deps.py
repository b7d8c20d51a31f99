"""FastAPI dependencies for authentication, authorization, and database access."""

from typing import Generator

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from helpdesk.core.exceptions import UnauthenticatedError
from helpdesk.core.policies import Action
from helpdesk.db.session import SessionLocal

bearer_scheme = HTTPBearer(auto_error=False)


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_access_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    """Bearer token from the Authorization header."""
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise UnauthenticatedError()
    return credentials.credentials


def get_current_actor(
    request: Request,
    token: str = Depends(get_access_token),
    db: Session = Depends(get_db),
):
    """
    Resolve the caller behind the access token.

    Validates:
    - JWT signature, expiry, issuer and audience
    - The session chain (refresh-token family) is still live
    - User exists, is not deleted and is active

    Raises:
        UnauthenticatedError: Authentication failed (401)
    """
    # Import here to avoid circular imports
    from helpdesk.services.authorization_service import load_actor

    actor = load_actor(db, token)
    request.state.actor_id = str(actor.user_id)
    request.state.role = actor.role.value
    return actor


def require_action(action: Action):
    """
    Dependency factory for non-ticket actions (administration).

    Usage:
        @router.post("/departments", dependencies=[Depends(require_action(Action.MANAGE_DEPARTMENTS))])
    """

    def dependency(actor=Depends(get_current_actor)):
        from helpdesk.services.authorization_service import require

        require(actor, action)
        return actor

    return dependency

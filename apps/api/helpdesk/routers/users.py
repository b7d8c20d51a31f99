"""User administration APIs (manage-users capability)."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from helpdesk.core.deps import get_db, require_action
from helpdesk.core.policies import Action
from helpdesk.db.enums import UserRole
from helpdesk.schemas.user import UserCreate, UserRead, UserStatusChange, UserUpdate
from helpdesk.services import user_service
from helpdesk.services.authorization_service import ActorContext

router = APIRouter(prefix="/users", tags=["Users"])

manage_users = require_action(Action.MANAGE_USERS)


@router.get("", response_model=list[UserRead])
def list_users(
    role: UserRole | None = Query(default=None),
    actor: ActorContext = Depends(manage_users),
    db: Session = Depends(get_db),
):
    return user_service.list_users(db, actor, role)


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(
    body: UserCreate,
    actor: ActorContext = Depends(manage_users),
    db: Session = Depends(get_db),
):
    return user_service.create_user(db, actor, **body.model_dump())


@router.get("/{user_id}", response_model=UserRead)
def get_user(
    user_id: UUID,
    actor: ActorContext = Depends(manage_users),
    db: Session = Depends(get_db),
):
    return user_service.get_user(db, actor, user_id)


@router.patch("/{user_id}", response_model=UserRead)
def update_user(
    user_id: UUID,
    body: UserUpdate,
    actor: ActorContext = Depends(manage_users),
    db: Session = Depends(get_db),
):
    return user_service.update_user(db, actor, user_id, **body.model_dump(exclude_unset=True))


@router.patch("/{user_id}/status", response_model=UserRead)
def change_status(
    user_id: UUID,
    body: UserStatusChange,
    actor: ActorContext = Depends(manage_users),
    db: Session = Depends(get_db),
):
    """Activate or deactivate. Deactivation ends every session of the user."""
    return user_service.set_active(db, actor, user_id, body.is_active)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: UUID,
    actor: ActorContext = Depends(manage_users),
    db: Session = Depends(get_db),
) -> None:
    user_service.delete_user(db, actor, user_id)

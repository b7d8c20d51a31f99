"""Department management."""

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from helpdesk.core.exceptions import ConflictError, NotFoundError, ValidationFailedError
from helpdesk.core.policies import Action
from helpdesk.db.models import Department, Ticket
from helpdesk.db.session import commit, include_deleted, retry_read
from helpdesk.services.authorization_service import ActorContext, require

logger = logging.getLogger(__name__)


@retry_read
def get_department(db: Session, department_id: UUID) -> Department | None:
    return db.scalar(select(Department).where(Department.id == department_id))


@retry_read
def list_departments(db: Session, *, include_inactive: bool = False) -> list[Department]:
    stmt = select(Department).order_by(Department.name)
    if not include_inactive:
        stmt = stmt.where(Department.is_active.is_(True))
    return list(db.scalars(stmt).all())


def create_department(
    db: Session,
    actor: ActorContext | None,
    *,
    name: str,
    description: str | None = None,
    color: str | None = None,
    sla_hours: float | None = None,
) -> Department:
    """Create a department. ``actor=None`` is reserved for the admin CLI."""
    if actor is not None:
        require(actor, Action.MANAGE_DEPARTMENTS)
    name = (name or "").strip()
    if not name:
        raise ValidationFailedError("Department name is required")
    if sla_hours is not None and sla_hours <= 0:
        raise ValidationFailedError("sla_hours must be positive")

    # Names stay reserved after soft delete (unique index)
    existing = db.scalar(
        include_deleted(select(Department.id).where(func.lower(Department.name) == name.lower()))
    )
    if existing is not None:
        raise ConflictError("Department name already exists")

    department = Department(name=name, description=description, color=color, sla_hours=sla_hours)
    db.add(department)
    commit(db)
    db.refresh(department)
    logger.info("Department created department=%s", department.id)
    return department


def delete_department(db: Session, actor: ActorContext, department_id: UUID) -> None:
    """Soft delete; refused while live tickets still reference the department."""
    require(actor, Action.MANAGE_DEPARTMENTS)
    department = get_department(db, department_id)
    if department is None:
        raise NotFoundError("Department not found")

    live_tickets = db.scalar(
        select(func.count(Ticket.id)).where(Ticket.department_id == department.id)
    )
    if live_tickets:
        raise ConflictError("Department still has tickets")

    department.is_deleted = True
    department.deleted_at = datetime.now(timezone.utc)
    department.is_active = False
    commit(db)
    logger.info("Department deleted department=%s", department.id)

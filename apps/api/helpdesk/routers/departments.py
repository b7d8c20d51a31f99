"""Department APIs."""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from helpdesk.core.deps import get_current_actor, get_db, require_action
from helpdesk.core.policies import Action
from helpdesk.schemas.department import DepartmentCreate, DepartmentRead
from helpdesk.services import department_service
from helpdesk.services.authorization_service import ActorContext

router = APIRouter(prefix="/departments", tags=["Departments"])


@router.get("", response_model=list[DepartmentRead], dependencies=[Depends(get_current_actor)])
def list_departments(db: Session = Depends(get_db)):
    return department_service.list_departments(db)


@router.post("", response_model=DepartmentRead, status_code=status.HTTP_201_CREATED)
def create_department(
    body: DepartmentCreate,
    actor: ActorContext = Depends(require_action(Action.MANAGE_DEPARTMENTS)),
    db: Session = Depends(get_db),
):
    return department_service.create_department(
        db,
        actor,
        name=body.name,
        description=body.description,
        color=body.color,
        sla_hours=body.sla_hours,
    )


@router.delete("/{department_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_department(
    department_id: UUID,
    actor: ActorContext = Depends(require_action(Action.MANAGE_DEPARTMENTS)),
    db: Session = Depends(get_db),
) -> None:
    department_service.delete_department(db, actor, department_id)

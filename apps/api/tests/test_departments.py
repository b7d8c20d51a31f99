"""Department management."""

import pytest

from helpdesk.core.exceptions import ConflictError, ForbiddenError, ValidationFailedError
from helpdesk.services import department_service, identity_service

from conftest import PASSWORD, actor_for


def test_create_requires_manage_departments(db, admin, agent):
    created = department_service.create_department(
        db, actor_for(admin), name="Facilities", sla_hours=72
    )
    assert created.sla_hours == 72
    assert created.is_active

    with pytest.raises(ForbiddenError):
        department_service.create_department(db, actor_for(agent), name="Security")

    reports_only = identity_service.create_admin(
        db,
        email="reports@example.com",
        password=PASSWORD,
        display_name="Reports",
        can_view_reports=True,
    )
    with pytest.raises(ForbiddenError):
        department_service.create_department(db, actor_for(reports_only), name="Security")


def test_names_unique_case_insensitive(db, department):
    with pytest.raises(ConflictError):
        department_service.create_department(db, None, name="it support")


@pytest.mark.parametrize("params", [{"name": "  "}, {"name": "Legal", "sla_hours": 0}])
def test_create_validates(db, params):
    with pytest.raises(ValidationFailedError):
        department_service.create_department(db, None, **params)


def test_list_hides_inactive_and_deleted(db, admin, department, other_department):
    other_department.is_active = False
    db.commit()
    names = [d.name for d in department_service.list_departments(db)]
    assert names == ["IT Support"]

    with_inactive = department_service.list_departments(db, include_inactive=True)
    assert [d.name for d in with_inactive] == ["Billing", "IT Support"]


def test_delete_refused_while_tickets_exist(db, admin, department, make_ticket):
    make_ticket()
    with pytest.raises(ConflictError):
        department_service.delete_department(db, actor_for(admin), department.id)


def test_delete_keeps_name_reserved(db, admin, other_department):
    department_service.delete_department(db, actor_for(admin), other_department.id)
    assert department_service.get_department(db, other_department.id) is None

    with pytest.raises(ConflictError):
        department_service.create_department(db, None, name="Billing")

"""Admin CLI commands."""

from click.testing import CliRunner

from helpdesk.cli import cli
from helpdesk.services import department_service, identity_service

from conftest import PASSWORD


def test_create_department_and_agent(db):
    runner = CliRunner()
    result = runner.invoke(cli, ["create-department", "--name", "Network", "--sla-hours", "12"])
    assert result.exit_code == 0, result.output
    assert "Created department: Network" in result.output

    department = department_service.list_departments(db)[0]
    result = runner.invoke(
        cli,
        [
            "create-agent",
            "--email", "noc@example.com",
            "--name", "NOC Agent",
            "--department-id", str(department.id),
            "--password", PASSWORD,
        ],
    )
    assert result.exit_code == 0, result.output
    assert identity_service.find_by_email(db, "noc@example.com").department_id == department.id


def test_create_admin_duplicate_exits_nonzero(db, admin):
    result = CliRunner().invoke(
        cli,
        ["create-admin", "--email", "admin@example.com", "--name", "Dup", "--password", PASSWORD],
    )
    assert result.exit_code == 1
    assert "Email already registered" in result.output


def test_cleanup_sessions(db):
    result = CliRunner().invoke(cli, ["cleanup-sessions"])
    assert result.exit_code == 0
    assert "Deleted 0 expired refresh tokens" in result.output

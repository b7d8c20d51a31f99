"""CLI tools for helpdesk administration."""

import sys
from uuid import UUID

import click

from helpdesk.core.exceptions import HelpdeskError
from helpdesk.db.session import SessionLocal
from helpdesk.services import department_service, identity_service, session_service


@click.group()
def cli():
    """Helpdesk CLI tools."""
    pass


@cli.command()
@click.option("--email", required=True, help="Admin email address")
@click.option("--name", "display_name", required=True, help="Display name")
@click.password_option(help="Initial password")
@click.option("--all-flags/--no-flags", default=True, help="Grant every administrative flag")
def create_admin(email: str, display_name: str, password: str, all_flags: bool):
    """
    Create an admin identity.

    This is the bootstrap command for a fresh database.

    Example:
        python -m helpdesk.cli create-admin --email admin@example.com --name "Admin"
    """
    db = SessionLocal()
    try:
        admin = identity_service.create_admin(
            db,
            email=email,
            password=password,
            display_name=display_name,
            can_manage_users=all_flags,
            can_manage_system=all_flags,
            can_view_reports=all_flags,
            can_manage_departments=all_flags,
        )
        click.echo(f"✓ Created admin: {admin.email}")
        click.echo(f"  ID: {admin.id}")
    except HelpdeskError as e:
        click.echo(f"❌ Error: {e.message}")
        sys.exit(1)
    finally:
        db.close()


@cli.command()
@click.option("--email", required=True, help="Agent email address")
@click.option("--name", "display_name", required=True, help="Display name")
@click.option("--department-id", type=click.UUID, default=None, help="Department ID")
@click.option("--level", type=int, default=1, show_default=True, help="Seniority level")
@click.option("--specialization", default=None, help="Area of expertise")
@click.password_option(help="Initial password")
def create_agent(
    email: str,
    display_name: str,
    department_id: UUID | None,
    level: int,
    specialization: str | None,
    password: str,
):
    """Create a support agent."""
    db = SessionLocal()
    try:
        agent = identity_service.create_agent(
            db,
            email=email,
            password=password,
            display_name=display_name,
            department_id=department_id,
            level=level,
            specialization=specialization,
        )
        click.echo(f"✓ Created agent: {agent.email}")
        click.echo(f"  ID: {agent.id}")
    except HelpdeskError as e:
        click.echo(f"❌ Error: {e.message}")
        sys.exit(1)
    finally:
        db.close()


@cli.command()
@click.option("--name", required=True, help="Department name")
@click.option("--description", default=None, help="Description")
@click.option("--sla-hours", type=float, default=None, help="Baseline SLA override (hours)")
def create_department(name: str, description: str | None, sla_hours: float | None):
    """Create a department."""
    db = SessionLocal()
    try:
        department = department_service.create_department(
            db, None, name=name, description=description, sla_hours=sla_hours
        )
        click.echo(f"✓ Created department: {department.name}")
        click.echo(f"  ID: {department.id}")
    except HelpdeskError as e:
        click.echo(f"❌ Error: {e.message}")
        sys.exit(1)
    finally:
        db.close()


@cli.command()
def cleanup_sessions():
    """Delete expired refresh tokens."""
    db = SessionLocal()
    try:
        count = session_service.cleanup_expired(db)
        click.echo(f"✓ Deleted {count} expired refresh tokens")
    finally:
        db.close()


if __name__ == "__main__":
    cli()

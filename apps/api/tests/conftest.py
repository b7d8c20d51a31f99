"""
Test configuration and fixtures.

Provides:
- A throwaway SQLite database, schema rebuilt for each test
- Identity fixtures for every variant (customer, agents, admin)
- Access/refresh token minting for authenticated tests
- HTTPX AsyncClient bound to the app with the test session
"""
import os
import tempfile
from dataclasses import dataclass
from typing import AsyncGenerator, Callable, Generator

# Settings are read at import time; configure before importing the app
_TEST_DB_DIR = tempfile.mkdtemp(prefix="helpdesk-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_DB_DIR}/helpdesk.db"
os.environ["TESTING"] = "1"
os.environ["ENV"] = "test"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["JWT_SECRET"] = "test-secret-key-with-enough-bytes-for-hs256"
os.environ["JWT_SECRET_PREVIOUS"] = ""
os.environ["GEMINI_API_KEY"] = ""
os.environ["SENTRY_DSN"] = ""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from helpdesk.core.deps import get_db
from helpdesk.db.base import Base
from helpdesk.db.enums import TicketPriority
from helpdesk.db.models import Admin, Agent, Customer, Department, Ticket, User
from helpdesk.db.session import SessionLocal, engine
from helpdesk.main import app
from helpdesk.services import (
    department_service,
    identity_service,
    session_service,
    ticketing_service,
)
from helpdesk.services.authorization_service import ActorContext

PASSWORD = "correct-horse-battery"


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Fresh schema per test.

    Services commit (and roll back on conflicts), so isolation comes from
    rebuilding the tables rather than an outer transaction.
    """
    Base.metadata.create_all(engine)
    session = SessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def department(db: Session) -> Department:
    return department_service.create_department(db, None, name="IT Support")


@pytest.fixture(scope="function")
def other_department(db: Session) -> Department:
    return department_service.create_department(db, None, name="Billing", sla_hours=24)


# =============================================================================
# Identity Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def customer(db: Session) -> Customer:
    return identity_service.register_customer(
        db, email="Customer@Example.com", password=PASSWORD, display_name="Casey Customer"
    )


@pytest.fixture(scope="function")
def other_customer(db: Session) -> Customer:
    return identity_service.register_customer(
        db, email="other@example.com", password=PASSWORD, display_name="Other Customer"
    )


@pytest.fixture(scope="function")
def agent(db: Session, department: Department) -> Agent:
    return identity_service.create_agent(
        db,
        email="agent@example.com",
        password=PASSWORD,
        display_name="Avery Agent",
        department_id=department.id,
    )


@pytest.fixture(scope="function")
def second_agent(db: Session, department: Department) -> Agent:
    return identity_service.create_agent(
        db,
        email="agent2@example.com",
        password=PASSWORD,
        display_name="Blake Agent",
        department_id=department.id,
    )


@pytest.fixture(scope="function")
def outside_agent(db: Session, other_department: Department) -> Agent:
    return identity_service.create_agent(
        db,
        email="billing-agent@example.com",
        password=PASSWORD,
        display_name="Billing Agent",
        department_id=other_department.id,
    )


@pytest.fixture(scope="function")
def senior_agent(db: Session, department: Department) -> Agent:
    return identity_service.create_agent(
        db,
        email="senior@example.com",
        password=PASSWORD,
        display_name="Senior Agent",
        department_id=department.id,
        level=3,
    )


@pytest.fixture(scope="function")
def admin(db: Session) -> Admin:
    return identity_service.create_admin(
        db,
        email="admin@example.com",
        password=PASSWORD,
        display_name="Ada Admin",
        can_manage_users=True,
        can_manage_system=True,
        can_view_reports=True,
        can_manage_departments=True,
    )


def actor_for(user: User) -> ActorContext:
    return ActorContext.from_user(user)


@pytest.fixture(scope="function")
def make_ticket(db: Session, customer: Customer, department: Department) -> Callable[..., Ticket]:
    """Factory: open a ticket as the customer fixture."""

    def _make(**overrides) -> Ticket:
        params = {
            "subject": "VPN keeps disconnecting",
            "description": "Since this morning the VPN drops every few minutes.",
            "department_id": department.id,
            "priority": TicketPriority.NORMAL,
        }
        params.update(overrides)
        return ticketing_service.create_ticket(db, actor_for(customer), **params)

    return _make


# =============================================================================
# Auth Fixtures
# =============================================================================

@dataclass
class TestAuth:
    """Test authentication context."""
    user: User
    access_token: str
    refresh_token: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}


@pytest.fixture(scope="function")
def auth_for(db: Session) -> Callable[[User], TestAuth]:
    """Factory: issue a real session for any identity."""

    def _auth(user: User) -> TestAuth:
        issued = session_service.issue(db, user)
        return TestAuth(
            user=user,
            access_token=issued.access_token,
            refresh_token=issued.refresh_token,
        )

    return _auth


@pytest.fixture(scope="function")
def test_auth(auth_for, customer: Customer) -> TestAuth:
    return auth_for(customer)


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """
    Create unauthenticated AsyncClient for testing public endpoints.
    """
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def authed_client(
    db: Session,
    test_auth: TestAuth
) -> AsyncGenerator[AsyncClient, None]:
    """
    Create AsyncClient authenticated as the customer fixture (Bearer token).
    """
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers=test_auth.headers,
    ) as c:
        yield c

    app.dependency_overrides.clear()

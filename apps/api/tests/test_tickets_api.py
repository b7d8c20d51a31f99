"""Ticket, department and suggestion endpoints over HTTP."""

import pytest
from httpx import AsyncClient


@pytest.fixture
def ticket(make_ticket):
    return make_ticket()


@pytest.mark.asyncio
async def test_create_and_read_ticket(authed_client: AsyncClient, department, customer):
    response = await authed_client.post(
        "/tickets",
        json={
            "subject": "Outlook crashes",
            "description": "Outlook closes when opening attachments.",
            "department_id": str(department.id),
            "priority": "high",
        },
    )
    assert response.status_code == 201
    data = response.json()
    assert data["number"] == "TCK-000001"
    assert data["status"] == "open"
    assert data["customer_id"] == str(customer.id)
    assert data["sla_hours"] == 24.0
    assert data["is_overdue"] is False
    assert data["message_count"] == 0

    fetched = await authed_client.get(f"/tickets/{data['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["subject"] == "Outlook crashes"


@pytest.mark.asyncio
async def test_foreign_ticket_hides_reason(
    client: AsyncClient, auth_for, other_customer, ticket
):
    other = auth_for(other_customer)
    response = await client.get(f"/tickets/{ticket.id}", headers=other.headers)
    assert response.status_code == 403
    assert response.json() == {"detail": "Not allowed", "kind": "forbidden"}


@pytest.mark.asyncio
async def test_unknown_ticket_and_unauthenticated(authed_client: AsyncClient, client, ticket):
    missing = await authed_client.get("/tickets/00000000-0000-0000-0000-000000000000")
    assert missing.status_code == 404

    anonymous = await client.get(f"/tickets/{ticket.id}")
    assert anonymous.status_code == 401


@pytest.mark.asyncio
async def test_ticket_flow_over_http(
    client: AsyncClient, auth_for, admin, agent, customer, ticket
):
    admin_auth, agent_auth, customer_auth = auth_for(admin), auth_for(agent), auth_for(customer)
    base = f"/tickets/{ticket.id}"

    assigned = await client.post(
        f"{base}/assign", json={"agent_id": str(agent.id)}, headers=admin_auth.headers
    )
    assert assigned.status_code == 200
    assert assigned.json()["status"] == "in_progress"

    reply = await client.post(
        f"{base}/messages", json={"content": "Try safe mode"}, headers=agent_auth.headers
    )
    assert reply.status_code == 201
    assert reply.json()["type"] == "agent"

    note = await client.post(
        f"{base}/messages",
        json={"content": "Known add-in bug", "is_internal": True},
        headers=agent_auth.headers,
    )
    assert note.json()["type"] == "internal_note"

    resolved = await client.post(
        f"{base}/status", json={"status": "resolved"}, headers=agent_auth.headers
    )
    assert resolved.status_code == 200
    assert resolved.json()["first_response_time_hours"] is not None

    customer_reply = await client.post(
        f"{base}/messages", json={"content": "Still crashing"}, headers=customer_auth.headers
    )
    assert customer_reply.status_code == 201

    current = (await client.get(base, headers=customer_auth.headers)).json()
    assert current["status"] == "waiting_agent"
    assert current["resolved_at"] is None
    assert current["message_count"] == 2

    visible = await client.get(f"{base}/messages", headers=customer_auth.headers)
    assert [m["content"] for m in visible.json()] == ["Try safe mode", "Still crashing"]
    staff_view = await client.get(f"{base}/messages", headers=agent_auth.headers)
    assert len(staff_view.json()) == 3


@pytest.mark.asyncio
async def test_customer_internal_note_forbidden(authed_client: AsyncClient, ticket):
    response = await authed_client.post(
        f"/tickets/{ticket.id}/messages", json={"content": "psst", "is_internal": True}
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_invalid_transition_is_conflict(client: AsyncClient, auth_for, admin, ticket):
    response = await client.post(
        f"/tickets/{ticket.id}/status", json={"status": "closed"}, headers=auth_for(admin).headers
    )
    assert response.status_code == 409
    assert response.json()["kind"] == "invalid_transition"


@pytest.mark.asyncio
async def test_customer_priority_change_forbidden(authed_client: AsyncClient, ticket):
    response = await authed_client.patch(f"/tickets/{ticket.id}", json={"priority": "urgent"})
    assert response.status_code == 403

    renamed = await authed_client.patch(f"/tickets/{ticket.id}", json={"subject": "VPN flaps"})
    assert renamed.status_code == 200
    assert renamed.json()["subject"] == "VPN flaps"


@pytest.mark.asyncio
async def test_edit_own_message(authed_client: AsyncClient, ticket):
    posted = await authed_client.post(
        f"/tickets/{ticket.id}/messages", json={"content": "Typo hre"}
    )
    message_id = posted.json()["id"]

    edited = await authed_client.patch(f"/messages/{message_id}", json={"content": "Typo here"})
    assert edited.status_code == 200
    assert edited.json()["content"] == "Typo here"
    assert edited.json()["edited_at"] is not None


@pytest.mark.asyncio
async def test_rate_resolved_ticket(
    client: AsyncClient, auth_for, admin, agent, customer, ticket
):
    base = f"/tickets/{ticket.id}"
    admin_headers = auth_for(admin).headers
    customer_headers = auth_for(customer).headers

    early = await client.post(f"{base}/rating", json={"rating": 5}, headers=customer_headers)
    assert early.status_code == 422

    await client.post(
        f"{base}/status",
        json={"status": "in_progress", "assignee_id": str(agent.id)},
        headers=admin_headers,
    )
    await client.post(f"{base}/status", json={"status": "resolved"}, headers=admin_headers)
    closed = await client.post(f"{base}/status", json={"status": "closed"}, headers=customer_headers)
    assert closed.json()["status"] == "closed"

    rated = await client.post(
        f"{base}/rating", json={"rating": 5, "feedback": "Great"}, headers=customer_headers
    )
    assert rated.status_code == 200
    assert rated.json()["customer_rating"] == 5


@pytest.mark.asyncio
async def test_departments_api(client: AsyncClient, auth_for, admin, agent, department):
    listed = await client.get("/departments", headers=auth_for(agent).headers)
    assert [d["name"] for d in listed.json()] == ["IT Support"]
    assert (await client.get("/departments")).status_code == 401

    denied = await client.post(
        "/departments", json={"name": "Security"}, headers=auth_for(agent).headers
    )
    assert denied.status_code == 403

    created = await client.post(
        "/departments",
        json={"name": "Security", "color": "#112233", "sla_hours": 8},
        headers=auth_for(admin).headers,
    )
    assert created.status_code == 201
    department_id = created.json()["id"]

    removed = await client.delete(
        f"/departments/{department_id}", headers=auth_for(admin).headers
    )
    assert removed.status_code == 204


@pytest.mark.asyncio
async def test_ai_suggest_heuristic(authed_client: AsyncClient, department):
    response = await authed_client.post(
        "/ai/suggest",
        json={"title": "VPN outage", "description": "Nobody can connect to the VPN"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["source"] == "heuristic"
    assert data["department_id"] == str(department.id)
    assert data["priority_hint"] == "urgent"
    assert data["suggestions"]

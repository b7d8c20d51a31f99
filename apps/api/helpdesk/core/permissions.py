"""Capability registry and role-based derivation.

Capabilities are never stored: they are computed from the identity variant
(role, admin flags, agent level) every time an actor is loaded.

Admin flags gate administrative capabilities one by one; being an Admin is
not enough on its own.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from helpdesk.core.config import settings
from helpdesk.db.enums import UserRole

if TYPE_CHECKING:
    from helpdesk.db.models import User


class Capability(str, Enum):
    """Named permissions checked by the authorization guard."""

    VIEW_TICKETS = "view_tickets"
    CREATE_TICKETS = "create_tickets"
    CREATE_ON_BEHALF = "create_tickets_on_behalf"
    EDIT_TICKETS = "edit_tickets"
    DELETE_TICKETS = "delete_tickets"
    ASSIGN_TICKETS = "assign_tickets"
    CHANGE_STATUS = "change_ticket_status"
    CANCEL_TICKETS = "cancel_tickets"
    POST_MESSAGES = "post_messages"
    POST_INTERNAL_NOTES = "post_internal_notes"
    VIEW_INTERNAL_NOTES = "view_internal_notes"
    RATE_TICKETS = "rate_tickets"
    ACCESS_ALL_TICKETS = "access_all_tickets"

    # Administrative (one per Admin flag)
    MANAGE_USERS = "manage_users"
    MANAGE_SYSTEM = "manage_system"
    VIEW_REPORTS = "view_reports"
    MANAGE_DEPARTMENTS = "manage_departments"


@dataclass(frozen=True)
class CapabilityDef:
    """Capability metadata for UI and docs."""
    key: Capability
    label: str
    description: str
    administrative: bool = False


CAPABILITY_REGISTRY: dict[Capability, CapabilityDef] = {
    Capability.VIEW_TICKETS: CapabilityDef(
        Capability.VIEW_TICKETS, "View Tickets", "Read ticket details and public messages"
    ),
    Capability.CREATE_TICKETS: CapabilityDef(
        Capability.CREATE_TICKETS, "Create Tickets", "Open tickets as the requesting customer"
    ),
    Capability.CREATE_ON_BEHALF: CapabilityDef(
        Capability.CREATE_ON_BEHALF, "Create On Behalf",
        "Open tickets on behalf of another customer"
    ),
    Capability.EDIT_TICKETS: CapabilityDef(
        Capability.EDIT_TICKETS, "Edit Tickets", "Change subject, description and priority"
    ),
    Capability.DELETE_TICKETS: CapabilityDef(
        Capability.DELETE_TICKETS, "Delete Tickets", "Soft-delete tickets"
    ),
    Capability.ASSIGN_TICKETS: CapabilityDef(
        Capability.ASSIGN_TICKETS, "Assign Tickets", "Assign tickets to agents"
    ),
    Capability.CHANGE_STATUS: CapabilityDef(
        Capability.CHANGE_STATUS, "Change Status", "Move tickets through the lifecycle"
    ),
    Capability.CANCEL_TICKETS: CapabilityDef(
        Capability.CANCEL_TICKETS, "Cancel Tickets", "Move tickets to Cancelled"
    ),
    Capability.POST_MESSAGES: CapabilityDef(
        Capability.POST_MESSAGES, "Post Messages", "Reply on tickets"
    ),
    Capability.POST_INTERNAL_NOTES: CapabilityDef(
        Capability.POST_INTERNAL_NOTES, "Post Internal Notes", "Add staff-only notes"
    ),
    Capability.VIEW_INTERNAL_NOTES: CapabilityDef(
        Capability.VIEW_INTERNAL_NOTES, "View Internal Notes", "Read staff-only notes"
    ),
    Capability.RATE_TICKETS: CapabilityDef(
        Capability.RATE_TICKETS, "Rate Tickets", "Rate the support received"
    ),
    Capability.ACCESS_ALL_TICKETS: CapabilityDef(
        Capability.ACCESS_ALL_TICKETS, "Access All Tickets",
        "Bypass department and ownership scoping"
    ),
    Capability.MANAGE_USERS: CapabilityDef(
        Capability.MANAGE_USERS, "Manage Users", "Create and remove identities",
        administrative=True,
    ),
    Capability.MANAGE_SYSTEM: CapabilityDef(
        Capability.MANAGE_SYSTEM, "Manage System", "Change system settings",
        administrative=True,
    ),
    Capability.VIEW_REPORTS: CapabilityDef(
        Capability.VIEW_REPORTS, "View Reports", "Access SLA and volume reports",
        administrative=True,
    ),
    Capability.MANAGE_DEPARTMENTS: CapabilityDef(
        Capability.MANAGE_DEPARTMENTS, "Manage Departments", "Create and remove departments",
        administrative=True,
    ),
}


ADMINISTRATIVE_CAPABILITIES: frozenset[Capability] = frozenset(
    key for key, definition in CAPABILITY_REGISTRY.items() if definition.administrative
)


# =============================================================================
# Role Defaults
# =============================================================================

CUSTOMER_CAPABILITIES: frozenset[Capability] = frozenset({
    Capability.VIEW_TICKETS,
    Capability.CREATE_TICKETS,
    Capability.EDIT_TICKETS,
    Capability.CHANGE_STATUS,
    Capability.POST_MESSAGES,
    Capability.RATE_TICKETS,
})

AGENT_CAPABILITIES: frozenset[Capability] = frozenset({
    Capability.VIEW_TICKETS,
    Capability.EDIT_TICKETS,
    Capability.ASSIGN_TICKETS,
    Capability.CHANGE_STATUS,
    Capability.CANCEL_TICKETS,
    Capability.POST_MESSAGES,
    Capability.POST_INTERNAL_NOTES,
    Capability.VIEW_INTERNAL_NOTES,
})

ADMIN_TICKET_CAPABILITIES: frozenset[Capability] = AGENT_CAPABILITIES | frozenset({
    Capability.CREATE_ON_BEHALF,
    Capability.DELETE_TICKETS,
    Capability.ACCESS_ALL_TICKETS,
})


def derive_capabilities(
    role: UserRole,
    *,
    agent_level: int | None = None,
    can_manage_users: bool = False,
    can_manage_system: bool = False,
    can_view_reports: bool = False,
    can_manage_departments: bool = False,
) -> frozenset[Capability]:
    """Pure capability derivation over the identity variant."""
    if role == UserRole.CUSTOMER:
        return CUSTOMER_CAPABILITIES

    if role == UserRole.AGENT:
        if agent_level is not None and agent_level >= settings.AGENT_ON_BEHALF_MIN_LEVEL:
            return AGENT_CAPABILITIES | {Capability.CREATE_ON_BEHALF}
        return AGENT_CAPABILITIES

    if role == UserRole.ADMIN:
        flags = {
            Capability.MANAGE_USERS: can_manage_users,
            Capability.MANAGE_SYSTEM: can_manage_system,
            Capability.VIEW_REPORTS: can_view_reports,
            Capability.MANAGE_DEPARTMENTS: can_manage_departments,
        }
        return ADMIN_TICKET_CAPABILITIES | {cap for cap, granted in flags.items() if granted}

    raise ValueError(f"Unknown role: {role}")


def capabilities_for(user: "User") -> frozenset[Capability]:
    """Derive capabilities for a loaded identity."""
    role = UserRole(user.role)
    if role == UserRole.AGENT:
        return derive_capabilities(role, agent_level=user.level)
    if role == UserRole.ADMIN:
        return derive_capabilities(
            role,
            can_manage_users=user.can_manage_users,
            can_manage_system=user.can_manage_system,
            can_view_reports=user.can_view_reports,
            can_manage_departments=user.can_manage_departments,
        )
    return derive_capabilities(role)

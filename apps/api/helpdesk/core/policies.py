"""Centralized RBAC policies for API resources."""

from dataclasses import dataclass
from enum import Enum

from helpdesk.core.permissions import Capability as C


class Action(str, Enum):
    """Actions a caller can request against the helpdesk core."""

    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    ASSIGN = "assign"
    TRANSITION_STATUS = "transition_status"
    POST_MESSAGE = "post_message"
    POST_INTERNAL_NOTE = "post_internal_note"
    VIEW_INTERNAL_NOTES = "view_internal_notes"
    RATE = "rate"

    MANAGE_USERS = "manage_users"
    MANAGE_SYSTEM = "manage_system"
    VIEW_REPORTS = "view_reports"
    MANAGE_DEPARTMENTS = "manage_departments"


@dataclass(frozen=True)
class ResourcePolicy:
    """Default capability + per-action overrides for a resource."""

    default: C | None
    actions: dict[Action, C]


POLICIES: dict[str, ResourcePolicy] = {
    "tickets": ResourcePolicy(
        default=C.VIEW_TICKETS,
        actions={
            Action.READ: C.VIEW_TICKETS,
            Action.CREATE: C.CREATE_TICKETS,
            Action.UPDATE: C.EDIT_TICKETS,
            Action.DELETE: C.DELETE_TICKETS,
            Action.ASSIGN: C.ASSIGN_TICKETS,
            Action.TRANSITION_STATUS: C.CHANGE_STATUS,
            Action.POST_MESSAGE: C.POST_MESSAGES,
            Action.POST_INTERNAL_NOTE: C.POST_INTERNAL_NOTES,
            Action.VIEW_INTERNAL_NOTES: C.VIEW_INTERNAL_NOTES,
            Action.RATE: C.RATE_TICKETS,
        },
    ),
    "admin": ResourcePolicy(
        default=None,
        actions={
            Action.MANAGE_USERS: C.MANAGE_USERS,
            Action.MANAGE_SYSTEM: C.MANAGE_SYSTEM,
            Action.VIEW_REPORTS: C.VIEW_REPORTS,
            Action.MANAGE_DEPARTMENTS: C.MANAGE_DEPARTMENTS,
        },
    ),
}

ADMINISTRATIVE_ACTIONS: frozenset[Action] = frozenset(POLICIES["admin"].actions)


def required_capability(action: Action) -> C:
    """Capability an action needs before scoping rules apply."""
    if action in ADMINISTRATIVE_ACTIONS:
        return POLICIES["admin"].actions[action]
    return POLICIES["tickets"].actions[action]

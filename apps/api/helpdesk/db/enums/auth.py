"""Auth-related enums."""

from enum import Enum


class UserRole(str, Enum):
    """
    Closed set of identity variants.

    - CUSTOMER: Requester; sees only their own tickets
    - AGENT: Support staff scoped to a department and their assignments
    - ADMIN: Staff with every ticket capability plus flag-gated administration
    """

    CUSTOMER = "customer"
    AGENT = "agent"
    ADMIN = "admin"

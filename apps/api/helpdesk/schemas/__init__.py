"""Pydantic schemas for API request/response models."""

from helpdesk.schemas.ai import SuggestRequest, SuggestResponse
from helpdesk.schemas.auth import (
    LoginRequest,
    LogoutRequest,
    MeResponse,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
)
from helpdesk.schemas.department import DepartmentCreate, DepartmentRead
from helpdesk.schemas.ticketing import (
    MessageCreate,
    MessageEdit,
    MessageRead,
    TicketAssign,
    TicketCreate,
    TicketRate,
    TicketRead,
    TicketStatusChange,
    TicketUpdate,
)
from helpdesk.schemas.user import UserCreate, UserRead, UserStatusChange, UserUpdate

__all__ = [
    "DepartmentCreate",
    "DepartmentRead",
    "LoginRequest",
    "LogoutRequest",
    "MeResponse",
    "MessageCreate",
    "MessageEdit",
    "MessageRead",
    "RefreshRequest",
    "RegisterRequest",
    "SuggestRequest",
    "SuggestResponse",
    "TicketAssign",
    "TicketCreate",
    "TicketRate",
    "TicketRead",
    "TicketStatusChange",
    "TicketUpdate",
    "UserCreate",
    "UserRead",
    "UserStatusChange",
    "UserUpdate",
]

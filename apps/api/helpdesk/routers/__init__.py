"""API routers."""

from helpdesk.routers.ai import router as ai_router
from helpdesk.routers.auth import router as auth_router
from helpdesk.routers.departments import router as departments_router
from helpdesk.routers.tickets import messages_router
from helpdesk.routers.tickets import router as tickets_router
from helpdesk.routers.users import router as users_router

__all__ = [
    "ai_router",
    "auth_router",
    "departments_router",
    "messages_router",
    "tickets_router",
    "users_router",
]

"""Rate limiting configuration for the helpdesk API."""

import os

from slowapi import Limiter
from slowapi.util import get_remote_address

from helpdesk.core.config import settings

IS_TESTING = os.getenv("TESTING", "").lower() in ("1", "true", "yes")

# Use in-memory storage for tests (no Redis dependency)
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://" if IS_TESTING else settings.RATE_LIMIT_STORAGE_URI,
    enabled=not IS_TESTING,
)


def auth_limit() -> str:
    """Per-minute limit applied to credential endpoints."""
    return f"{settings.RATE_LIMIT_AUTH}/minute"

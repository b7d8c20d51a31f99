"""FastAPI application entry point."""
import logging
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from helpdesk.core.config import settings
from helpdesk.core.exceptions import ForbiddenError, HelpdeskError
from helpdesk.core.structured_logging import build_log_context, configure_logging
from helpdesk.db.session import engine

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

# ============================================================================
# Sentry Integration (optional, for production error tracking)
# ============================================================================

if settings.SENTRY_DSN and settings.ENV != "dev":
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,  # 10% of requests for performance monitoring
        send_default_pii=False,  # Don't send PII to Sentry
    )
    logging.info("Sentry initialized for error tracking")

# ============================================================================
# Rate Limiting
# ============================================================================

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from helpdesk.core.rate_limit import limiter

# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Helpdesk API",
    description="Support ticket helpdesk: identity, sessions and ticket lifecycle",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
)

# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=False,  # Bearer tokens, no cookies
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    expose_headers=["X-Request-ID"],
)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# ============================================================================
# Error Handling
# ============================================================================

def _log_context(request: Request, **extra) -> dict:
    return build_log_context(
        actor_id=getattr(request.state, "actor_id", None),
        role=getattr(request.state, "role", None),
        request_id=getattr(request.state, "request_id", None),
        route=request.url.path,
        method=request.method,
        **extra,
    )


@app.exception_handler(HelpdeskError)
async def helpdesk_error_handler(request: Request, exc: HelpdeskError):
    message = exc.message
    if isinstance(exc, ForbiddenError):
        logger.info(
            "Forbidden reason=%s context=%s",
            exc.reason.value if exc.reason else None,
            _log_context(request),
        )
        # Callers never learn why
        message = ForbiddenError.default_message
    elif exc.status_code >= 500:
        logger.warning("%s: %s context=%s", exc.kind, exc.message, _log_context(request))
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": message, "kind": exc.kind},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error context=%s", _log_context(request))
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "kind": "internal"},
    )


# ============================================================================
# Routers
# ============================================================================

from helpdesk.routers import (
    ai_router,
    auth_router,
    departments_router,
    messages_router,
    tickets_router,
    users_router,
)

app.include_router(auth_router)
app.include_router(tickets_router)
app.include_router(messages_router)
app.include_router(departments_router)
app.include_router(users_router)
app.include_router(ai_router)


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}

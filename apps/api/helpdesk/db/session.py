"""Engine, session factory and the storage-adapter hooks.

Two cross-cutting contracts live here so that no service re-implements them:

- soft delete: every ORM SELECT, relationship loads included, excludes
  ``SoftDeleteMixin`` rows unless the statement carries
  ``include_deleted=True``;
- timestamps: ``created_at``/``updated_at`` are stamped in ``before_flush``.
"""

import functools
import logging
from datetime import datetime, timezone
from typing import Callable, TypeVar

from sqlalchemy import create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import ORMExecuteState, Session, sessionmaker, with_loader_criteria
from sqlalchemy.orm.exc import StaleDataError

from helpdesk.core.config import settings
from helpdesk.core.exceptions import ConflictError, OperationTimeoutError, UpstreamError
from helpdesk.db.base import SoftDeleteMixin, TimestampMixin

logger = logging.getLogger(__name__)

T = TypeVar("T")

# PostgreSQL SQLSTATE for statement_timeout cancellation
PG_QUERY_CANCELED = "57014"

INCLUDE_DELETED = "include_deleted"

_url = make_url(settings.DATABASE_URL)
_backend = _url.get_backend_name()

connect_args = {}
if _backend.startswith("postgresql"):
    connect_args["options"] = (
        f"-c timezone=utc -c statement_timeout={settings.DB_STATEMENT_TIMEOUT_MS}"
    )
elif _backend == "sqlite":
    # Request threads share the pool
    connect_args["check_same_thread"] = False

engine = create_engine(
    settings.DATABASE_URL, pool_pre_ping=True, connect_args=connect_args
)

if _backend == "sqlite":

    @event.listens_for(engine, "connect")
    def _sqlite_enforce_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# =============================================================================
# Soft delete filter
# =============================================================================

@event.listens_for(Session, "do_orm_execute")
def _exclude_soft_deleted(execute_state: ORMExecuteState) -> None:
    if (
        execute_state.is_select
        and not execute_state.is_column_load
        and not execute_state.execution_options.get(INCLUDE_DELETED, False)
    ):
        execute_state.statement = execute_state.statement.options(
            with_loader_criteria(
                SoftDeleteMixin,
                lambda cls: cls.is_deleted.is_(False),
                include_aliases=True,
            )
        )


def include_deleted(stmt):
    """
    Opt a single statement out of the soft-delete filter.

    The only escape hatch; callers are restricted to admin/audit paths.
    """
    return stmt.execution_options(**{INCLUDE_DELETED: True})


# =============================================================================
# Timestamp hook
# =============================================================================

@event.listens_for(Session, "before_flush")
def _stamp_timestamps(session: Session, flush_context, instances) -> None:
    now = datetime.now(timezone.utc)
    for obj in session.new:
        if isinstance(obj, TimestampMixin):
            if obj.created_at is None:
                obj.created_at = now
            if obj.updated_at is None:
                obj.updated_at = now
    for obj in session.dirty:
        if isinstance(obj, TimestampMixin) and session.is_modified(obj, include_collections=False):
            obj.updated_at = now


# =============================================================================
# Error translation
# =============================================================================

def _is_timeout(exc: OperationalError) -> bool:
    return getattr(exc.orig, "pgcode", None) == PG_QUERY_CANCELED


def commit(db: Session) -> None:
    """
    Commit the unit of work, translating storage failures.

    Writes are never retried: a lost optimistic-lock race or constraint
    violation surfaces as ConflictError, I/O trouble as UpstreamError.
    """
    try:
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        logger.info("Optimistic lock lost: %s", exc)
        raise ConflictError() from exc
    except IntegrityError as exc:
        db.rollback()
        logger.info("Integrity violation on commit: %s", exc.orig)
        raise ConflictError("Conflicts with existing data") from exc
    except OperationalError as exc:
        db.rollback()
        logger.error("Storage failure on commit", exc_info=True)
        if _is_timeout(exc):
            raise OperationTimeoutError() from exc
        raise UpstreamError() from exc


def retry_read(func: Callable[..., T]) -> Callable[..., T]:
    """
    Retry an idempotent read on OperationalError, bounded by DB_READ_RETRIES.

    The wrapped function must take the Session as its first argument.
    """

    @functools.wraps(func)
    def wrapper(db: Session, *args, **kwargs) -> T:
        attempts = settings.DB_READ_RETRIES + 1
        for attempt in range(1, attempts + 1):
            try:
                return func(db, *args, **kwargs)
            except OperationalError as exc:
                db.rollback()
                if attempt >= attempts:
                    logger.error("Read %s failed after %d attempts", func.__name__, attempt)
                    if _is_timeout(exc):
                        raise OperationTimeoutError() from exc
                    raise UpstreamError() from exc
                logger.warning("Read %s failed (attempt %d), retrying", func.__name__, attempt)
        raise AssertionError("unreachable")

    return wrapper

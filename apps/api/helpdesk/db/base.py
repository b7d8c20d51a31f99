from datetime import datetime

from sqlalchemy import Boolean, text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from helpdesk.db.types import UTCDateTime


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    type_annotation_map = {
        datetime: UTCDateTime(),
    }


class TimestampMixin:
    """created_at/updated_at, stamped by the session's before_flush hook."""

    created_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)


class SoftDeleteMixin:
    """
    Rows are flagged, never physically removed.

    Every ORM SELECT filters them out (see helpdesk.db.session); only
    ``include_deleted()`` bypasses the filter.
    """

    is_deleted: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false"), nullable=False
    )
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

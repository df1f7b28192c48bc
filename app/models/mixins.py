"""Shared model helpers."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Uuid
from sqlalchemy.orm import Mapped, mapped_column


def utcnow() -> datetime:
    """Return the current timezone-aware UTC time."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class TimestampMixin:
    """Creation timestamp column."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )


class UpdatedAtMixin(TimestampMixin):
    """Creation and last-update timestamp columns."""

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


def uuid_column() -> Mapped[uuid.UUID]:
    """Return a UUID primary-key column.

    Returns
    -------
    Mapped[uuid.UUID]
        SQLAlchemy mapped UUID column.
    """
    return mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

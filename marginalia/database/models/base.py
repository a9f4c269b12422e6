"""
Base Classes and Mixins
------------------------

Foundational ORM classes for the Marginalia database.

Classes:
    - Base: Declarative base for all SQLAlchemy models
    - TimestampMixin: ``published`` / ``updated`` stamping
    - SoftDeleteMixin: Nullable ``deleted`` timestamp marking logical removal

Column types:
    - JSONType: JSON on every backend, JSONB on PostgreSQL
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from datetime import datetime, timezone
from typing import Optional

# --- Third party ---
from sqlalchemy import JSON, DateTime
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# --- Local imports ---
from marginalia.core.validators import utcnow


JSONType = JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from backends without tz support."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# --- Base ORM class ---
class Base(DeclarativeBase):
    """
    Base class for all ORM models.

    Subclasses set ``__collection__`` (the URL path segment used for their
    public ids) and ``__public_type__`` (the document ``type`` emitted when
    the row has none of its own).
    """

    __collection__ = ""
    __public_type__ = ""


# --- Timestamps ---
class TimestampMixin:
    """
    Mixin stamping creation and last-mutation times.

    Attributes:
        published: Set once on insert
        updated: Set on insert and on every UPDATE statement
    """

    published: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )


# --- Soft Delete ---
class SoftDeleteMixin:
    """
    Mixin providing soft delete for models.

    A row with ``deleted`` set is logically removed: active queries filter
    it out, and the purge sweep physically removes it once it is older than
    the retention window. ``deleted`` is never cleared by normal operations.

    Attributes:
        deleted: Timestamp of soft deletion
    """

    deleted: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True, doc="Timestamp of soft deletion"
    )

    @property
    def is_deleted(self) -> bool:
        """Check if the record is soft deleted."""
        return self.deleted is not None

    @classmethod
    def active(cls):
        """SQL criterion selecting rows that are not soft deleted."""
        return cls.deleted.is_(None)

"""
Reader Model
-------------

The Reader is the root of ownership: every other entity carries a
``reader_id`` and is purged when its reader has been soft-deleted for
longer than the retention window.
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from typing import TYPE_CHECKING, Any, Dict, List, Optional

# --- Third party imports ---
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

# --- Local imports ---
from .base import Base, JSONType, SoftDeleteMixin, TimestampMixin

if TYPE_CHECKING:
    from .notebooks import Notebook
    from .sources import Source
    from .tags import Tag


class Reader(Base, TimestampMixin, SoftDeleteMixin):
    """
    A person using the application.

    Attributes:
        id: Canonical UUID string
        auth_id: External authentication subject (unique)
        name: Display name
        profile: Opaque profile document
        preferences: Opaque preferences document
        json: Remaining document properties

    Relationships:
        notebooks: Active notebooks owned by the reader
        sources: Active sources owned by the reader
        tags: Active tags owned by the reader
    """

    __tablename__ = "readers"
    __collection__ = "readers"
    __public_type__ = "Person"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    auth_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(255))
    profile: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType)
    preferences: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType)
    json: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType)

    notebooks: Mapped[List["Notebook"]] = relationship(
        "Notebook",
        primaryjoin="and_(Reader.id == Notebook.reader_id, Notebook.deleted.is_(None))",
        viewonly=True,
    )
    sources: Mapped[List["Source"]] = relationship(
        "Source",
        primaryjoin=(
            "and_(Reader.id == Source.reader_id, Source.deleted.is_(None), "
            "Source.referenced.is_(None))"
        ),
        viewonly=True,
    )
    tags: Mapped[List["Tag"]] = relationship(
        "Tag",
        primaryjoin="and_(Reader.id == Tag.reader_id, Tag.deleted.is_(None))",
        viewonly=True,
    )

    def __repr__(self) -> str:
        return f"<Reader(id={self.id}, auth_id={self.auth_id})>"

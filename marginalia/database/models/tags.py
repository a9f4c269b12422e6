"""
Tag Model
----------

Tags are reader-owned labels attached to sources, notes and notebooks.
A tag may also be scoped to a single notebook through ``notebook_id``;
such tags are purged with their notebook.
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from typing import TYPE_CHECKING, Any, Dict, List, Optional

# --- Third party imports ---
from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

# --- Local imports ---
from .associations import source_tag
from .base import Base, JSONType, SoftDeleteMixin, TimestampMixin

if TYPE_CHECKING:
    from .sources import Source


class Tag(Base, TimestampMixin, SoftDeleteMixin):
    """
    A reader's tag.

    Attributes:
        reader_id: Owning reader
        notebook_id: Notebook the tag is scoped to, if any
        type: Free-form tag type (e.g. "stack")
        name: Tag label, unique per (reader, type)
        json: Remaining document properties

    Relationships:
        sources: Active sources carrying this tag
    """

    __tablename__ = "tags"
    __collection__ = "tags"
    __public_type__ = "Tag"
    __table_args__ = (
        UniqueConstraint("reader_id", "type", "name", name="tag_readerid_type_name_unique"),
    )

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    reader_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("readers.id", name="tag_readerid_foreign"),
        nullable=False, index=True,
    )
    notebook_id: Mapped[Optional[str]] = mapped_column(
        String(255), ForeignKey("notebooks.id", name="tag_notebookid_foreign"),
        index=True,
    )
    type: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    json: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType)

    sources: Mapped[List["Source"]] = relationship(
        "Source",
        secondary=source_tag,
        primaryjoin="Tag.id == source_tag.c.tag_id",
        secondaryjoin=(
            "and_(Source.id == source_tag.c.source_id, "
            "Source.deleted.is_(None), Source.referenced.is_(None))"
        ),
        viewonly=True,
    )

    def __repr__(self) -> str:
        return f"<Tag(id={self.id}, type={self.type}, name={self.name})>"

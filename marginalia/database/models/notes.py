"""
Note Models
------------

Models:
    - Note: An annotation, optionally about a Source and inside a NoteContext
    - NoteBody: One body (comment, highlight, ...) of a note
    - NoteContext: A grouping of notes (outline, thread), optionally in a notebook

Only the columns the data layer needs for ownership, soft delete and the
purge cascade are modelled here.
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from typing import TYPE_CHECKING, Any, Dict, List, Optional

# --- Third party imports ---
from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

# --- Local imports ---
from .associations import note_tag
from .base import Base, JSONType, SoftDeleteMixin, TimestampMixin

if TYPE_CHECKING:
    from .tags import Tag


class Note(Base, TimestampMixin, SoftDeleteMixin):
    """
    A reader's annotation.

    Attributes:
        source_id: Annotated source, if any
        context_id: Note context the note belongs to, if any
        document_url: Document inside the source the note points into
        target: Opaque selector document
        json: Remaining document properties
    """

    __tablename__ = "notes"
    __collection__ = "notes"
    __public_type__ = "Note"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    reader_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("readers.id", name="note_readerid_foreign"),
        nullable=False, index=True,
    )
    source_id: Mapped[Optional[str]] = mapped_column(
        String(255), ForeignKey("sources.id", name="note_sourceid_foreign"), index=True
    )
    context_id: Mapped[Optional[str]] = mapped_column(
        String(255), ForeignKey("note_contexts.id", name="note_contextid_foreign"),
        index=True,
    )
    document_url: Mapped[Optional[str]] = mapped_column(Text)
    target: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType)
    json: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType)

    bodies: Mapped[List["NoteBody"]] = relationship(
        "NoteBody",
        primaryjoin="and_(Note.id == NoteBody.note_id, NoteBody.deleted.is_(None))",
        viewonly=True,
    )
    tags: Mapped[List["Tag"]] = relationship(
        "Tag",
        secondary=note_tag,
        primaryjoin="Note.id == note_tag.c.note_id",
        secondaryjoin="and_(Tag.id == note_tag.c.tag_id, Tag.deleted.is_(None))",
        viewonly=True,
    )

    def __repr__(self) -> str:
        return f"<Note(id={self.id})>"


class NoteBody(Base, TimestampMixin, SoftDeleteMixin):
    """One body of a note (motivation + content)."""

    __tablename__ = "note_bodies"
    __collection__ = "noteBodies"
    __public_type__ = "NoteBody"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    note_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("notes.id", name="notebody_noteid_foreign"),
        nullable=False, index=True,
    )
    reader_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("readers.id", name="notebody_readerid_foreign"),
        nullable=False, index=True,
    )
    motivation: Mapped[str] = mapped_column(String(64), nullable=False)
    content: Mapped[Optional[str]] = mapped_column(Text)
    language: Mapped[Optional[str]] = mapped_column(String(16))


class NoteContext(Base, TimestampMixin, SoftDeleteMixin):
    """
    A container grouping notes, such as an outline.

    Attributes:
        notebook_id: Notebook the context lives in, if any
        type: Free-form context type (e.g. "outline")
    """

    __tablename__ = "note_contexts"
    __collection__ = "noteContexts"
    __public_type__ = "NoteContext"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    reader_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("readers.id", name="notecontext_readerid_foreign"),
        nullable=False, index=True,
    )
    notebook_id: Mapped[Optional[str]] = mapped_column(
        String(255), ForeignKey("notebooks.id", name="notecontext_notebookid_foreign"),
        index=True,
    )
    type: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[Optional[str]] = mapped_column(Text)
    description: Mapped[Optional[str]] = mapped_column(Text)
    json: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType)

    def __repr__(self) -> str:
        return f"<NoteContext(id={self.id}, type={self.type})>"

"""
Notebook Models
----------------

Models:
    - Notebook: A reader's working space grouping sources, notes and tags
    - Collaborator: Another reader granted access to a notebook

Notebook membership (sources, notes, tags) lives in the join tables of
``associations``; the relationships below expose only active members.
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from typing import TYPE_CHECKING, Any, Dict, List, Optional

# --- Third party imports ---
from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

# --- Local imports ---
from .associations import notebook_note, notebook_source, notebook_tag
from .base import Base, JSONType, SoftDeleteMixin, TimestampMixin
from .enums import CollaboratorStatus, NotebookStatus

if TYPE_CHECKING:
    from .notes import Note, NoteContext
    from .readers import Reader
    from .sources import Source
    from .tags import Tag


class Notebook(Base, TimestampMixin, SoftDeleteMixin):
    """
    A reader's notebook.

    Attributes:
        id: ``{readerShortId}-{suffix}``
        reader_id: Owning reader
        name: Required display name
        description: Optional free text
        status: Integer status code (see NotebookStatus)
        settings: Opaque settings document (e.g. ``{"colour": "blue"}``)

    Relationships:
        sources / notes / tags: Active members through the join tables
        notebook_tags: Active tags scoped to this notebook (Tag.notebook_id)
        note_contexts: Active note contexts belonging to this notebook
        collaborators: Active collaborators
    """

    __tablename__ = "notebooks"
    __collection__ = "notebooks"
    __public_type__ = "Notebook"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    reader_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("readers.id", name="notebooks_readerid_foreign"),
        nullable=False, index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[int] = mapped_column(
        Integer, nullable=False, default=NotebookStatus.ACTIVE.code
    )
    settings: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType)

    reader: Mapped["Reader"] = relationship("Reader")
    sources: Mapped[List["Source"]] = relationship(
        "Source",
        secondary=notebook_source,
        primaryjoin="Notebook.id == notebook_source.c.notebook_id",
        secondaryjoin=(
            "and_(Source.id == notebook_source.c.source_id, "
            "Source.deleted.is_(None), Source.referenced.is_(None))"
        ),
        viewonly=True,
    )
    notes: Mapped[List["Note"]] = relationship(
        "Note",
        secondary=notebook_note,
        primaryjoin="Notebook.id == notebook_note.c.notebook_id",
        secondaryjoin="and_(Note.id == notebook_note.c.note_id, Note.deleted.is_(None))",
        viewonly=True,
    )
    tags: Mapped[List["Tag"]] = relationship(
        "Tag",
        secondary=notebook_tag,
        primaryjoin="Notebook.id == notebook_tag.c.notebook_id",
        secondaryjoin="and_(Tag.id == notebook_tag.c.tag_id, Tag.deleted.is_(None))",
        viewonly=True,
    )
    notebook_tags: Mapped[List["Tag"]] = relationship(
        "Tag",
        primaryjoin="and_(Notebook.id == Tag.notebook_id, Tag.deleted.is_(None))",
        viewonly=True,
    )
    note_contexts: Mapped[List["NoteContext"]] = relationship(
        "NoteContext",
        primaryjoin=(
            "and_(Notebook.id == NoteContext.notebook_id, NoteContext.deleted.is_(None))"
        ),
        viewonly=True,
    )
    collaborators: Mapped[List["Collaborator"]] = relationship(
        "Collaborator",
        primaryjoin=(
            "and_(Notebook.id == Collaborator.notebook_id, Collaborator.deleted.is_(None))"
        ),
        viewonly=True,
    )

    @property
    def status_name(self) -> Optional[str]:
        """Symbolic status ('active', 'archived', 'test')."""
        status = NotebookStatus.from_code(self.status)
        return status.value if status else None

    def __repr__(self) -> str:
        return f"<Notebook(id={self.id}, name={self.name})>"


class Collaborator(Base, TimestampMixin, SoftDeleteMixin):
    """
    A reader invited to work in someone else's notebook.

    Attributes:
        notebook_id: Shared notebook
        reader_id: Invited reader
        status: Integer invitation status
        permission: Opaque permission document (e.g. ``{"read": true}``)
    """

    __tablename__ = "collaborators"
    __collection__ = "collaborators"
    __public_type__ = "Collaborator"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    notebook_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("notebooks.id", name="collaborators_notebookid_foreign"),
        nullable=False, index=True,
    )
    reader_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("readers.id", name="collaborators_readerid_foreign"),
        nullable=False, index=True,
    )
    status: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    permission: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType)

    @property
    def status_name(self) -> Optional[str]:
        status = CollaboratorStatus.from_code(self.status)
        return status.value if status else None

    def __repr__(self) -> str:
        return f"<Collaborator(notebook_id={self.notebook_id}, reader_id={self.reader_id})>"

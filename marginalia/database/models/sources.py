"""
Source Models
--------------

Models:
    - Source: A document or book in a reader's library
    - Attribution: A person credited on a Source in a given role
    - ReadActivity: Append-only reading position log

A Source is in exactly one lifecycle state at a time: active (both
``deleted`` and ``referenced`` null), soft-deleted (``deleted`` set) or
referenced (``referenced`` set; content fields cleared while the row
stays for citation links).
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

# --- Third party imports ---
from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

# --- Local imports ---
from marginalia.core.validators import utcnow
from .associations import notebook_source, source_tag
from .base import Base, JSONType, SoftDeleteMixin, TimestampMixin

if TYPE_CHECKING:
    from .notebooks import Notebook
    from .notes import Note
    from .readers import Reader
    from .tags import Tag


class Source(Base, TimestampMixin, SoftDeleteMixin):
    """
    A document in a reader's library.

    Attributes:
        id: ``{readerShortId}-{suffix}``
        reader_id: Owning reader
        name / type / abstract / description: Descriptive columns
        date_published: Publication date of the work
        number_of_pages / word_count: Size information
        status: Integer status code (see SourceStatus)
        encoding_format: Media type of the main content
        metadata_: Allow-listed secondary properties (column ``metadata``)
        citation: Citation strings keyed by style (``{"default": ...}``)
        links / resources / reading_order: ``{"data": [link, ...]}``
        json: Remaining document properties
        referenced: Timestamp of the switch to reference-only state

    Relationships:
        attributions: Credited people, all roles
        tags / notebooks: Active members through the join tables
        replies: Active notes about this source

    Transient:
        position: Latest read-activity selector, filled in by the manager
    """

    __tablename__ = "sources"
    __collection__ = "sources"
    __public_type__ = "Source"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    reader_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("readers.id", name="sources_readerid_foreign"),
        nullable=False, index=True,
    )
    name: Mapped[Optional[str]] = mapped_column(Text)
    type: Mapped[str] = mapped_column(String(64), nullable=False)
    abstract: Mapped[Optional[str]] = mapped_column(Text)
    description: Mapped[Optional[str]] = mapped_column(Text)
    date_published: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    number_of_pages: Mapped[Optional[int]] = mapped_column(Integer)
    word_count: Mapped[Optional[int]] = mapped_column(Integer)
    status: Mapped[Optional[int]] = mapped_column(Integer)
    encoding_format: Mapped[Optional[str]] = mapped_column(String(255))
    metadata_: Mapped[Optional[Dict[str, Any]]] = mapped_column("metadata", JSONType)
    citation: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType)
    links: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType)
    resources: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType)
    reading_order: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType)
    json: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType)
    referenced: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )

    reader: Mapped["Reader"] = relationship("Reader")
    attributions: Mapped[List["Attribution"]] = relationship(
        "Attribution",
        back_populates="source",
        order_by="Attribution.published",
    )
    tags: Mapped[List["Tag"]] = relationship(
        "Tag",
        secondary=source_tag,
        primaryjoin="Source.id == source_tag.c.source_id",
        secondaryjoin="and_(Tag.id == source_tag.c.tag_id, Tag.deleted.is_(None))",
        viewonly=True,
    )
    notebooks: Mapped[List["Notebook"]] = relationship(
        "Notebook",
        secondary=notebook_source,
        primaryjoin="Source.id == notebook_source.c.source_id",
        secondaryjoin=(
            "and_(Notebook.id == notebook_source.c.notebook_id, Notebook.deleted.is_(None))"
        ),
        viewonly=True,
    )
    replies: Mapped[List["Note"]] = relationship(
        "Note",
        primaryjoin="and_(Source.id == Note.source_id, Note.deleted.is_(None))",
        viewonly=True,
    )

    position = None

    @property
    def is_referenced(self) -> bool:
        """Check if the source is in reference-only state."""
        return self.referenced is not None

    def __repr__(self) -> str:
        return f"<Source(id={self.id}, name={self.name})>"


class Attribution(Base, TimestampMixin):
    """
    A person or organization credited on a Source.

    Attributes:
        role: One of AttributionRole
        name: Name as given
        normalized_name: Lower-cased, diacritic-free deduplication key
        is_contributor: False for author/creator roles
        json: Remaining properties of an object-form attribution
    """

    __tablename__ = "attributions"
    __collection__ = "attributions"
    __public_type__ = "Person"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    role: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    normalized_name: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    is_contributor: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    json: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType)
    reader_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("readers.id", name="attributions_readerid_foreign"),
        nullable=False, index=True,
    )
    source_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("sources.id", name="attributions_sourceid_foreign"),
        nullable=False, index=True,
    )

    source: Mapped["Source"] = relationship("Source", back_populates="attributions")

    def __repr__(self) -> str:
        return f"<Attribution(role={self.role}, name={self.name})>"


class ReadActivity(Base):
    """
    One recorded reading position.

    The log is append-only; the latest row by ``published`` is the current
    position of the reader in the source.

    Attributes:
        selector: Opaque position selector document
        json: Remaining document properties
    """

    __tablename__ = "read_activities"
    __collection__ = "readActivities"
    __public_type__ = "ReadActivity"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    reader_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("readers.id", name="readactivity_readerid_foreign"),
        nullable=False, index=True,
    )
    source_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("sources.id", name="readactivity_sourceid_foreign"),
        nullable=False, index=True,
    )
    selector: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType)
    json: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType)
    published: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )

    def __repr__(self) -> str:
        return f"<ReadActivity(id={self.id}, source_id={self.source_id})>"

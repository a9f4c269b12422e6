"""
Database Models Package
------------------------

SQLAlchemy ORM models for the Marginalia database.

- base: Base class, timestamp and soft-delete mixins
- associations: Many-to-many join tables
- enums: Status codes, document types and allow-lists
- readers: Reader
- notebooks: Notebook, Collaborator
- sources: Source, Attribution, ReadActivity
- notes: Note, NoteBody, NoteContext
- tags: Tag

Usage:
    from marginalia.database.models import Source, Tag, source_tag
"""
# Base classes
from .base import Base, JSONType, SoftDeleteMixin, TimestampMixin, as_utc

# Enumerations
from .enums import (
    LANGUAGE_CODES,
    AttributionRole,
    BookFormat,
    CollaboratorStatus,
    NotebookStatus,
    SourceStatus,
    SourceType,
    TextDirection,
)

# Association tables
from .associations import (
    JOIN_TABLES,
    note_tag,
    notebook_note,
    notebook_source,
    notebook_tag,
    source_tag,
)

# Entities
from .readers import Reader
from .notebooks import Collaborator, Notebook
from .sources import Attribution, ReadActivity, Source
from .notes import Note, NoteBody, NoteContext
from .tags import Tag

__all__ = [
    # Base
    "Base",
    "JSONType",
    "SoftDeleteMixin",
    "TimestampMixin",
    "as_utc",
    # Enums
    "LANGUAGE_CODES",
    "AttributionRole",
    "BookFormat",
    "CollaboratorStatus",
    "NotebookStatus",
    "SourceStatus",
    "SourceType",
    "TextDirection",
    # Associations
    "JOIN_TABLES",
    "note_tag",
    "notebook_note",
    "notebook_source",
    "notebook_tag",
    "source_tag",
    # Entities
    "Reader",
    "Collaborator",
    "Notebook",
    "Attribution",
    "ReadActivity",
    "Source",
    "Note",
    "NoteBody",
    "NoteContext",
    "Tag",
]

"""
Document shapes: validation, flattening of incoming JSON documents into
columns and reconstruction of the public (wire) shape.
"""
from .entity import EntityDocument, camel_case, default_summary, drop_none
from .collaborator import CollaboratorDocument
from .notebook import NotebookDocument
from .reader import ReaderDocument
from .schema import (
    CollaboratorSchema,
    DocumentSchema,
    NotebookSchema,
    ReadActivitySchema,
    SchemaIssue,
    SourceSchema,
    TagSchema,
)
from .source import (
    CITATION_METADATA,
    LINK_PROPERTIES,
    METADATA_PROPERTIES,
    AttributionDocument,
    SourceDocument,
)
from .tag import TagDocument

__all__ = [
    "EntityDocument",
    "camel_case",
    "default_summary",
    "drop_none",
    "CollaboratorDocument",
    "NotebookDocument",
    "ReaderDocument",
    "CollaboratorSchema",
    "DocumentSchema",
    "NotebookSchema",
    "ReadActivitySchema",
    "SchemaIssue",
    "SourceSchema",
    "TagSchema",
    "CITATION_METADATA",
    "LINK_PROPERTIES",
    "METADATA_PROPERTIES",
    "AttributionDocument",
    "SourceDocument",
    "TagDocument",
]

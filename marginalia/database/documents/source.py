#!/usr/bin/env python3
"""
source.py
---------
Flattening and reconstruction of Source documents.

Write path (:meth:`SourceDocument.format_incoming`):
    1. validate the whole document once (aggregated ValidationError)
    2. copy relational properties onto their columns
    3. wrap the allow-listed secondary properties into ``metadata``
    4. collapse a bare-string ``citation`` into ``{"default": ...}``
    5. project link members to the allowed sub-properties and wrap each
       link array as ``{"data": [...]}``
    6. map a symbolic ``status`` to its integer code

Read path (:meth:`SourceDocument.to_public`) reverses every step, splits
attributions by role and appends ``/`` to the emitted id.

Metadata updates are shallow merges onto the stored metadata, see
:meth:`SourceDocument.merge_metadata`.
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from typing import Any, Dict, List, Mapping, Optional

# --- Third party imports ---
from sqlalchemy import inspect

# --- Local imports ---
from marginalia.core.identifiers import IdentifierCodec
from marginalia.core.validators import DataValidator
from marginalia.database.models.enums import AttributionRole, SourceStatus
from .entity import EntityDocument, to_json_value
from .schema import SourceSchema
from .tag import TagDocument


# Document property -> Source attribute
COLUMN_PROPERTIES: Dict[str, str] = {
    "name": "name",
    "type": "type",
    "abstract": "abstract",
    "description": "description",
    "datePublished": "date_published",
    "numberOfPages": "number_of_pages",
    "wordCount": "word_count",
    "encodingFormat": "encoding_format",
    "status": "status",
    "citation": "citation",
    "links": "links",
    "resources": "resources",
    "readingOrder": "reading_order",
    "json": "json",
}

METADATA_PROPERTIES = (
    "inLanguage",
    "keywords",
    "url",
    "dateModified",
    "bookEdition",
    "bookFormat",
    "isbn",
    "copyrightYear",
    "genre",
    "license",
    "inDirection",
    "pagination",
    "isPartOf",
    "doi",
)

# Metadata kept when a referenced source is purged
CITATION_METADATA = ("inLanguage", "bookEdition", "isbn")

LINK_PROPERTIES = (
    "url",
    "encodingFormat",
    "name",
    "description",
    "rel",
    "integrity",
    "length",
    "type",
)

LINK_ARRAYS: Dict[str, str] = {
    "links": "links",
    "resources": "resources",
    "readingOrder": "reading_order",
}


class AttributionDocument(EntityDocument):
    """Public shape of an attribution."""

    exclude = ("reader_id", "source_id")


class SourceDocument(EntityDocument):
    """Serializer and formatter for Source documents."""

    exclude = ("metadata_",)

    # ----- Write path -----

    @staticmethod
    def format_link(link: Any) -> Dict[str, Any]:
        """Normalize one link: bare URL → ``{"url": ...}``; objects are projected."""
        if isinstance(link, str):
            return {"url": link}
        return {key: link[key] for key in LINK_PROPERTIES if key in link}

    @classmethod
    def format_metadata(cls, document: Mapping[str, Any]) -> Dict[str, Any]:
        """Wrap the allow-listed properties present in a document into metadata."""
        metadata: Dict[str, Any] = {}
        for prop in METADATA_PROPERTIES:
            value = document.get(prop)
            if value is None:
                continue
            if prop == "inLanguage" and isinstance(value, str):
                value = [value]
            elif prop == "keywords":
                value = DataValidator.normalize_keywords(value)
            elif prop == "copyrightYear":
                value = DataValidator.normalize_int(value)
            elif prop == "dateModified":
                value = to_json_value(DataValidator.normalize_timestamp(value))
            metadata[prop] = value
        return metadata

    @classmethod
    def format_incoming(
        cls, document: Mapping[str, Any], partial: bool = False
    ) -> Dict[str, Any]:
        """
        Validate and flatten an incoming Source document.

        Args:
            document: Incoming document (camelCase keys)
            partial: Update mode; required fields are not enforced and only
                properties present in the document are returned

        Returns:
            Mapping of Source attribute names to storage values. ``metadata_``
            holds the new metadata entries (to be merged on update).

        Raises:
            ValidationError: With every issue found in the document
        """
        SourceSchema.check(document, partial=partial)

        formatted: Dict[str, Any] = {}
        for prop, attr in COLUMN_PROPERTIES.items():
            if prop in document:
                formatted[attr] = document[prop]

        if formatted.get("date_published") is not None:
            formatted["date_published"] = DataValidator.normalize_timestamp(
                formatted["date_published"]
            )
        for attr in ("number_of_pages", "word_count"):
            if formatted.get(attr) is not None:
                formatted[attr] = DataValidator.normalize_int(formatted[attr])

        if isinstance(formatted.get("citation"), str):
            formatted["citation"] = {"default": formatted["citation"]}

        for prop, attr in LINK_ARRAYS.items():
            if formatted.get(attr) is not None:
                formatted[attr] = {
                    "data": [cls.format_link(link) for link in document[prop]]
                }

        if formatted.get("status") is not None:
            formatted["status"] = SourceStatus(formatted["status"]).code

        metadata = cls.format_metadata(document)
        if metadata or not partial:
            formatted["metadata_"] = metadata
        return formatted

    @staticmethod
    def merge_metadata(
        previous: Optional[Mapping[str, Any]], incoming: Optional[Mapping[str, Any]]
    ) -> Dict[str, Any]:
        """
        Shallow-merge new metadata onto the stored metadata.

        Keys in ``incoming`` win; every other stored key is kept. Metadata is
        never replaced wholesale.

        Examples:
            >>> SourceDocument.merge_metadata({"isbn": "1", "genre": "x"}, {"genre": "y"})
            {'isbn': '1', 'genre': 'y'}
        """
        merged = dict(previous or {})
        merged.update(incoming or {})
        return merged

    @staticmethod
    def attributions_from(document: Mapping[str, Any]) -> Dict[str, List[Any]]:
        """
        Attribution values per role present in a document.

        A role given as a single string or object is wrapped in a list;
        a role explicitly set to None maps to an empty list.
        """
        roles: Dict[str, List[Any]] = {}
        for role in AttributionRole.choices():
            if role not in document:
                continue
            value = document[role]
            if value is None:
                roles[role] = []
            elif isinstance(value, list):
                roles[role] = value
            else:
                roles[role] = [value]
        return roles

    # ----- Read path -----

    @classmethod
    def finalize(
        cls, entity: Any, document: Dict[str, Any], codec: IdentifierCodec
    ) -> Dict[str, Any]:
        document["id"] = f"{document['id']}/"

        for prop, attr in LINK_ARRAYS.items():
            stored = getattr(entity, attr)
            if isinstance(stored, Mapping) and "data" in stored:
                document[prop] = stored["data"]
            else:
                document[prop] = stored

        status = SourceStatus.from_code(entity.status) if entity.status is not None else None
        document["status"] = status.value if status else None

        metadata = entity.metadata_ or {}
        for prop in METADATA_PROPERTIES:
            if prop in metadata:
                document[prop] = metadata[prop]

        attributions = entity.attributions
        for role in AttributionRole.choices():
            document[role] = [
                AttributionDocument.to_public(attribution, codec)
                for attribution in attributions
                if attribution.role == role
            ]

        position = getattr(entity, "position", None)
        if position is not None:
            document["position"] = position

        unloaded = inspect(entity).unloaded
        if "tags" not in unloaded:
            document["tags"] = [TagDocument.to_public(tag, codec) for tag in entity.tags]
        if "notebooks" not in unloaded:
            document["notebooks"] = [
                codec.url_for("notebooks", notebook.id) for notebook in entity.notebooks
            ]
        if "replies" not in unloaded:
            document["replies"] = [
                codec.url_for("notes", note.id) for note in entity.replies
            ]
        return document

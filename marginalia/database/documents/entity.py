#!/usr/bin/env python3
"""
entity.py
---------
Public document shape shared by every entity.

Serialization rules:
    - the entity's opaque ``json`` blob is merged upward into the document
    - column values are laid over it under camelCase keys
    - ``id`` becomes the entity URL and ``shortId`` its public id
    - foreign keys (``reader_id``, ``source_id``, ...) become URLs
    - datetimes are rendered as ISO-8601 strings
    - a ``summary`` is synthesized when there is neither name nor summary
    - None-valued keys are dropped

URL and short id are never stored: they are recomputed from ``id`` and the
model's ``__collection__`` on every serialization.
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from datetime import date, datetime
from typing import Any, Dict, Iterable, Optional

# --- Third party imports ---
from sqlalchemy import inspect

# --- Local imports ---
from marginalia.core.identifiers import IdentifierCodec
from marginalia.database.models.base import as_utc


FOREIGN_KEY_COLLECTIONS: Dict[str, str] = {
    "reader_id": "readers",
    "source_id": "sources",
    "note_id": "notes",
    "notebook_id": "notebooks",
    "context_id": "noteContexts",
    "tag_id": "tags",
}


def camel_case(name: str) -> str:
    """Convert a snake_case attribute name to camelCase (``reader_id`` → ``readerId``)."""
    head, *rest = name.strip("_").split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def to_json_value(value: Any) -> Any:
    """Render datetimes as ISO strings; leave everything else untouched."""
    if isinstance(value, datetime):
        return as_utc(value).isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return value


def drop_none(document: Dict[str, Any]) -> Dict[str, Any]:
    """Remove keys whose value is None."""
    return {key: value for key, value in document.items() if value is not None}


def default_summary(entity_type: Optional[str], entity_id: str) -> str:
    """Summary used when a document has no human-readable name."""
    return f"{(entity_type or 'entity').lower()} with id {entity_id}"


class EntityDocument:
    """
    Serializer for the public shape of an entity.

    Subclasses adjust the column set (``exclude``) and post-process the
    merged document in :meth:`finalize`.
    """

    exclude: Iterable[str] = ()

    @classmethod
    def column_values(cls, entity: Any) -> Dict[str, Any]:
        """Mapped column attributes of an entity keyed by attribute name."""
        mapper = inspect(entity).mapper
        skipped = {"json", *cls.exclude}
        return {
            attr.key: getattr(entity, attr.key)
            for attr in mapper.column_attrs
            if attr.key not in skipped
        }

    @classmethod
    def to_public(cls, entity: Any, codec: IdentifierCodec) -> Dict[str, Any]:
        """
        Build the public document for an entity.

        Args:
            entity: Mapped entity instance
            codec: Identifier codec used to derive URLs

        Returns:
            Public document without None values
        """
        document: Dict[str, Any] = dict(getattr(entity, "json", None) or {})

        for key, value in cls.column_values(entity).items():
            if key == "id":
                continue
            if key in FOREIGN_KEY_COLLECTIONS and value is not None:
                value = codec.url_for(FOREIGN_KEY_COLLECTIONS[key], value)
            document[camel_case(key)] = to_json_value(value)

        collection = type(entity).__collection__
        document["id"] = codec.url_for(collection, entity.id)
        document["shortId"] = codec.to_public_id(entity.id)
        if not document.get("type"):
            document["type"] = type(entity).__public_type__ or None

        document = cls.finalize(entity, document, codec)

        if not document.get("name") and not document.get("summary"):
            document["summary"] = default_summary(document.get("type"), entity.id)
        return drop_none(document)

    @classmethod
    def finalize(
        cls, entity: Any, document: Dict[str, Any], codec: IdentifierCodec
    ) -> Dict[str, Any]:
        """Hook for subclasses; the default returns the document unchanged."""
        return document

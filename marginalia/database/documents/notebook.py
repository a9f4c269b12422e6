#!/usr/bin/env python3
"""
notebook.py
-----------
Formatting and public shape of Notebook documents.

Only ``name``, ``description``, ``status`` and ``settings`` are stored;
``status`` travels as its symbolic name and is persisted as an integer
code.
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from typing import Any, Dict, Mapping

# --- Third party imports ---
from sqlalchemy import inspect

# --- Local imports ---
from marginalia.core.identifiers import IdentifierCodec
from marginalia.database.models.enums import NotebookStatus
from .entity import EntityDocument
from .schema import NotebookSchema
from .tag import TagDocument

NOTEBOOK_PROPERTIES = ("name", "description", "status", "settings")


class NotebookDocument(EntityDocument):
    """Serializer and formatter for Notebook documents."""

    @classmethod
    def format_incoming(
        cls, document: Mapping[str, Any], partial: bool = False
    ) -> Dict[str, Any]:
        """
        Validate and pick the stored properties of a Notebook document.

        Args:
            document: Incoming document
            partial: Update mode; only given properties are returned

        Raises:
            ValidationError: With every issue found in the document
        """
        NotebookSchema.check(document, partial=partial)

        formatted = {key: document[key] for key in NOTEBOOK_PROPERTIES if key in document}
        if formatted.get("status") is not None:
            formatted["status"] = NotebookStatus(formatted["status"]).code
        elif not partial or "status" in formatted:
            formatted["status"] = NotebookStatus.ACTIVE.code
        return formatted

    @classmethod
    def finalize(
        cls, entity: Any, document: Dict[str, Any], codec: IdentifierCodec
    ) -> Dict[str, Any]:
        document["status"] = entity.status_name

        unloaded = inspect(entity).unloaded
        if "tags" not in unloaded:
            document["tags"] = [TagDocument.to_public(tag, codec) for tag in entity.tags]
        if "notebook_tags" not in unloaded:
            document["notebookTags"] = [
                TagDocument.to_public(tag, codec) for tag in entity.notebook_tags
            ]
        if "sources" not in unloaded:
            document["sources"] = [
                codec.url_for("sources", source.id) for source in entity.sources
            ]
        if "note_contexts" not in unloaded:
            document["noteContexts"] = [
                codec.url_for("noteContexts", context.id)
                for context in entity.note_contexts
            ]
        return document

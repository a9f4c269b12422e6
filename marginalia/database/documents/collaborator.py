#!/usr/bin/env python3
"""
collaborator.py
---------------
Formatting and public shape of Collaborator documents.

A collaborator links a reader to a shared notebook with an opaque
``permission`` object. ``status`` travels as its symbolic name
(``pending``, ``accepted``, ...) and is stored as an integer code.
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from typing import Any, Dict, Mapping

# --- Local imports ---
from marginalia.core.identifiers import IdentifierCodec
from marginalia.database.models.enums import CollaboratorStatus
from .entity import EntityDocument
from .schema import CollaboratorSchema


class CollaboratorDocument(EntityDocument):
    """Serializer and formatter for Collaborator documents."""

    @classmethod
    def format_incoming(
        cls, document: Mapping[str, Any], partial: bool = False
    ) -> Dict[str, Any]:
        """
        Validate a Collaborator document and map it to columns.

        ``readerId`` is left to the manager, which resolves it.

        Raises:
            ValidationError: With every issue found in the document
        """
        CollaboratorSchema.check(document, partial=partial)

        formatted: Dict[str, Any] = {}
        if document.get("status") is not None:
            formatted["status"] = CollaboratorStatus(document["status"]).code
        if "permission" in document:
            formatted["permission"] = document["permission"]
        return formatted

    @classmethod
    def finalize(
        cls, entity: Any, document: Dict[str, Any], codec: IdentifierCodec
    ) -> Dict[str, Any]:
        document["status"] = entity.status_name
        return document

#!/usr/bin/env python3
"""
tag.py
------
Formatting and public shape of Tag documents.
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from typing import Any, Dict, Mapping

# --- Local imports ---
from marginalia.core.validators import DataValidator
from .entity import EntityDocument
from .schema import TagSchema


class TagDocument(EntityDocument):
    """Serializer and formatter for Tag documents."""

    exclude = ("reader_id",)

    @classmethod
    def format_incoming(
        cls, document: Mapping[str, Any], partial: bool = False
    ) -> Dict[str, Any]:
        """
        Validate and pick the stored properties of a Tag document.

        Raises:
            ValidationError: With every issue found in the document
        """
        TagSchema.check(document, partial=partial)
        formatted: Dict[str, Any] = {}
        for key in ("type", "name"):
            if key in document:
                formatted[key] = DataValidator.normalize_string(document[key])
        if "json" in document:
            formatted["json"] = document["json"]
        return formatted

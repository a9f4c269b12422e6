#!/usr/bin/env python3
"""
reader.py
---------
Formatting and public shape of Reader (Person) documents.
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from typing import Any, Dict, Mapping

# --- Local imports ---
from marginalia.core.exceptions import ValidationError
from marginalia.core.validators import DataValidator
from .entity import EntityDocument

READER_PROPERTIES = ("name", "profile", "preferences", "json")


class ReaderDocument(EntityDocument):
    """Serializer and formatter for Reader documents; the auth id is never emitted."""

    exclude = ("auth_id",)

    @classmethod
    def format_incoming(cls, person: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Pick the stored properties of a Person document.

        Raises:
            ValidationError: If the document is not an object or a JSON
                property is not an object
        """
        if not isinstance(person, Mapping):
            raise ValidationError("Reader validation error: must be an object", value=person)

        formatted = {key: person[key] for key in READER_PROPERTIES if key in person}
        for key in ("profile", "preferences", "json"):
            if formatted.get(key) is not None and not isinstance(formatted[key], Mapping):
                raise ValidationError(
                    f"Reader validation error: {key} must be an object",
                    field=key,
                    value=formatted[key],
                )
        if "name" in formatted:
            formatted["name"] = DataValidator.normalize_string(formatted["name"])
        return formatted

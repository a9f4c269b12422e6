#!/usr/bin/env python3
"""
validators.py
--------------------
Value normalization utilities shared by the Marginalia documents and
managers.

Provides type-safe conversion and normalization of strings, integers,
timestamps, keyword lists and attribution names.
"""
from __future__ import annotations

import re
import unicodedata
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from .exceptions import ValidationError


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class DataValidator:
    """Centralized value normalization for documents and managers."""

    @staticmethod
    def validate_required_fields(
        data: Dict[str, Any], required_fields: List[str]
    ) -> None:
        """
        Validate that required fields are present and non-empty.

        Args:
            data: Data dictionary to validate
            required_fields: List of required field names

        Raises:
            ValidationError: If validation fails
        """
        for field in required_fields:
            if field not in data or not data[field]:
                raise ValidationError(
                    f"Required field '{field}' missing or empty", field=field
                )

    @staticmethod
    def normalize_string(value: Any) -> Optional[str]:
        """
        Normalize string value.

        Args:
            value: Value to normalize

        Returns:
            Stripped string, or None for empty/None input
        """
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @staticmethod
    def normalize_int(value: Any) -> Optional[int]:
        """
        Convert value to integer.

        Booleans are rejected even though they are ints in Python.

        Raises:
            ValidationError: If the value is not an integer or integer string
        """
        if value is None:
            return None
        if isinstance(value, bool):
            raise ValidationError(f"Cannot convert '{value}' to integer", value=value)
        if isinstance(value, int):
            return value
        if isinstance(value, str) and re.fullmatch(r"\s*-?\d+\s*", value):
            return int(value)
        raise ValidationError(f"Cannot convert '{value}' to integer", value=value)

    @staticmethod
    def normalize_bool(value: Any) -> Optional[bool]:
        """
        Convert various inputs to boolean.

        Raises:
            ValidationError: If conversion fails
        """
        if value is None or isinstance(value, bool):
            return value
        if isinstance(value, (int, float)) and value in (0, 1):
            return bool(value)
        if isinstance(value, str):
            if value.lower() in ("true", "1", "yes", "on"):
                return True
            if value.lower() in ("false", "0", "no", "off"):
                return False
        raise ValidationError(f"Cannot convert '{value}' to boolean", value=value)

    @staticmethod
    def normalize_timestamp(value: Any) -> Optional[datetime]:
        """
        Parse an ISO-8601 timestamp (or date) into an aware datetime.

        Naive values are assumed to be UTC. A trailing ``Z`` is accepted.

        Raises:
            ValidationError: If the value cannot be parsed
        """
        if value is None:
            return None
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, date):
            parsed = datetime(value.year, value.month, value.day)
        elif isinstance(value, str):
            text = value.strip()
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            try:
                parsed = datetime.fromisoformat(text)
            except ValueError as e:
                raise ValidationError(
                    f"Invalid timestamp: {value}", value=value
                ) from e
        else:
            raise ValidationError(f"Invalid timestamp type: {type(value)}", value=value)

        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    @staticmethod
    def normalize_keywords(value: Any) -> List[str]:
        """
        Coerce keywords into a list of lower-cased strings.

        A comma-separated string is split; empty entries are dropped.

        Raises:
            ValidationError: If value is neither a string nor a list of strings
        """
        if value is None:
            return []
        if isinstance(value, str):
            items = value.split(",")
        elif isinstance(value, (list, tuple)):
            items = list(value)
        else:
            raise ValidationError(
                "keywords must be a string or a list of strings", value=value
            )

        keywords: List[str] = []
        for item in items:
            if not isinstance(item, str):
                raise ValidationError(
                    "keywords must be a string or a list of strings", value=value
                )
            item = item.strip().lower()
            if item:
                keywords.append(item)
        return keywords

    @staticmethod
    def normalize_name(name: Any) -> str:
        """
        Build the deduplication key for a person name.

        Lower-cases, strips diacritics (María → maria) and removes every
        character that is not a letter or digit.

        Examples:
            >>> DataValidator.normalize_name("Jean-Paul Sartre")
            'jeanpaulsartre'
            >>> DataValidator.normalize_name("  María Gómez ")
            'mariagomez'
        """
        if not name:
            return ""
        text = unicodedata.normalize("NFKD", str(name))
        text = text.encode("ascii", "ignore").decode("ascii")
        return re.sub(r"[^a-z0-9]", "", text.lower())

#!/usr/bin/env python3
"""
exceptions.py
--------------------
Custom exception classes for the Marginalia data layer.

This module defines the hierarchy of exceptions raised by the models,
managers and maintenance tooling. Callers translate them into client or
server errors; nothing here is retried automatically.

Exception Hierarchy:
    Exception (built-in)
    ├── DatabaseError - Base for all store-related errors
    │   ├── NotFoundError - A referenced entity does not exist ("no source")
    │   ├── ConflictError - Unique constraint violated ("already exists")
    │   ├── RelationNotFoundError - Removing an association that is not there
    │   └── PurgeError - Hard-delete sweep failures
    ├── ValidationError - Incoming document failed validation
    └── ConfigError - Invalid or unreadable configuration

Usage:
    from marginalia.core.exceptions import NotFoundError, ValidationError

    try:
        sources.create(reader, document)
    except ValidationError as e:
        for issue in e.issues:
            print(issue.field, issue.message)
    except NotFoundError as e:
        print(f"Missing {e.kind}")
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from typing import Any, List, Optional, Sequence


class DatabaseError(Exception):
    """
    Base exception for store-related errors.

    Raised when database operations fail due to connection issues,
    query errors, integrity violations, or other database problems.
    Catch this to handle any store error, or catch specific subclasses
    for more granular error handling.

    Examples:
        >>> raise DatabaseError("Data integrity violation: ...")
    """

    pass


class NotFoundError(DatabaseError):
    """
    Exception for references to entities that do not exist.

    The message follows the ``"no <kind>"`` convention (``"no reader"``,
    ``"no source"``, ``"no tag"``, ``"no notebook"``) so callers can map it
    to a not-found response without parsing.

    Attributes:
        kind: Entity kind that was missing (e.g. "source")
        entity_id: Identifier that could not be resolved, when known
    """

    def __init__(
        self,
        kind: str,
        entity_id: Optional[str] = None,
        message: Optional[str] = None,
    ) -> None:
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(message or f"no {kind}")


class ConflictError(DatabaseError):
    """
    Exception for unique-constraint violations.

    Raised when an association already exists or when an entity would
    duplicate another one's unique key (e.g. a tag with the same
    reader, type and name).
    """

    pass


class RelationNotFoundError(DatabaseError):
    """
    Exception for removing an association that does not exist.

    Removal is deliberately not idempotent: a second removal of the same
    pair raises this error so callers can detect stale state.
    """

    pass


class PurgeError(DatabaseError):
    """Exception for hard-delete sweep failures."""

    pass


class ValidationError(Exception):
    """
    Exception for data validation failures.

    Carries every issue found while validating one document, so a single
    raise reports all offending fields at once.

    Attributes:
        issues: List of issues (objects with ``field``, ``message`` and
            ``value`` attributes)
        field: Field of the first issue, if any
        value: Offending value of the first issue, if any

    Examples:
        >>> raise ValidationError("Required field 'name' missing or empty")
    """

    def __init__(
        self,
        message: str,
        issues: Optional[Sequence[Any]] = None,
        field: Optional[str] = None,
        value: Any = None,
    ) -> None:
        self.issues: List[Any] = list(issues or [])
        if self.issues and field is None:
            field = getattr(self.issues[0], "field", None)
            value = getattr(self.issues[0], "value", None)
        self.field = field
        self.value = value
        super().__init__(message)


class ConfigError(Exception):
    """Exception for invalid or unreadable configuration."""

    pass

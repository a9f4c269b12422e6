#!/usr/bin/env python3
"""
tag_manager.py
--------------------
Manages Tag entities.

A tag belongs to a reader and optionally to one notebook. The pair
``(type, name)`` is unique per reader; creating a duplicate raises
ConflictError. Tags are attached to sources, notes and notebooks through
the association managers.

Key Features:
    - Create / update with aggregated validation
    - Reader-wide or notebook-scoped listing
    - Soft delete (join rows stay until the purge sweep)
    - Cache invalidation of the owner's tags and library

Usage:
    tag_mgr = TagManager(session, logger, codec, cache_hooks)
    tag = tag_mgr.create(reader, {"type": "reader:Tag", "name": "to read"})
    tag_mgr.update(tag.id, {"name": "later"})
    tag_mgr.delete(tag.id)
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from typing import Any, List, Mapping, Optional

# --- Third party imports ---
from sqlalchemy.exc import IntegrityError

# --- Local imports ---
from marginalia.core.exceptions import (
    ConflictError,
    DatabaseError,
    NotFoundError,
    ValidationError,
)
from ..constraints import ViolationKind, describe_violation
from ..decorators import handle_db_errors, log_database_operation
from ..documents import TagDocument
from ..models import Notebook, Tag
from .base_manager import NotifyingManager


class TagManager(NotifyingManager):
    """Manages Tag table operations."""

    def _flush_tag(self, tag: Tag, action: str, changes: Optional[Mapping[str, Any]] = None) -> None:
        """Apply changes and flush a tag inside a savepoint, translating violations."""
        try:
            with self.session.begin_nested():
                for key, value in (changes or {}).items():
                    setattr(tag, key, value)
                self.session.add(tag)
                self.session.flush()
        except IntegrityError as e:
            violation = describe_violation(e)
            if violation.kind is ViolationKind.UNIQUE:
                raise ConflictError(
                    f"{action} Error: Tag {tag.type} {tag.name} already exists"
                ) from e
            if violation.kind is ViolationKind.FOREIGN_KEY:
                if tag.notebook_id and not self._exists(Notebook, tag.notebook_id, True):
                    raise NotFoundError("notebook", tag.notebook_id) from e
                raise NotFoundError("reader", tag.reader_id) from e
            raise DatabaseError(f"{action} Error: {e.orig}") from e

    @staticmethod
    def _require_text(values: Mapping[str, Any], document: Mapping[str, Any]) -> None:
        """Reject a type or name that is blank once normalized."""
        for key in ("type", "name"):
            if key in values and not values[key]:
                raise ValidationError(
                    f"Tag validation error: {key} cannot be empty",
                    field=key,
                    value=document.get(key),
                )

    @handle_db_errors
    @log_database_operation("create_tag")
    def create(self, reader: Any, document: Mapping[str, Any]) -> Tag:
        """
        Create a tag for a reader.

        Args:
            reader: Reader object or id
            document: Tag document (``type``, ``name``, optional ``notebookId``
                and ``json``)

        Returns:
            Created Tag

        Raises:
            ValidationError: Missing or malformed type/name
            NotFoundError: ``no reader`` / ``no notebook``
            ConflictError: Same type and name already used by this reader
        """
        owner = self._require_reader(reader)
        values = TagDocument.format_incoming(document)
        self._require_text(values, document)
        notebook_id = self._resolve_id(document.get("notebookId"))

        tag = Tag(
            id=self.codec.new_owned_id(owner.id),
            reader_id=owner.id,
            notebook_id=notebook_id,
            **values,
        )
        self._flush_tag(tag, "Create Tag")

        self._notify(owner.id, "tags")
        return tag

    @handle_db_errors
    @log_database_operation("get_tag")
    def get_by_id(self, tag_id: Any) -> Optional[Tag]:
        """Get an active tag by id or URL."""
        return self._get_by_id(Tag, self._resolve_id(tag_id))

    def exists(self, tag_id: Any) -> bool:
        return self._exists(Tag, self._resolve_id(tag_id))

    @handle_db_errors
    @log_database_operation("get_tags_for_reader")
    def get_all_for_reader(self, reader: Any, notebook_id: Any = None) -> List[Tag]:
        """
        List a reader's active tags ordered by name.

        Args:
            reader: Reader object or id
            notebook_id: When given, only tags scoped to this notebook;
                otherwise only reader-wide tags (no notebook)
        """
        owner = self._require_reader(reader)
        query = self.session.query(Tag).filter(
            Tag.reader_id == owner.id, Tag.deleted.is_(None)
        )
        notebook = self._resolve_id(notebook_id)
        if notebook is None:
            query = query.filter(Tag.notebook_id.is_(None))
        else:
            query = query.filter(Tag.notebook_id == notebook)
        return query.order_by(Tag.name, Tag.id).all()

    @handle_db_errors
    @log_database_operation("update_tag")
    def update(self, tag_id: Any, body: Mapping[str, Any]) -> Tag:
        """
        Update a tag's type, name or json.

        Raises:
            NotFoundError: ``no tag``
            ValidationError: If type or name would become empty
            ConflictError: If the new type/name pair is already used
        """
        tag = self.get_by_id(tag_id)
        if tag is None:
            raise NotFoundError("tag", self._resolve_id(tag_id))

        values = TagDocument.format_incoming(body, partial=True)
        self._require_text(values, body)
        self._flush_tag(tag, "Update Tag", values)

        self._notify(tag.reader_id, "tags", "library")
        return tag

    @handle_db_errors
    @log_database_operation("delete_tag")
    def delete(self, tag_id: Any) -> int:
        """
        Soft delete a tag.

        Join rows referencing the tag are left in place; active traversals
        skip them and the purge sweep removes them.

        Returns:
            Number of rows marked (0 if missing or already deleted)
        """
        resolved = self._resolve_id(tag_id)
        tag = self._get_by_id(Tag, resolved, include_deleted=True)
        count = self._soft_delete(Tag, resolved)
        if count and tag is not None:
            self._notify(tag.reader_id, "tags", "library")
        return count

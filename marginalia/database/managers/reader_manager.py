#!/usr/bin/env python3
"""
reader_manager.py
--------------------
Manages Reader entities, the root of ownership for every other entity.

Readers are identified internally by a canonical UUID and publicly by its
22-character base-58 short id. ``auth_id`` links a reader to the external
authentication provider and is unique.

Key Features:
    - Create a reader from an auth id and a Person document
    - Lookup by internal id, short id / URL, or auth id
    - Soft delete (physical removal is left to the purge sweep)

Usage:
    reader_mgr = ReaderManager(session, logger, codec)
    reader = reader_mgr.create("auth0|123", {"name": "Ada"})
    same = reader_mgr.get_by_short_id(codec.to_public_id(reader.id))
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from typing import Any, Dict, Mapping, Optional

# --- Third party imports ---
from sqlalchemy.exc import IntegrityError

# --- Local imports ---
from marginalia.core.exceptions import ConflictError, NotFoundError
from ..decorators import handle_db_errors, log_database_operation
from ..documents import ReaderDocument
from ..models import Reader
from .base_manager import BaseManager


class ReaderManager(BaseManager):
    """Manages Reader table operations."""

    @handle_db_errors
    @log_database_operation("create_reader")
    def create(self, auth_id: str, person: Optional[Mapping[str, Any]] = None) -> Reader:
        """
        Create a new reader.

        Args:
            auth_id: External authentication id (unique)
            person: Person document (name, profile, preferences, json)

        Returns:
            Created Reader

        Raises:
            ValidationError: If the document is malformed
            ConflictError: If a reader with this auth id already exists
        """
        values = ReaderDocument.format_incoming(person or {})
        reader = Reader(id=self.codec.new_reader_id(), auth_id=auth_id, **values)
        try:
            with self.session.begin_nested():
                self.session.add(reader)
                self.session.flush()
        except IntegrityError as e:
            raise ConflictError(
                f"Create Reader Error: Reader already exists for auth id {auth_id}"
            ) from e

        self.log.log_debug(f"Created reader {reader.id}", {"reader_id": reader.id})
        return reader

    @handle_db_errors
    @log_database_operation("get_reader")
    def get_by_id(self, reader_id: Any, include_deleted: bool = False) -> Optional[Reader]:
        """Get a reader by internal id, short id or URL."""
        return self._get_by_id(Reader, self._resolve_id(reader_id), include_deleted)

    def get_by_short_id(self, short_id: str) -> Optional[Reader]:
        """Get a reader by its public short id."""
        return self.get_by_id(short_id)

    @handle_db_errors
    @log_database_operation("get_reader_by_auth_id")
    def get_by_auth_id(self, auth_id: str) -> Optional[Reader]:
        """Get an active reader by external authentication id."""
        if not auth_id:
            return None
        return (
            self.session.query(Reader)
            .filter(Reader.auth_id == auth_id, Reader.deleted.is_(None))
            .first()
        )

    def exists(self, reader_id: Any) -> bool:
        """Check whether an active reader exists."""
        return self._exists(Reader, self._resolve_id(reader_id))

    @handle_db_errors
    @log_database_operation("update_reader")
    def update(self, reader_id: Any, person: Mapping[str, Any]) -> Reader:
        """
        Update a reader's stored properties.

        Only the properties present in ``person`` change.

        Raises:
            NotFoundError: If the reader does not exist or is deleted
        """
        reader = self._require_reader(reader_id)
        values: Dict[str, Any] = ReaderDocument.format_incoming(person)
        for key, value in values.items():
            setattr(reader, key, value)
        self.session.flush()
        return reader

    @handle_db_errors
    @log_database_operation("delete_reader")
    def delete(self, reader_id: Any) -> int:
        """
        Soft delete a reader.

        Returns:
            Number of rows marked (0 when already deleted or missing)
        """
        return self._soft_delete(Reader, self._resolve_id(reader_id))

    def require(self, reader_id: Any) -> Reader:
        """
        Get an active reader or raise.

        Raises:
            NotFoundError: ``no reader``
        """
        reader = self.get_by_id(reader_id)
        if reader is None:
            raise NotFoundError("reader", self._resolve_id(reader_id))
        return reader

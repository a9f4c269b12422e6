#!/usr/bin/env python3
"""
read_activity_manager.py
--------------------
Manages the append-only reading position log.

Every recorded position is a new ReadActivity row; the latest one by
``published`` is the reader's current position in a source.

Usage:
    activity_mgr = ReadActivityManager(session, logger, codec)
    activity_mgr.create(reader.id, source.id, {"selector": {"type": "XPathSelector", "value": "/p[3]"}})
    current = activity_mgr.get_latest(source.id)
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from typing import Any, Mapping, Optional

# --- Third party imports ---
from sqlalchemy.exc import IntegrityError

# --- Local imports ---
from marginalia.core.exceptions import DatabaseError, NotFoundError
from ..constraints import ViolationKind, describe_violation
from ..decorators import handle_db_errors, log_database_operation
from ..documents import ReadActivitySchema
from ..models import ReadActivity, Reader
from .base_manager import BaseManager


class ReadActivityManager(BaseManager):
    """Manages ReadActivity table operations."""

    @handle_db_errors
    @log_database_operation("create_read_activity")
    def create(
        self, reader_id: Any, source_id: Any, document: Mapping[str, Any]
    ) -> ReadActivity:
        """
        Record a reading position.

        Args:
            reader_id: Reader id or URL
            source_id: Source id or URL
            document: Activity document with a ``selector`` object

        Returns:
            Created ReadActivity

        Raises:
            ValidationError: Missing or malformed selector
            NotFoundError: ``no reader`` / ``no source``
        """
        ReadActivitySchema.check(document)
        reader = self._resolve_id(reader_id)
        source = self._resolve_id(source_id)
        if reader is None:
            raise NotFoundError("reader")
        if source is None:
            raise NotFoundError("source")

        activity = ReadActivity(
            id=self.codec.new_owned_id(reader),
            reader_id=reader,
            source_id=source,
            selector=document["selector"],
            json=document.get("json"),
        )
        try:
            with self.session.begin_nested():
                self.session.add(activity)
                self.session.flush()
        except IntegrityError as e:
            violation = describe_violation(e)
            if violation.kind is not ViolationKind.FOREIGN_KEY:
                raise DatabaseError(f"Create ReadActivity Error: {e.orig}") from e
            if violation.entity == "source":
                raise NotFoundError("source", source) from e
            if violation.entity == "reader" or not self._exists(Reader, reader, True):
                raise NotFoundError("reader", reader) from e
            raise NotFoundError("source", source) from e
        return activity

    @handle_db_errors
    @log_database_operation("get_latest_read_activity")
    def get_latest(self, source_id: Any) -> Optional[ReadActivity]:
        """Most recent activity for a source, or None."""
        return (
            self.session.query(ReadActivity)
            .filter(ReadActivity.source_id == self._resolve_id(source_id))
            .order_by(ReadActivity.published.desc(), ReadActivity.id.desc())
            .first()
        )

#!/usr/bin/env python3
"""
collaborator_manager.py
--------------------
Manages Collaborator entities: readers invited into someone's notebook.

A collaborator row carries the invitation ``status`` and an opaque
``permission`` object. The id is owned by the invited reader
(``{readerShortId}-{suffix}``).

Key Features:
    - Create for an active notebook and an active reader
    - Update of status and permission (readerId never changes)
    - Soft delete (removed physically by the purge sweep)
    - Notebook owner's notebooks cache is refreshed on every change

Usage:
    collaborator_mgr = CollaboratorManager(session, logger, codec, cache_hooks)
    invite = collaborator_mgr.create(notebook.id, {
        "readerId": guest.id, "status": "pending", "permission": {"read": True},
    })
    collaborator_mgr.update(invite.id, {"status": "accepted"})
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from typing import Any, Dict, List, Mapping, Optional

# --- Third party imports ---
from sqlalchemy.exc import IntegrityError

# --- Local imports ---
from marginalia.core.exceptions import DatabaseError, NotFoundError
from ..constraints import ViolationKind, describe_violation
from ..decorators import handle_db_errors, log_database_operation
from ..documents import CollaboratorDocument
from ..models import Collaborator, Notebook
from .base_manager import NotifyingManager


class CollaboratorManager(NotifyingManager):
    """Manages Collaborator table operations."""

    def _require_notebook(self, notebook_id: Any) -> Notebook:
        notebook = self._get_by_id(Notebook, self._resolve_id(notebook_id))
        if notebook is None:
            raise NotFoundError("notebook", self._resolve_id(notebook_id))
        return notebook

    def _notify_owner(self, notebook_id: str) -> None:
        notebook = self._get_by_id(Notebook, notebook_id, include_deleted=True)
        if notebook is not None:
            self._notify(notebook.reader_id, "notebooks")

    @handle_db_errors
    @log_database_operation("create_collaborator")
    def create(self, notebook_id: Any, document: Mapping[str, Any]) -> Collaborator:
        """
        Invite a reader into a notebook.

        Args:
            notebook_id: Shared notebook (id or URL)
            document: ``readerId``, ``status`` and ``permission`` (all required)

        Returns:
            Created Collaborator

        Raises:
            ValidationError: Missing fields or unknown status
            NotFoundError: ``no notebook`` / ``no reader``
        """
        values = CollaboratorDocument.format_incoming(document)
        notebook = self._require_notebook(notebook_id)
        guest = self._require_reader(document["readerId"])

        collaborator = Collaborator(
            id=self.codec.new_owned_id(guest.id),
            notebook_id=notebook.id,
            reader_id=guest.id,
            **values,
        )
        try:
            with self.session.begin_nested():
                self.session.add(collaborator)
                self.session.flush()
        except IntegrityError as e:
            if describe_violation(e).kind is ViolationKind.FOREIGN_KEY:
                raise NotFoundError("notebook", notebook.id) from e
            raise DatabaseError(f"Create Collaborator Error: {e.orig}") from e

        self._notify(notebook.reader_id, "notebooks")
        return collaborator

    @handle_db_errors
    @log_database_operation("get_collaborator")
    def get_by_id(self, collaborator_id: Any) -> Optional[Collaborator]:
        """Get an active collaborator by id or URL."""
        return self._get_by_id(Collaborator, self._resolve_id(collaborator_id))

    @handle_db_errors
    @log_database_operation("get_collaborators_for_notebook")
    def get_all_for_notebook(self, notebook_id: Any) -> List[Collaborator]:
        """Active collaborators of a notebook, oldest invitation first."""
        return (
            self.session.query(Collaborator)
            .filter(
                Collaborator.notebook_id == self._resolve_id(notebook_id),
                Collaborator.deleted.is_(None),
            )
            .order_by(Collaborator.published, Collaborator.id)
            .all()
        )

    @handle_db_errors
    @log_database_operation("update_collaborator")
    def update(self, collaborator_id: Any, body: Mapping[str, Any]) -> Collaborator:
        """
        Change the status or permission of a collaborator.

        Raises:
            NotFoundError: ``no collaborator``
            ValidationError: Unknown status or non-object permission
        """
        collaborator = self.get_by_id(collaborator_id)
        if collaborator is None:
            raise NotFoundError("collaborator", self._resolve_id(collaborator_id))

        for key, value in CollaboratorDocument.format_incoming(body, partial=True).items():
            setattr(collaborator, key, value)
        self.session.flush()

        self._notify_owner(collaborator.notebook_id)
        return collaborator

    @handle_db_errors
    @log_database_operation("delete_collaborator")
    def delete(self, collaborator_id: Any) -> int:
        """
        Soft delete a collaborator.

        Returns:
            Number of rows marked (0 if missing or already deleted)
        """
        resolved = self._resolve_id(collaborator_id)
        collaborator = self._get_by_id(Collaborator, resolved, include_deleted=True)
        count = self._soft_delete(Collaborator, resolved)
        if count and collaborator is not None:
            self._notify_owner(collaborator.notebook_id)
        return count

    def to_public(self, collaborator: Collaborator) -> Dict[str, Any]:
        return CollaboratorDocument.to_public(collaborator, self.codec)

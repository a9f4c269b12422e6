#!/usr/bin/env python3
"""
notebook_manager.py
--------------------
Manages Notebook entities.

A notebook groups sources, notes and tags of one reader. Its status
travels as a name (``active``, ``archived``, ``test``) and is stored as an
integer code.

Key Features:
    - Create one or several notebooks (best effort for several)
    - Lookup with active sources, tags and note contexts eager-loaded
    - Listing with status / search / colour filters, ordering and paging
    - Soft delete; cache invalidation of the owner's notebooks

Usage:
    notebook_mgr = NotebookManager(session, logger, codec, cache_hooks, metrics)
    notebook = notebook_mgr.create(reader, {"name": "Thesis"})
    page = notebook_mgr.get_all_for_reader(reader, search="thes", order_by="name")
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from typing import Any, Iterable, List, Mapping, Optional

# --- Third party imports ---
from sqlalchemy import or_
from sqlalchemy.orm import Query, selectinload

# --- Local imports ---
from marginalia.core.exceptions import DatabaseError, NotFoundError, ValidationError
from ..decorators import handle_db_errors, log_database_operation
from ..documents import NotebookDocument
from ..models import Notebook, NotebookStatus, Reader
from ..outcomes import BulkResult, ItemOutcome, OutcomeStatus
from .base_manager import NotifyingManager

ORDER_COLUMNS = {
    "name": (Notebook.name, False),
    "created": (Notebook.published, True),
    "updated": (Notebook.updated, True),
}


class NotebookManager(NotifyingManager):
    """Manages Notebook table operations."""

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def _insert(self, owner: Reader, document: Mapping[str, Any]) -> Notebook:
        values = NotebookDocument.format_incoming(document)
        notebook = Notebook(id=self.codec.new_owned_id(owner.id), reader_id=owner.id, **values)
        self.session.add(notebook)
        self.session.flush()
        return notebook

    @handle_db_errors
    @log_database_operation("create_notebook")
    def create(self, reader: Any, document: Mapping[str, Any]) -> Notebook:
        """
        Create a notebook.

        Args:
            reader: Owner (Reader object or id)
            document: Notebook document (``name`` required)

        Returns:
            Created Notebook

        Raises:
            NotFoundError: ``no reader``
            ValidationError: With every issue in the document
        """
        owner = self._require_reader(reader)
        notebook = self._insert(owner, document)
        self._notify(owner.id, "notebooks")
        self._enqueue("createNotebook", owner.id)
        return notebook

    @handle_db_errors
    @log_database_operation("create_multiple_notebooks")
    def create_multiple(
        self, reader: Any, documents: Iterable[Mapping[str, Any]]
    ) -> BulkResult:
        """
        Create several notebooks, best effort.

        Each document is inserted in its own savepoint; an invalid document
        is reported and the others are still created.

        Returns:
            BulkResult with one outcome per document (value: the Notebook)
        """
        owner = self._require_reader(reader)
        result = BulkResult()
        for document in documents:
            try:
                with self.session.begin_nested():
                    notebook = self._insert(owner, document)
            except ValidationError as e:
                result.add(ItemOutcome(None, OutcomeStatus.INVALID, document, str(e)))
                continue
            except DatabaseError as e:
                result.add(ItemOutcome(None, OutcomeStatus.INVALID, document, str(e)))
                continue
            result.add(ItemOutcome(notebook.id, OutcomeStatus.ADDED, notebook))
            self._enqueue("createNotebook", owner.id)

        if result.succeeded:
            self._notify(owner.id, "notebooks")
        return result

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @handle_db_errors
    @log_database_operation("get_notebook")
    def get_by_id(self, notebook_id: Any) -> Optional[Notebook]:
        """
        Get an active notebook with its active sources, tags, notebook tags
        and note contexts loaded.
        """
        return (
            self.session.query(Notebook)
            .options(
                selectinload(Notebook.sources),
                selectinload(Notebook.tags),
                selectinload(Notebook.notebook_tags),
                selectinload(Notebook.note_contexts),
            )
            .populate_existing()
            .filter(Notebook.id == self._resolve_id(notebook_id), Notebook.deleted.is_(None))
            .first()
        )

    def exists(self, notebook_id: Any) -> bool:
        return self._exists(Notebook, self._resolve_id(notebook_id))

    def _filtered(
        self,
        owner: Reader,
        status: Optional[str] = None,
        search: Optional[str] = None,
        colour: Optional[str] = None,
    ) -> Query:
        """Active notebooks of a reader narrowed by the listing filters."""
        if status is not None and status not in NotebookStatus.choices():
            raise ValidationError(
                f"Notebook validation error: unknown status {status}", field="status", value=status
            )
        code = NotebookStatus(status or NotebookStatus.ACTIVE.value).code

        query = self.session.query(Notebook).filter(
            Notebook.reader_id == owner.id,
            Notebook.deleted.is_(None),
            Notebook.status == code,
        )
        if search:
            pattern = f"%{search.lower()}%"
            query = query.filter(
                or_(Notebook.name.ilike(pattern), Notebook.description.ilike(pattern))
            )
        if colour:
            query = query.filter(Notebook.settings["colour"].as_string() == colour)
        return query

    @handle_db_errors
    @log_database_operation("get_notebooks_for_reader")
    def get_all_for_reader(
        self,
        reader: Any,
        limit: int = 10,
        offset: int = 0,
        status: Optional[str] = None,
        search: Optional[str] = None,
        colour: Optional[str] = None,
        order_by: str = "updated",
        reverse: bool = False,
    ) -> List[Notebook]:
        """
        List a reader's notebooks.

        Args:
            reader: Reader object or id
            limit / offset: Paging
            status: ``active`` (default), ``archived`` or ``test``
            search: Case-insensitive substring of name or description
            colour: Value of ``settings["colour"]``
            order_by: ``updated`` (newest first, default), ``created``
                (newest first) or ``name`` (alphabetical)
            reverse: Invert the ordering

        Raises:
            NotFoundError: ``no reader``
            ValidationError: Unknown status or order
        """
        owner = self._require_reader(reader)
        if order_by not in ORDER_COLUMNS:
            raise ValidationError(
                f"Notebook validation error: cannot order by {order_by}",
                field="orderBy",
                value=order_by,
            )
        column, descending = ORDER_COLUMNS[order_by]
        if reverse:
            descending = not descending

        query = self._filtered(owner, status, search, colour)
        query = query.order_by(column.desc() if descending else column.asc(), Notebook.id)
        return query.offset(offset).limit(limit).all()

    @handle_db_errors
    @log_database_operation("count_notebooks_for_reader")
    def count_for_reader(
        self,
        reader: Any,
        status: Optional[str] = None,
        search: Optional[str] = None,
        colour: Optional[str] = None,
    ) -> int:
        """Number of notebooks matching the same filters as get_all_for_reader."""
        owner = self._require_reader(reader)
        return self._filtered(owner, status, search, colour).count()

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    @handle_db_errors
    @log_database_operation("update_notebook")
    def update(self, notebook_id: Any, body: Mapping[str, Any]) -> Notebook:
        """
        Update name, description, status or settings.

        Raises:
            NotFoundError: ``no notebook``
            ValidationError: With every issue in the body
        """
        notebook = self._get_by_id(Notebook, self._resolve_id(notebook_id))
        if notebook is None:
            raise NotFoundError("notebook", self._resolve_id(notebook_id))

        values = NotebookDocument.format_incoming(body, partial=True)
        if "name" in values and not values["name"]:
            raise ValidationError(
                "Notebook validation error: name cannot be empty", field="name", value=values["name"]
            )
        for key, value in values.items():
            setattr(notebook, key, value)
        self.session.flush()

        self._notify(notebook.reader_id, "notebooks")
        return notebook

    @handle_db_errors
    @log_database_operation("delete_notebook")
    def delete(self, notebook_id: Any) -> int:
        """
        Soft delete a notebook.

        Returns:
            Number of rows marked (0 if missing or already deleted)
        """
        resolved = self._resolve_id(notebook_id)
        notebook = self._get_by_id(Notebook, resolved, include_deleted=True)
        count = self._soft_delete(Notebook, resolved)
        if count and notebook is not None:
            self._notify(notebook.reader_id, "notebooks")
        return count

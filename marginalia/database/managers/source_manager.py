#!/usr/bin/env python3
"""
source_manager.py
--------------------
Manages Source entities: the documents and books of a reader's library.

A Source document is flattened on the way in (relational columns, an
allow-listed ``metadata`` object, link arrays, attributions) and rebuilt on
the way out by SourceDocument. This manager owns the lifecycle around it.

Key Features:
    - Create (optionally wired into a notebook, undone if wiring fails)
    - Lookup with active tags, replies, attributions and the current
      reading position
    - Listing filtered by type, search, attribution, language, keyword,
      tag, collection or notebook, with paging
    - Update with metadata merge and per-role attribution replacement
    - Soft delete, reference state, physical delete
    - Batch operations across several sources with per-source outcomes

Usage:
    source_mgr = SourceManager(session, logger, codec, cache_hooks, metrics)
    source = source_mgr.create(reader, {"name": "Dune", "type": "Book", "author": "Frank Herbert"})
    source_mgr.update(source.id, {"keywords": ["scifi"]})
    result = source_mgr.batch_add_tags([tag.id], [source.id, other.id])
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
import json
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

# --- Third party imports ---
from sqlalchemy import String, cast, or_, select, update
from sqlalchemy.orm import Query, selectinload

# --- Local imports ---
from marginalia.core.exceptions import DatabaseError, NotFoundError, ValidationError
from marginalia.core.validators import DataValidator, utcnow
from ..association_manager import AssociationManager
from ..decorators import handle_db_errors, log_database_operation
from ..documents import SourceDocument
from ..models import Attribution, AttributionRole, Note, Source, Tag, notebook_source, source_tag
from ..outcomes import BulkResult, ItemOutcome, OutcomeStatus
from ..purge_manager import PurgeSet, purge_entities
from .attribution_manager import AttributionManager
from .base_manager import NotifyingManager
from .read_activity_manager import ReadActivityManager

ORDER_COLUMNS = {
    "name": (Source.name, False),
    "created": (Source.published, True),
    "updated": (Source.updated, True),
    "datePublished": (Source.date_published, True),
}

# Metadata properties holding arrays, for the add/remove array batch operations
ARRAY_METADATA = ("keywords", "inLanguage")

# Tag type marking a tag as a collection (shelf) of sources
COLLECTION_TAG_TYPE = "stack"


class SourceManager(NotifyingManager):
    """Manages Source table operations."""

    @property
    def attributions(self) -> AttributionManager:
        return AttributionManager(self.session, self.logger, self.codec)

    @property
    def source_tags(self) -> AssociationManager:
        return AssociationManager.for_source_tags(self.session, self.logger, self.codec)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _active(self, source_id: Any) -> Optional[Source]:
        """Source that is neither deleted nor referenced, or None."""
        source = self._get_by_id(Source, self._resolve_id(source_id))
        if source is None or source.referenced is not None:
            return None
        return source

    def _require(self, source_id: Any) -> Source:
        source = self._active(source_id)
        if source is None:
            raise NotFoundError("source", self._resolve_id(source_id))
        return source

    @staticmethod
    def _require_text(values: Mapping[str, Any], document: Mapping[str, Any]) -> None:
        for key in ("name", "type"):
            if key in values and not values[key]:
                raise ValidationError(
                    f"Source validation error: {key} cannot be empty",
                    field=key,
                    value=document.get(key),
                )

    def _refresh_attributions(self, source: Source) -> None:
        self.session.expire(source, ["attributions"])

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def _insert(self, reader: Any, document: Mapping[str, Any]) -> Source:
        """Insert a source and its attributions without notifying anyone."""
        owner = self._require_reader(reader)
        values = SourceDocument.format_incoming(document)
        self._require_text(values, document)

        source = Source(id=self.codec.new_owned_id(owner.id), reader_id=owner.id, **values)
        self.session.add(source)
        self.session.flush()

        self.attributions.create_for_source(document, source.id, owner.id)
        self._refresh_attributions(source)
        return source

    def _announce(self, source: Source) -> None:
        self._notify(source.reader_id, "library")
        self._enqueue("createSource", source.reader_id)

    @handle_db_errors
    @log_database_operation("create_source")
    def create(self, reader: Any, document: Mapping[str, Any]) -> Source:
        """
        Create a source with its attributions.

        Args:
            reader: Owner (Reader object or id)
            document: Source document (``name`` and ``type`` required)

        Returns:
            Created Source

        Raises:
            NotFoundError: ``no reader``
            ValidationError: With every issue in the document
        """
        source = self._insert(reader, document)
        self._announce(source)
        return source

    @handle_db_errors
    @log_database_operation("create_source_in_notebook")
    def create_in_notebook(
        self, reader: Any, notebook_id: Any, document: Mapping[str, Any]
    ) -> Source:
        """
        Create a source and add it to a notebook.

        If the notebook association fails, the new source is deleted
        physically and the error is re-raised; nothing is notified or
        enqueued for it.

        Raises:
            NotFoundError: ``no reader`` / ``no notebook``
        """
        source = self._insert(reader, document)
        try:
            AssociationManager.for_notebook_sources(
                self.session, self.logger, self.codec
            ).add(notebook_id, source.id)
        except DatabaseError:
            self.hard_delete(source.id)
            raise
        self._announce(source)
        return source

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @handle_db_errors
    @log_database_operation("get_source")
    def get_by_id(self, source_id: Any, include_referenced: bool = False) -> Optional[Source]:
        """
        Get a source with active tags, active replies and attributions loaded.

        ``position`` is set from the latest read activity.

        Args:
            source_id: Id or URL
            include_referenced: Also return a source in reference state

        Returns:
            Source, or None if missing, deleted or (by default) referenced
        """
        query = (
            self.session.query(Source)
            .options(
                selectinload(Source.tags),
                selectinload(Source.notebooks),
                selectinload(Source.replies),
                selectinload(Source.attributions),
            )
            .populate_existing()
            .filter(Source.id == self._resolve_id(source_id), Source.deleted.is_(None))
        )
        if not include_referenced:
            query = query.filter(Source.referenced.is_(None))
        source = query.first()
        if source is None:
            return None

        latest = ReadActivityManager(self.session, self.logger, self.codec).get_latest(source.id)
        source.position = latest.selector if latest is not None else None
        return source

    def exists(self, source_id: Any) -> bool:
        """Check whether an active, non-referenced source exists."""
        return self._active(source_id) is not None

    @staticmethod
    def _metadata_contains(prop: str, value: str):
        """``metadata[prop]`` (a JSON array of strings) holds ``value``."""
        return cast(Source.metadata_[prop], String).like(f"%{json.dumps(value)}%")

    @staticmethod
    def _tagged(*criteria) -> Any:
        """Sources joined to an active tag matching the criteria."""
        return Source.id.in_(
            select(source_tag.c.source_id)
            .join(Tag, Tag.id == source_tag.c.tag_id)
            .where(Tag.deleted.is_(None), *criteria)
        )

    @staticmethod
    def _attributed(*criteria) -> Any:
        return Source.id.in_(select(Attribution.source_id).where(*criteria))

    def _filtered(
        self,
        reader_id: str,
        type: Optional[str] = None,
        search: Optional[str] = None,
        tag: Any = None,
        notebook: Any = None,
        author: Optional[str] = None,
        attribution: Optional[str] = None,
        role: Optional[str] = None,
        language: Optional[str] = None,
        keyword: Optional[str] = None,
        collection: Optional[str] = None,
    ) -> Query:
        query = self.session.query(Source).filter(
            Source.reader_id == reader_id,
            Source.deleted.is_(None),
            Source.referenced.is_(None),
        )
        if type:
            query = query.filter(Source.type == type[:1].upper() + type[1:])
        if search:
            pattern = f"%{search}%"
            matches = [
                Source.name.ilike(pattern),
                Source.abstract.ilike(pattern),
                Source.description.ilike(pattern),
                self._metadata_contains("keywords", search.strip().lower()),
            ]
            normalized = AttributionManager.normalize_name(search)
            if normalized:
                matches.append(
                    self._attributed(Attribution.normalized_name.contains(normalized))
                )
            query = query.filter(or_(*matches))
        if author:
            query = query.filter(
                self._attributed(
                    Attribution.normalized_name == AttributionManager.normalize_name(author),
                    Attribution.role == AttributionRole.AUTHOR.value,
                )
            )
        if attribution:
            criteria = [
                Attribution.normalized_name.contains(
                    AttributionManager.normalize_name(attribution)
                )
            ]
            if role:
                criteria.append(Attribution.role == role)
            query = query.filter(self._attributed(*criteria))
        if language:
            query = query.filter(self._metadata_contains("inLanguage", language))
        if keyword:
            query = query.filter(self._metadata_contains("keywords", keyword.strip().lower()))
        if tag is not None:
            query = query.filter(self._tagged(Tag.id == self._resolve_id(tag)))
        if collection:
            query = query.filter(
                self._tagged(Tag.name == collection, Tag.type == COLLECTION_TAG_TYPE)
            )
        if notebook is not None:
            query = query.filter(
                Source.id.in_(
                    select(notebook_source.c.source_id).where(
                        notebook_source.c.notebook_id == self._resolve_id(notebook)
                    )
                )
            )
        return query

    @handle_db_errors
    @log_database_operation("get_sources_for_reader")
    def get_all_for_reader(
        self,
        reader: Any,
        limit: int = 10,
        offset: int = 0,
        order_by: str = "updated",
        reverse: bool = False,
        **filters: Any,
    ) -> List[Source]:
        """
        List a reader's library.

        Args:
            reader: Reader object or id
            limit / offset: Paging
            order_by: ``updated`` (default), ``created``, ``datePublished``
                (newest first) or ``name`` (alphabetical)
            reverse: Invert the ordering
            **filters: Any of
                - ``type``: Source type (first letter capitalized)
                - ``search``: Substring of name, abstract, description or a
                  credited name, or an exact keyword
                - ``author``: Credited as author (normalized name)
                - ``attribution`` / ``role``: Credited name containing the
                  value, optionally only in that role
                - ``language`` / ``keyword``: Listed in ``inLanguage`` /
                  ``keywords``
                - ``tag``: Carries this active tag
                - ``collection``: Carries an active ``stack`` tag of this name
                - ``notebook``: In this notebook

        Raises:
            NotFoundError: ``no reader``
            ValidationError: Unknown order
        """
        owner = self._require_reader(reader)
        if order_by not in ORDER_COLUMNS:
            raise ValidationError(
                f"Source validation error: cannot order by {order_by}",
                field="orderBy",
                value=order_by,
            )
        column, descending = ORDER_COLUMNS[order_by]
        if reverse:
            descending = not descending

        query = self._filtered(owner.id, **filters).options(
            selectinload(Source.tags), selectinload(Source.attributions)
        )
        query = query.order_by(column.desc() if descending else column.asc(), Source.id)
        return query.offset(offset).limit(limit).all()

    @handle_db_errors
    @log_database_operation("count_sources_for_reader")
    def count_for_reader(self, reader: Any, **filters: Any) -> int:
        """Number of sources matching the same filters as get_all_for_reader."""
        owner = self._require_reader(reader)
        return self._filtered(owner.id, **filters).count()

    # -------------------------------------------------------------------------
    # Update
    # -------------------------------------------------------------------------

    @handle_db_errors
    @log_database_operation("update_source")
    def update(self, source_id: Any, body: Mapping[str, Any]) -> Source:
        """
        Update a source.

        Only properties present in ``body`` change. New metadata entries are
        merged onto the stored metadata. For each attribution role present,
        the role's attributions are replaced; a role set to None is cleared.

        Raises:
            NotFoundError: ``no source``
            ValidationError: With every issue in the body
        """
        source = self._require(source_id)
        values = SourceDocument.format_incoming(body, partial=True)
        self._require_text(values, body)

        if "metadata_" in values:
            values["metadata_"] = SourceDocument.merge_metadata(
                source.metadata_, values["metadata_"]
            )
        for key, value in values.items():
            setattr(source, key, value)

        for role, items in SourceDocument.attributions_from(body).items():
            self.attributions.delete_for_source(source.id, role)
            for item in items:
                self.attributions.create_single(role, item, source.id, source.reader_id)
        source.updated = utcnow()
        self.session.flush()
        self._refresh_attributions(source)

        self._notify(source.reader_id, "library")
        return self.get_by_id(source.id)

    # -------------------------------------------------------------------------
    # Deletion and reference state
    # -------------------------------------------------------------------------

    @handle_db_errors
    @log_database_operation("delete_source")
    def delete(self, source_id: Any) -> int:
        """
        Soft delete a source.

        Join rows, attributions and notes stay until the purge sweep.

        Returns:
            Number of rows marked (0 if missing or already deleted)
        """
        resolved = self._resolve_id(source_id)
        source = self._get_by_id(Source, resolved, include_deleted=True)
        count = self._soft_delete(Source, resolved)
        if count and source is not None:
            self._notify(source.reader_id, "library")
        return count

    @handle_db_errors
    @log_database_operation("delete_source_notes")
    def delete_notes(self, source_id: Any) -> int:
        """
        Soft delete every active note attached to a source.

        Returns:
            Number of notes marked
        """
        resolved = self._resolve_id(source_id)
        source = self._get_by_id(Source, resolved, include_deleted=True)
        result = self.session.execute(
            update(Note)
            .where(Note.source_id == resolved, Note.deleted.is_(None))
            .values(deleted=utcnow())
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount:
            for instance in list(self.session.identity_map.values()):
                if isinstance(instance, Note) and instance.__dict__.get("source_id") == resolved:
                    self.session.expire(instance)
            if source is not None:
                self._expire_cached(Source, resolved)
                self._notify(source.reader_id, "notes")
        return result.rowcount

    @handle_db_errors
    @log_database_operation("source_to_reference")
    def to_reference(self, source_id: Any) -> int:
        """
        Switch an active source to reference state.

        The row stays for citations; links, resources and reading order are
        cleared now, the remaining content by the purge sweep.

        Returns:
            Number of rows switched (0 if not active)
        """
        resolved = self._resolve_id(source_id)
        result = self.session.execute(
            update(Source)
            .where(
                Source.id == resolved,
                Source.deleted.is_(None),
                Source.referenced.is_(None),
            )
            .values(referenced=utcnow(), links=None, resources=None, reading_order=None)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount:
            self._expire_cached(Source, resolved)
            source = self._get_by_id(Source, resolved, include_deleted=True)
            if source is not None:
                self._notify(source.reader_id, "library")
        return result.rowcount

    @handle_db_errors
    @log_database_operation("hard_delete_source")
    def hard_delete(self, source_id: Any) -> int:
        """
        Physically delete a source and its dependents right away.

        Returns:
            Number of sources deleted (0 or 1)
        """
        counts = purge_entities(self.session, PurgeSet(sources={self._resolve_id(source_id)}))
        return counts.get("sources", 0)

    # -------------------------------------------------------------------------
    # Batch operations
    # -------------------------------------------------------------------------

    def _missing(self, source_id: Any) -> ItemOutcome:
        return ItemOutcome(
            self._resolve_id(source_id),
            OutcomeStatus.NOT_FOUND,
            message=f"No Source found with id {source_id}",
        )

    def _notify_all(self, reader_ids: Iterable[str]) -> None:
        for reader_id in sorted(set(reader_ids)):
            self._notify(reader_id, "library")

    @handle_db_errors
    @log_database_operation("batch_update_sources")
    def batch_update(
        self, property: str, value: Any, source_ids: Sequence[Any]
    ) -> BulkResult:
        """
        Set one relational property on several sources.

        Metadata properties are not handled here (see the array operations).

        Raises:
            ValidationError: If the value is invalid or the property cannot
                be batch updated
        """
        formatted = SourceDocument.format_incoming({property: value}, partial=True)
        formatted.pop("metadata_", None)
        formatted.pop("json", None)
        if not formatted:
            raise ValidationError(
                f"Source validation error: cannot batch update {property}",
                field=property,
                value=value,
            )
        self._require_text(formatted, {property: value})

        result = BulkResult()
        touched: List[str] = []
        for source_id in source_ids:
            source = self._active(source_id)
            if source is None:
                result.add(self._missing(source_id))
                continue
            for key, new_value in formatted.items():
                setattr(source, key, new_value)
            touched.append(source.reader_id)
            result.add(ItemOutcome(source.id, OutcomeStatus.UPDATED, value))
        self.session.flush()
        self._notify_all(touched)
        return result

    @staticmethod
    def _array_values(property: str, value: Any) -> List[str]:
        if property not in ARRAY_METADATA:
            raise ValidationError(
                f"Source validation error: {property} is not an array property",
                field=property,
                value=value,
            )
        if property == "keywords":
            return DataValidator.normalize_keywords(value)
        values = [value] if isinstance(value, str) else value
        if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
            raise ValidationError(
                f"Source validation error: {property} must be a list of strings",
                field=property,
                value=value,
            )
        return values

    def _patch_array(
        self, property: str, values: List[str], source_ids: Sequence[Any], add: bool
    ) -> BulkResult:
        result = BulkResult()
        touched: List[str] = []
        for source_id in source_ids:
            source = self._active(source_id)
            if source is None:
                result.add(self._missing(source_id))
                continue
            metadata = dict(source.metadata_ or {})
            current = list(metadata.get(property) or [])
            if add:
                updated = current + [v for v in values if v not in current]
            else:
                updated = [v for v in current if v not in values]
            if updated == current:
                result.add(ItemOutcome(source.id, OutcomeStatus.UNCHANGED, values))
                continue
            metadata[property] = updated
            source.metadata_ = metadata
            touched.append(source.reader_id)
            result.add(ItemOutcome(source.id, OutcomeStatus.UPDATED, values))
        self.session.flush()
        self._notify_all(touched)
        return result

    @handle_db_errors
    @log_database_operation("batch_add_array_property")
    def batch_add_array_property(
        self, property: str, value: Any, source_ids: Sequence[Any]
    ) -> BulkResult:
        """
        Append values to an array metadata property (``keywords``,
        ``inLanguage``) of several sources; values already present are skipped.
        """
        values = self._array_values(property, value)
        return self._patch_array(property, values, source_ids, add=True)

    @handle_db_errors
    @log_database_operation("batch_remove_array_property")
    def batch_remove_array_property(
        self, property: str, value: Any, source_ids: Sequence[Any]
    ) -> BulkResult:
        """Remove values from an array metadata property of several sources."""
        values = self._array_values(property, value)
        return self._patch_array(property, values, source_ids, add=False)

    @staticmethod
    def _attribution_name(value: Any) -> str:
        if isinstance(value, Mapping):
            value = value.get("name")
        return AttributionManager.normalize_name(value)

    @handle_db_errors
    @log_database_operation("batch_add_attribution")
    def batch_add_attribution(
        self, role: str, values: Sequence[Any], source_ids: Sequence[Any]
    ) -> BulkResult:
        """
        Credit people in one role on several sources.

        A person already credited in that role (same normalized name) is
        left alone. Outcomes are per source and value.
        """
        result = BulkResult()
        touched: List[str] = []
        for source_id in source_ids:
            source = self._active(source_id)
            if source is None:
                result.add(self._missing(source_id))
                continue
            existing = {
                a.normalized_name for a in source.attributions if a.role == role
            }
            for value in values:
                normalized = self._attribution_name(value)
                if normalized and normalized in existing:
                    result.add(ItemOutcome(source.id, OutcomeStatus.UNCHANGED, value))
                    continue
                try:
                    self.attributions.create_single(role, value, source.id, source.reader_id)
                except ValidationError as e:
                    result.add(ItemOutcome(source.id, OutcomeStatus.INVALID, value, str(e)))
                    continue
                existing.add(normalized)
                touched.append(source.reader_id)
                result.add(ItemOutcome(source.id, OutcomeStatus.ADDED, value))
            self._refresh_attributions(source)
        self._notify_all(touched)
        return result

    @handle_db_errors
    @log_database_operation("batch_remove_attribution")
    def batch_remove_attribution(
        self, role: str, values: Sequence[Any], source_ids: Sequence[Any]
    ) -> BulkResult:
        """Remove people credited in one role from several sources."""
        result = BulkResult()
        touched: List[str] = []
        for source_id in source_ids:
            source = self._active(source_id)
            if source is None:
                result.add(self._missing(source_id))
                continue
            for value in values:
                removed = self.attributions.delete_one(
                    source.id, role, self._attribution_name(value)
                )
                if removed:
                    touched.append(source.reader_id)
                    result.add(ItemOutcome(source.id, OutcomeStatus.REMOVED, value))
                else:
                    result.add(ItemOutcome(source.id, OutcomeStatus.UNCHANGED, value))
            self._refresh_attributions(source)
        self._notify_all(touched)
        return result

    def _active_tag_ids(self, source: Source) -> set:
        self.session.expire(source, ["tags"])
        return {tag.id for tag in source.tags}

    @handle_db_errors
    @log_database_operation("batch_add_tags")
    def batch_add_tags(self, tags: Sequence[Any], source_ids: Sequence[Any]) -> BulkResult:
        """
        Add tags to several sources.

        Tags already on a source are skipped; missing or deleted tags are
        reported as not found.
        """
        result = BulkResult()
        touched: List[str] = []
        associations = self.source_tags
        for source_id in source_ids:
            source = self._active(source_id)
            if source is None:
                result.add(self._missing(source_id))
                continue
            current = self._active_tag_ids(source)
            for tag in tags:
                tag_id = self._resolve_id(tag)
                if tag_id in current:
                    result.add(ItemOutcome(source.id, OutcomeStatus.UNCHANGED, tag))
                    continue
                if not self._exists(Tag, tag_id):
                    result.add(ItemOutcome(source.id, OutcomeStatus.NOT_FOUND, tag,
                                           f"No Tag found with id {tag}"))
                    continue
                try:
                    associations.add(source.id, tag_id)
                except NotFoundError as e:
                    result.add(ItemOutcome(source.id, OutcomeStatus.NOT_FOUND, tag, str(e)))
                    continue
                except DatabaseError as e:
                    result.add(ItemOutcome(source.id, OutcomeStatus.INVALID, tag, str(e)))
                    continue
                current.add(tag_id)
                touched.append(source.reader_id)
                result.add(ItemOutcome(source.id, OutcomeStatus.ADDED, tag))
        self._notify_all(touched)
        return result

    @handle_db_errors
    @log_database_operation("batch_remove_tags")
    def batch_remove_tags(self, tags: Sequence[Any], source_ids: Sequence[Any]) -> BulkResult:
        """Remove tags from several sources; tags not on a source are skipped."""
        result = BulkResult()
        touched: List[str] = []
        associations = self.source_tags
        for source_id in source_ids:
            source = self._active(source_id)
            if source is None:
                result.add(self._missing(source_id))
                continue
            current = self._active_tag_ids(source)
            for tag in tags:
                tag_id = self._resolve_id(tag)
                if tag_id not in current:
                    result.add(ItemOutcome(source.id, OutcomeStatus.UNCHANGED, tag))
                    continue
                associations.remove(source.id, tag_id)
                current.discard(tag_id)
                touched.append(source.reader_id)
                result.add(ItemOutcome(source.id, OutcomeStatus.REMOVED, tag))
        self._notify_all(touched)
        return result

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_public(self, source: Source) -> Dict[str, Any]:
        """Public document of a source (see SourceDocument.to_public)."""
        return SourceDocument.to_public(source, self.codec)

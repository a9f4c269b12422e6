#!/usr/bin/env python3
"""
base_manager.py
--------------------
Base manager providing common lookup, soft-delete and resolution helpers.
All entity managers inherit from this class.

Key Features:
    - Soft-delete aware lookups (``deleted IS NULL`` unless asked otherwise)
    - Guarded soft delete that never overwrites an earlier ``deleted`` stamp
    - Id canonicalization through the identifier codec (URLs, short ids,
      objects and plain ids are all accepted wherever an id is expected)
    - Reader resolution raising ``NotFoundError("no reader")``

Usage:
    class TagManager(BaseManager):
        def get_by_id(self, tag_id):
            return self._get_by_id(Tag, tag_id)
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from abc import ABC
from typing import Any, List, Optional, Type, TypeVar

# --- Third party imports ---
from sqlalchemy import update
from sqlalchemy.orm import Session

# --- Local imports ---
from marginalia.core.exceptions import NotFoundError
from marginalia.core.identifiers import IdentifierCodec
from marginalia.core.logging_manager import MarginaliaLogger, safe_logger
from marginalia.core.validators import utcnow
from ..hooks import CacheHooks, MetricsQueue, NullCacheHooks, enqueue_metric
from ..models import Reader

T = TypeVar("T")


class BaseManager(ABC):
    """
    Abstract base manager providing common operations.

    Attributes:
        session: SQLAlchemy session for database operations
        logger: Optional logger for operation tracking
        codec: Identifier codec used to canonicalize incoming ids
    """

    def __init__(
        self,
        session: Session,
        logger: Optional[MarginaliaLogger] = None,
        codec: Optional[IdentifierCodec] = None,
    ):
        """
        Initialize the base manager.

        Args:
            session: SQLAlchemy session
            logger: Optional logger for operation tracking
            codec: Identifier codec (defaults to one without a domain)
        """
        self.session = session
        self.logger = logger
        self.codec = codec or IdentifierCodec()

    @property
    def log(self) -> MarginaliaLogger:
        """Logger that is always safe to call."""
        return safe_logger(self.logger)

    # -------------------------------------------------------------------------
    # Id resolution
    # -------------------------------------------------------------------------

    def _resolve_id(self, value: Any) -> Optional[str]:
        """Canonicalize an id, URL, short id or entity to an internal id."""
        return self.codec.to_internal_id(value)

    def _require_reader(self, reader: Any) -> Reader:
        """
        Resolve a reader object or id to an active Reader.

        Raises:
            NotFoundError: If the reader does not exist or is deleted
        """
        if isinstance(reader, Reader) and reader.deleted is None:
            return reader
        found = self._get_by_id(Reader, self._resolve_id(reader))
        if found is None:
            raise NotFoundError("reader", self._resolve_id(reader))
        return found

    # -------------------------------------------------------------------------
    # Generic lookups
    # -------------------------------------------------------------------------

    def _get_by_id(
        self,
        model_class: Type[T],
        entity_id: Optional[str],
        include_deleted: bool = False,
    ) -> Optional[T]:
        """
        Get entity by id with optional soft-delete filtering.

        Args:
            model_class: ORM model class
            entity_id: Internal id (already canonicalized)
            include_deleted: Include soft-deleted entities

        Returns:
            Entity if found, None otherwise
        """
        if entity_id is None:
            return None
        entity = self.session.get(model_class, entity_id)
        if entity is None:
            return None
        if not include_deleted and getattr(entity, "deleted", None) is not None:
            return None
        return entity

    def _exists(
        self,
        model_class: Type[T],
        entity_id: Optional[str],
        include_deleted: bool = False,
    ) -> bool:
        """Check whether an entity exists (active only unless asked otherwise)."""
        if entity_id is None:
            return False
        query = self.session.query(model_class.id).filter(model_class.id == entity_id)
        if not include_deleted and hasattr(model_class, "deleted"):
            query = query.filter(model_class.deleted.is_(None))
        return query.first() is not None

    def _get_all(
        self,
        model_class: Type[T],
        order_by: Optional[str] = None,
        include_deleted: bool = False,
        **filters: Any,
    ) -> List[T]:
        """
        Get all entities of a type with optional filtering and ordering.

        Args:
            model_class: ORM model class
            order_by: Column attribute name to order by (optional)
            include_deleted: Include soft-deleted entities
            **filters: Equality filter conditions

        Returns:
            List of entities
        """
        query = self.session.query(model_class)
        if filters:
            query = query.filter_by(**filters)
        if not include_deleted and hasattr(model_class, "deleted"):
            query = query.filter(model_class.deleted.is_(None))
        if order_by and hasattr(model_class, order_by):
            query = query.order_by(getattr(model_class, order_by))
        return query.all()

    def _count(
        self,
        model_class: Type[T],
        include_deleted: bool = False,
        **filters: Any,
    ) -> int:
        """Count entities with optional equality filters."""
        query = self.session.query(model_class)
        if filters:
            query = query.filter_by(**filters)
        if not include_deleted and hasattr(model_class, "deleted"):
            query = query.filter(model_class.deleted.is_(None))
        return query.count()

    # -------------------------------------------------------------------------
    # Soft delete
    # -------------------------------------------------------------------------

    def _soft_delete(self, model_class: Type[T], entity_id: Optional[str]) -> int:
        """
        Mark one entity as deleted.

        The UPDATE is guarded by ``deleted IS NULL``: deleting an already
        deleted row matches nothing and keeps the first timestamp.

        Args:
            model_class: ORM model class with a ``deleted`` column
            entity_id: Internal id

        Returns:
            Number of rows affected (0 or 1)
        """
        if entity_id is None:
            return 0
        result = self.session.execute(
            update(model_class)
            .where(model_class.id == entity_id, model_class.deleted.is_(None))
            .values(deleted=utcnow())
            .execution_options(synchronize_session="fetch")
        )
        self.session.flush()
        if result.rowcount:
            self._expire_cached(model_class, entity_id)
        return result.rowcount

    def _expire_cached(self, model_class: Type[T], entity_id: str) -> None:
        """
        Expire the session's copy of a row changed by a Core UPDATE.

        The next attribute access reloads it, so lookups through
        ``session.get`` see the new ``deleted`` / ``referenced`` stamps.
        """
        key = self.session.identity_key(model_class, entity_id)
        instance = self.session.identity_map.get(key)
        if instance is not None:
            self.session.expire(instance)


class NotifyingManager(BaseManager):
    """
    Base manager for aggregates whose mutations notify external collaborators.

    Attributes:
        cache_hooks: Cache invalidation callbacks (defaults to no-ops)
        metrics: Optional metrics queue receiving creation events
    """

    def __init__(
        self,
        session: Session,
        logger: Optional[MarginaliaLogger] = None,
        codec: Optional[IdentifierCodec] = None,
        cache_hooks: Optional[CacheHooks] = None,
        metrics: Optional[MetricsQueue] = None,
    ):
        super().__init__(session, logger, codec)
        self.cache_hooks = cache_hooks or NullCacheHooks()
        self.metrics = metrics

    def _auth_id_of(self, reader_id: Optional[str]) -> Optional[str]:
        """Auth id of a reader, including soft-deleted ones."""
        reader = self._get_by_id(Reader, reader_id, include_deleted=True)
        return reader.auth_id if reader is not None else None

    def _notify(self, reader_id: Optional[str], *caches: str) -> None:
        """
        Call ``<cache>_cache_update`` for each named cache.

        Args:
            reader_id: Owner of the mutated entity
            *caches: Cache names: "library", "notebooks", "tags", "notes"
        """
        auth_id = self._auth_id_of(reader_id)
        if auth_id is None:
            return
        for cache in caches:
            getattr(self.cache_hooks, f"{cache}_cache_update")(auth_id)

    def _enqueue(self, event_type: str, reader_id: str) -> None:
        enqueue_metric(self.metrics, event_type, reader_id)

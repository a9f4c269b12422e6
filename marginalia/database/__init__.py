#!/usr/bin/env python3
"""
Marginalia Database Package
---------------------------
Data-access layer of the Marginalia reading and annotation store.

This package provides:
- The MarginaliaDB facade (engine, sessions, managers)
- Entity managers and join-table association managers
- Document flattening and reconstruction
- The hard-delete sweep
"""
from marginalia.core.exceptions import (
    ConflictError,
    DatabaseError,
    NotFoundError,
    PurgeError,
    RelationNotFoundError,
    ValidationError,
)
# managers must load before association_manager, which builds on BaseManager
from .managers import (
    AttributionManager,
    BaseManager,
    NotebookManager,
    ReadActivityManager,
    ReaderManager,
    SourceManager,
    TagManager,
)
from .association_manager import AssociationConfig, AssociationManager
from .decorators import DatabaseOperation, handle_db_errors, log_database_operation
from .hooks import CacheHooks, MetricsQueue, NullCacheHooks, RecordingCacheHooks
from .manager import MarginaliaDB
from .outcomes import BulkResult, ItemOutcome, OutcomeStatus
from .purge_manager import PurgeManager, PurgeReport

__all__ = [
    # Main manager
    "MarginaliaDB",
    # Exceptions
    "ConflictError",
    "DatabaseError",
    "NotFoundError",
    "PurgeError",
    "RelationNotFoundError",
    "ValidationError",
    # Managers
    "AttributionManager",
    "BaseManager",
    "NotebookManager",
    "ReadActivityManager",
    "ReaderManager",
    "SourceManager",
    "TagManager",
    # Associations
    "AssociationConfig",
    "AssociationManager",
    # Outcomes
    "BulkResult",
    "ItemOutcome",
    "OutcomeStatus",
    # Hooks
    "CacheHooks",
    "MetricsQueue",
    "NullCacheHooks",
    "RecordingCacheHooks",
    # Sweep
    "PurgeManager",
    "PurgeReport",
    # Decorators
    "DatabaseOperation",
    "handle_db_errors",
    "log_database_operation",
]

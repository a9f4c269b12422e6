#!/usr/bin/env python3
"""
managers package
--------------------
Entity managers for the Marginalia database.

Each manager handles the operations of one aggregate and inherits from
BaseManager (or NotifyingManager when its mutations notify caches and
metrics).

Available Managers:
    BaseManager: Abstract base class with common utilities
    NotifyingManager: BaseManager with cache hooks and metrics queue
    ReaderManager: Readers (root of ownership)
    NotebookManager: Notebooks
    CollaboratorManager: Readers invited into notebooks
    SourceManager: Sources, reference state and batch operations
    AttributionManager: People credited on sources
    TagManager: Tags
    ReadActivityManager: Reading position log

Usage:
    from marginalia.database.managers import SourceManager

    source_mgr = SourceManager(session, logger, codec, cache_hooks)
"""
from .base_manager import BaseManager, NotifyingManager
from .reader_manager import ReaderManager
from .attribution_manager import AttributionManager
from .read_activity_manager import ReadActivityManager
from .tag_manager import TagManager
from .notebook_manager import NotebookManager
from .collaborator_manager import CollaboratorManager
from .source_manager import SourceManager

__all__ = [
    "BaseManager",
    "NotifyingManager",
    "ReaderManager",
    "AttributionManager",
    "ReadActivityManager",
    "TagManager",
    "NotebookManager",
    "CollaboratorManager",
    "SourceManager",
]

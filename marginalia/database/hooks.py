#!/usr/bin/env python3
"""
hooks.py
--------
Interfaces of the external collaborators notified after mutations.

- CacheHooks: invalidates a reader's cached library, notebooks, tags or
  notes. Called after a successful mutation; the data layer does not
  verify the effect.
- MetricsQueue: optional queue receiving ``{"type": ..., "readerId": ...}``
  events on creation operations.

Both are passed in explicitly; the defaults do nothing.
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from typing import Any, Dict, List, Optional, Protocol


class CacheHooks(Protocol):
    """Cache invalidation callbacks, keyed by the reader's auth id."""

    def library_cache_update(self, auth_id: str) -> None: ...

    def notebooks_cache_update(self, auth_id: str) -> None: ...

    def tags_cache_update(self, auth_id: str) -> None: ...

    def notes_cache_update(self, auth_id: str) -> None: ...


class MetricsQueue(Protocol):
    """Fire-and-forget event queue."""

    def enqueue(self, event: Dict[str, Any]) -> None: ...


class NullCacheHooks:
    """CacheHooks implementation that ignores every notification."""

    def library_cache_update(self, auth_id: str) -> None:
        pass

    def notebooks_cache_update(self, auth_id: str) -> None:
        pass

    def tags_cache_update(self, auth_id: str) -> None:
        pass

    def notes_cache_update(self, auth_id: str) -> None:
        pass


class RecordingCacheHooks:
    """
    CacheHooks implementation that records the notifications it receives.

    Useful to observe invalidations in tests and in dry runs.
    """

    def __init__(self) -> None:
        self.calls: List[tuple] = []

    def library_cache_update(self, auth_id: str) -> None:
        self.calls.append(("library", auth_id))

    def notebooks_cache_update(self, auth_id: str) -> None:
        self.calls.append(("notebooks", auth_id))

    def tags_cache_update(self, auth_id: str) -> None:
        self.calls.append(("tags", auth_id))

    def notes_cache_update(self, auth_id: str) -> None:
        self.calls.append(("notes", auth_id))


def enqueue_metric(
    queue: Optional[MetricsQueue], event_type: str, reader_id: str
) -> None:
    """Enqueue a creation event when a metrics queue is configured."""
    if queue is not None:
        queue.enqueue({"type": event_type, "readerId": reader_id})

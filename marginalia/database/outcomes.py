#!/usr/bin/env python3
"""
outcomes.py
-----------
Per-item results of best-effort bulk operations.

Bulk operations never abort the whole batch because one item failed;
instead they return a :class:`BulkResult` holding one :class:`ItemOutcome`
per item, so callers can see what happened to each of them.
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, List, Optional


class OutcomeStatus(str, Enum):
    """What happened to one item of a bulk operation."""

    ADDED = "added"
    UPDATED = "updated"
    REMOVED = "removed"
    UNCHANGED = "unchanged"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    INVALID = "invalid"

    @property
    def ok(self) -> bool:
        """Successful statuses (including no-ops)."""
        return self in (
            OutcomeStatus.ADDED,
            OutcomeStatus.UPDATED,
            OutcomeStatus.REMOVED,
            OutcomeStatus.UNCHANGED,
        )


@dataclass
class ItemOutcome:
    """
    Result for one item.

    Attributes:
        item_id: Id of the item the operation was applied to
        status: Outcome status
        value: The value applied (tag, attribution, ...) when relevant
        message: Error message for failed items
    """

    item_id: Optional[str]
    status: OutcomeStatus
    value: Any = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status.ok


@dataclass
class BulkResult:
    """Collected outcomes of a bulk operation."""

    outcomes: List[ItemOutcome] = field(default_factory=list)

    def add(self, outcome: ItemOutcome) -> ItemOutcome:
        self.outcomes.append(outcome)
        return outcome

    def __iter__(self) -> Iterator[ItemOutcome]:
        return iter(self.outcomes)

    def __len__(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> List[ItemOutcome]:
        return [outcome for outcome in self.outcomes if outcome.ok]

    @property
    def failed(self) -> List[ItemOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]

    def ids_with(self, status: OutcomeStatus) -> List[Optional[str]]:
        """Item ids whose outcome has the given status."""
        return [outcome.item_id for outcome in self.outcomes if outcome.status is status]

#!/usr/bin/env python3
"""
constraints.py
--------------
Structured descriptors for integrity violations.

Backends report constraint failures differently: PostgreSQL drivers expose
the violated constraint name (``orig.diag.constraint_name``), SQLite names
the table and columns of a failed unique constraint and reports foreign-key
failures without any detail. :func:`describe_violation` turns an
``IntegrityError`` into a :class:`ConstraintViolation` and resolves it
against :data:`CONSTRAINTS`, the explicit table of constraints whose
violations the data layer translates into domain errors.

Usage:
    try:
        session.execute(insert(source_tag).values(...))
    except IntegrityError as e:
        violation = describe_violation(e)
        if violation.kind is ViolationKind.UNIQUE:
            ...
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

# --- Third party imports ---
from sqlalchemy.exc import IntegrityError


class ViolationKind(str, Enum):
    """Kind of integrity violation."""

    FOREIGN_KEY = "foreign_key"
    UNIQUE = "unique"
    NOT_NULL = "not_null"
    UNKNOWN = "unknown"

    @classmethod
    def choices(cls) -> List[str]:
        """Get all violation kinds."""
        return [kind.value for kind in cls]


@dataclass(frozen=True)
class ConstraintRule:
    """
    One known constraint.

    Attributes:
        name: Constraint name as declared in the schema
        table: Table carrying the constraint
        kind: Foreign key or unique
        columns: Constrained columns
        entity: Entity kind a foreign key points at (e.g. "tag")
    """

    name: str
    table: str
    kind: ViolationKind
    columns: Tuple[str, ...]
    entity: Optional[str] = None


@dataclass(frozen=True)
class ConstraintViolation:
    """
    What the store reported about a failed statement.

    Attributes:
        kind: Kind of violation
        table: Table involved, when the backend reports it
        columns: Columns involved, when the backend reports them
        constraint_name: Violated constraint, when the backend reports it
        rule: Matching entry of CONSTRAINTS, if any
    """

    kind: ViolationKind
    table: Optional[str] = None
    columns: Tuple[str, ...] = ()
    constraint_name: Optional[str] = None
    rule: Optional[ConstraintRule] = None

    @property
    def entity(self) -> Optional[str]:
        """Entity kind a violated foreign key points at, when known."""
        return self.rule.entity if self.rule else None


def _join_rules(table: str, left: Tuple[str, str], right: Tuple[str, str]) -> List[ConstraintRule]:
    """Rules of a join table: one foreign key per side plus the pair key."""
    (left_col, left_entity), (right_col, right_entity) = left, right
    return [
        ConstraintRule(f"{table}_{left_col}_foreign", table, ViolationKind.FOREIGN_KEY,
                       (left_col,), left_entity),
        ConstraintRule(f"{table}_{right_col}_foreign", table, ViolationKind.FOREIGN_KEY,
                       (right_col,), right_entity),
        ConstraintRule(f"{table}_pkey", table, ViolationKind.UNIQUE, (left_col, right_col)),
    ]


CONSTRAINTS: Dict[str, ConstraintRule] = {
    rule.name: rule
    for rule in [
        *_join_rules("notebook_source", ("notebook_id", "notebook"), ("source_id", "source")),
        *_join_rules("notebook_note", ("notebook_id", "notebook"), ("note_id", "note")),
        *_join_rules("notebook_tag", ("notebook_id", "notebook"), ("tag_id", "tag")),
        *_join_rules("source_tag", ("source_id", "source"), ("tag_id", "tag")),
        *_join_rules("note_tag", ("note_id", "note"), ("tag_id", "tag")),
        ConstraintRule("tag_readerid_type_name_unique", "tags", ViolationKind.UNIQUE,
                       ("reader_id", "type", "name")),
        ConstraintRule("tag_readerid_foreign", "tags", ViolationKind.FOREIGN_KEY,
                       ("reader_id",), "reader"),
        ConstraintRule("tag_notebookid_foreign", "tags", ViolationKind.FOREIGN_KEY,
                       ("notebook_id",), "notebook"),
        ConstraintRule("readactivity_readerid_foreign", "read_activities",
                       ViolationKind.FOREIGN_KEY, ("reader_id",), "reader"),
        ConstraintRule("readactivity_sourceid_foreign", "read_activities",
                       ViolationKind.FOREIGN_KEY, ("source_id",), "source"),
        ConstraintRule("notebooks_readerid_foreign", "notebooks", ViolationKind.FOREIGN_KEY,
                       ("reader_id",), "reader"),
        ConstraintRule("sources_readerid_foreign", "sources", ViolationKind.FOREIGN_KEY,
                       ("reader_id",), "reader"),
    ]
}


def find_rule(
    table: Optional[str], kind: ViolationKind, columns: Tuple[str, ...] = ()
) -> Optional[ConstraintRule]:
    """Look up a rule by table, kind and (when given) the exact column set."""
    for rule in CONSTRAINTS.values():
        if rule.table != table or rule.kind is not kind:
            continue
        if not columns or set(rule.columns) == set(columns):
            return rule
    return None


_SQLITE_UNIQUE = re.compile(r"UNIQUE constraint failed: (.+)$")
_SQLITE_NOT_NULL = re.compile(r"NOT NULL constraint failed: (\w+)\.(\w+)")
_PG_CONSTRAINT = re.compile(r'violates (unique|foreign key) constraint "([^"]+)"')


def describe_violation(error: IntegrityError) -> ConstraintViolation:
    """
    Convert an IntegrityError into a structured violation descriptor.

    Args:
        error: Error raised by SQLAlchemy

    Returns:
        ConstraintViolation; ``kind`` is UNKNOWN when nothing could be read
    """
    orig = getattr(error, "orig", None)

    # PostgreSQL (psycopg2 / psycopg) report the constraint name directly
    diag = getattr(orig, "diag", None)
    name = getattr(diag, "constraint_name", None)
    if name and name in CONSTRAINTS:
        rule = CONSTRAINTS[name]
        return ConstraintViolation(rule.kind, rule.table, rule.columns, name, rule)

    message = str(orig if orig is not None else error)

    match = _PG_CONSTRAINT.search(message)
    if match:
        name = match.group(2)
        rule = CONSTRAINTS.get(name)
        kind = ViolationKind.UNIQUE if match.group(1) == "unique" else ViolationKind.FOREIGN_KEY
        if rule:
            return ConstraintViolation(rule.kind, rule.table, rule.columns, name, rule)
        return ConstraintViolation(kind, constraint_name=name)

    match = _SQLITE_UNIQUE.search(message)
    if match:
        qualified = [part.strip() for part in match.group(1).split(",")]
        table = qualified[0].split(".")[0]
        columns = tuple(part.split(".")[-1] for part in qualified)
        rule = find_rule(table, ViolationKind.UNIQUE, columns)
        return ConstraintViolation(
            ViolationKind.UNIQUE, table, columns, rule.name if rule else None, rule
        )

    if "FOREIGN KEY constraint failed" in message:
        return ConstraintViolation(ViolationKind.FOREIGN_KEY)

    match = _SQLITE_NOT_NULL.search(message)
    if match:
        return ConstraintViolation(ViolationKind.NOT_NULL, match.group(1), (match.group(2),))

    return ConstraintViolation(ViolationKind.UNKNOWN)

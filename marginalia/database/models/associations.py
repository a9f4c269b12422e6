"""
Association Tables
-------------------

Many-to-many join tables for the Marginalia database.

Each table's identity is the pair of foreign keys. Every constraint is
named explicitly (``<table>_<column>_foreign`` for foreign keys,
``<table>_pkey`` for the pair) so violations can be mapped back to the
side that failed; see ``marginalia.database.constraints``.

Join rows are never removed by soft deletes. Active traversals exclude
soft-deleted endpoints and the purge sweep removes the rows physically.
"""
# --- Third party imports ---
from sqlalchemy import (
    Column,
    DateTime,
    ForeignKeyConstraint,
    PrimaryKeyConstraint,
    String,
    Table,
)

# --- Local imports ---
from marginalia.core.validators import utcnow
from .base import Base


def _join_table(name: str, left: tuple, right: tuple) -> Table:
    """
    Build a join table between two entity tables.

    Args:
        name: Table name
        left: (column name, referenced table) of the owner side
        right: (column name, referenced table) of the member side
    """
    (left_col, left_table), (right_col, right_table) = left, right
    return Table(
        name,
        Base.metadata,
        Column(left_col, String(255), nullable=False, index=True),
        Column(right_col, String(255), nullable=False, index=True),
        Column("published", DateTime(timezone=True), default=utcnow, nullable=False),
        PrimaryKeyConstraint(left_col, right_col, name=f"{name}_pkey"),
        ForeignKeyConstraint(
            [left_col], [f"{left_table}.id"], name=f"{name}_{left_col}_foreign"
        ),
        ForeignKeyConstraint(
            [right_col], [f"{right_table}.id"], name=f"{name}_{right_col}_foreign"
        ),
    )


notebook_source = _join_table(
    "notebook_source", ("notebook_id", "notebooks"), ("source_id", "sources")
)

notebook_note = _join_table(
    "notebook_note", ("notebook_id", "notebooks"), ("note_id", "notes")
)

notebook_tag = _join_table(
    "notebook_tag", ("notebook_id", "notebooks"), ("tag_id", "tags")
)

source_tag = _join_table(
    "source_tag", ("source_id", "sources"), ("tag_id", "tags")
)

note_tag = _join_table(
    "note_tag", ("note_id", "notes"), ("tag_id", "tags")
)

JOIN_TABLES = (notebook_source, notebook_note, notebook_tag, source_tag, note_tag)

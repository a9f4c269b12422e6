#!/usr/bin/env python3
"""
association_manager.py
----------------------
Config-driven manager for the many-to-many join tables:
Notebook↔Source, Notebook↔Note, Notebook↔Tag, Source↔Tag and Note↔Tag.

Each join table is described by an :class:`AssociationConfig` naming its
owner and member sides. One manager class then provides:

- add: insert a pair; constraint violations become domain errors
  (``no <kind>`` / ``Relationship already exists``)
- remove: delete a pair; removing a missing pair is an error
- add_multiple: best-effort bulk insert returning per-member outcomes
- replace_all: delete every pair of an owner, then add_multiple
- remove_all_for_owner / remove_all_for_member
- member_ids: active members of an owner

Usage:
    source_tags = AssociationManager.for_source_tags(session, logger, codec)
    source_tags.add(source_id, tag_id)
    result = source_tags.add_multiple(source_id, [tag_a, tag_b, "bogus"])
    [outcome.status for outcome in result]  # [ADDED, ADDED, NOT_FOUND]

    # The same table seen from the other side
    source_notebooks = AssociationManager.for_source_notebooks(session)
    source_notebooks.replace_all(source_id, [notebook_a, notebook_b])
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple, Type, Union

# --- Third party imports ---
from sqlalchemy import Table, delete, insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

# --- Local imports ---
from marginalia.core.exceptions import (
    ConflictError,
    DatabaseError,
    NotFoundError,
    RelationNotFoundError,
)
from marginalia.core.identifiers import IdentifierCodec
from marginalia.core.logging_manager import MarginaliaLogger
from .constraints import ViolationKind, describe_violation
from .decorators import handle_db_errors, log_database_operation
from .managers.base_manager import BaseManager
from .models import (
    Note,
    Notebook,
    Source,
    Tag,
    note_tag,
    notebook_note,
    notebook_source,
    notebook_tag,
    source_tag,
)
from .outcomes import BulkResult, ItemOutcome, OutcomeStatus


@dataclass(frozen=True)
class AssociationConfig:
    """
    Description of one side-oriented view of a join table.

    Attributes:
        table: Join table
        owner_column / member_column: Foreign-key columns of each side
        owner_model / member_model: Mapped classes of each side
        owner_kind / member_kind: Entity kinds used in error messages
    """

    table: Table
    owner_column: str
    member_column: str
    owner_model: Type
    member_model: Type
    owner_kind: str
    member_kind: str

    @property
    def owner_label(self) -> str:
        return self.owner_kind[:1].upper() + self.owner_kind[1:]

    @property
    def member_label(self) -> str:
        return self.member_kind[:1].upper() + self.member_kind[1:]

    @property
    def add_action(self) -> str:
        return f"Add {self.member_label} to {self.owner_label}"

    @property
    def remove_action(self) -> str:
        return f"Remove {self.member_label} from {self.owner_label}"

    def reversed(self) -> "AssociationConfig":
        """The same table viewed from the member side."""
        return AssociationConfig(
            table=self.table,
            owner_column=self.member_column,
            member_column=self.owner_column,
            owner_model=self.member_model,
            member_model=self.owner_model,
            owner_kind=self.member_kind,
            member_kind=self.owner_kind,
        )


NOTEBOOK_SOURCE = AssociationConfig(
    notebook_source, "notebook_id", "source_id", Notebook, Source, "notebook", "source"
)
NOTEBOOK_NOTE = AssociationConfig(
    notebook_note, "notebook_id", "note_id", Notebook, Note, "notebook", "note"
)
NOTEBOOK_TAG = AssociationConfig(
    notebook_tag, "notebook_id", "tag_id", Notebook, Tag, "notebook", "tag"
)
SOURCE_TAG = AssociationConfig(
    source_tag, "source_id", "tag_id", Source, Tag, "source", "tag"
)
NOTE_TAG = AssociationConfig(
    note_tag, "note_id", "tag_id", Note, Tag, "note", "tag"
)


class AssociationManager(BaseManager):
    """
    Generic manager for one join table, oriented owner → member.

    Attributes:
        config: Association configuration
    """

    def __init__(
        self,
        session: Session,
        config: AssociationConfig,
        logger: Optional[MarginaliaLogger] = None,
        codec: Optional[IdentifierCodec] = None,
    ):
        super().__init__(session, logger, codec)
        self.config = config

    # -------------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------------

    @classmethod
    def for_notebook_sources(cls, session: Session, logger=None, codec=None) -> "AssociationManager":
        """Notebook → Source."""
        return cls(session, NOTEBOOK_SOURCE, logger, codec)

    @classmethod
    def for_source_notebooks(cls, session: Session, logger=None, codec=None) -> "AssociationManager":
        """Source → Notebook (same table as for_notebook_sources)."""
        return cls(session, NOTEBOOK_SOURCE.reversed(), logger, codec)

    @classmethod
    def for_notebook_notes(cls, session: Session, logger=None, codec=None) -> "AssociationManager":
        """Notebook → Note."""
        return cls(session, NOTEBOOK_NOTE, logger, codec)

    @classmethod
    def for_note_notebooks(cls, session: Session, logger=None, codec=None) -> "AssociationManager":
        """Note → Notebook (same table as for_notebook_notes)."""
        return cls(session, NOTEBOOK_NOTE.reversed(), logger, codec)

    @classmethod
    def for_notebook_tags(cls, session: Session, logger=None, codec=None) -> "AssociationManager":
        """Notebook → Tag."""
        return cls(session, NOTEBOOK_TAG, logger, codec)

    @classmethod
    def for_source_tags(cls, session: Session, logger=None, codec=None) -> "AssociationManager":
        """Source → Tag."""
        return cls(session, SOURCE_TAG, logger, codec)

    @classmethod
    def for_tag_sources(cls, session: Session, logger=None, codec=None) -> "AssociationManager":
        """Tag → Source (same table as for_source_tags)."""
        return cls(session, SOURCE_TAG.reversed(), logger, codec)

    @classmethod
    def for_note_tags(cls, session: Session, logger=None, codec=None) -> "AssociationManager":
        """Note → Tag."""
        return cls(session, NOTE_TAG, logger, codec)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @property
    def _owner_col(self):
        return self.config.table.c[self.config.owner_column]

    @property
    def _member_col(self):
        return self.config.table.c[self.config.member_column]

    def _resolve_pair(self, owner: Any, member: Any) -> Tuple[str, str]:
        """Canonicalize both ids; unresolvable ids are reported as missing."""
        owner_id = self._resolve_id(owner)
        if owner_id is None:
            raise NotFoundError(self.config.owner_kind)
        member_id = self._resolve_id(member)
        if member_id is None:
            raise NotFoundError(self.config.member_kind)
        return owner_id, member_id

    @staticmethod
    def _split_members(members: Union[str, Iterable[Any], None]) -> List[Any]:
        """Accept a list of members or a comma-separated string of ids."""
        if members is None:
            return []
        if isinstance(members, str):
            return [part.strip() for part in members.split(",") if part.strip()]
        return list(members)

    def _row(self, owner_id: str, member_id: str) -> Dict[str, str]:
        return {self.config.owner_column: owner_id, self.config.member_column: member_id}

    def _translate(
        self, error: IntegrityError, owner_id: str, member_id: str
    ) -> DatabaseError:
        """
        Map a failed insert onto a domain error.

        The violated constraint decides the error. When the backend does
        not say which foreign key failed, the owner row is looked up.
        """
        cfg = self.config
        violation = describe_violation(error)

        if violation.kind is ViolationKind.UNIQUE:
            return ConflictError(
                f"{cfg.add_action} Error: Relationship already exists between "
                f"{cfg.owner_label} {owner_id} and {cfg.member_label} {member_id}"
            )

        if violation.kind is ViolationKind.FOREIGN_KEY:
            column = violation.rule.columns[0] if violation.rule else None
            if column == cfg.owner_column:
                return NotFoundError(cfg.owner_kind, owner_id)
            if column == cfg.member_column:
                return NotFoundError(cfg.member_kind, member_id)
            if not self._exists(cfg.owner_model, owner_id, include_deleted=True):
                return NotFoundError(cfg.owner_kind, owner_id)
            return NotFoundError(cfg.member_kind, member_id)

        return DatabaseError(f"{cfg.add_action} Error: {error.orig}")

    def _insert_pair(self, owner_id: str, member_id: str) -> None:
        """Insert one pair inside a savepoint, translating violations."""
        try:
            with self.session.begin_nested():
                self.session.execute(
                    insert(self.config.table).values(self._row(owner_id, member_id))
                )
        except IntegrityError as e:
            raise self._translate(e, owner_id, member_id) from e

    # -------------------------------------------------------------------------
    # Single pair
    # -------------------------------------------------------------------------

    @log_database_operation("association_add")
    def add(self, owner: Any, member: Any) -> Dict[str, str]:
        """
        Associate a member with an owner.

        Args:
            owner: Owner id, URL or entity
            member: Member id, URL or entity

        Returns:
            The inserted row as ``{owner_column: id, member_column: id}``

        Raises:
            NotFoundError: ``no <owner kind>`` / ``no <member kind>``
            ConflictError: If the pair already exists
        """
        owner_id, member_id = self._resolve_pair(owner, member)
        self._insert_pair(owner_id, member_id)
        self.log.log_debug(
            f"{self.config.add_action}",
            {"owner_id": owner_id, "member_id": member_id},
        )
        return self._row(owner_id, member_id)

    @log_database_operation("association_remove")
    def remove(self, owner: Any, member: Any) -> None:
        """
        Remove the association between an owner and a member.

        Not idempotent: removing a pair that does not exist raises.

        Raises:
            RelationNotFoundError: If no such pair exists
        """
        cfg = self.config
        owner_id = self._resolve_id(owner)
        member_id = self._resolve_id(member)
        result = self.session.execute(
            delete(cfg.table).where(self._owner_col == owner_id, self._member_col == member_id)
        )
        if result.rowcount == 0:
            raise RelationNotFoundError(
                f"{cfg.remove_action} Error: No Relation found between "
                f"{cfg.member_label} {member_id} and {cfg.owner_label} {owner_id}"
            )

    # -------------------------------------------------------------------------
    # Bulk
    # -------------------------------------------------------------------------

    @handle_db_errors
    @log_database_operation("association_add_multiple")
    def add_multiple(
        self, owner: Any, members: Union[str, Iterable[Any], None]
    ) -> BulkResult:
        """
        Best-effort insert of several members for one owner.

        A single bulk insert is attempted first. If it fails, members are
        inserted one by one, each in its own savepoint, and every failure is
        recorded instead of aborting the batch.

        Args:
            owner: Owner id, URL or entity
            members: Members (ids, URLs, entities) or a comma-separated string

        Returns:
            BulkResult with one outcome per requested member, in order
        """
        cfg = self.config
        items = self._split_members(members)
        result = BulkResult()
        owner_id = self._resolve_id(owner)

        # Slot per requested member so outcomes keep the input order
        slots: List[Optional[ItemOutcome]] = [None] * len(items)
        pending: List[Tuple[int, str]] = []
        seen = set()
        for index, item in enumerate(items):
            member_id = self._resolve_id(item)
            if owner_id is None:
                slots[index] = ItemOutcome(member_id, OutcomeStatus.NOT_FOUND, item,
                                           f"no {cfg.owner_kind}")
            elif member_id is None:
                slots[index] = ItemOutcome(None, OutcomeStatus.INVALID, item,
                                           f"invalid {cfg.member_kind} id")
            elif member_id in seen:
                slots[index] = ItemOutcome(member_id, OutcomeStatus.CONFLICT, item,
                                           "duplicate in request")
            else:
                seen.add(member_id)
                pending.append((index, member_id))

        if pending:
            try:
                with self.session.begin_nested():
                    self.session.execute(
                        insert(cfg.table),
                        [self._row(owner_id, member_id) for _, member_id in pending],
                    )
                for index, member_id in pending:
                    slots[index] = ItemOutcome(member_id, OutcomeStatus.ADDED, items[index])
            except IntegrityError:
                self.log.log_debug(
                    f"{cfg.add_action}: bulk insert failed, inserting one by one",
                    {"owner_id": owner_id, "count": len(pending)},
                )
                for index, member_id in pending:
                    slots[index] = self._add_one(owner_id, member_id, items[index])

        for outcome in slots:
            result.add(outcome)
        return result

    def _add_one(self, owner_id: str, member_id: str, value: Any) -> ItemOutcome:
        """Insert one pair and report the outcome instead of raising."""
        try:
            self._insert_pair(owner_id, member_id)
        except ConflictError as e:
            return ItemOutcome(member_id, OutcomeStatus.CONFLICT, value, str(e))
        except NotFoundError as e:
            return ItemOutcome(member_id, OutcomeStatus.NOT_FOUND, value, str(e))
        except DatabaseError as e:
            return ItemOutcome(member_id, OutcomeStatus.INVALID, value, str(e))
        return ItemOutcome(member_id, OutcomeStatus.ADDED, value)

    @log_database_operation("association_replace_all")
    def replace_all(
        self, owner: Any, members: Union[str, Iterable[Any], None]
    ) -> BulkResult:
        """
        Replace every member of an owner.

        Deletes the owner's pairs, then runs :meth:`add_multiple`. Not atomic
        by contract: a failure between the two steps leaves no members.
        """
        self.remove_all_for_owner(owner)
        return self.add_multiple(owner, members)

    def remove_all_for_owner(self, owner: Any) -> int:
        """Delete every pair of an owner; returns the number of rows removed."""
        owner_id = self._resolve_id(owner)
        if owner_id is None:
            return 0
        result = self.session.execute(delete(self.config.table).where(self._owner_col == owner_id))
        return result.rowcount

    def remove_all_for_member(self, member: Any) -> int:
        """Delete every pair of a member; returns the number of rows removed."""
        member_id = self._resolve_id(member)
        if member_id is None:
            return 0
        result = self.session.execute(delete(self.config.table).where(self._member_col == member_id))
        return result.rowcount

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def member_ids(self, owner: Any, include_deleted: bool = False) -> List[str]:
        """
        Ids of the members of an owner.

        Soft-deleted members (and referenced sources) are skipped unless
        ``include_deleted`` is set.
        """
        model = self.config.member_model
        owner_id = self._resolve_id(owner)
        query = (
            select(model.id)
            .join(self.config.table, self._member_col == model.id)
            .where(self._owner_col == owner_id)
            .order_by(model.id)
        )
        if not include_deleted:
            query = query.where(model.deleted.is_(None))
            if hasattr(model, "referenced"):
                query = query.where(model.referenced.is_(None))
        return list(self.session.scalars(query))

    def exists(self, owner: Any, member: Any) -> bool:
        """Check whether a pair exists."""
        owner_id = self._resolve_id(owner)
        member_id = self._resolve_id(member)
        query = select(self._owner_col).where(
            self._owner_col == owner_id, self._member_col == member_id
        )
        return self.session.execute(query).first() is not None

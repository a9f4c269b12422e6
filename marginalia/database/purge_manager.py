#!/usr/bin/env python3
"""
purge_manager.py
----------------
Hard-delete sweep for soft-deleted aggregates.

Soft delete only stamps ``deleted``. Once a row is older than the retention
window, the sweep physically removes it together with every dependent row,
in dependency order, so no foreign key is ever left dangling:

    join rows
    → note bodies, attributions, read activities, collaborators
    → notes → tags → note contexts → sources → notebooks → readers

Each aggregate is purged in its own transaction. A failure is logged and
recorded in the report and the sweep moves on; running it again finishes
whatever was left and reports nothing for what is already gone.

Referenced sources are not deleted: past the retention window their content
fields are cleared while the citation fields stay.

Usage:
    purger = PurgeManager(db.session_scope, logger, retention=timedelta(hours=24))
    report = purger.sweep()
    print(report.summary())

    # Count candidates without touching anything
    purger.sweep(dry_run=True)
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, ContextManager, Dict, List, Optional, Set

# --- Third party imports ---
from sqlalchemy import delete, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

# --- Local imports ---
from marginalia.core.exceptions import DatabaseError, PurgeError
from marginalia.core.logging_manager import MarginaliaLogger, safe_logger
from marginalia.core.validators import utcnow
from .decorators import DatabaseOperation
from .documents import CITATION_METADATA
from .models import (
    Attribution,
    Collaborator,
    Note,
    NoteBody,
    Notebook,
    NoteContext,
    ReadActivity,
    Reader,
    Source,
    Tag,
    note_tag,
    notebook_note,
    notebook_source,
    notebook_tag,
    source_tag,
)

# Source content cleared once a referenced source passes the retention window
REFERENCE_CONTENT_FIELDS = (
    "links",
    "resources",
    "reading_order",
    "abstract",
    "description",
    "word_count",
    "status",
    "encoding_format",
)


# --- Cascade ---

@dataclass
class PurgeSet:
    """
    Ids of the rows to remove physically, per entity kind.

    :meth:`expand` adds every dependent aggregate, so deleting the set in
    :func:`purge_entities` order never violates a foreign key.
    """

    readers: Set[str] = field(default_factory=set)
    notebooks: Set[str] = field(default_factory=set)
    sources: Set[str] = field(default_factory=set)
    note_contexts: Set[str] = field(default_factory=set)
    notes: Set[str] = field(default_factory=set)
    tags: Set[str] = field(default_factory=set)
    collaborators: Set[str] = field(default_factory=set)

    def is_empty(self) -> bool:
        return not any(
            (
                self.readers, self.notebooks, self.sources,
                self.note_contexts, self.notes, self.tags, self.collaborators,
            )
        )

    def expand(self, session: Session) -> "PurgeSet":
        """Add the aggregates owned by the ids already in the set."""

        def ids(model, *criteria) -> Set[str]:
            return set(session.scalars(select(model.id).where(or_(*criteria))))

        if self.readers:
            self.notebooks |= ids(Notebook, Notebook.reader_id.in_(self.readers))
            self.sources |= ids(Source, Source.reader_id.in_(self.readers))
            self.note_contexts |= ids(NoteContext, NoteContext.reader_id.in_(self.readers))
            self.notes |= ids(Note, Note.reader_id.in_(self.readers))
            self.tags |= ids(Tag, Tag.reader_id.in_(self.readers))
        if self.notebooks:
            self.tags |= ids(Tag, Tag.notebook_id.in_(self.notebooks))
            self.note_contexts |= ids(NoteContext, NoteContext.notebook_id.in_(self.notebooks))
        if self.sources or self.note_contexts:
            self.notes |= ids(
                Note,
                Note.source_id.in_(self.sources),
                Note.context_id.in_(self.note_contexts),
            )
        return self


def _delete(session: Session, target: Any, criterion: Any, counts: Counter) -> None:
    """Delete matching rows from a model or table and count them by table name."""
    statement = delete(target).where(criterion)
    if hasattr(target, "__table__"):
        statement = statement.execution_options(synchronize_session="fetch")
        name = target.__table__.name
    else:
        name = target.name
    counts[name] += session.execute(statement).rowcount


def purge_entities(session: Session, doomed: PurgeSet) -> Counter:
    """
    Physically delete a purge set and all of its dependents.

    Runs inside the caller's transaction.

    Args:
        session: Active session
        doomed: Ids to remove (expanded here)

    Returns:
        Counter of deleted rows per table
    """
    counts: Counter = Counter()
    doomed.expand(session)
    if doomed.is_empty():
        return counts

    # Join rows
    _delete(session, notebook_source, or_(
        notebook_source.c.notebook_id.in_(doomed.notebooks),
        notebook_source.c.source_id.in_(doomed.sources),
    ), counts)
    _delete(session, notebook_note, or_(
        notebook_note.c.notebook_id.in_(doomed.notebooks),
        notebook_note.c.note_id.in_(doomed.notes),
    ), counts)
    _delete(session, notebook_tag, or_(
        notebook_tag.c.notebook_id.in_(doomed.notebooks),
        notebook_tag.c.tag_id.in_(doomed.tags),
    ), counts)
    _delete(session, source_tag, or_(
        source_tag.c.source_id.in_(doomed.sources),
        source_tag.c.tag_id.in_(doomed.tags),
    ), counts)
    _delete(session, note_tag, or_(
        note_tag.c.note_id.in_(doomed.notes),
        note_tag.c.tag_id.in_(doomed.tags),
    ), counts)

    # Leaf dependents
    _delete(session, NoteBody, or_(
        NoteBody.note_id.in_(doomed.notes), NoteBody.reader_id.in_(doomed.readers)
    ), counts)
    _delete(session, Attribution, or_(
        Attribution.source_id.in_(doomed.sources), Attribution.reader_id.in_(doomed.readers)
    ), counts)
    _delete(session, ReadActivity, or_(
        ReadActivity.source_id.in_(doomed.sources), ReadActivity.reader_id.in_(doomed.readers)
    ), counts)
    _delete(session, Collaborator, or_(
        Collaborator.notebook_id.in_(doomed.notebooks),
        Collaborator.reader_id.in_(doomed.readers),
        Collaborator.id.in_(doomed.collaborators),
    ), counts)

    # Aggregates, innermost first
    _delete(session, Note, Note.id.in_(doomed.notes), counts)
    _delete(session, Tag, Tag.id.in_(doomed.tags), counts)
    _delete(session, NoteContext, NoteContext.id.in_(doomed.note_contexts), counts)
    _delete(session, Source, Source.id.in_(doomed.sources), counts)
    _delete(session, Notebook, Notebook.id.in_(doomed.notebooks), counts)
    _delete(session, Reader, Reader.id.in_(doomed.readers), counts)

    return +counts


def clear_reference_content(source: Source) -> bool:
    """
    Clear the content of a referenced source, keeping its citation fields.

    Returns:
        True if anything changed
    """
    changed = False
    for attr in REFERENCE_CONTENT_FIELDS:
        if getattr(source, attr) is not None:
            setattr(source, attr, None)
            changed = True
    metadata = source.metadata_ or {}
    kept = {key: value for key, value in metadata.items() if key in CITATION_METADATA}
    if kept != metadata:
        source.metadata_ = kept
        changed = True
    return changed


# --- Report ---

@dataclass
class PurgeFailure:
    """One aggregate the sweep could not purge."""

    kind: str
    entity_id: str
    message: str


@dataclass
class PurgeReport:
    """
    Outcome of one sweep.

    Attributes:
        cutoff: Rows deleted (or referenced) before this instant were eligible
        dry_run: True when nothing was deleted
        counts: Rows deleted per table; candidates per kind on a dry run
        failures: Aggregates that could not be purged
    """

    cutoff: datetime
    dry_run: bool = False
    counts: Counter = field(default_factory=Counter)
    failures: List[PurgeFailure] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    @property
    def ok(self) -> bool:
        return not self.failures

    def summary(self) -> Dict[str, int]:
        return dict(sorted(self.counts.items()))

    def raise_for_failures(self) -> None:
        """
        Raises:
            PurgeError: If any aggregate failed
        """
        if self.failures:
            details = "; ".join(f"{f.kind} {f.entity_id}: {f.message}" for f in self.failures)
            raise PurgeError(f"Purge failed for {len(self.failures)} aggregate(s): {details}")


# --- Sweep ---

class PurgeManager:
    """
    Runs the hard-delete sweep.

    Attributes:
        session_factory: Callable returning a transactional session context
            (commits on success, rolls back on error), e.g.
            ``MarginaliaDB.session_scope``
        logger: Optional logger
        retention: How long soft-deleted rows are kept
    """

    # kind -> model, in sweep order
    DIRECT_KINDS = (
        ("collaborators", Collaborator),
        ("tags", Tag),
        ("notes", Note),
        ("note_contexts", NoteContext),
        ("sources", Source),
        ("notebooks", Notebook),
    )

    def __init__(
        self,
        session_factory: Callable[[], ContextManager[Session]],
        logger: Optional[MarginaliaLogger] = None,
        retention: timedelta = timedelta(hours=24),
    ) -> None:
        self.session_factory = session_factory
        self.logger = logger
        self.retention = retention

    @property
    def log(self) -> MarginaliaLogger:
        return safe_logger(self.logger)

    def _candidates(self, model, cutoff: datetime) -> List[str]:
        with self.session_factory() as session:
            query = select(model.id).where(model.deleted.is_not(None), model.deleted < cutoff)
            return list(session.scalars(query.order_by(model.id)))

    def _referenced_candidates(self, cutoff: datetime) -> List[str]:
        with self.session_factory() as session:
            query = select(Source.id).where(
                Source.deleted.is_(None),
                Source.referenced.is_not(None),
                Source.referenced < cutoff,
            )
            return list(session.scalars(query.order_by(Source.id)))

    def _purge_one(self, report: PurgeReport, kind: str, entity_id: str) -> None:
        """Purge one aggregate in its own transaction; failures are recorded."""
        try:
            with DatabaseOperation(self.logger, f"purge_{kind}", {"entity_id": entity_id}):
                with self.session_factory() as session:
                    doomed = PurgeSet(**{kind: {entity_id}})
                    report.counts.update(purge_entities(session, doomed))
        except (SQLAlchemyError, DatabaseError) as e:
            report.failures.append(PurgeFailure(kind, entity_id, str(e)))

    def _clear_reference(self, report: PurgeReport, source_id: str) -> None:
        try:
            with DatabaseOperation(self.logger, "purge_reference", {"entity_id": source_id}):
                with self.session_factory() as session:
                    source = session.get(Source, source_id)
                    if source is not None and clear_reference_content(source):
                        report.counts["sources_referenced"] += 1
        except (SQLAlchemyError, DatabaseError) as e:
            report.failures.append(PurgeFailure("referenced_source", source_id, str(e)))

    def sweep(self, dry_run: bool = False, now: Optional[datetime] = None) -> PurgeReport:
        """
        Run the sweep.

        Args:
            dry_run: Only count candidates
            now: Reference time (defaults to the current time)

        Returns:
            PurgeReport
        """
        cutoff = (now or utcnow()) - self.retention
        report = PurgeReport(cutoff=cutoff, dry_run=dry_run)
        self.log.log_info(
            "Purge sweep started", {"cutoff": cutoff.isoformat(), "dry_run": dry_run}
        )

        readers = self._candidates(Reader, cutoff)
        if dry_run:
            report.counts["readers"] = len(readers)
        for reader_id in readers if not dry_run else ():
            self._purge_one(report, "readers", reader_id)

        # Queried after the reader phase so cascaded rows are not revisited
        for kind, model in self.DIRECT_KINDS:
            candidates = self._candidates(model, cutoff)
            if dry_run:
                report.counts[kind] = len(candidates)
                continue
            for entity_id in candidates:
                self._purge_one(report, kind, entity_id)

        referenced = self._referenced_candidates(cutoff)
        if dry_run:
            report.counts["sources_referenced"] = len(referenced)
        else:
            for source_id in referenced:
                self._clear_reference(report, source_id)

        if not dry_run:
            report.counts = +report.counts
        self.log.log_operation(
            "purge_sweep_completed",
            {"dry_run": dry_run, "counts": report.summary(), "failures": len(report.failures)},
        )
        return report

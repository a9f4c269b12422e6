#!/usr/bin/env python3
"""
manager.py
--------------------
Database facade for the Marginalia data layer.

Provides the MarginaliaDB class, built once from a MarginaliaConfig:
 - Initialization of the database engine and sessionmaker
 - Transactional session scopes with logging
 - Per-session entity managers (db.readers, db.sources, ...)
 - Association managers for the join tables
 - The hard-delete sweep and table statistics

Key Features:
    - SQLite and PostgreSQL through SQLAlchemy
    - On SQLite, foreign keys are enforced and SAVEPOINTs work (the
      pysqlite transaction handling is replaced by explicit BEGIN)
    - Explicit dependencies: identifier codec, cache hooks and metrics
      queue are passed in, never read from globals

Usage:
    config = MarginaliaConfig.from_yaml("marginalia.yaml")
    db = MarginaliaDB(config, cache_hooks=my_hooks)
    db.initialize_schema()

    with db.session_scope():
        reader = db.readers.create("auth0|123", {"name": "Ada"})
        source = db.sources.create(reader, {"name": "Dune", "type": "Book"})
        db.source_tags.add(source.id, tag.id)

    report = db.purge()
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from contextlib import contextmanager
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, Iterator, Optional

# --- Third party ---
from sqlalchemy import Engine, create_engine, event, func, select
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker

# --- Local imports ---
from marginalia.core.config import MarginaliaConfig
from marginalia.core.exceptions import DatabaseError
from marginalia.core.identifiers import IdentifierCodec
from marginalia.core.logging_manager import MarginaliaLogger, safe_logger
from .association_manager import AssociationManager
from .hooks import CacheHooks, MetricsQueue, NullCacheHooks
from .managers import (
    AttributionManager,
    CollaboratorManager,
    NotebookManager,
    ReadActivityManager,
    ReaderManager,
    SourceManager,
    TagManager,
)
from .models import Base
from .purge_manager import PurgeManager, PurgeReport


def _enable_sqlite_savepoints(engine: Engine) -> None:
    """
    Make pysqlite honour foreign keys, transactions and SAVEPOINT.

    The driver's own BEGIN handling is disabled and SQLAlchemy emits BEGIN
    itself, as documented for the pysqlite dialect.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


# ----- Main Database Manager -----
class MarginaliaDB:
    """
    Main database manager for the Marginalia data layer.

    Attributes:
        config: Configuration the facade was built from
        codec: Identifier codec for the configured domain
        engine: SQLAlchemy engine
        SessionLocal: Session factory
        logger: MarginaliaLogger when ``log_dir`` is configured, else None
    """

    def __init__(
        self,
        config: MarginaliaConfig,
        cache_hooks: Optional[CacheHooks] = None,
        metrics: Optional[MetricsQueue] = None,
    ) -> None:
        """
        Initialize database engine and session factory.

        Args:
            config: Marginalia configuration
            cache_hooks: Cache invalidation callbacks (optional)
            metrics: Metrics queue receiving creation events (optional)
        """
        self.config = config
        self.codec = IdentifierCodec(config.domain)
        self.cache_hooks = cache_hooks or NullCacheHooks()
        self.metrics = metrics

        # --- Logging ---
        if config.log_dir:
            self.log_dir = Path(config.log_dir).expanduser().resolve()
            self.logger: Optional[MarginaliaLogger] = MarginaliaLogger(
                self.log_dir, component_name="database"
            )
        else:
            self.log_dir = None
            self.logger = None

        # Per-session managers, set inside session_scope
        self._session: Optional[Session] = None

        self._setup_engine()

    def _setup_engine(self) -> None:
        """Initialize database engine and session factory."""
        log = safe_logger(self.logger)
        try:
            url = make_url(self.config.database_url)
            log.log_operation("database_init_start", {"backend": url.get_backend_name()})

            if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
                db_path = Path(url.database).expanduser()
                db_path.parent.mkdir(parents=True, exist_ok=True)
                url = url.set(database=str(db_path))

            self.engine: Engine = create_engine(
                url,
                echo=self.config.echo_sql,
                pool_pre_ping=True,
            )
            if url.get_backend_name() == "sqlite":
                _enable_sqlite_savepoints(self.engine)

            self.SessionLocal: sessionmaker = sessionmaker(
                bind=self.engine,
                autoflush=True,
                expire_on_commit=False,
            )
            log.log_operation("database_init_complete", {"success": True})

        except Exception as e:
            log.log_error(e, {"operation": "database_init"})
            raise DatabaseError(f"Database initialization failed: {e}") from e

    def initialize_schema(self) -> None:
        """Create every table that does not exist yet."""
        Base.metadata.create_all(self.engine)
        safe_logger(self.logger).log_operation(
            "schema_initialized", {"tables": len(Base.metadata.tables)}
        )

    def dispose(self) -> None:
        """Release pooled connections and close log handlers."""
        self.engine.dispose()
        if self.logger:
            self.logger.close()

    # ---- Session Management ----
    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Plain transactional scope: commit on success, rollback on error.

        Does not touch the per-session managers, so it can run while a
        session_scope is open (the purge sweep uses it).
        """
        session = self.SessionLocal()
        session_id = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        log = safe_logger(self.logger)
        log.log_debug("session_start", {"session_id": session_id})
        try:
            yield session
            session.commit()
            log.log_debug("session_commit", {"session_id": session_id})
        except Exception as e:
            session.rollback()
            log.log_error(e, {"operation": "session_rollback", "session_id": session_id})
            raise
        finally:
            session.close()
            log.log_debug("session_close", {"session_id": session_id})

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """
        Provide a transactional scope and bind the entity managers to it.

        Managers are available via properties (db.readers, db.sources, ...)
        until the scope ends.

        Usage:
            with db.session_scope() as session:
                notebook = db.notebooks.create(reader, {"name": "Thesis"})
        """
        with self.transaction() as session:
            self._session = session
            try:
                yield session
            finally:
                self._session = None

    def get_session(self) -> Session:
        """Create and return a new SQLAlchemy session."""
        return self.SessionLocal()

    # -------------------------------------------------------------------------
    # Entity Manager Properties
    # -------------------------------------------------------------------------

    def _active_session(self, name: str) -> Session:
        if self._session is None:
            raise DatabaseError(
                f"{name} requires active session. "
                "Use within session_scope: "
                f"with db.session_scope() as session: db.{name}..."
            )
        return self._session

    def _notifying(self, manager_class, name: str):
        return manager_class(
            self._active_session(name), self.logger, self.codec, self.cache_hooks, self.metrics
        )

    @property
    def readers(self) -> ReaderManager:
        """ReaderManager bound to the current session."""
        return ReaderManager(self._active_session("readers"), self.logger, self.codec)

    @property
    def notebooks(self) -> NotebookManager:
        """NotebookManager bound to the current session."""
        return self._notifying(NotebookManager, "notebooks")

    @property
    def collaborators(self) -> CollaboratorManager:
        return self._notifying(CollaboratorManager, "collaborators")

    @property
    def sources(self) -> SourceManager:
        """SourceManager bound to the current session."""
        return self._notifying(SourceManager, "sources")

    @property
    def tags(self) -> TagManager:
        """TagManager bound to the current session."""
        return self._notifying(TagManager, "tags")

    @property
    def attributions(self) -> AttributionManager:
        return AttributionManager(self._active_session("attributions"), self.logger, self.codec)

    @property
    def read_activities(self) -> ReadActivityManager:
        return ReadActivityManager(
            self._active_session("read_activities"), self.logger, self.codec
        )

    # ---- Associations ----
    def _association(self, factory_name: str) -> AssociationManager:
        factory = getattr(AssociationManager, factory_name)
        return factory(self._active_session(factory_name[4:]), self.logger, self.codec)

    @property
    def notebook_sources(self) -> AssociationManager:
        return self._association("for_notebook_sources")

    @property
    def source_notebooks(self) -> AssociationManager:
        return self._association("for_source_notebooks")

    @property
    def notebook_notes(self) -> AssociationManager:
        return self._association("for_notebook_notes")

    @property
    def note_notebooks(self) -> AssociationManager:
        return self._association("for_note_notebooks")

    @property
    def notebook_tags(self) -> AssociationManager:
        return self._association("for_notebook_tags")

    @property
    def source_tags(self) -> AssociationManager:
        return self._association("for_source_tags")

    @property
    def note_tags(self) -> AssociationManager:
        return self._association("for_note_tags")

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    def purge(
        self, dry_run: bool = False, retention_hours: Optional[float] = None
    ) -> PurgeReport:
        """
        Run the hard-delete sweep.

        Args:
            dry_run: Only count candidates
            retention_hours: Override of the configured retention window

        Returns:
            PurgeReport
        """
        retention = (
            timedelta(hours=retention_hours)
            if retention_hours is not None
            else self.config.retention
        )
        purger = PurgeManager(self.transaction, self.logger, retention)
        return purger.sweep(dry_run=dry_run)

    def table_counts(self) -> Dict[str, Dict[str, int]]:
        """
        Row counts per table.

        Returns:
            ``{table: {"total": n, "deleted": m}}``; ``deleted`` only for
            tables with soft delete
        """
        stats: Dict[str, Dict[str, int]] = {}
        with self.transaction() as session:
            for table in Base.metadata.sorted_tables:
                total = session.scalar(select(func.count()).select_from(table))
                entry = {"total": total}
                if "deleted" in table.c:
                    entry["deleted"] = session.scalar(
                        select(func.count())
                        .select_from(table)
                        .where(table.c.deleted.is_not(None))
                    )
                stats[table.name] = entry
        return stats

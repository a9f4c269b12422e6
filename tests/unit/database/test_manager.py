"""
test_manager.py
---------------
Unit tests for the MarginaliaDB facade: engine setup, session scopes,
manager properties and table statistics.
"""
import pytest
from sqlalchemy.exc import IntegrityError

from marginalia.core.config import MarginaliaConfig
from marginalia.core.exceptions import DatabaseError
from marginalia.database import MarginaliaDB
from marginalia.database.managers import SourceManager
from marginalia.database.models import Source


class TestSetup:
    """Tests for engine and logger setup."""

    def test_invalid_url_raises_database_error(self, tmp_path):
        with pytest.raises(DatabaseError, match="Database initialization failed"):
            MarginaliaDB(MarginaliaConfig(database_url="not a url"))

    def test_sqlite_parent_directory_is_created(self, tmp_path):
        db_path = tmp_path / "nested" / "dir" / "store.db"
        db = MarginaliaDB(MarginaliaConfig(database_url=f"sqlite:///{db_path}"))
        db.initialize_schema()
        db.dispose()
        assert db_path.exists()

    def test_log_dir_enables_file_logging(self, tmp_path):
        config = MarginaliaConfig(
            database_url=f"sqlite:///{tmp_path / 'store.db'}", log_dir=tmp_path / "logs"
        )
        db = MarginaliaDB(config)
        db.initialize_schema()
        db.dispose()
        assert "schema_initialized" in (tmp_path / "logs" / "database.log").read_text()

    def test_no_log_dir_means_no_logger(self, test_db):
        assert test_db.logger is None

    def test_codec_uses_configured_domain(self, test_db):
        assert test_db.codec.domain == "https://reader.test"


class TestSessionScope:
    """Tests for transactional scopes."""

    def test_managers_require_active_session(self, test_db):
        with pytest.raises(DatabaseError, match="sources requires active session"):
            test_db.sources
        with pytest.raises(DatabaseError, match="source_tags requires active session"):
            test_db.source_tags

    def test_managers_are_bound_inside_scope(self, test_db, cache_hooks):
        with test_db.session_scope() as session:
            sources = test_db.sources
            assert isinstance(sources, SourceManager)
            assert sources.session is session
            assert sources.cache_hooks is cache_hooks
            assert sources.codec is test_db.codec

    def test_commit_on_success(self, test_db):
        with test_db.session_scope():
            reader = test_db.readers.create("auth0|commit")
        with test_db.session_scope():
            assert test_db.readers.get_by_auth_id("auth0|commit").id == reader.id

    def test_rollback_on_error(self, test_db):
        with pytest.raises(RuntimeError):
            with test_db.session_scope():
                test_db.readers.create("auth0|rollback")
                raise RuntimeError("abort")
        with test_db.session_scope():
            assert test_db.readers.get_by_auth_id("auth0|rollback") is None

    def test_scope_unbinds_after_exit(self, test_db):
        with test_db.session_scope():
            pass
        with pytest.raises(DatabaseError):
            test_db.readers

    def test_foreign_keys_are_enforced(self, db_session):
        db_session.add(Source(id="orphan-1", reader_id="missing", type="Book"))
        with pytest.raises(IntegrityError):
            db_session.flush()


class TestTableCounts:
    def test_counts_total_and_deleted(self, test_db):
        with test_db.session_scope():
            reader = test_db.readers.create("auth0|stats")
            kept = test_db.sources.create(reader, {"name": "Kept", "type": "Book"})
            gone = test_db.sources.create(reader, {"name": "Gone", "type": "Book"})
            test_db.sources.delete(gone.id)
            assert kept.id != gone.id

        counts = test_db.table_counts()
        assert counts["sources"] == {"total": 2, "deleted": 1}
        assert counts["readers"] == {"total": 1, "deleted": 0}
        assert counts["source_tag"] == {"total": 0}

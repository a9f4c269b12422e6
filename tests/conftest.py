"""
conftest.py
-----------
Shared pytest fixtures for Marginalia tests.

Provides fixtures for:
- Configuration and a file-backed SQLite database per test
- Sessions and managers bound to that database
- Recording cache hooks and metrics queue
- Readers, notebooks, sources and tags to work with
"""
import pytest

from marginalia.core.config import MarginaliaConfig
from marginalia.database import MarginaliaDB, RecordingCacheHooks
from marginalia.database.association_manager import AssociationManager
from marginalia.database.managers import (
    AttributionManager,
    CollaboratorManager,
    NotebookManager,
    ReadActivityManager,
    ReaderManager,
    SourceManager,
    TagManager,
)

TEST_DOMAIN = "https://reader.test"


class RecordingQueue:
    """Metrics queue keeping every enqueued event."""

    def __init__(self):
        self.events = []

    def enqueue(self, event):
        self.events.append(event)


# ----- Configuration -----

@pytest.fixture
def test_db_path(tmp_path):
    """Create temporary test database path."""
    return tmp_path / "test.db"


@pytest.fixture
def test_config(test_db_path):
    """Configuration pointing at the temporary database."""
    return MarginaliaConfig(database_url=f"sqlite:///{test_db_path}", domain=TEST_DOMAIN)


@pytest.fixture
def cache_hooks():
    """Cache hooks recording every notification."""
    return RecordingCacheHooks()


@pytest.fixture
def metrics():
    """Metrics queue recording every event."""
    return RecordingQueue()


# ----- Test Database Fixtures -----

@pytest.fixture
def test_db(test_config, cache_hooks, metrics):
    """
    Create test database instance with schema.

    Returns a MarginaliaDB instance with an initialized schema.
    Database is torn down after the test.
    """
    db = MarginaliaDB(test_config, cache_hooks=cache_hooks, metrics=metrics)
    db.initialize_schema()

    yield db

    db.dispose()


@pytest.fixture
def db_session(test_db):
    """
    Create a database session for tests.

    Provides a session with automatic rollback after test.
    """
    with test_db.session_scope() as session:
        yield session
        session.rollback()


@pytest.fixture
def codec(test_db):
    return test_db.codec


# ----- Managers -----

@pytest.fixture
def reader_manager(db_session, codec):
    return ReaderManager(db_session, codec=codec)


@pytest.fixture
def notebook_manager(db_session, codec, cache_hooks, metrics):
    return NotebookManager(db_session, codec=codec, cache_hooks=cache_hooks, metrics=metrics)


@pytest.fixture
def collaborator_manager(db_session, codec, cache_hooks):
    return CollaboratorManager(db_session, codec=codec, cache_hooks=cache_hooks)


@pytest.fixture
def source_manager(db_session, codec, cache_hooks, metrics):
    return SourceManager(db_session, codec=codec, cache_hooks=cache_hooks, metrics=metrics)


@pytest.fixture
def tag_manager(db_session, codec, cache_hooks):
    return TagManager(db_session, codec=codec, cache_hooks=cache_hooks)


@pytest.fixture
def attribution_manager(db_session, codec):
    return AttributionManager(db_session, codec=codec)


@pytest.fixture
def read_activity_manager(db_session, codec):
    return ReadActivityManager(db_session, codec=codec)


@pytest.fixture
def source_tags(db_session, codec):
    return AssociationManager.for_source_tags(db_session, codec=codec)


@pytest.fixture
def notebook_sources(db_session, codec):
    return AssociationManager.for_notebook_sources(db_session, codec=codec)


# ----- Sample Entities -----

@pytest.fixture
def reader(reader_manager):
    """A reader to own test entities."""
    return reader_manager.create("auth0|reader-one", {"name": "Ada Reader"})


@pytest.fixture
def other_reader(reader_manager):
    """A second reader, to check ownership boundaries."""
    return reader_manager.create("auth0|reader-two", {"name": "Bo Reader"})


@pytest.fixture
def notebook(notebook_manager, reader):
    return notebook_manager.create(reader, {"name": "Thesis", "description": "Chapter notes"})


@pytest.fixture
def source(source_manager, reader):
    return source_manager.create(
        reader,
        {"name": "Dune", "type": "Book", "author": "Frank Herbert", "keywords": ["scifi"]},
    )


@pytest.fixture
def tag(tag_manager, reader):
    return tag_manager.create(reader, {"type": "reader:Tag", "name": "to read"})

"""
test_reader_manager.py
----------------------
Unit tests for ReaderManager CRUD operations.
"""
import uuid

import pytest

from marginalia.core.exceptions import ConflictError, NotFoundError, ValidationError


class TestReaderManagerCreate:
    """Test ReaderManager.create() method."""

    def test_create_assigns_uuid(self, reader_manager):
        reader = reader_manager.create("auth0|new", {"name": "Ada"})
        assert str(uuid.UUID(reader.id)) == reader.id
        assert reader.auth_id == "auth0|new"
        assert reader.name == "Ada"

    def test_create_keeps_opaque_documents(self, reader_manager):
        reader = reader_manager.create(
            "auth0|prefs", {"name": "Ada", "preferences": {"theme": "dark"}, "json": {"x": 1}}
        )
        assert reader.preferences == {"theme": "dark"}
        assert reader.json == {"x": 1}

    def test_duplicate_auth_id_conflicts(self, reader_manager, reader):
        with pytest.raises(ConflictError, match="Reader already exists"):
            reader_manager.create("auth0|reader-one", {"name": "Again"})

    def test_session_usable_after_conflict(self, reader_manager, reader):
        with pytest.raises(ConflictError):
            reader_manager.create("auth0|reader-one")
        assert reader_manager.create("auth0|fresh").auth_id == "auth0|fresh"

    def test_malformed_person_rejected(self, reader_manager):
        with pytest.raises(ValidationError):
            reader_manager.create("auth0|bad", {"profile": "not an object"})


class TestReaderManagerGet:
    """Test ReaderManager lookups."""

    def test_get_by_id(self, reader_manager, reader):
        assert reader_manager.get_by_id(reader.id) is reader

    def test_get_by_short_id_and_url(self, reader_manager, reader, codec):
        assert reader_manager.get_by_short_id(codec.to_public_id(reader.id)).id == reader.id
        assert reader_manager.get_by_id(codec.url_for("readers", reader.id)).id == reader.id

    def test_get_by_auth_id(self, reader_manager, reader):
        assert reader_manager.get_by_auth_id("auth0|reader-one").id == reader.id
        assert reader_manager.get_by_auth_id("auth0|nobody") is None
        assert reader_manager.get_by_auth_id("") is None

    def test_deleted_reader_is_hidden(self, reader_manager, reader):
        reader_manager.delete(reader.id)
        assert reader_manager.get_by_id(reader.id) is None
        assert reader_manager.get_by_auth_id("auth0|reader-one") is None
        assert reader_manager.get_by_id(reader.id, include_deleted=True).id == reader.id
        assert reader_manager.exists(reader.id) is False

    def test_require_raises_no_reader(self, reader_manager):
        with pytest.raises(NotFoundError, match="no reader"):
            reader_manager.require(str(uuid.uuid4()))


class TestReaderManagerUpdateDelete:
    def test_update_changes_given_properties(self, reader_manager, reader):
        updated = reader_manager.update(reader.id, {"profile": {"bio": "reads a lot"}})
        assert updated.profile == {"bio": "reads a lot"}
        assert updated.name == "Ada Reader"

    def test_update_missing_reader(self, reader_manager):
        with pytest.raises(NotFoundError, match="no reader"):
            reader_manager.update(str(uuid.uuid4()), {"name": "Ghost"})

    def test_delete_is_guarded(self, reader_manager, reader):
        """A second delete matches nothing and keeps the first timestamp."""
        assert reader_manager.delete(reader.id) == 1
        first = reader_manager.get_by_id(reader.id, include_deleted=True).deleted
        assert reader_manager.delete(reader.id) == 0
        assert reader_manager.get_by_id(reader.id, include_deleted=True).deleted == first

    def test_delete_missing_reader(self, reader_manager):
        assert reader_manager.delete(str(uuid.uuid4())) == 0

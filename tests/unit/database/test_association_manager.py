"""
test_association_manager.py
---------------------------
Unit tests for the config-driven join-table manager.

Tests add/remove error translation, best-effort bulk insertion with
per-member outcomes, replacement and active-member queries.
"""
import pytest

from marginalia.core.exceptions import ConflictError, NotFoundError, RelationNotFoundError
from marginalia.database.association_manager import (
    NOTEBOOK_SOURCE,
    SOURCE_TAG,
    AssociationManager,
)
from marginalia.database.models import Note
from marginalia.database.outcomes import OutcomeStatus


@pytest.fixture
def second_tag(tag_manager, reader):
    return tag_manager.create(reader, {"type": "reader:Tag", "name": "favourite"})


class TestAssociationConfig:
    def test_labels_and_actions(self):
        assert SOURCE_TAG.add_action == "Add Tag to Source"
        assert SOURCE_TAG.remove_action == "Remove Tag from Source"

    def test_reversed_swaps_sides(self):
        reversed_config = NOTEBOOK_SOURCE.reversed()
        assert reversed_config.table is NOTEBOOK_SOURCE.table
        assert reversed_config.owner_column == "source_id"
        assert reversed_config.member_kind == "notebook"
        assert reversed_config.add_action == "Add Notebook to Source"


class TestAdd:
    """Tests for AssociationManager.add."""

    def test_add_returns_row(self, source_tags, source, tag):
        row = source_tags.add(source.id, tag.id)
        assert row == {"source_id": source.id, "tag_id": tag.id}
        assert source_tags.exists(source.id, tag.id)

    def test_add_accepts_urls(self, source_tags, source, tag, codec):
        source_tags.add(codec.url_for("sources", source.id), codec.url_for("tags", tag.id))
        assert source_tags.member_ids(source.id) == [tag.id]

    def test_duplicate_is_conflict(self, source_tags, source, tag):
        source_tags.add(source.id, tag.id)
        with pytest.raises(ConflictError) as exc_info:
            source_tags.add(source.id, tag.id)
        assert str(exc_info.value) == (
            f"Add Tag to Source Error: Relationship already exists between "
            f"Source {source.id} and Tag {tag.id}"
        )

    def test_session_usable_after_conflict(self, source_tags, source, tag, second_tag):
        source_tags.add(source.id, tag.id)
        with pytest.raises(ConflictError):
            source_tags.add(source.id, tag.id)
        source_tags.add(source.id, second_tag.id)
        assert source_tags.member_ids(source.id) == sorted([tag.id, second_tag.id])

    def test_missing_member(self, source_tags, source):
        with pytest.raises(NotFoundError) as exc_info:
            source_tags.add(source.id, "nope-0000000000")
        assert str(exc_info.value) == "no tag"
        assert exc_info.value.kind == "tag"

    def test_missing_owner(self, source_tags, tag):
        with pytest.raises(NotFoundError) as exc_info:
            source_tags.add("nope-0000000000", tag.id)
        assert str(exc_info.value) == "no source"

    def test_unresolvable_owner(self, source_tags, tag):
        with pytest.raises(NotFoundError, match="no source"):
            source_tags.add("https://elsewhere.org/sources/x", tag.id)

    def test_reversed_view_writes_same_table(self, db_session, codec, notebook, source):
        source_notebooks = AssociationManager.for_source_notebooks(db_session, codec=codec)
        notebook_sources = AssociationManager.for_notebook_sources(db_session, codec=codec)

        source_notebooks.add(source.id, notebook.id)
        assert notebook_sources.exists(notebook.id, source.id)
        with pytest.raises(ConflictError, match="Add Notebook to Source Error"):
            source_notebooks.add(source.id, notebook.id)

    def test_tag_side_lists_sources(self, db_session, codec, source_tags, source, tag):
        tag_sources = AssociationManager.for_tag_sources(db_session, codec=codec)
        tag_sources.add(tag.id, source.id)
        assert source_tags.member_ids(source.id) == [tag.id]
        assert tag_sources.member_ids(tag.id) == [source.id]

    def test_note_membership(self, db_session, codec, reader, notebook):
        note = Note(id=codec.new_owned_id(reader.id), reader_id=reader.id)
        db_session.add(note)
        db_session.flush()

        notebook_notes = AssociationManager.for_notebook_notes(db_session, codec=codec)
        notebook_notes.add(notebook.id, note.id)
        assert notebook_notes.member_ids(notebook.id) == [note.id]
        assert AssociationManager.for_note_notebooks(db_session, codec=codec).member_ids(
            note.id
        ) == [notebook.id]


class TestRemove:
    """Tests for AssociationManager.remove."""

    def test_remove_existing(self, source_tags, source, tag):
        source_tags.add(source.id, tag.id)
        source_tags.remove(source.id, tag.id)
        assert not source_tags.exists(source.id, tag.id)

    def test_second_remove_raises(self, source_tags, source, tag):
        source_tags.add(source.id, tag.id)
        source_tags.remove(source.id, tag.id)
        with pytest.raises(RelationNotFoundError) as exc_info:
            source_tags.remove(source.id, tag.id)
        assert str(exc_info.value) == (
            f"Remove Tag from Source Error: No Relation found between "
            f"Tag {tag.id} and Source {source.id}"
        )

    def test_remove_all_for_owner_and_member(self, source_tags, source_manager, reader, source, tag, second_tag):
        other = source_manager.create(reader, {"name": "Emma", "type": "Book"})
        source_tags.add(source.id, tag.id)
        source_tags.add(source.id, second_tag.id)
        source_tags.add(other.id, tag.id)

        assert source_tags.remove_all_for_member(tag.id) == 2
        assert source_tags.remove_all_for_owner(source.id) == 1
        assert source_tags.remove_all_for_owner(None) == 0


class TestAddMultiple:
    """Tests for best-effort bulk insertion."""

    def test_all_added(self, source_tags, source, tag, second_tag):
        result = source_tags.add_multiple(source.id, [tag.id, second_tag.id])
        assert [o.status for o in result] == [OutcomeStatus.ADDED, OutcomeStatus.ADDED]
        assert not result.failed

    def test_mixed_outcomes_keep_input_order(self, source_tags, source, tag, second_tag):
        result = source_tags.add_multiple(
            source.id, [tag.id, "missing-0000000000", second_tag.id, tag.id]
        )
        assert [o.status for o in result] == [
            OutcomeStatus.ADDED,
            OutcomeStatus.NOT_FOUND,
            OutcomeStatus.ADDED,
            OutcomeStatus.CONFLICT,
        ]
        assert result.outcomes[1].message == "no tag"
        assert sorted(source_tags.member_ids(source.id)) == sorted([tag.id, second_tag.id])

    def test_existing_pair_is_conflict(self, source_tags, source, tag, second_tag):
        source_tags.add(source.id, tag.id)
        result = source_tags.add_multiple(source.id, [tag.id, second_tag.id])
        assert [o.status for o in result] == [OutcomeStatus.CONFLICT, OutcomeStatus.ADDED]
        assert "Relationship already exists" in result.outcomes[0].message

    def test_comma_separated_members(self, source_tags, source, tag, second_tag):
        result = source_tags.add_multiple(source.id, f"{tag.id}, {second_tag.id}")
        assert result.ids_with(OutcomeStatus.ADDED) == [tag.id, second_tag.id]

    def test_unresolvable_member_is_invalid(self, source_tags, source, tag):
        result = source_tags.add_multiple(source.id, [42, tag.id])
        assert [o.status for o in result] == [OutcomeStatus.INVALID, OutcomeStatus.ADDED]

    def test_missing_owner_fails_every_member(self, source_tags, tag, second_tag):
        result = source_tags.add_multiple(None, [tag.id, second_tag.id])
        assert [o.status for o in result] == [OutcomeStatus.NOT_FOUND] * 2
        assert result.outcomes[0].message == "no source"

    def test_empty_members(self, source_tags, source):
        assert len(source_tags.add_multiple(source.id, [])) == 0
        assert len(source_tags.add_multiple(source.id, None)) == 0


class TestReplaceAndQueries:
    def test_replace_all(self, source_tags, source, tag, second_tag):
        source_tags.add(source.id, tag.id)
        result = source_tags.replace_all(source.id, [second_tag.id])
        assert result.ids_with(OutcomeStatus.ADDED) == [second_tag.id]
        assert source_tags.member_ids(source.id) == [second_tag.id]

    def test_member_ids_skip_deleted_members(self, source_tags, tag_manager, source, tag, second_tag):
        source_tags.add_multiple(source.id, [tag.id, second_tag.id])
        tag_manager.delete(tag.id)

        assert source_tags.member_ids(source.id) == [second_tag.id]
        assert sorted(source_tags.member_ids(source.id, include_deleted=True)) == sorted(
            [tag.id, second_tag.id]
        )
        assert source_tags.exists(source.id, tag.id)

    def test_member_ids_skip_referenced_sources(self, notebook_sources, source_manager, notebook, source):
        notebook_sources.add(notebook.id, source.id)
        source_manager.to_reference(source.id)
        assert notebook_sources.member_ids(notebook.id) == []
        assert notebook_sources.member_ids(notebook.id, include_deleted=True) == [source.id]

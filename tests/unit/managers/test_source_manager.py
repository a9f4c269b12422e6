"""
test_source_manager.py
----------------------
Unit tests for SourceManager operations.

Tests creation with attributions, lookups with the current reading
position, filtered listing, metadata-merging updates, the deletion and
reference states, and every batch operation with its per-source outcomes.
"""
import pytest

from marginalia.core.exceptions import NotFoundError, ValidationError
from marginalia.database.models import Note, Source
from marginalia.database.outcomes import OutcomeStatus

MISSING = "missing-0000000000"


def author_names(source):
    return sorted(a.name for a in source.attributions if a.role == "author")


@pytest.fixture
def library(source_manager, reader):
    """A few more sources for listing tests."""
    return [
        source_manager.create(reader, {"name": "Alpha Centauri", "type": "Article"}),
        source_manager.create(reader, {"name": "Beowulf", "type": "Book"}),
    ]


class TestSourceManagerCreate:
    """Test SourceManager.create() and create_in_notebook()."""

    def test_create_flattens_document(self, source, reader, codec):
        assert source.id.startswith(codec.to_public_id(reader.id) + "-")
        assert source.name == "Dune"
        assert source.type == "Book"
        assert source.metadata_ == {"keywords": ["scifi"]}

    def test_create_records_attributions(self, source):
        [author] = source.attributions
        assert author.role == "author"
        assert author.name == "Frank Herbert"
        assert author.normalized_name == "frankherbert"
        assert author.is_contributor is False

    def test_create_notifies_and_enqueues(self, source, reader, cache_hooks, metrics):
        assert ("library", "auth0|reader-one") in cache_hooks.calls
        assert {"type": "createSource", "readerId": reader.id} in metrics.events

    def test_invalid_document_reports_every_issue(self, source_manager, reader):
        with pytest.raises(ValidationError) as exc_info:
            source_manager.create(reader, {"type": "Scroll", "wordCount": "many"})
        fields = {issue.field for issue in exc_info.value.issues}
        assert fields == {"name", "type", "wordCount"}

    def test_unknown_reader(self, source_manager):
        with pytest.raises(NotFoundError, match="no reader"):
            source_manager.create("nobody", {"name": "Dune", "type": "Book"})

    def test_create_in_notebook(self, source_manager, notebook_sources, reader, notebook):
        source = source_manager.create_in_notebook(
            reader, notebook.id, {"name": "Emma", "type": "Book"}
        )
        assert notebook_sources.exists(notebook.id, source.id)

    def test_create_in_missing_notebook_is_undone(self, source_manager, db_session, reader):
        with pytest.raises(NotFoundError, match="no notebook"):
            source_manager.create_in_notebook(
                reader, MISSING, {"name": "Orphan", "type": "Book", "author": "Nobody"}
            )
        assert db_session.query(Source).filter(Source.name == "Orphan").count() == 0

    def test_undone_create_is_not_announced(self, source_manager, reader, cache_hooks, metrics):
        with pytest.raises(NotFoundError):
            source_manager.create_in_notebook(reader, MISSING, {"name": "Orphan", "type": "Book"})
        assert cache_hooks.calls == []
        assert metrics.events == []

    def test_create_in_notebook_is_announced_once(
        self, source_manager, reader, notebook, cache_hooks, metrics
    ):
        cache_hooks.calls.clear()
        metrics.events.clear()
        source_manager.create_in_notebook(reader, notebook.id, {"name": "Emma", "type": "Book"})
        assert cache_hooks.calls == [("library", "auth0|reader-one")]
        assert metrics.events == [{"type": "createSource", "readerId": reader.id}]


class TestSourceManagerGet:
    def test_get_by_id_and_url(self, source_manager, source, codec):
        assert source_manager.get_by_id(source.id).id == source.id
        assert source_manager.get_by_id(codec.url_for("sources", source.id)).id == source.id

    def test_position_is_latest_activity(self, source_manager, read_activity_manager, reader, source):
        assert source_manager.get_by_id(source.id).position is None
        read_activity_manager.create(reader.id, source.id, {"selector": {"value": "/p[3]"}})
        assert source_manager.get_by_id(source.id).position == {"value": "/p[3]"}

    def test_referenced_source_needs_flag(self, source_manager, source):
        source_manager.to_reference(source.id)
        assert source_manager.get_by_id(source.id) is None
        assert source_manager.get_by_id(source.id, include_referenced=True).id == source.id
        assert not source_manager.exists(source.id)

    def test_loads_active_tags(self, source_manager, source_tags, tag_manager, source, tag):
        source_tags.add(source.id, tag.id)
        assert [t.id for t in source_manager.get_by_id(source.id).tags] == [tag.id]
        tag_manager.delete(tag.id)
        assert source_manager.get_by_id(source.id).tags == []

    def test_to_public(self, source_manager, source):
        document = source_manager.to_public(source_manager.get_by_id(source.id))
        assert document["id"].endswith("/")
        assert document["keywords"] == ["scifi"]
        assert [a["name"] for a in document["author"]] == ["Frank Herbert"]
        assert document["editor"] == []
        assert document["tags"] == []


class TestSourceManagerListing:
    """Test get_all_for_reader() and count_for_reader()."""

    def test_order_by_name(self, source_manager, reader, source, library):
        listed = source_manager.get_all_for_reader(reader, order_by="name")
        assert [s.name for s in listed] == ["Alpha Centauri", "Beowulf", "Dune"]

    def test_type_filter(self, source_manager, reader, source, library):
        listed = source_manager.get_all_for_reader(reader, type="Book", order_by="name")
        assert [s.name for s in listed] == ["Beowulf", "Dune"]

    def test_search(self, source_manager, reader, source, library):
        assert [s.name for s in source_manager.get_all_for_reader(reader, search="wulf")] == [
            "Beowulf"
        ]

    def test_tag_and_notebook_filters(
        self, source_manager, source_tags, notebook_sources, reader, source, library, tag, notebook
    ):
        source_tags.add(source.id, tag.id)
        notebook_sources.add(notebook.id, library[0].id)
        assert [s.id for s in source_manager.get_all_for_reader(reader, tag=tag.id)] == [source.id]
        assert [s.id for s in source_manager.get_all_for_reader(reader, notebook=notebook.id)] == [
            library[0].id
        ]

    def test_search_covers_abstract_people_and_keywords(self, source_manager, reader, source, library):
        source_manager.update(library[0].id, {"abstract": "A nearby star system"})

        def names(search):
            return [s.name for s in source_manager.get_all_for_reader(reader, search=search)]

        assert names("STAR SYSTEM") == ["Alpha Centauri"]
        assert names("herbert") == ["Dune"]
        assert names("scifi") == ["Dune"]
        assert names("sci") == []

    def test_author_and_attribution_filters(self, source_manager, reader, source, library):
        source_manager.update(library[1].id, {"translator": "Seamus Heaney"})

        listed = source_manager.get_all_for_reader(reader, author="frank  HERBERT")
        assert [s.id for s in listed] == [source.id]
        assert source_manager.count_for_reader(reader, author="Herbert") == 0
        listed = source_manager.get_all_for_reader(reader, attribution="heaney")
        assert [s.name for s in listed] == ["Beowulf"]
        assert source_manager.count_for_reader(reader, attribution="heaney", role="translator") == 1
        assert source_manager.count_for_reader(reader, attribution="heaney", role="author") == 0

    def test_language_and_keyword_filters(self, source_manager, reader, source, library):
        source_manager.update(library[0].id, {"inLanguage": ["en", "fr"], "keywords": ["Space"]})

        assert [s.name for s in source_manager.get_all_for_reader(reader, language="fr")] == [
            "Alpha Centauri"
        ]
        assert [s.name for s in source_manager.get_all_for_reader(reader, keyword="SPACE")] == [
            "Alpha Centauri"
        ]
        assert [s.name for s in source_manager.get_all_for_reader(reader, keyword="scifi")] == ["Dune"]
        assert source_manager.count_for_reader(reader, keyword="sci") == 0

    def test_collection_filter(self, source_manager, tag_manager, source_tags, reader, source, library):
        shelf = tag_manager.create(reader, {"type": "stack", "name": "Epics"})
        plain = tag_manager.create(reader, {"type": "reader:Tag", "name": "Epics"})
        source_tags.add(library[1].id, shelf.id)
        source_tags.add(source.id, plain.id)

        assert [s.name for s in source_manager.get_all_for_reader(reader, collection="Epics")] == [
            "Beowulf"
        ]
        tag_manager.delete(shelf.id)
        assert source_manager.count_for_reader(reader, collection="Epics") == 0

    def test_deleted_tag_filters_nothing(self, source_manager, tag_manager, source_tags, reader, source, tag):
        source_tags.add(source.id, tag.id)
        tag_manager.delete(tag.id)
        assert source_manager.get_all_for_reader(reader, tag=tag.id) == []

    def test_deleted_and_referenced_are_excluded(self, source_manager, reader, source, library):
        source_manager.delete(library[0].id)
        source_manager.to_reference(library[1].id)
        assert [s.id for s in source_manager.get_all_for_reader(reader)] == [source.id]
        assert source_manager.count_for_reader(reader) == 1

    def test_paging_and_count(self, source_manager, reader, source, library):
        page = source_manager.get_all_for_reader(reader, limit=2, offset=1, order_by="name", reverse=True)
        assert [s.name for s in page] == ["Beowulf", "Alpha Centauri"]
        assert source_manager.count_for_reader(reader, type="Book") == 2

    def test_unknown_order(self, source_manager, reader):
        with pytest.raises(ValidationError, match="cannot order by"):
            source_manager.get_all_for_reader(reader, order_by="colour")


class TestSourceManagerUpdate:
    """Test SourceManager.update()."""

    def test_metadata_is_merged(self, source_manager, source):
        updated = source_manager.update(source.id, {"isbn": "9780441013593"})
        assert updated.metadata_ == {"keywords": ["scifi"], "isbn": "9780441013593"}

    def test_columns_change_only_when_present(self, source_manager, source):
        updated = source_manager.update(source.id, {"abstract": "Desert planet"})
        assert updated.abstract == "Desert planet"
        assert updated.name == "Dune"

    def test_role_is_replaced(self, source_manager, source):
        updated = source_manager.update(source.id, {"author": ["Brian Herbert", "K. J. Anderson"]})
        assert author_names(updated) == ["Brian Herbert", "K. J. Anderson"]

    def test_role_set_to_none_is_cleared(self, source_manager, source):
        updated = source_manager.update(source.id, {"author": None, "editor": "Sterling Lanier"})
        assert author_names(updated) == []
        assert [a.name for a in updated.attributions] == ["Sterling Lanier"]

    def test_absent_role_is_kept(self, source_manager, source):
        updated = source_manager.update(source.id, {"name": "Dune Messiah"})
        assert author_names(updated) == ["Frank Herbert"]

    def test_empty_name_rejected(self, source_manager, source):
        with pytest.raises(ValidationError, match="name cannot be empty"):
            source_manager.update(source.id, {"name": ""})

    def test_missing_source(self, source_manager):
        with pytest.raises(NotFoundError, match="no source"):
            source_manager.update(MISSING, {"name": "x"})

    def test_update_notifies_library(self, source_manager, source, cache_hooks):
        cache_hooks.calls.clear()
        source_manager.update(source.id, {"genre": "novel"})
        assert cache_hooks.calls == [("library", "auth0|reader-one")]


class TestSourceManagerDeletion:
    """Test delete, delete_notes, to_reference and hard_delete."""

    def test_delete_once(self, source_manager, source):
        assert source_manager.delete(source.id) == 1
        assert source_manager.delete(source.id) == 0
        assert source_manager.get_by_id(source.id) is None

    def test_deleted_source_is_inactive_in_same_session(self, source_manager, source):
        source_manager.delete(source.id)
        assert source.deleted is not None
        assert source_manager.exists(source.id) is False
        with pytest.raises(NotFoundError, match="no source"):
            source_manager.update(source.id, {"abstract": "x"})
        result = source_manager.batch_update("abstract", "x", [source.id])
        assert result.ids_with(OutcomeStatus.NOT_FOUND) == [source.id]

    def test_create_for_deleted_reader(self, source_manager, reader_manager, reader):
        reader_manager.delete(reader.id)
        with pytest.raises(NotFoundError, match="no reader"):
            source_manager.create(reader, {"name": "Emma", "type": "Book"})
        with pytest.raises(NotFoundError, match="no reader"):
            source_manager.create(reader.id, {"name": "Emma", "type": "Book"})

    def test_referenced_source_is_inactive_in_same_session(self, source_manager, source):
        source_manager.to_reference(source.id)
        assert source.referenced is not None
        assert source_manager.exists(source.id) is False
        result = source_manager.batch_add_array_property("keywords", ["x"], [source.id])
        assert result.ids_with(OutcomeStatus.NOT_FOUND) == [source.id]

    def test_delete_notes_hides_loaded_notes(self, source_manager, db_session, codec, reader, source):
        note = Note(id=codec.new_owned_id(reader.id), reader_id=reader.id, source_id=source.id)
        db_session.add(note)
        db_session.flush()
        source_manager.delete_notes(source.id)
        assert note.deleted is not None

    def test_delete_keeps_attributions(self, source_manager, db_session, source):
        source_manager.delete(source.id)
        assert db_session.get(Source, source.id).attributions[0].name == "Frank Herbert"

    def test_delete_notes(self, source_manager, db_session, codec, reader, source, cache_hooks):
        for _ in range(2):
            db_session.add(Note(id=codec.new_owned_id(reader.id), reader_id=reader.id, source_id=source.id))
        db_session.flush()

        assert source_manager.delete_notes(source.id) == 2
        assert source_manager.delete_notes(source.id) == 0
        assert ("notes", "auth0|reader-one") in cache_hooks.calls

    def test_to_reference_clears_links(self, source_manager, reader):
        source = source_manager.create(
            reader,
            {"name": "Web", "type": "Article", "links": ["https://example.org/web"]},
        )
        assert source_manager.to_reference(source.id) == 1
        assert source_manager.to_reference(source.id) == 0
        referenced = source_manager.get_by_id(source.id, include_referenced=True)
        assert referenced.referenced is not None
        assert referenced.links is None
        assert referenced.name == "Web"

    def test_hard_delete(self, source_manager, db_session, source):
        assert source_manager.hard_delete(source.id) == 1
        assert db_session.get(Source, source.id) is None
        assert source_manager.hard_delete(source.id) == 0


class TestSourceManagerBatch:
    """Test the batch operations and their per-source outcomes."""

    def test_batch_update(self, source_manager, source, library):
        result = source_manager.batch_update("type", "Article", [source.id, MISSING])
        assert [o.status for o in result] == [OutcomeStatus.UPDATED, OutcomeStatus.NOT_FOUND]
        assert result.outcomes[1].message == f"No Source found with id {MISSING}"
        assert source.type == "Article"

    def test_batch_update_skips_referenced(self, source_manager, source):
        source_manager.to_reference(source.id)
        result = source_manager.batch_update("abstract", "x", [source.id])
        assert result.ids_with(OutcomeStatus.NOT_FOUND) == [source.id]

    def test_batch_update_rejects_metadata(self, source_manager, source):
        with pytest.raises(ValidationError, match="cannot batch update keywords"):
            source_manager.batch_update("keywords", ["x"], [source.id])

    def test_batch_update_rejects_invalid_value(self, source_manager, source):
        with pytest.raises(ValidationError):
            source_manager.batch_update("type", "Scroll", [source.id])

    def test_add_array_values(self, source_manager, source, library):
        result = source_manager.batch_add_array_property(
            "keywords", "Classic, scifi", [source.id, library[0].id]
        )
        assert [o.status for o in result] == [OutcomeStatus.UPDATED, OutcomeStatus.UPDATED]
        assert source.metadata_["keywords"] == ["scifi", "classic"]
        assert library[0].metadata_["keywords"] == ["classic", "scifi"]

    def test_add_present_values_is_unchanged(self, source_manager, source):
        result = source_manager.batch_add_array_property("keywords", ["scifi"], [source.id])
        assert result.ids_with(OutcomeStatus.UNCHANGED) == [source.id]

    def test_remove_array_values(self, source_manager, source):
        result = source_manager.batch_remove_array_property("keywords", "scifi", [source.id])
        assert result.ids_with(OutcomeStatus.UPDATED) == [source.id]
        assert source.metadata_["keywords"] == []

    def test_languages(self, source_manager, source):
        source_manager.batch_add_array_property("inLanguage", "en", [source.id])
        assert source.metadata_["inLanguage"] == ["en"]

    def test_non_array_property(self, source_manager, source):
        with pytest.raises(ValidationError, match="genre is not an array property"):
            source_manager.batch_add_array_property("genre", "novel", [source.id])

    def test_add_attribution(self, source_manager, source):
        result = source_manager.batch_add_attribution(
            "author", ["Frank Herbert", "Brian Herbert", {}], [source.id]
        )
        assert [o.status for o in result] == [
            OutcomeStatus.UNCHANGED,
            OutcomeStatus.ADDED,
            OutcomeStatus.INVALID,
        ]
        assert author_names(source) == ["Brian Herbert", "Frank Herbert"]

    def test_remove_attribution(self, source_manager, source, cache_hooks):
        cache_hooks.calls.clear()
        result = source_manager.batch_remove_attribution(
            "author", ["frank herbert", "Someone Else"], [source.id, MISSING]
        )
        assert [o.status for o in result] == [
            OutcomeStatus.REMOVED,
            OutcomeStatus.UNCHANGED,
            OutcomeStatus.NOT_FOUND,
        ]
        assert author_names(source) == []
        assert cache_hooks.calls == [("library", "auth0|reader-one")]

    def test_add_tags(self, source_manager, source_tags, tag_manager, reader, source, tag):
        gone = tag_manager.create(reader, {"type": "stack", "name": "gone"})
        tag_manager.delete(gone.id)

        result = source_manager.batch_add_tags([tag.id, MISSING, gone.id], [source.id])
        assert [o.status for o in result] == [
            OutcomeStatus.ADDED,
            OutcomeStatus.NOT_FOUND,
            OutcomeStatus.NOT_FOUND,
        ]
        assert source_tags.member_ids(source.id) == [tag.id]

        again = source_manager.batch_add_tags([tag.id], [source.id])
        assert again.ids_with(OutcomeStatus.UNCHANGED) == [source.id]

    def test_remove_tags(self, source_manager, source_tags, source, tag, library):
        source_tags.add(source.id, tag.id)
        result = source_manager.batch_remove_tags([tag.id], [source.id, library[0].id])
        assert [o.status for o in result] == [OutcomeStatus.REMOVED, OutcomeStatus.UNCHANGED]
        assert not source_tags.exists(source.id, tag.id)

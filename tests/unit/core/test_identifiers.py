"""
test_identifiers.py
-------------------
Unit tests for the identifier codec.

Covers base-58 short ids, owned ids, URL generation and the lenient
parsing of URLs, paths and embedded references.
"""
import re
import uuid
from types import SimpleNamespace

import pytest

from marginalia.core.identifiers import (
    FLICKR_BASE58,
    SHORT_ID_LENGTH,
    IdentifierCodec,
    decode_short_id,
    encode_uuid,
)

DOMAIN = "https://reader.test"
READER_ID = "6f1c4f2e-8a4b-4c1e-9d3a-2b7e5f0a9c11"


@pytest.fixture
def codec():
    return IdentifierCodec(DOMAIN)


class TestShortIds:
    """Tests for the base-58 encoding of reader UUIDs."""

    def test_short_id_has_fixed_length(self):
        """Every encoded UUID is padded to 22 characters."""
        assert len(encode_uuid(READER_ID)) == SHORT_ID_LENGTH
        assert len(encode_uuid(str(uuid.UUID(int=5)))) == SHORT_ID_LENGTH

    def test_nil_uuid_pads_with_first_symbol(self):
        """The nil UUID encodes to the padding symbol only."""
        assert encode_uuid(str(uuid.UUID(int=0))) == FLICKR_BASE58[0] * SHORT_ID_LENGTH

    def test_short_id_uses_flickr_alphabet(self):
        """Ambiguous characters never appear in a short id."""
        for _ in range(20):
            short = encode_uuid(str(uuid.uuid4()))
            assert set(short) <= set(FLICKR_BASE58)
            assert not set(short) & {"0", "O", "I", "l"}

    def test_decode_restores_canonical_uuid(self):
        """Decoding a short id gives back the canonical lower-case UUID."""
        assert decode_short_id(encode_uuid(READER_ID)) == READER_ID
        assert decode_short_id(encode_uuid(READER_ID.upper())) == READER_ID

    def test_decode_rejects_wrong_length(self):
        assert decode_short_id("abc") is None

    def test_decode_rejects_foreign_characters(self):
        assert decode_short_id("0" * SHORT_ID_LENGTH) is None

    def test_decode_rejects_overflow(self):
        """A 22-symbol value above 2**128 is not a UUID."""
        assert decode_short_id("Z" * SHORT_ID_LENGTH) is None


class TestGeneration:
    """Tests for id generation."""

    def test_new_reader_id_is_uuid(self):
        value = IdentifierCodec.new_reader_id()
        assert str(uuid.UUID(value)) == value

    def test_owned_id_is_prefixed_by_owner_short_id(self, codec):
        """Owned ids embed the owner's public id and a 10-hex suffix."""
        owned = codec.new_owned_id(READER_ID)
        prefix = codec.to_public_id(READER_ID)
        assert re.fullmatch(re.escape(prefix) + r"-[0-9a-f]{10}", owned)

    def test_owned_ids_are_unique(self, codec):
        ids = {codec.new_owned_id(READER_ID) for _ in range(50)}
        assert len(ids) == 50


class TestEncoding:
    """Tests for public ids and URLs."""

    def test_composite_id_is_its_own_public_id(self, codec):
        assert codec.to_public_id("abc-0123456789") == "abc-0123456789"

    def test_none_has_no_public_id(self, codec):
        assert codec.to_public_id(None) is None

    def test_url_for_reader_uses_short_id(self, codec):
        url = codec.url_for("readers", READER_ID)
        assert url == f"{DOMAIN}/readers/{encode_uuid(READER_ID)}"

    def test_trailing_slash_of_domain_is_dropped(self):
        codec = IdentifierCodec(DOMAIN + "/")
        assert codec.url_for("sources", "x-1") == f"{DOMAIN}/sources/x-1"


class TestDecoding:
    """Tests for to_internal_id."""

    def test_reader_url_round_trip(self, codec):
        assert codec.to_internal_id(codec.url_for("readers", READER_ID)) == READER_ID

    def test_owned_url_round_trip(self, codec):
        owned = codec.new_owned_id(READER_ID)
        assert codec.to_internal_id(codec.url_for("sources", owned)) == owned

    def test_trailing_slash_is_ignored(self, codec):
        assert codec.to_internal_id(f"{DOMAIN}/sources/abc-123/") == "abc-123"

    def test_plain_ids_pass_through(self, codec):
        assert codec.to_internal_id("abc-123") == "abc-123"
        assert codec.to_internal_id(READER_ID) == READER_ID

    def test_paths_are_accepted(self, codec):
        assert codec.to_internal_id("/sources/abc-123?page=2") == "abc-123"

    def test_mapping_and_object_ids(self, codec):
        url = codec.url_for("tags", "abc-9")
        assert codec.to_internal_id({"id": url}) == "abc-9"
        assert codec.to_internal_id(SimpleNamespace(id="abc-9")) == "abc-9"

    @pytest.mark.parametrize(
        "value",
        [
            None,
            42,
            "",
            "   ",
            "https://elsewhere.org/sources/abc-123",
            "ftp://reader.test/sources/abc-123",
            "https://",
            {"name": "no id"},
        ],
    )
    def test_unusable_values_give_none(self, codec, value):
        """Parsing never raises; anything unusable resolves to None."""
        assert codec.to_internal_id(value) is None

    def test_codec_without_domain_accepts_any_host(self):
        codec = IdentifierCodec()
        assert codec.to_internal_id("https://elsewhere.org/sources/abc-1") == "abc-1"


class TestEmbeddedReferences:
    """Tests for resolve_embedded_reference(s)."""

    def test_collection_segment_names_the_relation(self, codec):
        document = {"context": f"{DOMAIN}/sources/ab12-0f3e"}
        assert codec.resolve_embedded_reference(document, "context") == {
            "source_id": "ab12-0f3e"
        }

    def test_note_contexts_map_to_context(self, codec):
        document = {"context": f"{DOMAIN}/noteContexts/ab12-77"}
        assert codec.resolve_embedded_reference(document, "context") == {
            "context_id": "ab12-77"
        }

    def test_reader_short_id_is_decoded(self, codec):
        document = {"actor": codec.url_for("readers", READER_ID)}
        assert codec.resolve_embedded_reference(document, "actor") == {"reader_id": READER_ID}

    def test_prefixed_segment_names_the_relation(self, codec):
        document = {"inReplyTo": f"{DOMAIN}/notebook-ab12-77"}
        assert codec.resolve_embedded_reference(document, "inReplyTo") == {
            "notebook_id": "ab12-77"
        }

    def test_object_with_id_is_accepted(self, codec):
        document = {"target": {"id": f"{DOMAIN}/notes/ab12-5"}}
        assert codec.resolve_embedded_reference(document, "target") == {"note_id": "ab12-5"}

    @pytest.mark.parametrize(
        "document",
        [
            None,
            {},
            {"context": None},
            {"context": "https://elsewhere.org/sources/ab12-0f3e"},
            {"context": f"{DOMAIN}/unknown/ab12-0f3e"},
            {"context": f"{DOMAIN}/ab12"},
        ],
    )
    def test_unresolvable_references_give_empty_mapping(self, codec, document):
        assert codec.resolve_embedded_reference(document, "context") == {}

    def test_references_merge_over_fields(self, codec):
        document = {
            "context": f"{DOMAIN}/sources/ab12-1",
            "inReplyTo": f"{DOMAIN}/notes/ab12-2",
            "target": "https://elsewhere.org/notes/zz",
        }
        assert codec.resolve_embedded_references(document) == {
            "source_id": "ab12-1",
            "note_id": "ab12-2",
        }

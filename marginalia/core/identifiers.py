#!/usr/bin/env python3
"""
identifiers.py
--------------
Conversion between public resource URLs / short ids and internal ids.

Internal identifiers come in two shapes:

- Reader ids are canonical UUID strings. Their public form is a
  22-character base-58 short id (flickr alphabet).
- Every owned entity (notebook, source, tag, ...) gets an id of the form
  ``{ownerShortId}-{10 hex chars}``. It is already URL-safe, so its public
  form is the id itself.

Parsing is lenient by contract: anything that cannot be understood
(malformed URLs, URLs on another domain, non-strings) yields ``None`` so
documents that mention unrelated external resources still ingest.

Usage:
    codec = IdentifierCodec("https://reader.example.org")

    short = codec.to_public_id(reader.id)
    url = codec.url_for("readers", reader.id)
    assert codec.to_internal_id(url) == reader.id

    codec.resolve_embedded_reference(
        {"context": "https://reader.example.org/sources/ab12-0f3e"}, "context"
    )  # {"source_id": "ab12-0f3e"}
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
import re
import secrets
import uuid
from typing import Any, Dict, Iterable, List, Mapping, Optional
from urllib.parse import urlsplit

FLICKR_BASE58 = "123456789abcdefghijkmnopqrstuvwxyzABCDEFGHJKLMNPQRSTUVWXYZ"
SHORT_ID_LENGTH = 22

_ALPHABET_INDEX = {char: i for i, char in enumerate(FLICKR_BASE58)}
_BASE = len(FLICKR_BASE58)

# Collection path segment -> relation name
COLLECTION_RELATIONS: Dict[str, str] = {
    "readers": "reader",
    "notebooks": "notebook",
    "sources": "source",
    "notes": "note",
    "tags": "tag",
    "noteContexts": "context",
}

# "<prefix>-<id>" single-segment references
PREFIX_RELATIONS: Dict[str, str] = {
    "reader": "reader",
    "notebook": "notebook",
    "source": "source",
    "note": "note",
    "tag": "tag",
    "noteContext": "context",
    "context": "context",
}

EMBEDDED_REFERENCE_FIELDS = ("actor", "context", "inReplyTo", "target", "object")

_PREFIXED_SEGMENT = re.compile(r"^([A-Za-z]+)-(.+)$")


def encode_uuid(value: str) -> str:
    """Encode a canonical UUID string as a padded base-58 short id."""
    number = uuid.UUID(value).int
    chars: List[str] = []
    while number:
        number, remainder = divmod(number, _BASE)
        chars.append(FLICKR_BASE58[remainder])
    return "".join(reversed(chars)).rjust(SHORT_ID_LENGTH, FLICKR_BASE58[0])


def decode_short_id(value: str) -> Optional[str]:
    """
    Decode a base-58 short id back to its canonical UUID string.

    Returns None when the value is not a well-formed short id.
    """
    if len(value) != SHORT_ID_LENGTH:
        return None
    number = 0
    for char in value:
        digit = _ALPHABET_INDEX.get(char)
        if digit is None:
            return None
        number = number * _BASE + digit
    if number >= 1 << 128:
        return None
    return str(uuid.UUID(int=number))


def _canonical_uuid(value: str) -> Optional[str]:
    """Return the canonical lower-case form if value is a hyphenated UUID."""
    if len(value) != 36:
        return None
    try:
        return str(uuid.UUID(value))
    except ValueError:
        return None


class IdentifierCodec:
    """
    Bidirectional codec between internal ids and public URLs/short ids.

    Attributes:
        domain: Base URL (scheme + host) prefixed to public URLs; may be empty
    """

    def __init__(self, domain: str = "") -> None:
        self.domain = (domain or "").rstrip("/")
        self._host = urlsplit(self.domain).netloc.lower() if self.domain else ""

    # ----- Generation -----

    @staticmethod
    def new_reader_id() -> str:
        """Generate a fresh reader id (canonical UUID4 string)."""
        return str(uuid.uuid4())

    def new_owned_id(self, owner_id: str) -> str:
        """Generate ``{ownerShortId}-{randomSuffix}`` for an entity owned by owner_id."""
        return f"{self.to_public_id(owner_id)}-{secrets.token_hex(5)}"

    # ----- Encoding -----

    def to_public_id(self, internal_id: Optional[str]) -> Optional[str]:
        """
        Encode an internal id to its public short id.

        UUID ids are base-58 encoded; composite ids are returned unchanged.
        """
        if internal_id is None:
            return None
        canonical = _canonical_uuid(str(internal_id))
        if canonical is not None:
            return encode_uuid(canonical)
        return str(internal_id)

    def url_for(self, collection: str, internal_id: str) -> str:
        """Public URL ``{domain}/{collection}/{publicId}`` for an internal id."""
        return f"{self.domain}/{collection}/{self.to_public_id(internal_id)}"

    # ----- Decoding -----

    def _path_segments(self, value: Any) -> Optional[List[str]]:
        """Non-empty path segments of a URL or path; None if unusable."""
        if isinstance(value, Mapping):
            value = value.get("id")
        elif value is not None and not isinstance(value, str):
            value = getattr(value, "id", None)
        if not isinstance(value, str):
            return None

        text = value.strip()
        if not text:
            return None

        if "://" in text:
            try:
                parts = urlsplit(text)
            except ValueError:
                return None
            if parts.scheme not in ("http", "https") or not parts.netloc:
                return None
            if self._host and parts.netloc.lower() != self._host:
                return None
            path = parts.path
        else:
            path = re.split(r"[?#]", text, maxsplit=1)[0]

        segments = [segment for segment in path.split("/") if segment]
        return segments or None

    @staticmethod
    def _decode_segment(segment: str) -> str:
        decoded = decode_short_id(segment)
        return decoded if decoded is not None else segment

    def to_internal_id(self, value: Any) -> Optional[str]:
        """
        Resolve a URL, path, short id, mapping or object to an internal id.

        Never raises; returns None when the input cannot be understood.

        Args:
            value: URL string, path, public/internal id, ``{"id": ...}``
                mapping, object with an ``id`` attribute, or None

        Returns:
            Internal id, or None
        """
        segments = self._path_segments(value)
        if not segments:
            return None
        return self._decode_segment(segments[-1])

    def resolve_embedded_reference(
        self, document: Optional[Mapping[str, Any]], field: str
    ) -> Dict[str, str]:
        """
        Turn a reference embedded in a document into a typed foreign key.

        The relation is inferred from the path segment preceding the id
        (``/sources/<id>`` → ``source_id``) or from a prefixed segment
        (``/source-<id>`` → ``source_id``).

        Args:
            document: Incoming JSON document
            field: Field holding the reference (URL or object with ``id``)

        Returns:
            ``{"<relation>_id": internal_id}``, or ``{}`` on any failure
        """
        if not isinstance(document, Mapping) or field not in document:
            return {}
        segments = self._path_segments(document[field])
        if not segments:
            return {}

        last = segments[-1]
        if len(segments) >= 2 and segments[-2] in COLLECTION_RELATIONS:
            relation = COLLECTION_RELATIONS[segments[-2]]
            return {f"{relation}_id": self._decode_segment(last)}

        match = _PREFIXED_SEGMENT.match(last)
        if match and match.group(1) in PREFIX_RELATIONS:
            relation = PREFIX_RELATIONS[match.group(1)]
            return {f"{relation}_id": self._decode_segment(match.group(2))}
        return {}

    def resolve_embedded_references(
        self,
        document: Optional[Mapping[str, Any]],
        fields: Iterable[str] = EMBEDDED_REFERENCE_FIELDS,
    ) -> Dict[str, str]:
        """Merge :meth:`resolve_embedded_reference` over several fields."""
        resolved: Dict[str, str] = {}
        for field in fields:
            resolved.update(self.resolve_embedded_reference(document, field))
        return resolved

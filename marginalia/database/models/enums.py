"""
Enumeration Types
------------------

Enum classes and fixed allow-lists for the Marginalia models.

Enums:
    - NotebookStatus: active, archived, test (stored as integer codes)
    - CollaboratorStatus: pending, accepted, refused, removed, test
    - SourceStatus: test (stored as integer codes)
    - SourceType: Document types a Source may declare
    - BookFormat: Physical/digital book formats
    - AttributionRole: Roles a person can hold on a Source
    - TextDirection: ltr, rtl

Tables:
    - LANGUAGE_CODES: ISO 639-1 two-letter codes accepted in ``inLanguage``
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from enum import Enum
from typing import Dict, List, Optional


class _CodedStatus(str, Enum):
    """
    Status names that are persisted as integer codes.

    Subclasses define ``_codes()`` mapping member → integer.
    """

    @classmethod
    def choices(cls) -> List[str]:
        """Get all status names."""
        return [status.value for status in cls]

    @classmethod
    def _codes(cls) -> Dict[str, int]:
        raise NotImplementedError

    @property
    def code(self) -> int:
        """Integer stored in the database for this status."""
        return self._codes()[self.value]

    @classmethod
    def from_code(cls, code: Optional[int]) -> Optional["_CodedStatus"]:
        """Map a stored integer code back to its status, or None if unknown."""
        for name, value in cls._codes().items():
            if value == code:
                return cls(name)
        return None


class NotebookStatus(_CodedStatus):
    """
    Lifecycle status of a notebook.
    - ACTIVE: In use (code 1)
    - ARCHIVED: Hidden from the default listing (code 2)
    - TEST: Created by automated tests (code 99)
    """

    ACTIVE = "active"
    ARCHIVED = "archived"
    TEST = "test"

    @classmethod
    def _codes(cls) -> Dict[str, int]:
        return {"active": 1, "archived": 2, "test": 99}


class CollaboratorStatus(_CodedStatus):
    """Invitation status of a notebook collaborator."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REFUSED = "refused"
    REMOVED = "removed"
    TEST = "test"

    @classmethod
    def _codes(cls) -> Dict[str, int]:
        return {"pending": 1, "accepted": 2, "refused": 3, "removed": 4, "test": 99}


class SourceStatus(_CodedStatus):
    """Status of a source. Only the test marker (code 99) is defined."""

    TEST = "test"

    @classmethod
    def _codes(cls) -> Dict[str, int]:
        return {"test": 99}


class SourceType(str, Enum):
    """Document types a Source may declare."""

    SOURCE = "Source"
    ARTICLE = "Article"
    BLOG = "Blog"
    BOOK = "Book"
    CHAPTER = "Chapter"
    COLLECTION = "Collection"
    COMMENT = "Comment"
    CONVERSATION = "Conversation"
    COURSE = "Course"
    DATASET = "Dataset"
    DRAWING = "Drawing"
    EPISODE = "Episode"
    MANUSCRIPT = "Manuscript"
    MAP = "Map"
    MEDIA_OBJECT = "MediaObject"
    MUSIC_RECORDING = "MusicRecording"
    PAINTING = "Painting"
    PHOTOGRAPH = "Photograph"
    PLAY = "Play"
    POSTER = "Poster"
    PUBLICATION_ISSUE = "PublicationIssue"
    PUBLICATION_VOLUME = "PublicationVolume"
    REVIEW = "Review"
    SHORT_STORY = "ShortStory"
    THESIS = "Thesis"
    VISUAL_ARTWORK = "VisualArtwork"
    WEB_CONTENT = "WebContent"

    @classmethod
    def choices(cls) -> List[str]:
        """Get all source type choices."""
        return [source_type.value for source_type in cls]


class BookFormat(str, Enum):
    """Book formats accepted in ``bookFormat``."""

    AUDIOBOOK = "AudiobookFormat"
    EBOOK = "EBook"
    GRAPHIC_NOVEL = "GraphicNovel"
    HARDCOVER = "Hardcover"
    PAPERBACK = "Paperback"

    @classmethod
    def choices(cls) -> List[str]:
        """Get all book format choices."""
        return [book_format.value for book_format in cls]


class AttributionRole(str, Enum):
    """
    Roles a person or organization can hold on a Source.

    Each role is also the top-level key under which the public document
    lists the attributions holding it.
    """

    AUTHOR = "author"
    EDITOR = "editor"
    CONTRIBUTOR = "contributor"
    CREATOR = "creator"
    ILLUSTRATOR = "illustrator"
    PUBLISHER = "publisher"
    TRANSLATOR = "translator"
    COPYRIGHT_HOLDER = "copyrightHolder"

    @classmethod
    def choices(cls) -> List[str]:
        """Get all attribution role choices."""
        return [role.value for role in cls]

    @property
    def is_contributor(self) -> bool:
        """Roles other than author/creator are contributions."""
        return self not in (AttributionRole.AUTHOR, AttributionRole.CREATOR)


class TextDirection(str, Enum):
    """Reading direction of a source."""

    LTR = "ltr"
    RTL = "rtl"

    @classmethod
    def choices(cls) -> List[str]:
        """Get all text direction choices."""
        return [direction.value for direction in cls]


LANGUAGE_CODES = frozenset(
    """
    aa ab ae af ak am an ar as av ay az ba be bg bh bi bm bn bo br bs ca ce
    ch co cr cs cu cv cy da de dv dz ee el en eo es et eu fa ff fi fj fo fr
    fy ga gd gl gn gu gv ha he hi ho hr ht hu hy hz ia id ie ig ii ik io is
    it iu ja jv ka kg ki kj kk kl km kn ko kr ks ku kv kw ky la lb lg li ln
    lo lt lu lv mg mh mi mk ml mn mr ms mt my na nb nd ne ng nl nn no nr nv
    ny oc oj om or os pa pi pl ps pt qu rm rn ro ru rw sa sc sd se sg si sk
    sl sm sn so sq sr ss st su sv sw ta te tg th ti tk tl tn to tr ts tt tw
    ty ug uk ur uz ve vi vo wa wo xh yi yo za zh zu
    """.split()
)

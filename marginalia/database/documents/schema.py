#!/usr/bin/env python3
"""
schema.py
---------
Declarative validation of incoming documents.

Each schema lists its field rules once. Validation walks every rule,
collects a :class:`SchemaIssue` per violation and raises a single
:class:`ValidationError` carrying all of them, so a client sees every
offending field in one response.

Allowed values come from the authoritative enums in
``marginalia.database.models.enums``.

Usage:
    SourceSchema.check(document)                # create: name/type required
    SourceSchema.check(changes, partial=True)   # update: only given fields
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Dict, List, Mapping, Optional, Tuple

# --- Local imports ---
from marginalia.core.exceptions import ValidationError
from marginalia.core.validators import DataValidator
from marginalia.database.models.enums import (
    LANGUAGE_CODES,
    BookFormat,
    CollaboratorStatus,
    NotebookStatus,
    SourceStatus,
    SourceType,
    TextDirection,
)


@dataclass
class SchemaIssue:
    """One validation failure."""

    field: str
    message: str
    value: Any = None

    def __str__(self) -> str:
        return f"{self.field}: {self.message} (got {self.value!r})"


# A rule returns an error message, or None when the value is acceptable
Rule = Callable[[Any], Optional[str]]


# ----- Rules -----

def is_string(value: Any) -> Optional[str]:
    return None if isinstance(value, str) else "must be a string"


def is_object(value: Any) -> Optional[str]:
    return None if isinstance(value, Mapping) else "must be an object"


def is_string_or_object(value: Any) -> Optional[str]:
    if isinstance(value, (str, Mapping)):
        return None
    return "must be a string or an object"


def is_integer(value: Any) -> Optional[str]:
    try:
        DataValidator.normalize_int(value)
    except ValidationError:
        return "must be an integer"
    return None


def is_timestamp(value: Any) -> Optional[str]:
    try:
        DataValidator.normalize_timestamp(value)
    except ValidationError:
        return "must be an ISO-8601 date or timestamp"
    return None


def one_of(choices: List[str]) -> Rule:
    def rule(value: Any) -> Optional[str]:
        if value in choices:
            return None
        return f"must be one of: {', '.join(choices)}"

    return rule


def is_keywords(value: Any) -> Optional[str]:
    try:
        DataValidator.normalize_keywords(value)
    except ValidationError:
        return "must be a string or a list of strings"
    return None


def is_languages(value: Any) -> Optional[str]:
    codes = [value] if isinstance(value, str) else value
    if not isinstance(codes, list) or not all(isinstance(c, str) for c in codes):
        return "must be a language code or a list of language codes"
    unknown = [c for c in codes if c.lower() not in LANGUAGE_CODES]
    if unknown:
        return f"unknown language code(s): {', '.join(unknown)}"
    return None


def is_link_array(value: Any) -> Optional[str]:
    """Array whose members are a URL string or an object with a string ``url``."""
    if not isinstance(value, list):
        return "must be an array of links"
    for position, member in enumerate(value):
        if isinstance(member, str):
            continue
        if isinstance(member, Mapping) and isinstance(member.get("url"), str):
            continue
        return f"item {position} must be a url string or an object with a url"
    return None


# ----- Schemas -----

class DocumentSchema:
    """
    Base class for document schemas.

    Attributes:
        entity: Name used in the aggregated error message
        required: Fields that must be present (non-empty) on create
        rules: Field → rules applied when the field is present and not None
    """

    entity: ClassVar[str] = "document"
    required: ClassVar[Tuple[str, ...]] = ()
    rules: ClassVar[Dict[str, Tuple[Rule, ...]]] = {}

    @classmethod
    def validate(cls, document: Any, partial: bool = False) -> List[SchemaIssue]:
        """
        Collect every issue in a document.

        Args:
            document: Incoming document
            partial: When True, required fields are not enforced

        Returns:
            List of issues (empty when the document is valid)
        """
        if not isinstance(document, Mapping):
            return [SchemaIssue(cls.entity, "must be an object", document)]

        issues: List[SchemaIssue] = []
        if not partial:
            for field in cls.required:
                if document.get(field) in (None, ""):
                    issues.append(SchemaIssue(field, "is required", document.get(field)))

        for field, rules in cls.rules.items():
            value = document.get(field)
            if value is None:
                continue
            for rule in rules:
                message = rule(value)
                if message:
                    issues.append(SchemaIssue(field, message, value))
                    break
        return issues

    @classmethod
    def check(cls, document: Any, partial: bool = False) -> None:
        """
        Validate a document, raising once with every issue.

        Raises:
            ValidationError: If any issue was found
        """
        issues = cls.validate(document, partial=partial)
        if issues:
            details = "; ".join(str(issue) for issue in issues)
            raise ValidationError(
                f"{cls.entity} validation error: {details}", issues=issues
            )


class SourceSchema(DocumentSchema):
    """Rules for Source documents."""

    entity = "Source"
    required = ("name", "type")
    rules = {
        "name": (is_string,),
        "type": (is_string, one_of(SourceType.choices())),
        "abstract": (is_string,),
        "description": (is_string,),
        "encodingFormat": (is_string,),
        "inLanguage": (is_languages,),
        "keywords": (is_keywords,),
        "url": (is_string,),
        "isbn": (is_string,),
        "genre": (is_string,),
        "bookEdition": (is_string,),
        "pagination": (is_string,),
        "license": (is_string,),
        "doi": (is_string,),
        "isPartOf": (is_string_or_object,),
        "bookFormat": (is_string, one_of(BookFormat.choices())),
        "inDirection": (one_of(TextDirection.choices()),),
        "status": (one_of(SourceStatus.choices()),),
        "dateModified": (is_timestamp,),
        "datePublished": (is_timestamp,),
        "numberOfPages": (is_integer,),
        "wordCount": (is_integer,),
        "copyrightYear": (is_integer,),
        "citation": (is_string_or_object,),
        "links": (is_link_array,),
        "resources": (is_link_array,),
        "readingOrder": (is_link_array,),
        "json": (is_object,),
    }


class NotebookSchema(DocumentSchema):
    """Rules for Notebook documents."""

    entity = "Notebook"
    required = ("name",)
    rules = {
        "name": (is_string,),
        "description": (is_string,),
        "status": (one_of(NotebookStatus.choices()),),
        "settings": (is_object,),
    }


class TagSchema(DocumentSchema):
    """Rules for Tag documents."""

    entity = "Tag"
    required = ("type", "name")
    rules = {
        "type": (is_string,),
        "name": (is_string,),
        "json": (is_object,),
    }


class ReadActivitySchema(DocumentSchema):
    """Rules for ReadActivity documents."""

    entity = "ReadActivity"
    required = ("selector",)
    rules = {
        "selector": (is_object,),
        "json": (is_object,),
    }


class CollaboratorSchema(DocumentSchema):
    """Rules for Collaborator documents."""

    entity = "Collaborator"
    required = ("readerId", "status", "permission")
    rules = {
        "status": (one_of(CollaboratorStatus.choices()),),
        "permission": (is_object,),
    }

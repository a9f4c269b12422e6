#!/usr/bin/env python3
"""
attribution_manager.py
--------------------
Manages Attribution rows: the people credited on a Source per role.

An attribution value is either a bare name or an object with a ``name``
(and any other properties, kept in ``json``). Every attribution stores a
normalized name used to match it on removal.

Usage:
    attribution_mgr = AttributionManager(session, logger, codec)
    by_role = attribution_mgr.create_for_source(
        {"author": ["Ada Lovelace"], "editor": {"name": "C. Babbage"}},
        source.id, reader.id,
    )
    attribution_mgr.delete_one(source.id, "author", "adalovelace")
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from typing import Any, Dict, List, Mapping, Optional

# --- Third party imports ---
from sqlalchemy import delete

# --- Local imports ---
from marginalia.core.exceptions import ValidationError
from marginalia.core.validators import DataValidator
from ..decorators import handle_db_errors, log_database_operation
from ..documents import SourceDocument
from ..models import Attribution, AttributionRole
from .base_manager import BaseManager


class AttributionManager(BaseManager):
    """Manages Attribution table operations."""

    @staticmethod
    def normalize_name(name: Any) -> str:
        """Deduplication key of a name (see DataValidator.normalize_name)."""
        return DataValidator.normalize_name(name)

    @staticmethod
    def _split_value(value: Any) -> tuple:
        """Return ``(name, extra json)`` for a string or object attribution."""
        if isinstance(value, str):
            name = DataValidator.normalize_string(value)
            extra = None
        elif isinstance(value, Mapping):
            name = DataValidator.normalize_string(value.get("name"))
            extra = {k: v for k, v in value.items() if k not in ("name", "id", "type")} or None
        else:
            name, extra = None, None
        if not name:
            raise ValidationError(
                "Attribution validation error: must be a name or an object with a name",
                field="name",
                value=value,
            )
        return name, extra

    @handle_db_errors
    @log_database_operation("create_attribution")
    def create_single(
        self, role: str, value: Any, source_id: str, reader_id: str
    ) -> Attribution:
        """
        Create one attribution.

        Args:
            role: One of AttributionRole
            value: Name string or object with a ``name``
            source_id: Credited source
            reader_id: Owner of the source

        Raises:
            ValidationError: Unknown role or value without a name
        """
        if role not in AttributionRole.choices():
            raise ValidationError(
                f"Attribution validation error: unknown role {role}", field="role", value=role
            )
        name, extra = self._split_value(value)
        attribution = Attribution(
            id=self.codec.new_owned_id(reader_id),
            role=role,
            name=name,
            normalized_name=self.normalize_name(name),
            is_contributor=AttributionRole(role).is_contributor,
            json=extra,
            reader_id=reader_id,
            source_id=source_id,
        )
        self.session.add(attribution)
        self.session.flush()
        return attribution

    @handle_db_errors
    @log_database_operation("create_attributions_for_source")
    def create_for_source(
        self, document: Mapping[str, Any], source_id: str, reader_id: str
    ) -> Dict[str, List[Attribution]]:
        """
        Create the attributions listed in a Source document.

        Returns:
            Created attributions keyed by role (only roles present in the
            document appear)
        """
        created: Dict[str, List[Attribution]] = {}
        for role, values in SourceDocument.attributions_from(document).items():
            created[role] = [
                self.create_single(role, value, source_id, reader_id) for value in values
            ]
        return created

    @handle_db_errors
    @log_database_operation("delete_attributions_for_source")
    def delete_for_source(self, source_id: str, role: Optional[str] = None) -> int:
        """
        Delete a source's attributions, all of them or only one role.

        Returns:
            Number of rows deleted
        """
        statement = delete(Attribution).where(Attribution.source_id == source_id)
        if role is not None:
            statement = statement.where(Attribution.role == role)
        result = self.session.execute(statement.execution_options(synchronize_session="fetch"))
        return result.rowcount

    @handle_db_errors
    @log_database_operation("delete_attribution")
    def delete_one(self, source_id: str, role: str, normalized_name: str) -> int:
        """Delete the attributions of a source matching role and normalized name."""
        result = self.session.execute(
            delete(Attribution)
            .where(
                Attribution.source_id == source_id,
                Attribution.role == role,
                Attribution.normalized_name == normalized_name,
            )
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

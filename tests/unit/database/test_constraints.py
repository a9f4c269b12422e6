"""
test_constraints.py
-------------------
Unit tests for the constraint table and describe_violation.
"""
import pytest
from sqlalchemy import insert
from sqlalchemy.exc import IntegrityError

from marginalia.database.constraints import (
    CONSTRAINTS,
    ViolationKind,
    describe_violation,
    find_rule,
)
from marginalia.database.models import Base, source_tag


def _integrity_error(orig):
    return IntegrityError("INSERT ...", {}, orig)


class FakePgError(Exception):
    """Driver error exposing the constraint name the way psycopg does."""

    class Diag:
        def __init__(self, constraint_name):
            self.constraint_name = constraint_name

    def __init__(self, message, constraint_name):
        super().__init__(message)
        self.diag = self.Diag(constraint_name)


class TestConstraintTable:
    """The declared schema and the constraint table agree."""

    @pytest.fixture
    def schema_constraints(self):
        names = {}
        for table in Base.metadata.tables.values():
            for constraint in table.constraints:
                if constraint.name:
                    names[constraint.name] = table.name
        return names

    @pytest.mark.parametrize("name", sorted(CONSTRAINTS))
    def test_every_rule_names_a_schema_constraint(self, schema_constraints, name):
        assert name in schema_constraints
        assert schema_constraints[name] == CONSTRAINTS[name].table

    def test_foreign_key_rules_name_their_entity(self):
        for rule in CONSTRAINTS.values():
            if rule.kind is ViolationKind.FOREIGN_KEY:
                assert rule.entity

    def test_find_rule_by_columns(self):
        rule = find_rule("tags", ViolationKind.UNIQUE, ("name", "type", "reader_id"))
        assert rule.name == "tag_readerid_type_name_unique"

    def test_find_rule_unknown_table(self):
        assert find_rule("nope", ViolationKind.UNIQUE) is None


class TestDescribeViolation:
    """Tests for turning driver errors into structured violations."""

    def test_sqlite_unique_violation(self, test_db, reader, source, tag, db_session):
        db_session.execute(insert(source_tag).values(source_id=source.id, tag_id=tag.id))
        with pytest.raises(IntegrityError) as exc_info:
            with db_session.begin_nested():
                db_session.execute(
                    insert(source_tag).values(source_id=source.id, tag_id=tag.id)
                )

        violation = describe_violation(exc_info.value)
        assert violation.kind is ViolationKind.UNIQUE
        assert violation.table == "source_tag"
        assert set(violation.columns) == {"source_id", "tag_id"}
        assert violation.constraint_name == "source_tag_pkey"

    def test_sqlite_foreign_key_violation(self, test_db, source, db_session):
        with pytest.raises(IntegrityError) as exc_info:
            with db_session.begin_nested():
                db_session.execute(
                    insert(source_tag).values(source_id=source.id, tag_id="missing")
                )

        violation = describe_violation(exc_info.value)
        assert violation.kind is ViolationKind.FOREIGN_KEY
        assert violation.rule is None
        assert violation.entity is None

    def test_postgres_diag_constraint_name(self):
        error = _integrity_error(
            FakePgError("insert or update violates foreign key", "source_tag_tag_id_foreign")
        )
        violation = describe_violation(error)
        assert violation.kind is ViolationKind.FOREIGN_KEY
        assert violation.entity == "tag"
        assert violation.columns == ("tag_id",)

    def test_postgres_message_constraint_name(self):
        error = _integrity_error(
            Exception(
                'duplicate key value violates unique constraint "tag_readerid_type_name_unique"'
            )
        )
        violation = describe_violation(error)
        assert violation.kind is ViolationKind.UNIQUE
        assert violation.table == "tags"

    def test_postgres_message_unknown_constraint(self):
        error = _integrity_error(
            Exception('insert violates foreign key constraint "something_else"')
        )
        violation = describe_violation(error)
        assert violation.kind is ViolationKind.FOREIGN_KEY
        assert violation.constraint_name == "something_else"
        assert violation.rule is None

    def test_not_null_violation(self):
        violation = describe_violation(
            _integrity_error(Exception("NOT NULL constraint failed: tags.name"))
        )
        assert violation.kind is ViolationKind.NOT_NULL
        assert violation.table == "tags"
        assert violation.columns == ("name",)

    def test_unknown_violation(self):
        violation = describe_violation(_integrity_error(Exception("CHECK constraint failed")))
        assert violation.kind is ViolationKind.UNKNOWN

"""Unit tests for entitykit.persistence.operations module."""

import pytest

from entitykit.core.errors import PersistenceError
from entitykit.persistence.operations import SqlAttribute, SqlOperations, sql_attribute_refs
from entitykit.query.compiler import compile_filter

EMAIL = "json_extract(data, '$.\"email\"')"


class TestSqlAttribute:
    def test_expression(self) -> None:
        assert str(SqlAttribute("email")) == EMAIL
        assert SqlAttribute("email").path == "'$.\"email\"'"

    @pytest.mark.parametrize("name", ["a'b", "a.b", "a b", ""])
    def test_rejects_unsafe_names(self, name: str) -> None:
        with pytest.raises(PersistenceError):
            SqlAttribute(name)


class TestSqlOperations:
    def test_values_are_bound(self) -> None:
        operations = SqlOperations()
        ref = SqlAttribute("email")

        assert operations.eq(ref, "a@b.c") == f"{EMAIL} = :p0"
        assert operations.gt(ref, 3) == f"{EMAIL} > :p1"
        assert operations.params == {"p0": "a@b.c", "p1": 3}

    def test_collections_bind_as_json(self) -> None:
        operations = SqlOperations()
        operations.eq(SqlAttribute("tags"), ["a", "b"])
        assert operations.params == {"p0": '["a", "b"]'}

    def test_none_means_missing(self) -> None:
        operations = SqlOperations()
        ref = SqlAttribute("email")

        assert operations.eq(ref, None) == "json_type(data, '$.\"email\"') IS NULL"
        assert operations.ne(ref, None) == "json_type(data, '$.\"email\"') IS NOT NULL"
        assert operations.params == {}

    def test_attribute_references_are_not_bound(self) -> None:
        operations = SqlOperations()
        refs = sql_attribute_refs(["a", "b"])

        assert operations.eq(refs["a"], operations.name(refs["b"])) == (
            "json_extract(data, '$.\"a\"') = json_extract(data, '$.\"b\"')"
        )
        assert operations.params == {}

    def test_begins_reuses_placeholder(self) -> None:
        operations = SqlOperations()
        assert operations.begins(SqlAttribute("email"), "ab") == (
            f"substr({EMAIL}, 1, length(:p0)) = :p0"
        )

    def test_compiled_filter(self) -> None:
        operations = SqlOperations(prefix="q")
        expression = compile_filter(
            {"attribute": "age", "between": [18, 65]},
            sql_attribute_refs(["age"]),
            operations,
        )

        assert expression == "json_extract(data, '$.\"age\"') BETWEEN :q0 AND :q1"
        assert operations.params == {"q0": 18, "q1": 65}

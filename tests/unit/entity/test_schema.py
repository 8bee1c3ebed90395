"""Unit tests for entitykit.entity.schema module."""

from pathlib import Path
from typing import Any

import pytest

from entitykit.core.errors import SchemaError
from entitykit.entity.schema import (
    EntityAttribute,
    EntitySchema,
    load_entity_schema,
    load_entity_schema_file,
)


def minimal(**overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "name": "item",
        "attributes": {"id": {"isIdentifier": True}, "sku": {}},
        "indexes": {"primary": {"pk": {"composite": ["id"]}}},
    }
    data.update(overrides)
    return data


class TestEntityAttribute:
    def test_aliases(self) -> None:
        attribute = EntityAttribute.model_validate(
            {"isIdentifier": True, "readOnly": True, "ensureUnique": True, "makeUnique": True}
        )
        assert attribute.is_identifier
        assert attribute.read_only
        assert attribute.ensure_unique and attribute.make_unique

    @pytest.mark.parametrize(
        ("flags", "enforces", "resolves"),
        [
            ({}, False, False),
            ({"is_unique": True}, True, True),
            ({"ensure_unique": True}, True, False),
            ({"ensure_unique": True, "make_unique": True}, True, True),
            ({"make_unique": True}, False, False),
        ],
    )
    def test_uniqueness_flags(self, flags: dict[str, bool], enforces: bool, resolves: bool) -> None:
        attribute = EntityAttribute(**flags)
        assert attribute.enforces_uniqueness is enforces
        assert attribute.resolves_collisions is resolves


class TestEntitySchema:
    def test_valid_schema(self, user_schema: EntitySchema) -> None:
        assert user_schema.primary_index.key_attributes() == ["id"]
        assert user_schema.indexes["byTenant"].key_attributes() == ["tenant", "status", "email"]

    def test_index_by_id(self, user_schema: EntitySchema) -> None:
        assert user_schema.index_by_id("") == ("primary", user_schema.primary_index)
        found = user_schema.index_by_id("gsi2")
        assert found is not None and found[0] == "byEmail"
        assert user_schema.index_by_id("gsi9") is None

    def test_primary_index_required(self) -> None:
        with pytest.raises(SchemaError, match="primary"):
            load_entity_schema(minimal(indexes={"other": {"index": "gsi1", "pk": {"composite": ["id"]}}}))

    def test_index_attributes_must_exist(self) -> None:
        with pytest.raises(SchemaError) as exc_info:
            load_entity_schema(minimal(indexes={"primary": {"pk": {"composite": ["missing"]}}}))
        assert exc_info.value.details["attributes"] == ["missing"]

    def test_secondary_index_needs_identifier(self) -> None:
        indexes = {
            "primary": {"pk": {"composite": ["id"]}},
            "bySku": {"pk": {"composite": ["sku"]}},
        }
        with pytest.raises(SchemaError, match="bySku"):
            load_entity_schema(minimal(indexes=indexes))

    def test_single_identifier(self) -> None:
        attributes = {"id": {"isIdentifier": True}, "sku": {"isIdentifier": True}}
        with pytest.raises(SchemaError, match="more than one identifier"):
            load_entity_schema(minimal(attributes=attributes))

    def test_invalid_types_wrap_validation_error(self) -> None:
        with pytest.raises(SchemaError) as exc_info:
            load_entity_schema(minimal(attributes={"id": {"type": "uuid"}}))
        assert exc_info.value.entity_name == "item"
        assert exc_info.value.details["errors"]


class TestLoadEntitySchemaFile:
    def test_reads_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "item.yaml"
        path.write_text(
            "name: item\n"
            "attributes:\n"
            "  id: {isIdentifier: true}\n"
            "indexes:\n"
            "  primary:\n"
            "    pk: {composite: [id]}\n"
        )
        schema = load_entity_schema_file(path)
        assert schema.name == "item"
        assert schema.attributes["id"].is_identifier

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(SchemaError, match="Failed to read"):
            load_entity_schema_file(tmp_path / "missing.yaml")

    def test_non_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "item.yaml"
        path.write_text("- a\n")
        with pytest.raises(SchemaError):
            load_entity_schema_file(path)

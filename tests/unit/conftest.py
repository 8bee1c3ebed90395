"""Shared fixtures for entitykit unit tests."""

from typing import Any

import pytest

from entitykit.entity.schema import EntitySchema, load_entity_schema


def user_schema_data() -> dict[str, Any]:
    return {
        "name": "user",
        "attributes": {
            "id": {"type": "string", "isIdentifier": True, "required": True},
            "email": {
                "type": "string",
                "isUnique": True,
                "validations": {"required": True, "pattern": r"^[^@]+@[^@]+$"},
            },
            "username": {"type": "string", "ensureUnique": True},
            "handle": {"type": "string", "ensureUnique": True, "makeUnique": True},
            "tenant": {"type": "string"},
            "status": {"type": "string", "default": "active"},
            "bio": {"type": "string"},
            "age": {"type": "number", "validations": {"gte": 0}},
            "tags": {"type": "list"},
            "password": {"type": "string", "hidden": True},
        },
        "indexes": {
            "primary": {"pk": {"composite": ["id"]}},
            "byTenant": {
                "index": "gsi1",
                "pk": {"composite": ["tenant"]},
                "sk": {"composite": ["status", "email"]},
            },
            "byEmail": {"index": "gsi2", "pk": {"composite": ["email"]}},
        },
    }


@pytest.fixture
def user_schema() -> EntitySchema:
    """A user entity with a primary index and two secondary indexes."""
    return load_entity_schema(user_schema_data())

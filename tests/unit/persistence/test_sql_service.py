"""Entity services running on the SQLite repository."""

from collections.abc import AsyncIterator
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from entitykit.audit import SqlAuditLogger
from entitykit.authorization import AllowAllAuthorizer
from entitykit.core.errors import EntityValidationError, PersistenceError
from entitykit.entity.crud import CrudCollaborators
from entitykit.entity.schema import EntitySchema
from entitykit.entity.service import EntityService
from entitykit.events.dispatcher import EventDispatcher
from entitykit.events.entity import entity_event_matcher
from entitykit.events.payload import EventPayload
from entitykit.persistence import Database, SqlEntityRepository
from entitykit.validation import RuleValidator


@pytest.fixture
async def database(tmp_path: Path) -> AsyncIterator[Database]:
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'service.db'}")
    await database.initialize()
    yield database
    await database.close()


@pytest.fixture
def users(user_schema: EntitySchema, database: Database) -> EntityService:
    collaborators = CrudCollaborators(
        validator=RuleValidator(),
        authorizer=AllowAllAuthorizer(),
        audit_logger=SqlAuditLogger(database.engine),
        event_dispatcher=EventDispatcher(),
    )
    return EntityService(
        user_schema, SqlEntityRepository(user_schema, database.engine), collaborators
    )


class TestSqlEntityService:
    async def test_create_get_update_delete(self, users: EntityService) -> None:
        await users.create({"id": "u1", "email": "ann@acme.io", "password": "hunter2"})

        assert await users.get("u1") == {"id": "u1", "email": "ann@acme.io", "status": "active"}

        await users.update("u1", {"bio": "hello"})
        assert (await users.get("u1", ["bio"])) == {"bio": "hello"}

        deleted = await users.delete("u1")
        assert deleted["data"]["id"] == "u1"
        assert await users.get("u1") is None

    async def test_validation_blocks_invalid_payload(self, users: EntityService) -> None:
        with pytest.raises(EntityValidationError) as exc_info:
            await users.create({"id": "u1", "email": "not-an-email", "age": -3})

        assert {error["rule"] for error in exc_info.value.errors} == {"pattern", "gte"}
        assert await users.get("u1") is None

    async def test_unique_values_against_stored_entities(self, users: EntityService) -> None:
        await users.create({"id": "u1", "email": "ann@acme.io", "username": "ann", "handle": "ann"})

        second = await users.create({"id": "u2", "email": "ann@acme.io", "handle": "ann"})
        assert second["data"]["email"] == "ann@acme.io-1"
        assert second["data"]["handle"] == "ann-1"

        with pytest.raises(EntityValidationError, match="username"):
            await users.create({"id": "u3", "email": "cy@acme.io", "username": "ann"})

    async def test_update_keeps_own_unique_value(self, users: EntityService) -> None:
        await users.create({"id": "u1", "email": "ann@acme.io"})

        response = await users.update("u1", {"email": "ann@acme.io", "bio": "same email"})

        assert response["data"]["email"] == "ann@acme.io"

    async def test_update_missing_entity(self, users: EntityService) -> None:
        with pytest.raises(PersistenceError, match="not found"):
            await users.update("nope", {"bio": "x"})

    async def test_list_with_filters_search_and_pages(self, users: EntityService) -> None:
        for n, tenant in enumerate(["acme", "acme", "globex", "acme"], start=1):
            await users.create(
                {"id": f"u{n}", "email": f"user{n}@{tenant}.io", "tenant": tenant, "age": 20 + n}
            )

        page = await users.list(filters={"tenant": "acme"}, pagination={"count": 2})
        assert [record["id"] for record in page["data"]] == ["u1", "u2"]

        rest = await users.list(
            filters={"tenant": "acme"}, pagination={"count": 2, "cursor": page["cursor"]}
        )
        assert [record["id"] for record in rest["data"]] == ["u4"]
        assert rest["cursor"] is None

        found = await users.list(search="globex")
        assert [record["id"] for record in found["data"]] == ["u3"]

        older = await users.query(filters={"age": {"gt": 22}}, attributes=["id"])
        assert older["data"] == [{"id": "u3"}, {"id": "u4"}]

    async def test_list_pager_kinds(self, users: EntityService) -> None:
        for n in range(1, 4):
            await users.create({"id": f"u{n}", "email": f"user{n}@acme.io"})

        page = await users.list(pagination={"pager": "cursor", "count": 2})
        rest = await users.list(
            pagination={"pager": "cursor", "count": 2, "cursor": page["cursor"]}
        )
        assert [record["id"] for record in page["data"] + rest["data"]] == ["u1", "u2", "u3"]

        raw = await users.query(pagination={"pager": "raw", "count": 2})
        assert isinstance(raw["cursor"], int)

        with pytest.raises(PersistenceError, match="Invalid pager"):
            await users.list(pagination={"pager": "named"})

    async def test_failed_audit_write_keeps_the_entity(self, users: EntityService) -> None:
        locked = OperationalError("INSERT", {}, Exception("database is locked"))
        audit_logger = users.collaborators.audit_logger

        with patch.object(audit_logger, "_insert", new_callable=AsyncMock, side_effect=locked):
            await users.create({"id": "u1", "email": "ann@acme.io"})

        assert (await users.get("u1"))["email"] == "ann@acme.io"

    async def test_events_and_audit_trail(self, users: EntityService, database: Database) -> None:
        seen: list[EventPayload] = []
        users.collaborators.event_dispatcher.on(
            entity_event_matcher(entity="user", phase="post", success_fail="success"), seen.append
        )

        await users.create(
            {"id": "u1", "email": "ann@acme.io"},
            actor={"id": "admin"},
            context={"correlation_id": "req-7"},
        )

        assert [payload.type["operation"] for payload in seen] == ["create", "create"]
        rows = await SqlAuditLogger(database.engine).recent()
        assert rows[0]["crud_type"] == "create"
        assert rows[0]["correlation_id"] == "req-7"
        assert rows[0]["actor"] == {"id": "admin"}

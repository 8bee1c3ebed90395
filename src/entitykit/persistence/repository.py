"""SQLite repository adapter for entities.

:class:`SqlEntityRepository` speaks the repository contract the CRUD
pipeline expects (``get``/``create``/``upsert``/``patch``/``delete``,
``match``/``query[index]`` builders and ``key_match``) on top of the
single ``entities`` table. Indexes are logical: querying an index filters
on its key attributes inside the JSON documents.

Usage:
    repository = SqlEntityRepository(schema, database.engine)

    await repository.create({"id": "u1", "email": "a@b.c"}).go()
    page = await (
        repository.query["byTenant"]({"tenant": "acme"})
        .where(lambda attrs, ops: ops.gte(attrs["age"], 18))
        .go(count=20)
    )
"""

import base64
import binascii
from collections.abc import Awaitable, Callable, Mapping
from datetime import UTC, datetime
from functools import partial
import json
from typing import Any

from sqlalchemy import select, text
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from entitykit.core.errors import PersistenceError, UnknownFilterAttribute
from entitykit.core.values import pick_keys
from entitykit.entity.protocols import WherePredicate
from entitykit.entity.schema import PRIMARY_INDEX_NAME, EntitySchema
from entitykit.observability.logging import get_logger
from entitykit.persistence.operations import SqlAttribute, SqlOperations, sql_attribute_refs
from entitykit.persistence.schema import entities_table
from entitykit.query.compiler import make_parentheses_group
from entitykit.query.planner import PRIMARY_INDEX_ID, KeyMatch

log = get_logger(__name__)

TABLE = "entities"

PAGER_KINDS = ("cursor", "raw")


def encode_cursor(row_id: int) -> str:
    return base64.urlsafe_b64encode(str(row_id).encode()).decode()


def decode_cursor(cursor: str) -> int:
    """Decode an opaque listing cursor.

    Raises:
        PersistenceError: If the cursor was not produced by :func:`encode_cursor`.
    """
    try:
        return int(base64.urlsafe_b64decode(cursor.encode()).decode())
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise PersistenceError(
            "Invalid pagination cursor",
            operation="select",
            table=TABLE,
            details={"cursor": cursor},
        ) from e


def _read_cursor(cursor: str | int, pager: str) -> int:
    if pager == "cursor":
        return decode_cursor(str(cursor))
    try:
        return int(cursor)
    except (TypeError, ValueError) as e:
        raise PersistenceError(
            "Invalid raw pagination cursor",
            operation="select",
            table=TABLE,
            details={"cursor": cursor},
        ) from e


def _compact(data: Mapping[str, Any]) -> dict[str, Any]:
    """Drop None values; a missing attribute and a null attribute are the same."""
    return {key: value for key, value in data.items() if value is not None}


class _Operation:
    """A deferred repository call."""

    def __init__(self, run: Callable[[], Awaitable[dict[str, Any]]]) -> None:
        self._run = run

    async def go(self) -> dict[str, Any]:
        return await self._run()


class _PatchOperation:
    def __init__(self, repository: "SqlEntityRepository", identifiers: Mapping[str, Any]) -> None:
        self._repository = repository
        self._identifiers = dict(identifiers)
        self._changes: dict[str, Any] = {}

    def set(self, data: Mapping[str, Any]) -> "_PatchOperation":
        self._changes.update(data)
        return self

    async def go(self) -> dict[str, Any]:
        return await self._repository._patch(self._identifiers, self._changes)


class SqlQueryOperation:
    """Listing builder returned by ``match`` and ``query[index]``."""

    def __init__(
        self,
        repository: "SqlEntityRepository",
        equalities: Mapping[str, Any],
        index_name: str | None = None,
    ) -> None:
        self._repository = repository
        self._equalities = dict(equalities)
        self._predicates: list[WherePredicate] = []
        self.index_name = index_name

    def where(self, predicate: WherePredicate) -> "SqlQueryOperation":
        """Add a refinement predicate; all predicates must hold."""
        self._predicates.append(predicate)
        return self

    async def go(
        self,
        *,
        order: str = "asc",
        pager: str = "cursor",
        cursor: str | int | None = None,
        count: int | None = None,
        limit: int | None = None,
        pages: int | str | None = None,
        attributes: list[str] | None = None,
    ) -> dict[str, Any]:
        """Run the listing.

        Args:
            order: ``asc`` or ``desc`` insertion order.
            pager: Cursor kind. ``cursor`` pages with an opaque string;
                ``raw`` exposes the last row id as an integer.
            cursor: Cursor returned by a previous page, of the ``pager`` kind.
            count: Page size; without it every match is returned.
            limit: Hard cap on the number of returned entities.
            pages: Number of pages to return at once, or ``"all"``.
            attributes: Restrict each entity to these attributes.

        Returns:
            ``{"data": [...], "cursor": next-cursor-or-None}``
        """
        return await self._repository._list(
            self._equalities,
            self._predicates,
            order=order,
            pager=pager,
            cursor=cursor,
            count=count,
            limit=limit,
            pages=pages,
            attributes=attributes,
        )


class SqlEntityRepository:
    """Repository for one entity type stored in the ``entities`` table."""

    def __init__(self, schema: EntitySchema, engine: AsyncEngine) -> None:
        self.schema = schema
        self._engine = engine
        self.attributes: dict[str, SqlAttribute] = sql_attribute_refs(list(schema.attributes))
        self.query: dict[str, Callable[[dict[str, Any]], SqlQueryOperation]] = {
            name: partial(SqlQueryOperation, self, index_name=name) for name in schema.indexes
        }

    @property
    def entity_name(self) -> str:
        return self.schema.name

    # -------------------------------------------------------------------------
    # Keys
    # -------------------------------------------------------------------------

    def _primary_key(self, data: Mapping[str, Any]) -> str:
        names = self.schema.primary_index.key_attributes()
        missing = [name for name in names if data.get(name) is None]
        if missing:
            raise PersistenceError(
                f"Missing primary key attributes for {self.entity_name}: {', '.join(missing)}",
                operation="key",
                table=TABLE,
                details={"attributes": missing},
            )
        return json.dumps([data[name] for name in names], default=str)

    def key_match(self, equalities: dict[str, Any]) -> KeyMatch:
        """Pick the index whose key consumes the most equality attributes.

        A partition key must be fully covered; each leading sort key
        attribute present extends the match. Ties go to the index declared
        first. Indexes without partition key attributes are never matched.
        """
        best: tuple[int, str, list[str]] | None = None

        for name, index in self.schema.indexes.items():
            if not index.pk.composite or any(attr not in equalities for attr in index.pk.composite):
                continue

            consumed = list(index.pk.composite)
            for attr in index.sk.composite if index.sk else []:
                if attr not in equalities:
                    break
                consumed.append(attr)

            if best is None or len(consumed) > best[0]:
                index_id = PRIMARY_INDEX_ID if name == PRIMARY_INDEX_NAME else str(index.index)
                best = (len(consumed), index_id, consumed)

        if best is None:
            return KeyMatch(should_scan=True)

        _, index_id, consumed = best
        return KeyMatch(
            keys={attr: equalities[attr] for attr in consumed},
            index=index_id,
            should_scan=False,
        )

    def _ref(self, name: str) -> SqlAttribute:
        ref = self.attributes.get(name)
        if ref is None:
            raise UnknownFilterAttribute(name)
        return ref

    # -------------------------------------------------------------------------
    # Contract
    # -------------------------------------------------------------------------

    def get(self, identifiers: Mapping[str, Any]) -> _Operation:
        return _Operation(partial(self._get, dict(identifiers)))

    def create(self, data: Mapping[str, Any]) -> _Operation:
        return _Operation(partial(self._create, dict(data)))

    def upsert(self, data: Mapping[str, Any]) -> _Operation:
        return _Operation(partial(self._upsert, dict(data)))

    def patch(self, identifiers: Mapping[str, Any]) -> _PatchOperation:
        return _PatchOperation(self, identifiers)

    def delete(self, identifiers: Mapping[str, Any]) -> _Operation:
        return _Operation(partial(self._delete, dict(identifiers)))

    def match(self, equalities: Mapping[str, Any]) -> SqlQueryOperation:
        return SqlQueryOperation(self, equalities)

    # -------------------------------------------------------------------------
    # Statements
    # -------------------------------------------------------------------------

    def _with_defaults(self, data: Mapping[str, Any]) -> dict[str, Any]:
        record = dict(data)
        for name, attribute in self.schema.attributes.items():
            if name not in record and attribute.default is not None:
                record[name] = attribute.default
        return _compact(record)

    async def _select_row(self, conn: AsyncConnection, pk: str) -> Any:
        result = await conn.execute(
            select(entities_table.c.id, entities_table.c.data)
            .where(entities_table.c.entity == self.entity_name)
            .where(entities_table.c.pk == pk)
        )
        return result.first()

    async def _get(self, identifiers: dict[str, Any]) -> dict[str, Any]:
        pk = self._primary_key(identifiers)
        try:
            async with self._engine.connect() as conn:
                row = await self._select_row(conn, pk)
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to get {self.entity_name}: {e}",
                operation="select",
                table=TABLE,
                details={"identifiers": identifiers},
            ) from e
        return {"data": dict(row.data) if row is not None else None}

    async def _create(self, data: dict[str, Any]) -> dict[str, Any]:
        record = self._with_defaults(data)
        pk = self._primary_key(record)
        try:
            async with self._engine.begin() as conn:
                await conn.execute(
                    entities_table.insert().values(entity=self.entity_name, pk=pk, data=record)
                )
        except IntegrityError as e:
            raise PersistenceError(
                f"{self.entity_name} already exists",
                operation="insert",
                table=TABLE,
                details={"pk": pk},
            ) from e
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to create {self.entity_name}: {e}",
                operation="insert",
                table=TABLE,
            ) from e

        log.debug("persistence.entity.created", entity_name=self.entity_name, pk=pk)
        return {"data": record}

    async def _upsert(self, data: dict[str, Any]) -> dict[str, Any]:
        record = self._with_defaults(data)
        pk = self._primary_key(record)
        statement = sqlite_insert(entities_table).values(entity=self.entity_name, pk=pk, data=record)
        statement = statement.on_conflict_do_update(
            index_elements=[entities_table.c.entity, entities_table.c.pk],
            set_={"data": statement.excluded.data, "updated_at": datetime.now(UTC)},
        )
        try:
            async with self._engine.begin() as conn:
                await conn.execute(statement)
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to upsert {self.entity_name}: {e}",
                operation="upsert",
                table=TABLE,
            ) from e

        log.debug("persistence.entity.upserted", entity_name=self.entity_name, pk=pk)
        return {"data": record}

    async def _patch(self, identifiers: dict[str, Any], changes: dict[str, Any]) -> dict[str, Any]:
        pk = self._primary_key(identifiers)
        key_changes = [
            name
            for name in self.schema.primary_index.key_attributes()
            if name in changes and changes[name] != identifiers.get(name)
        ]
        if key_changes:
            raise PersistenceError(
                f"Primary key attributes of {self.entity_name} cannot be updated",
                operation="update",
                table=TABLE,
                details={"attributes": key_changes},
            )

        try:
            async with self._engine.begin() as conn:
                row = await self._select_row(conn, pk)
                if row is None:
                    raise PersistenceError(
                        f"{self.entity_name} not found",
                        operation="update",
                        table=TABLE,
                        details={"identifiers": identifiers},
                    )
                record = _compact({**row.data, **changes})
                await conn.execute(
                    entities_table.update().where(entities_table.c.id == row.id).values(data=record)
                )
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to update {self.entity_name}: {e}",
                operation="update",
                table=TABLE,
            ) from e

        return {"data": record}

    async def _delete(self, identifiers: dict[str, Any]) -> dict[str, Any]:
        pk = self._primary_key(identifiers)
        try:
            async with self._engine.begin() as conn:
                row = await self._select_row(conn, pk)
                if row is not None:
                    await conn.execute(entities_table.delete().where(entities_table.c.id == row.id))
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to delete {self.entity_name}: {e}",
                operation="delete",
                table=TABLE,
            ) from e
        return {"data": dict(row.data) if row is not None else None}

    async def _list(
        self,
        equalities: dict[str, Any],
        predicates: list[WherePredicate],
        *,
        order: str,
        pager: str,
        cursor: str | int | None,
        count: int | None,
        limit: int | None,
        pages: int | str | None,
        attributes: list[str] | None,
    ) -> dict[str, Any]:
        direction = order.lower()
        if direction not in ("asc", "desc"):
            raise PersistenceError(
                f"Invalid order {order!r}; expected 'asc' or 'desc'",
                operation="select",
                table=TABLE,
            )
        if pager not in PAGER_KINDS:
            raise PersistenceError(
                f"Invalid pager {pager!r}; expected one of {', '.join(PAGER_KINDS)}",
                operation="select",
                table=TABLE,
            )

        operations = SqlOperations()
        clauses = [operations.eq(self._ref(name), value) for name, value in equalities.items()]
        clauses.extend(predicate(self.attributes, operations) for predicate in predicates)
        expression = make_parentheses_group(clauses, "and")

        statement = select(entities_table.c.id, entities_table.c.data).where(
            entities_table.c.entity == self.entity_name
        )
        if expression:
            statement = statement.where(text(expression).bindparams(**operations.params))

        if cursor is not None and cursor != "":
            last_id = _read_cursor(cursor, pager)
            statement = statement.where(
                entities_table.c.id > last_id if direction == "asc" else entities_table.c.id < last_id
            )

        statement = statement.order_by(
            entities_table.c.id.asc() if direction == "asc" else entities_table.c.id.desc()
        )

        cap: int | None = None
        if count is not None and pages != "all":
            cap = int(count) * int(pages or 1)
        if limit is not None:
            cap = int(limit) if cap is None else min(cap, int(limit))
        if cap is not None:
            statement = statement.limit(cap + 1)

        try:
            async with self._engine.connect() as conn:
                rows = (await conn.execute(statement)).all()
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to list {self.entity_name}: {e}",
                operation="select",
                table=TABLE,
                details={"filter": expression},
            ) from e

        next_cursor: str | int | None = None
        if cap is not None and len(rows) > cap:
            rows = rows[:cap]
            if rows:
                next_cursor = rows[-1].id if pager == "raw" else encode_cursor(rows[-1].id)

        records = [dict(row.data) for row in rows]
        if attributes:
            records = [pick_keys(record, attributes) for record in records]
        return {"data": records, "cursor": next_cursor}

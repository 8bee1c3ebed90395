"""Entity service: schema-aware helpers plus convenience CRUD methods.

An :class:`EntityService` binds one :class:`EntitySchema` to a repository
and the CRUD collaborators. It answers the schema questions the pipeline
asks (identifiers, validations, unique attributes) and wraps the CRUD
operations with keyword search and response serialization.
"""

from __future__ import annotations

from collections.abc import Mapping, MutableMapping
from typing import Any

from entitykit.config.models import UniquenessConfig
from entitykit.core.errors import EntityValidationError, SchemaError
from entitykit.core.values import pick_keys
from entitykit.entity import crud
from entitykit.entity.crud import CrudCollaborators, normalize_list_filters
from entitykit.entity.protocols import Actor, Repository, Tenant
from entitykit.entity.schema import EntityAttribute, EntitySchema
from entitykit.entity.uniqueness import check_uniqueness_and_update
from entitykit.observability.logging import get_logger
from entitykit.query.filters import classify_filter
from entitykit.query.querystring import (
    add_filter_group_to_criteria,
    make_filter_group_for_search_keywords,
    split_search_terms,
)

log = get_logger(__name__)


class EntityService:
    """Schema-aware access to one entity type.

    Args:
        schema: The entity schema.
        repository: Storage for the entity.
        collaborators: Validator, authorizer, audit logger and dispatcher
            used by the convenience CRUD methods.
        validations: Extra validation rules per attribute, merged over the
            rules declared in the schema.
        error_messages: Validation message overrides keyed by message id,
            e.g. ``{"validation.email.required": "Email is required"}``.
        uniqueness: Collision resolution settings.
    """

    def __init__(
        self,
        schema: EntitySchema,
        repository: Repository,
        collaborators: CrudCollaborators,
        *,
        validations: Mapping[str, Mapping[str, Any]] | None = None,
        error_messages: Mapping[str, str] | None = None,
        uniqueness: UniquenessConfig | None = None,
    ) -> None:
        self._schema = schema
        self._repository = repository
        self.collaborators = collaborators
        self._validations = {name: dict(rules) for name, rules in (validations or {}).items()}
        self._error_messages = dict(error_messages or {})
        self.uniqueness = uniqueness or UniquenessConfig()

    # -------------------------------------------------------------------------
    # Schema
    # -------------------------------------------------------------------------

    def get_repository(self) -> Repository:
        return self._repository

    def get_entity_schema(self) -> EntitySchema:
        return self._schema

    def get_entity_name(self) -> str:
        return self._schema.name

    def get_entity_validations(self) -> dict[str, dict[str, Any]]:
        """Validation rules per attribute.

        Schema-declared rules come first. The ``required``, ``read_only`` and
        ``nullable`` flags add the matching rules, and rules passed to the
        constructor win.
        """
        validations: dict[str, dict[str, Any]] = {}
        for name, attribute in self._schema.attributes.items():
            rules = dict(attribute.validations)
            if attribute.required:
                rules.setdefault("required", True)
            if attribute.read_only:
                rules.setdefault("readOnly", True)
            if not attribute.nullable:
                rules.setdefault("nullable", False)
            if rules:
                validations[name] = rules

        for name, rules in self._validations.items():
            validations[name] = {**validations.get(name, {}), **rules}
        return validations

    def get_overridden_entity_validation_error_messages(self) -> dict[str, str]:
        return dict(self._error_messages)

    def get_entity_primary_id_property_name(self) -> str | None:
        """Name of the attribute flagged ``is_identifier``, if any."""
        for name, attribute in self._schema.attributes.items():
            if attribute.is_identifier:
                return name
        return None

    def extract_entity_identifiers(
        self,
        input: Any,
        access_pattern: str | None = None,
    ) -> dict[str, Any]:
        """Pick the key attributes of an index out of ``input``.

        A scalar ``input`` is the value of the identifier attribute. In a
        mapping, ``id`` stands in for the identifier attribute when the
        attribute itself is absent.

        Args:
            input: A scalar id or a mapping carrying key attributes.
            access_pattern: Index whose key attributes are extracted;
                defaults to the primary index.

        Raises:
            EntityValidationError: If ``input`` is empty, or a scalar when
                the entity has no single identifier attribute.
            SchemaError: If ``access_pattern`` is not a declared index.
        """
        index_name = access_pattern or "primary"
        index = self._schema.indexes.get(index_name)
        if index is None:
            raise SchemaError(
                f"Unknown access pattern '{index_name}' for entity '{self.get_entity_name()}'",
                entity_name=self.get_entity_name(),
            )

        primary_id = self.get_entity_primary_id_property_name()

        if input is None or input == "" or (isinstance(input, Mapping) and not input):
            raise EntityValidationError(
                [{"path": primary_id or "id", "rule": "required", "message": "Identifiers are required"}]
            )

        if not isinstance(input, Mapping):
            if primary_id is None:
                raise EntityValidationError(
                    [
                        {
                            "path": "id",
                            "rule": "identifier",
                            "message": f"Entity '{self.get_entity_name()}' has no identifier attribute",
                        }
                    ]
                )
            input = {primary_id: input}

        identifiers: dict[str, Any] = {}
        for name in index.key_attributes():
            if name in input:
                identifiers[name] = input[name]
            elif name == primary_id and "id" in input:
                identifiers[name] = input["id"]
            else:
                log.warning(
                    "entity.identifiers.missing",
                    entity_name=self.get_entity_name(),
                    attribute=name,
                    access_pattern=index_name,
                )
        return identifiers

    def get_unique_attributes(self) -> dict[str, EntityAttribute]:
        """Attributes flagged ``is_unique`` or ``ensure_unique``."""
        return {
            name: attribute
            for name, attribute in self._schema.attributes.items()
            if attribute.enforces_uniqueness
        }

    def get_searchable_attribute_names(self) -> list[str]:
        """Attributes used for keyword search.

        Defaults to visible string attributes that are not the identifier;
        an explicit ``searchable`` flag overrides the default.
        """
        names = []
        for name, attribute in self._schema.attributes.items():
            if attribute.searchable is not None:
                if attribute.searchable and not attribute.hidden:
                    names.append(name)
            elif attribute.type == "string" and not attribute.hidden and not attribute.is_identifier:
                names.append(name)
        return names

    def get_filterable_attribute_names(self) -> list[str]:
        """Visible string attributes."""
        return [
            name
            for name, attribute in self._schema.attributes.items()
            if attribute.type == "string" and not attribute.hidden
        ]

    def get_default_serialization_attribute_names(self) -> list[str]:
        """Every attribute that is not hidden."""
        return [name for name, attribute in self._schema.attributes.items() if not attribute.hidden]

    def get_listing_attribute_names(self) -> list[str]:
        return self.get_default_serialization_attribute_names()

    def serialize_record(
        self,
        record: Mapping[str, Any],
        attributes: list[str] | None = None,
    ) -> dict[str, Any]:
        if attributes is None:
            attributes = self.get_default_serialization_attribute_names()
        return pick_keys(dict(record), attributes)

    def serialize_records(
        self,
        records: list[Mapping[str, Any]],
        attributes: list[str] | None = None,
    ) -> list[dict[str, Any]]:
        return [self.serialize_record(record, attributes) for record in records]

    # -------------------------------------------------------------------------
    # Uniqueness
    # -------------------------------------------------------------------------

    async def is_unique_attribute_value(
        self,
        attribute_name: str,
        attribute_value: Any,
        ignored_identifiers: Mapping[str, Any] | None = None,
    ) -> bool:
        """Check that no other entity holds ``attribute_value``.

        Entities matching every entry of ``ignored_identifiers`` do not count.
        """
        response = await self._repository.match({attribute_name: attribute_value}).go()
        records = response.get("data") or []

        if ignored_identifiers:
            records = [
                record
                for record in records
                if any(record.get(key) != value for key, value in ignored_identifiers.items())
            ]
        return not records

    async def check_uniqueness_and_update(
        self,
        *,
        payload_to_update: MutableMapping[str, Any],
        attribute_name: str,
        attribute_value: Any,
        attribute: EntityAttribute | None = None,
        ignored_identifiers: Mapping[str, Any] | None = None,
        max_attempts: int | None = None,
    ) -> bool:
        """See :func:`entitykit.entity.uniqueness.check_uniqueness_and_update`."""
        return await check_uniqueness_and_update(
            self,
            payload_to_update=payload_to_update,
            attribute_name=attribute_name,
            attribute_value=attribute_value,
            attribute=attribute,
            ignored_identifiers=ignored_identifiers,
            max_attempts=max_attempts or self.uniqueness.max_attempts,
        )

    # -------------------------------------------------------------------------
    # CRUD
    # -------------------------------------------------------------------------

    async def get(
        self,
        identifiers: Any,
        attributes: list[str] | None = None,
        *,
        actor: Actor = None,
        tenant: Tenant = None,
        context: Mapping[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """Fetch one entity and serialize it; None when it does not exist."""
        response = await crud.get_entity(
            self, self.collaborators, id=identifiers, actor=actor, tenant=tenant, context=context
        )
        record = response.get("data")
        if record is None:
            return None
        return self.serialize_record(record, attributes)

    async def create(
        self,
        payload: Mapping[str, Any],
        *,
        actor: Actor = None,
        tenant: Tenant = None,
        context: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        return await crud.create_entity(
            self, self.collaborators, data=payload, actor=actor, tenant=tenant, context=context
        )

    async def upsert(
        self,
        payload: Mapping[str, Any],
        *,
        actor: Actor = None,
        tenant: Tenant = None,
        context: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        return await crud.upsert_entity(
            self, self.collaborators, data=payload, actor=actor, tenant=tenant, context=context
        )

    async def update(
        self,
        identifiers: Any,
        data: Mapping[str, Any],
        *,
        actor: Actor = None,
        tenant: Tenant = None,
        context: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        return await crud.update_entity(
            self,
            self.collaborators,
            id=identifiers,
            data=data,
            actor=actor,
            tenant=tenant,
            context=context,
        )

    async def delete(
        self,
        identifiers: Any,
        *,
        actor: Actor = None,
        tenant: Tenant = None,
        context: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        return await crud.delete_entity(
            self, self.collaborators, id=identifiers, actor=actor, tenant=tenant, context=context
        )

    def _search_criteria(
        self,
        criteria: Any,
        search: str | list[str] | None,
        search_attributes: str | list[str] | None,
    ) -> Any:
        keywords = split_search_terms(search)
        if not keywords:
            return criteria

        if isinstance(search_attributes, str):
            search_attributes = [name for name in search_attributes.split(",") if name]
        if not search_attributes:
            search_attributes = self.get_searchable_attribute_names()

        group = make_filter_group_for_search_keywords(keywords, search_attributes)
        return add_filter_group_to_criteria(group, criteria)

    @staticmethod
    def _selected_attributes(attributes: list[str] | Mapping[str, bool] | None) -> list[str] | None:
        if isinstance(attributes, Mapping):
            return [name for name, selected in attributes.items() if selected] or None
        return list(attributes) if attributes else None

    async def list(
        self,
        *,
        filters: Any = None,
        search: str | list[str] | None = None,
        search_attributes: str | list[str] | None = None,
        attributes: list[str] | Mapping[str, bool] | None = None,
        pagination: Mapping[str, Any] | None = None,
        actor: Actor = None,
        tenant: Tenant = None,
        context: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """List entities with optional keyword search.

        ``search`` is split on ``& , +`` and spaces; every keyword must be
        contained in at least one of ``search_attributes`` (default: the
        searchable attributes). Records are serialized to ``attributes``
        (default: the listing attributes).
        """
        criteria = self._search_criteria(normalize_list_filters(filters), search, search_attributes)

        response = await crud.list_entity(
            self,
            self.collaborators,
            filters=criteria,
            pagination=pagination,
            actor=actor,
            tenant=tenant,
            context=context,
        )

        selected = self._selected_attributes(attributes) or self.get_listing_attribute_names()
        return {
            **response,
            "data": self.serialize_records(response.get("data") or [], selected),
        }

    async def query(
        self,
        *,
        filters: Any = None,
        search: str | list[str] | None = None,
        search_attributes: str | list[str] | None = None,
        attributes: list[str] | Mapping[str, bool] | None = None,
        pagination: Mapping[str, Any] | None = None,
        actor: Actor = None,
        tenant: Tenant = None,
        context: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Query entities with any filter description and optional keyword search."""
        criteria = classify_filter(filters) if filters is not None else None
        criteria = self._search_criteria(criteria, search, search_attributes)

        response = await crud.query_entity(
            self,
            self.collaborators,
            filters=criteria,
            pagination=pagination,
            actor=actor,
            tenant=tenant,
            context=context,
        )

        selected = self._selected_attributes(attributes) or self.get_listing_attribute_names()
        return {
            **response,
            "data": self.serialize_records(response.get("data") or [], selected),
        }

"""Entity schema models.

An :class:`EntitySchema` describes one entity type: its attributes and its
indexes. Schemas are immutable and validated on construction; a schema
that breaks an index invariant raises :class:`SchemaError`.

Schemas are usually declared as mappings (or YAML) using camelCase keys::

    name: user
    attributes:
      id: {type: string, isIdentifier: true, required: true}
      email: {type: string, isUnique: true}
      tenant: {type: string}
    indexes:
      primary:
        pk: {composite: [id]}
      byTenant:
        index: gsi1
        pk: {composite: [tenant]}
        sk: {composite: [email]}
"""

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
import yaml

from entitykit.core.errors import SchemaError

PRIMARY_INDEX_NAME = "primary"

type AttributeType = Literal["string", "number", "boolean", "list", "map", "set", "any"]


class EntityAttribute(BaseModel, frozen=True):
    """One attribute of an entity.

    Attributes:
        type: Value type of the attribute.
        required: Whether create payloads must carry the attribute.
        nullable: Whether ``None`` is an accepted value.
        is_identifier: Marks the attribute ``id`` inputs are mapped to.
        hidden: Hidden attributes are never serialized, searched or filtered.
        searchable: Explicit keyword-search opt-in/opt-out; ``None`` means
            searchable when it is a visible, non-identifier string.
        read_only: Read-only attributes are rejected on update.
        default: Value used when a create payload omits the attribute.
        is_unique: Legacy flag; collisions are resolved by suffixing.
        ensure_unique: Collisions are rejected unless ``make_unique`` is set.
        make_unique: Resolve ``ensure_unique`` collisions by suffixing.
        validations: Validation rules for the attribute, e.g.
            ``{"required": True, "maxLength": 64}``.
    """

    model_config = ConfigDict(populate_by_name=True)

    type: AttributeType = "string"
    required: bool = False
    nullable: bool = True
    is_identifier: bool = Field(default=False, alias="isIdentifier")
    hidden: bool = False
    searchable: bool | None = None
    read_only: bool = Field(default=False, alias="readOnly")
    default: Any = None
    is_unique: bool = Field(default=False, alias="isUnique")
    ensure_unique: bool = Field(default=False, alias="ensureUnique")
    make_unique: bool = Field(default=False, alias="makeUnique")
    validations: dict[str, Any] = Field(default_factory=dict)

    @property
    def enforces_uniqueness(self) -> bool:
        """True when the attribute carries ``is_unique`` or ``ensure_unique``."""
        return self.is_unique or self.ensure_unique

    @property
    def resolves_collisions(self) -> bool:
        """True when a colliding value may be rewritten instead of rejected."""
        return self.is_unique or (self.ensure_unique and self.make_unique)


class IndexKey(BaseModel, frozen=True):
    """A partition or sort key.

    Attributes:
        composite: Ordered attribute names forming the key; may be empty.
        template: Constant key value. An index whose partition key template
            equals the entity name holds every instance of that entity.
    """

    composite: list[str] = Field(default_factory=list)
    template: str | None = None


class EntityIndex(BaseModel, frozen=True):
    """A named index. ``index`` is the identifier the repository knows it by."""

    pk: IndexKey
    sk: IndexKey | None = None
    index: str | None = None

    def key_attributes(self) -> list[str]:
        """Partition key attributes followed by sort key attributes."""
        sort_key = self.sk.composite if self.sk else []
        return [*self.pk.composite, *sort_key]


class EntitySchema(BaseModel, frozen=True):
    """Static description of one entity type."""

    name: str
    attributes: dict[str, EntityAttribute]
    indexes: dict[str, EntityIndex]

    @model_validator(mode="after")
    def check_indexes(self) -> "EntitySchema":
        """Enforce the index invariants.

        Raises:
            SchemaError: If there is no ``primary`` index, an index
                composite names an unknown attribute, or a secondary index
                has no ``index`` identifier.
        """
        if PRIMARY_INDEX_NAME not in self.indexes:
            raise SchemaError(
                f"Entity '{self.name}' must declare a '{PRIMARY_INDEX_NAME}' index",
                entity_name=self.name,
            )

        for index_name, index in self.indexes.items():
            unknown = [name for name in index.key_attributes() if name not in self.attributes]
            if unknown:
                raise SchemaError(
                    f"Index '{index_name}' of entity '{self.name}' references unknown attributes",
                    entity_name=self.name,
                    details={"index": index_name, "attributes": unknown},
                )
            if index_name != PRIMARY_INDEX_NAME and not index.index:
                raise SchemaError(
                    f"Index '{index_name}' of entity '{self.name}' must declare its 'index' identifier",
                    entity_name=self.name,
                    details={"index": index_name},
                )

        identifiers = [name for name, attribute in self.attributes.items() if attribute.is_identifier]
        if len(identifiers) > 1:
            raise SchemaError(
                f"Entity '{self.name}' declares more than one identifier attribute",
                entity_name=self.name,
                details={"attributes": identifiers},
            )
        return self

    @property
    def primary_index(self) -> EntityIndex:
        """The ``primary`` index."""
        return self.indexes[PRIMARY_INDEX_NAME]

    def index_by_id(self, index_id: str) -> tuple[str, EntityIndex] | None:
        """Find an index by its repository identifier; ``""`` is the primary index."""
        if index_id == "":
            return PRIMARY_INDEX_NAME, self.primary_index
        for name, index in self.indexes.items():
            if index.index == index_id:
                return name, index
        return None


def load_entity_schema(data: dict[str, Any]) -> EntitySchema:
    """Validate a schema mapping.

    Raises:
        SchemaError: If the mapping is not a valid schema.
    """
    try:
        return EntitySchema.model_validate(data)
    except ValidationError as e:
        raise SchemaError(
            f"Invalid entity schema: {e.error_count()} error(s)",
            entity_name=data.get("name") if isinstance(data, dict) else None,
            details={"errors": e.errors(include_url=False)},
        ) from e


def load_entity_schema_file(path: Path) -> EntitySchema:
    """Read and validate a YAML schema file.

    Raises:
        SchemaError: If the file cannot be read or parsed, or is invalid.
    """
    try:
        with path.open() as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise SchemaError(
            f"Failed to read entity schema: {path}",
            details={"path": str(path), "error": str(e)},
        ) from e

    if not isinstance(data, dict):
        raise SchemaError(
            f"Entity schema must be a mapping: {path}",
            details={"path": str(path)},
        )
    return load_entity_schema(data)

"""Optimistic uniqueness enforcement.

Unique attributes are checked against the repository before a write. A
colliding value is either rejected or rewritten by appending a numeric
suffix, depending on the attribute flags:

=====================================  ==============================
Flags                                  On collision
=====================================  ==============================
``is_unique``                          rewrite as ``<value>-<n>``
``ensure_unique`` + ``make_unique``    rewrite as ``<value>-<n>``
``ensure_unique``                      raise ``EntityValidationError``
neither                                no check
=====================================  ==============================

There is no locking: a concurrent writer can still claim the value between
the check and the write.
"""

from collections.abc import Mapping, MutableMapping
import random
from typing import Any, Protocol

from entitykit.core.errors import EntityValidationError
from entitykit.entity.schema import EntityAttribute, EntitySchema
from entitykit.observability.logging import get_logger

log = get_logger(__name__)

DEFAULT_MAX_ATTEMPTS = 5
RANDOM_SUFFIX_UPPER_BOUND = 1_000_000


class UniquenessLookup(Protocol):
    """What the enforcer needs from an entity service."""

    def get_entity_schema(self) -> EntitySchema: ...

    async def is_unique_attribute_value(
        self,
        attribute_name: str,
        attribute_value: Any,
        ignored_identifiers: Mapping[str, Any] | None = None,
    ) -> bool: ...


def generate_unique_value(value: Any, attempt: int | None = None) -> str:
    """Append ``-<attempt>``, or a random number when no attempt is given."""
    suffix = attempt if attempt is not None else random.randint(1, RANDOM_SUFFIX_UPPER_BOUND)
    return f"{value}-{suffix}"


def _collision_error(attribute_name: str, attribute_value: Any) -> EntityValidationError:
    return EntityValidationError(
        [
            {
                "path": attribute_name,
                "rule": "unique",
                "value": attribute_value,
                "message": f"{attribute_name} '{attribute_value}' is already taken",
            }
        ],
        message=f"Duplicate value for unique attribute '{attribute_name}'",
    )


async def check_uniqueness_and_update(
    lookup: UniquenessLookup,
    *,
    payload_to_update: MutableMapping[str, Any],
    attribute_name: str,
    attribute_value: Any,
    attribute: EntityAttribute | None = None,
    ignored_identifiers: Mapping[str, Any] | None = None,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> bool:
    """Write a unique value for ``attribute_name`` into ``payload_to_update``.

    Args:
        lookup: Provides the schema and the uniqueness lookup.
        payload_to_update: Payload mutated in place.
        attribute_name: Attribute being written.
        attribute_value: Requested value.
        attribute: Attribute definition; looked up in the schema when omitted.
        ignored_identifiers: Identifiers of the entity being updated, so it
            does not collide with itself.
        max_attempts: Numbered suffixes tried before a random suffix.

    Returns:
        True once a value has been written.

    Raises:
        EntityValidationError: If the value collides and may not be
            rewritten (the payload is left untouched), or no suffix
            produced a free value.
    """
    if attribute is None:
        attribute = lookup.get_entity_schema().attributes.get(attribute_name)

    if attribute is None or not attribute.enforces_uniqueness:
        payload_to_update[attribute_name] = attribute_value
        return True

    if await lookup.is_unique_attribute_value(attribute_name, attribute_value, ignored_identifiers):
        payload_to_update[attribute_name] = attribute_value
        return True

    if not attribute.resolves_collisions:
        log.info(
            "entity.uniqueness.rejected",
            attribute=attribute_name,
        )
        raise _collision_error(attribute_name, attribute_value)

    candidates = [generate_unique_value(attribute_value, attempt) for attempt in range(1, max_attempts + 1)]
    candidates.append(generate_unique_value(attribute_value))

    for candidate in candidates:
        if await lookup.is_unique_attribute_value(attribute_name, candidate, ignored_identifiers):
            payload_to_update[attribute_name] = candidate
            log.info(
                "entity.uniqueness.resolved",
                attribute=attribute_name,
                original=attribute_value,
                resolved=candidate,
            )
            return True

    log.warning(
        "entity.uniqueness.exhausted",
        attribute=attribute_name,
        attempts=len(candidates),
    )
    raise _collision_error(attribute_name, attribute_value)


async def enforce_unique_attributes(
    lookup: UniquenessLookup,
    payload: MutableMapping[str, Any],
    *,
    ignored_identifiers: Mapping[str, Any] | None = None,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> None:
    """Run :func:`check_uniqueness_and_update` for every unique attribute in ``payload``."""
    for name, attribute in lookup.get_entity_schema().attributes.items():
        if not attribute.enforces_uniqueness or payload.get(name) is None:
            continue
        await check_uniqueness_and_update(
            lookup,
            payload_to_update=payload,
            attribute_name=name,
            attribute_value=payload[name],
            attribute=attribute,
            ignored_identifiers=ignored_identifiers,
            max_attempts=max_attempts,
        )

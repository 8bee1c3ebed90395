"""Entity lifecycle events emitted by the CRUD pipeline.

Every phase of a CRUD operation is published as a structured event with
the dimensions ``entity``, ``operation``, ``phase`` and optionally
``subPhase`` and ``successFail``. Listeners subscribe to any subset of
those dimensions, e.g. ``{"phase": "pre"}`` or
``entity_event_matcher(entity="user", operation="create")``.
"""

from typing import Any, Literal

from entitykit.events.dispatcher import EventDispatcher
from entitykit.events.matchers import concrete_dimensions
from entitykit.events.payload import EventPayload

type EntityEventPhase = Literal["pre", "post"]
type EntityEventSubPhase = Literal["validate", "duplicate", "compositeKey"]
type EntityEventOperation = Literal[
    "get", "create", "upsert", "update", "delete", "list", "query", "validate", "duplicate"
]
type EntityEventSuccessFail = Literal["success", "fail"]


def entity_event_matcher(
    *,
    entity: str | None = None,
    phase: str | None = None,
    sub_phase: str | None = None,
    operation: str | None = None,
    success_fail: str | None = None,
) -> dict[str, str]:
    """Build a structured matcher for entity events.

    Omitted dimensions are left out, so the result can be used both to
    subscribe (as a wildcard) and to emit (when every dimension is given).
    """
    return concrete_dimensions(
        {
            "entity": entity,
            "phase": phase,
            "subPhase": sub_phase,
            "operation": operation,
            "successFail": success_fail,
        }
    )


class EntityEventEmitter:
    """Publishes the events of one CRUD call.

    The emitter is bound to one entity, one operation and a base context
    (actor, tenant, correlation id); each ``emit`` merges call-specific
    context over the base.
    """

    def __init__(
        self,
        dispatcher: EventDispatcher,
        *,
        entity: str,
        operation: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        self._dispatcher = dispatcher
        self.entity = entity
        self.operation = operation
        self.context = dict(context or {})

    async def emit(
        self,
        phase: str,
        data: Any = None,
        *,
        sub_phase: str | None = None,
        success_fail: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Dispatch one lifecycle event."""
        merged = {**self.context, **(context or {})}
        await self._dispatcher.dispatch(
            EventPayload(
                type=entity_event_matcher(
                    entity=self.entity,
                    operation=self.operation,
                    phase=phase,
                    sub_phase=sub_phase,
                    success_fail=success_fail,
                ),
                data=data,
                entity_name=self.entity,
                correlation_id=merged.get("correlation_id"),
                context=merged,
            )
        )

"""Event payload delivered to listeners."""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator


class EventPayload(BaseModel, frozen=True):
    """A dispatched event.

    Payloads are created per dispatch call and discarded after delivery.
    An emitted structured type must be fully concrete, so dimensions given
    as ``None`` are dropped on construction.

    Attributes:
        type: The event matcher characterising this event. A string for
              global events, or a mapping of dimension to value.
        data: Event-specific payload data.
        timestamp: When the event was created (UTC).
        entity_name: Entity the event relates to, if any.
        correlation_id: Optional identifier for tracing related events.
        context: Caller context such as actor and tenant.

    Example:
        payload = EventPayload(
            type={"entity": "user", "operation": "create", "phase": "pre"},
            data={"data": {"email": "a@b.c"}},
            entity_name="user",
        )
    """

    type: str | dict[str, str]
    data: Any = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    entity_name: str | None = None
    correlation_id: str | None = None
    context: dict[str, Any] = Field(default_factory=dict)

    @field_validator("type", mode="before")
    @classmethod
    def drop_undefined_dimensions(cls, v: Any) -> Any:
        """Remove ``None`` dimensions from a structured type."""
        if isinstance(v, dict):
            return {key: value for key, value in v.items() if value is not None}
        return v

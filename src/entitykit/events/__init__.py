"""Event system for entitykit.

Structured publish/subscribe with wildcard matching, and the entity
lifecycle events emitted by the CRUD pipeline.
"""

from entitykit.events.dispatcher import EventDispatcher, EventHandler
from entitykit.events.entity import EntityEventEmitter, entity_event_matcher
from entitykit.events.matchers import (
    STRUCTURED_EVENT_WILDCARD_KEY,
    UNIVERSAL_WILDCARD_KEY,
    EventMatcher,
    StructuredEventMatcher,
    get_matcher_key,
    get_subset_matcher_keys,
)
from entitykit.events.payload import EventPayload

__all__ = [
    "EventDispatcher",
    "EventHandler",
    "EventPayload",
    "EventMatcher",
    "StructuredEventMatcher",
    "EntityEventEmitter",
    "entity_event_matcher",
    "get_matcher_key",
    "get_subset_matcher_keys",
    "STRUCTURED_EVENT_WILDCARD_KEY",
    "UNIVERSAL_WILDCARD_KEY",
]

"""Canonical keys for event matchers.

An event matcher is either a plain string (a global event matched exactly)
or a structured matcher: a flat mapping of dimension name to value, such
as ``{"entity": "user", "phase": "pre", "operation": "create"}``. A
dimension that is missing or ``None`` means "any value" on the subscriber
side.

Listeners are stored under a canonical string key so that matchers with
the same defined dimensions share a key regardless of dimension order.
"""

from collections.abc import Mapping

type StructuredEventMatcher = Mapping[str, str | None]
type EventMatcher = str | StructuredEventMatcher

UNIVERSAL_WILDCARD_KEY = "*"
STRUCTURED_EVENT_WILDCARD_KEY = "__STRUCTURED_WILDCARD__"
STRUCTURED_MATCHER_KEY_SEPARATOR = "|"


def concrete_dimensions(matcher: StructuredEventMatcher) -> dict[str, str]:
    """Return the dimensions of ``matcher`` that carry a value."""
    return {key: value for key, value in matcher.items() if value is not None}


def get_matcher_key(matcher: EventMatcher) -> str:
    """Convert a matcher into its canonical listener-map key.

    Strings are returned unchanged. Structured matchers become their defined
    dimensions sorted by name and joined as ``name:value`` pairs; an empty
    structured matcher becomes :data:`STRUCTURED_EVENT_WILDCARD_KEY`.

    Example:
        >>> get_matcher_key({"phase": "post", "entity": "Order"})
        'entity:Order|phase:post'
        >>> get_matcher_key({})
        '__STRUCTURED_WILDCARD__'
    """
    if isinstance(matcher, str):
        return matcher

    dimensions = concrete_dimensions(matcher)
    if not dimensions:
        return STRUCTURED_EVENT_WILDCARD_KEY

    return STRUCTURED_MATCHER_KEY_SEPARATOR.join(
        f"{key}:{dimensions[key]}" for key in sorted(dimensions)
    )


def get_subset_matcher_keys(matcher: StructuredEventMatcher) -> list[str]:
    """Return the keys of every proper, non-empty subset of ``matcher``.

    For N concrete dimensions all 2^N subsets are enumerated with a bitmask.
    The full matcher and the empty matcher are excluded because dispatch
    looks those up separately. N is small (the entity dimensions number
    five), so the exponential enumeration stays cheap.
    """
    dimensions = concrete_dimensions(matcher)
    names = list(dimensions)
    keys: list[str] = []

    for mask in range(1 << len(names)):
        subset = {
            name: dimensions[name]
            for position, name in enumerate(names)
            if mask & (1 << position)
        }
        if not subset or len(subset) == len(names):
            continue
        key = get_matcher_key(subset)
        if key not in (STRUCTURED_EVENT_WILDCARD_KEY, UNIVERSAL_WILDCARD_KEY):
            keys.append(key)

    return keys

"""Structured publish/subscribe dispatcher.

Listeners are registered explicitly against a matcher during application
bootstrap and receive every dispatched :class:`EventPayload` whose type
matches:

* ``"*"`` listeners receive every event;
* string listeners receive events with exactly that string type;
* structured listeners receive structured events whose concrete
  dimensions include all of the listener's dimensions. The empty
  structured matcher ``{}`` receives every structured event.

Synchronous listeners run one after another inside ``dispatch``.
Asynchronous listeners are started as tasks and not awaited by
``dispatch``; ``await_async_handlers`` drains them.

Usage:
    dispatcher = EventDispatcher()
    dispatcher.on({"phase": "pre", "entity": "user"}, audit_pre_user)
    dispatcher.on_async("*", forward_to_queue)

    await dispatcher.dispatch(EventPayload(type={...}))
    await dispatcher.await_async_handlers()
"""

import asyncio
from collections.abc import Callable
import inspect
from typing import Any

from entitykit.events.matchers import (
    STRUCTURED_EVENT_WILDCARD_KEY,
    UNIVERSAL_WILDCARD_KEY,
    EventMatcher,
    get_matcher_key,
    get_subset_matcher_keys,
)
from entitykit.events.payload import EventPayload
from entitykit.observability.logging import get_logger

log = get_logger(__name__)

type EventHandler = Callable[[EventPayload], Any]


def _handler_name(handler: EventHandler) -> str:
    return getattr(handler, "__qualname__", None) or repr(handler)


class EventDispatcher:
    """Registers listeners and delivers events to the matching ones.

    Registration and unregistration may happen between dispatches. The
    listener maps are plain shared state and are not thread-safe.
    """

    def __init__(self) -> None:
        # dicts keep registration order and double as ordered sets
        self._sync_listeners: dict[str, dict[EventHandler, None]] = {}
        self._async_listeners: dict[str, dict[EventHandler, None]] = {}
        self._pending: dict[str, set[asyncio.Future[Any]]] = {}

    def on(self, matcher: EventMatcher, handler: EventHandler) -> None:
        """Register a synchronous listener.

        The handler may be a plain function or a coroutine function; either
        way ``dispatch`` waits for it before running the next listener.
        """
        self._register(self._sync_listeners, matcher, handler)

    def on_async(self, matcher: EventMatcher, handler: EventHandler) -> None:
        """Register a fire-and-forget listener."""
        self._register(self._async_listeners, matcher, handler)

    def off(self, matcher: EventMatcher, handler: EventHandler) -> None:
        """Unregister ``handler`` from ``matcher`` in both listener maps."""
        key = get_matcher_key(matcher)
        for listeners in (self._sync_listeners, self._async_listeners):
            handlers = listeners.get(key)
            if handlers is None:
                continue
            handlers.pop(handler, None)
            if not handlers:
                del listeners[key]

    def listener_count(self, matcher: EventMatcher | None = None) -> int:
        """Count registered listeners, optionally for one matcher only."""
        maps = (self._sync_listeners, self._async_listeners)
        if matcher is None:
            return sum(len(handlers) for listeners in maps for handlers in listeners.values())
        key = get_matcher_key(matcher)
        return sum(len(listeners.get(key, {})) for listeners in maps)

    @property
    def pending_count(self) -> int:
        """Number of asynchronous listener tasks that have not settled yet."""
        return sum(len(tasks) for tasks in self._pending.values())

    @staticmethod
    def _register(
        listeners: dict[str, dict[EventHandler, None]],
        matcher: EventMatcher,
        handler: EventHandler,
    ) -> None:
        listeners.setdefault(get_matcher_key(matcher), {})[handler] = None

    @staticmethod
    def _matching_keys(payload: EventPayload) -> list[str]:
        keys = [UNIVERSAL_WILDCARD_KEY]
        event_type = payload.type

        if isinstance(event_type, str):
            keys.append(get_matcher_key(event_type))
            return keys

        keys.append(get_matcher_key(event_type))
        keys.extend(get_subset_matcher_keys(event_type))
        keys.append(STRUCTURED_EVENT_WILDCARD_KEY)
        return keys

    def _collect(self, listeners: dict[str, dict[EventHandler, None]], keys: list[str]) -> list[EventHandler]:
        collected: dict[EventHandler, None] = {}
        for key in keys:
            for handler in listeners.get(key, {}):
                collected[handler] = None
        return list(collected)

    async def dispatch(self, payload: EventPayload) -> None:
        """Deliver ``payload`` to every matching listener.

        Errors raised by listeners are logged and never propagate to the
        caller, and one failing listener does not stop the others.
        """
        keys = self._matching_keys(payload)
        event_key = get_matcher_key(payload.type)

        for handler in self._collect(self._sync_listeners, keys):
            try:
                result = handler(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                log.error(
                    "events.listener.failed",
                    event_key=event_key,
                    handler=_handler_name(handler),
                    error=str(e),
                    error_type=type(e).__name__,
                )

        for handler in self._collect(self._async_listeners, keys):
            try:
                result = handler(payload)
            except Exception as e:
                log.error(
                    "events.async_listener.invoke_failed",
                    event_key=event_key,
                    handler=_handler_name(handler),
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue

            if inspect.isawaitable(result):
                self._track(event_key, handler, asyncio.ensure_future(result))
            else:
                log.warning(
                    "events.async_listener.not_awaitable",
                    event_key=event_key,
                    handler=_handler_name(handler),
                )

    def _track(self, event_key: str, handler: EventHandler, task: asyncio.Future[Any]) -> None:
        tasks = self._pending.setdefault(event_key, set())
        tasks.add(task)

        def _settled(done: asyncio.Future[Any]) -> None:
            tasks.discard(done)
            if done.cancelled():
                return
            error = done.exception()
            if error is not None:
                log.error(
                    "events.async_listener.failed",
                    event_key=event_key,
                    handler=_handler_name(handler),
                    error=str(error),
                    error_type=type(error).__name__,
                )

        task.add_done_callback(_settled)

    async def await_async_handlers(self) -> None:
        """Wait until every outstanding asynchronous listener has settled.

        Failures were already logged when each task settled; they are not
        re-raised here. Listeners that dispatch further events are drained
        too.
        """
        while self.pending_count:
            tasks = [task for tasks in self._pending.values() for task in tasks]
            await asyncio.gather(*tasks, return_exceptions=True)
            # give done callbacks scheduled by the last tasks a chance to run
            await asyncio.sleep(0)
        self._pending.clear()

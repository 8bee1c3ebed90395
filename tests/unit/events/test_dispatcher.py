"""Unit tests for entitykit.events.dispatcher module."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from entitykit.events.dispatcher import EventDispatcher
from entitykit.events.payload import EventPayload


@pytest.fixture
def dispatcher() -> EventDispatcher:
    return EventDispatcher()


def structured(**dimensions: str) -> EventPayload:
    return EventPayload(type=dimensions)


class TestRegistration:
    def test_on_registers_listener(self, dispatcher: EventDispatcher) -> None:
        dispatcher.on({"phase": "pre"}, MagicMock())
        assert dispatcher.listener_count({"phase": "pre"}) == 1

    def test_same_handler_registered_once(self, dispatcher: EventDispatcher) -> None:
        handler = MagicMock()
        dispatcher.on({"phase": "pre"}, handler)
        dispatcher.on({"phase": "pre"}, handler)
        assert dispatcher.listener_count() == 1

    def test_off_removes_listener(self, dispatcher: EventDispatcher) -> None:
        handler = MagicMock()
        dispatcher.on("user.created", handler)
        dispatcher.on_async("user.created", handler)

        dispatcher.off("user.created", handler)

        assert dispatcher.listener_count() == 0

    def test_off_unknown_matcher_is_noop(self, dispatcher: EventDispatcher) -> None:
        dispatcher.off({"entity": "nobody"}, MagicMock())
        assert dispatcher.listener_count() == 0


class TestStructuredMatching:
    """Structured listeners match any subset of the emitted dimensions."""

    async def test_subset_listener_receives_event(self, dispatcher: EventDispatcher) -> None:
        handler = MagicMock()
        dispatcher.on({"entity": "user", "phase": "pre"}, handler)

        payload = structured(entity="user", phase="pre", operation="create")
        await dispatcher.dispatch(payload)

        handler.assert_called_once_with(payload)

    async def test_non_matching_dimension_is_skipped(self, dispatcher: EventDispatcher) -> None:
        handler = MagicMock()
        dispatcher.on({"entity": "user", "phase": "post"}, handler)

        await dispatcher.dispatch(structured(entity="user", phase="pre", operation="create"))

        handler.assert_not_called()

    async def test_extra_listener_dimension_is_skipped(self, dispatcher: EventDispatcher) -> None:
        handler = MagicMock()
        dispatcher.on({"entity": "user", "subPhase": "validate"}, handler)

        await dispatcher.dispatch(structured(entity="user", phase="pre"))

        handler.assert_not_called()

    async def test_exact_matcher_receives_event(self, dispatcher: EventDispatcher) -> None:
        handler = MagicMock()
        dimensions = {"entity": "user", "phase": "pre", "operation": "create"}
        dispatcher.on(dimensions, handler)

        await dispatcher.dispatch(EventPayload(type=dimensions))

        handler.assert_called_once()

    async def test_empty_matcher_receives_structured_events_only(
        self, dispatcher: EventDispatcher
    ) -> None:
        handler = MagicMock()
        dispatcher.on({}, handler)

        await dispatcher.dispatch(structured(entity="user"))
        await dispatcher.dispatch(EventPayload(type="user.created"))

        assert handler.call_count == 1

    async def test_universal_wildcard_receives_everything(self, dispatcher: EventDispatcher) -> None:
        handler = MagicMock()
        dispatcher.on("*", handler)

        await dispatcher.dispatch(structured(entity="user"))
        await dispatcher.dispatch(EventPayload(type="user.created"))

        assert handler.call_count == 2

    async def test_handler_under_several_matchers_runs_once(
        self, dispatcher: EventDispatcher
    ) -> None:
        handler = MagicMock()
        dispatcher.on({"entity": "user"}, handler)
        dispatcher.on({"phase": "pre"}, handler)
        dispatcher.on("*", handler)

        await dispatcher.dispatch(structured(entity="user", phase="pre"))

        handler.assert_called_once()


class TestStringMatching:
    async def test_exact_string_match(self, dispatcher: EventDispatcher) -> None:
        handler = MagicMock()
        other = MagicMock()
        dispatcher.on("user.created", handler)
        dispatcher.on("user.deleted", other)

        await dispatcher.dispatch(EventPayload(type="user.created"))

        handler.assert_called_once()
        other.assert_not_called()


class TestListenerFailures:
    async def test_failing_listener_does_not_stop_others(self, dispatcher: EventDispatcher) -> None:
        failing = MagicMock(side_effect=RuntimeError("boom"))
        healthy = MagicMock()
        dispatcher.on({"phase": "pre"}, failing)
        dispatcher.on({"phase": "pre"}, healthy)

        await dispatcher.dispatch(structured(phase="pre"))

        healthy.assert_called_once()

    async def test_coroutine_listener_is_awaited(self, dispatcher: EventDispatcher) -> None:
        handler = AsyncMock()
        dispatcher.on({"phase": "pre"}, handler)

        await dispatcher.dispatch(structured(phase="pre"))

        handler.assert_awaited_once()

    async def test_failing_coroutine_listener_is_isolated(self, dispatcher: EventDispatcher) -> None:
        dispatcher.on({"phase": "pre"}, AsyncMock(side_effect=ValueError("bad")))
        await dispatcher.dispatch(structured(phase="pre"))


class TestAsyncListeners:
    async def test_async_listeners_are_not_awaited_by_dispatch(
        self, dispatcher: EventDispatcher
    ) -> None:
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow(payload: EventPayload) -> None:
            started.set()
            await release.wait()

        dispatcher.on_async({"phase": "post"}, slow)
        await dispatcher.dispatch(structured(phase="post"))

        assert dispatcher.pending_count == 1
        release.set()
        await dispatcher.await_async_handlers()
        assert started.is_set()
        assert dispatcher.pending_count == 0

    async def test_await_async_handlers_swallows_listener_errors(
        self, dispatcher: EventDispatcher
    ) -> None:
        async def failing(payload: EventPayload) -> None:
            raise RuntimeError("boom")

        dispatcher.on_async("*", failing)
        await dispatcher.dispatch(EventPayload(type="anything"))

        await dispatcher.await_async_handlers()
        assert dispatcher.pending_count == 0

    async def test_await_async_handlers_with_nothing_pending(
        self, dispatcher: EventDispatcher
    ) -> None:
        await dispatcher.await_async_handlers()
        assert dispatcher.pending_count == 0

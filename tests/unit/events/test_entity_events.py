"""Unit tests for entitykit.events.entity module."""

from unittest.mock import MagicMock

from entitykit.events.dispatcher import EventDispatcher
from entitykit.events.entity import EntityEventEmitter, entity_event_matcher
from entitykit.events.payload import EventPayload


class TestEntityEventMatcher:
    def test_omitted_dimensions_are_left_out(self) -> None:
        assert entity_event_matcher(entity="user", phase="pre") == {"entity": "user", "phase": "pre"}

    def test_all_dimensions(self) -> None:
        matcher = entity_event_matcher(
            entity="user",
            phase="post",
            sub_phase="validate",
            operation="create",
            success_fail="fail",
        )
        assert matcher == {
            "entity": "user",
            "phase": "post",
            "subPhase": "validate",
            "operation": "create",
            "successFail": "fail",
        }


class TestEventPayload:
    def test_none_dimensions_are_dropped(self) -> None:
        payload = EventPayload(type={"entity": "user", "phase": None})
        assert payload.type == {"entity": "user"}


class TestEntityEventEmitter:
    async def test_emit_dispatches_structured_event(self) -> None:
        dispatcher = EventDispatcher()
        handler = MagicMock()
        dispatcher.on(entity_event_matcher(entity="user", sub_phase="validate"), handler)

        emitter = EntityEventEmitter(
            dispatcher,
            entity="user",
            operation="create",
            context={"correlation_id": "c-1", "actor": {"id": "a"}},
        )
        await emitter.emit("post", {"errors": []}, sub_phase="validate", success_fail="success")

        handler.assert_called_once()
        payload = handler.call_args.args[0]
        assert payload.type == {
            "entity": "user",
            "operation": "create",
            "phase": "post",
            "subPhase": "validate",
            "successFail": "success",
        }
        assert payload.entity_name == "user"
        assert payload.correlation_id == "c-1"
        assert payload.context["actor"] == {"id": "a"}
        assert payload.data == {"errors": []}

    async def test_call_context_overrides_base_context(self) -> None:
        dispatcher = EventDispatcher()
        handler = MagicMock()
        dispatcher.on("*", handler)

        emitter = EntityEventEmitter(dispatcher, entity="user", operation="get", context={"tenant": "a"})
        await emitter.emit("pre", context={"tenant": "b"})

        assert handler.call_args.args[0].context == {"tenant": "b"}

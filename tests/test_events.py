"""Tests for the event bus."""

import uuid
from datetime import datetime

import pytest

from arc_data.events import EVENT_TYPES, EventBus


@pytest.fixture
def bus():
    return EventBus()


class TestSubscribe:
    def test_invalid_event_type(self, bus: EventBus):
        with pytest.raises(ValueError, match="Invalid event type"):
            bus.subscribe("request.created", lambda event: None)

    def test_all_event_types_accepted(self, bus: EventBus):
        for event_type in EVENT_TYPES:
            bus.subscribe(event_type, lambda event: None)

    def test_unsubscribe(self, bus: EventBus):
        received = []
        bus.subscribe("project.changed", received.append)
        assert bus.unsubscribe("project.changed", received.append) is True
        bus.emit("project.changed", {})
        assert received == []

    def test_unsubscribe_unknown_listener(self, bus: EventBus):
        assert bus.unsubscribe("project.changed", print) is False


class TestEmit:
    def test_payload_format(self, bus: EventBus):
        received = []
        bus.subscribe("request.changed", received.append)
        payload = bus.emit("request.changed", {"id": "r1"})

        assert received == [payload]
        assert payload["event_type"] == "request.changed"
        assert payload["data"] == {"id": "r1"}
        uuid.UUID(payload["event_id"])
        assert datetime.fromisoformat(payload["timestamp"]).tzinfo is not None

    def test_only_matching_listeners(self, bus: EventBus):
        changed, deleted = [], []
        bus.subscribe("request.changed", changed.append)
        bus.subscribe("request.deleted", deleted.append)
        bus.emit("request.deleted", {"id": "r1"})
        assert changed == []
        assert len(deleted) == 1

    def test_wildcard_receives_everything(self, bus: EventBus):
        received = []
        bus.subscribe("*", received.append)
        bus.emit("request.changed")
        bus.emit("data.imported")
        assert [event["event_type"] for event in received] == ["request.changed", "data.imported"]

    def test_delivery_order(self, bus: EventBus):
        order = []
        bus.subscribe("index.finished", lambda event: order.append("first"))
        bus.subscribe("*", lambda event: order.append("wildcard"))
        bus.subscribe("index.finished", lambda event: order.append("last"))
        bus.emit("index.finished")
        assert order == ["first", "wildcard", "last"]

    def test_failing_listener_does_not_stop_delivery(self, bus: EventBus, caplog):
        received = []

        def failing(event):
            raise RuntimeError("listener error")

        bus.subscribe("variable.changed", failing)
        bus.subscribe("variable.changed", received.append)
        bus.emit("variable.changed", {"value": {}})

        assert len(received) == 1
        assert "failed handling event variable.changed" in caplog.text

    def test_emit_invalid_type(self, bus: EventBus):
        with pytest.raises(ValueError, match="Invalid event type"):
            bus.emit("unknown.event")
        with pytest.raises(ValueError):
            bus.emit("*")

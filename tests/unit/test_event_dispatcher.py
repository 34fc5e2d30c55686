"""
Unit tests for EventDispatcher and orchestrator events.

Tests event subscription, emission, history and serialization.
"""

import pytest
from unittest.mock import Mock

from fetchgraph.core.enums import Stage
from fetchgraph.kernel.event_dispatcher import EventDispatcher
from fetchgraph.kernel.events import (
    DefinitionReleasedEvent,
    FetchEvent,
    FetchFailedEvent,
    OrchestratorEvent,
    OrchestratorEventType,
    StageChangedEvent,
    StoreWrittenEvent,
    SubscriptionEvent,
)


class TestEvents:
    """Tests for event dataclasses."""

    def test_default_types(self):
        """Each event class carries its own type."""
        assert SubscriptionEvent().event_type == OrchestratorEventType.SUBSCRIBED
        assert StoreWrittenEvent().event_type == OrchestratorEventType.STORE_WRITTEN
        assert StageChangedEvent().event_type == OrchestratorEventType.STAGE_CHANGED
        assert DefinitionReleasedEvent().event_type == OrchestratorEventType.DEFINITION_RELEASED
        assert FetchFailedEvent().event_type == OrchestratorEventType.FETCH_FAILED

    def test_unique_ids(self):
        assert OrchestratorEvent().event_id != OrchestratorEvent().event_id

    def test_stage_changed_to_dict(self):
        event = StageChangedEvent(
            definition_id="books", old_stage=None, new_stage=Stage.WAITING, state_version=4,
        )
        data = event.to_dict()
        assert data["event_type"] == "stage_changed"
        assert data["definition_id"] == "books"
        assert data["old_stage"] is None
        assert data["new_stage"] == "waiting"
        assert data["state_version"] == 4

    def test_fetch_failed_to_dict(self):
        event = FetchFailedEvent(
            definition_id="books", epoch=2, fetcher_key=("python", 1),
            error="ValueError('boom')", error_code=1001,
        )
        data = event.to_dict()
        assert data["epoch"] == 2
        assert data["fetcher_key"] == "('python', 1)"
        assert data["error_code"] == 1001

    def test_fetch_event_type_is_settable(self):
        event = FetchEvent(event_type=OrchestratorEventType.FETCH_DISCARDED, reason="superseded")
        assert event.to_dict()["event_type"] == "fetch_discarded"
        assert event.to_dict()["reason"] == "superseded"


class TestEventDispatcherBasics:
    """Tests for basic EventDispatcher functionality."""

    def test_creation(self):
        dispatcher = EventDispatcher(name="catalog")
        assert dispatcher.name == "catalog"
        assert dispatcher.handler_count == 0
        assert dispatcher.event_count == 0


class TestSubscription:
    """Tests for handler registration."""

    def test_subscribe_to_event_type(self):
        dispatcher = EventDispatcher()
        sub_id = dispatcher.subscribe(OrchestratorEventType.FETCH_FAILED, Mock())
        assert sub_id.startswith("sub_")
        assert dispatcher.handler_count == 1

    def test_no_duplicate_subscriptions(self):
        """The same handler is registered once per type."""
        dispatcher = EventDispatcher()
        handler = Mock()
        dispatcher.subscribe(OrchestratorEventType.FETCH_FAILED, handler)
        assert dispatcher.subscribe(OrchestratorEventType.FETCH_FAILED, handler) == ""
        assert dispatcher.subscribe_all(handler) != ""
        assert dispatcher.subscribe_all(handler) == ""
        assert dispatcher.handler_count == 2

    def test_unsubscribe(self):
        dispatcher = EventDispatcher()
        handler = Mock()
        dispatcher.subscribe(OrchestratorEventType.FETCH_FAILED, handler)

        assert dispatcher.unsubscribe(OrchestratorEventType.FETCH_FAILED, handler) is True
        assert dispatcher.unsubscribe(OrchestratorEventType.FETCH_FAILED, handler) is False
        assert dispatcher.handler_count == 0

    def test_unsubscribe_all(self):
        dispatcher = EventDispatcher()
        handler = Mock()
        dispatcher.subscribe_all(handler)

        assert dispatcher.unsubscribe_all(handler) is True
        assert dispatcher.unsubscribe_all(handler) is False

    def test_handler_summary(self):
        dispatcher = EventDispatcher()
        dispatcher.subscribe(OrchestratorEventType.STAGE_CHANGED, Mock())
        dispatcher.subscribe_all(Mock())
        assert dispatcher.get_handler_summary() == {"stage_changed": 1, "wildcard": 1}

    def test_clear_handlers(self):
        dispatcher = EventDispatcher()
        dispatcher.subscribe(OrchestratorEventType.STAGE_CHANGED, Mock())
        dispatcher.subscribe(OrchestratorEventType.FETCH_FAILED, Mock())
        dispatcher.subscribe_all(Mock())

        dispatcher.clear_handlers(OrchestratorEventType.STAGE_CHANGED)
        assert dispatcher.handler_count == 2

        dispatcher.clear_handlers()
        assert dispatcher.handler_count == 0


class TestEmission:
    """Tests for event delivery."""

    def test_typed_handler_receives_matching_events(self):
        dispatcher = EventDispatcher()
        handler = Mock()
        dispatcher.subscribe(OrchestratorEventType.STAGE_CHANGED, handler)

        event = StageChangedEvent(definition_id="a")
        dispatcher.emit(event)
        dispatcher.emit(StoreWrittenEvent(store_id="s"))

        handler.assert_called_once_with(event)

    def test_wildcard_receives_everything(self):
        dispatcher = EventDispatcher()
        handler = Mock()
        dispatcher.subscribe_all(handler)

        dispatcher.emit_many([StageChangedEvent(), StoreWrittenEvent()])

        assert handler.call_count == 2

    def test_failing_handler_isolated(self):
        """A raising handler does not stop delivery to the others."""
        dispatcher = EventDispatcher()
        broken = Mock(side_effect=RuntimeError("handler bug"))
        healthy = Mock()
        dispatcher.subscribe(OrchestratorEventType.STAGE_CHANGED, broken)
        dispatcher.subscribe_all(healthy)

        dispatcher.emit(StageChangedEvent())

        healthy.assert_called_once()

    def test_handler_may_unsubscribe_itself(self):
        dispatcher = EventDispatcher()
        calls = []

        def once(event):
            calls.append(event)
            dispatcher.unsubscribe_all(once)

        dispatcher.subscribe_all(once)
        dispatcher.emit(StageChangedEvent())
        dispatcher.emit(StageChangedEvent())

        assert len(calls) == 1

    def test_pause_drops_events(self):
        dispatcher = EventDispatcher()
        handler = Mock()
        dispatcher.subscribe_all(handler)

        dispatcher.pause()
        assert dispatcher.is_paused
        dispatcher.emit(StageChangedEvent())
        dispatcher.resume()
        dispatcher.emit(StageChangedEvent())

        assert handler.call_count == 1
        assert dispatcher.event_count == 1


class TestHistory:
    """Tests for event history."""

    def test_history_bounded(self):
        dispatcher = EventDispatcher(max_history=3)
        for i in range(5):
            dispatcher.emit(StageChangedEvent(definition_id=f"d{i}"))

        history = dispatcher.get_history(limit=10)
        assert [e.definition_id for e in history] == ["d2", "d3", "d4"]

    def test_history_filters(self):
        dispatcher = EventDispatcher()
        dispatcher.emit(StageChangedEvent(definition_id="a"))
        dispatcher.emit(StageChangedEvent(definition_id="b"))
        dispatcher.emit(StoreWrittenEvent(definition_id="a"))

        assert len(dispatcher.get_history(event_type=OrchestratorEventType.STAGE_CHANGED)) == 2
        assert len(dispatcher.get_history(definition_id="a")) == 2

    def test_clear_history(self):
        dispatcher = EventDispatcher()
        dispatcher.emit(StageChangedEvent())
        dispatcher.clear_history()
        assert dispatcher.event_count == 0

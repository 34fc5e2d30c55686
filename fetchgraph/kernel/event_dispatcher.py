"""
fetchgraph EventDispatcher

Instance-scoped event dispatcher owned by one Orchestrator.

Each orchestrator gets its own dispatcher, so tests and independent
graphs never share handlers or history.
"""

from typing import Callable, Dict, List, Optional
import logging

from fetchgraph.kernel.events import OrchestratorEvent, OrchestratorEventType


logger = logging.getLogger("kernel.event_dispatcher")


# Type alias for event handlers
EventHandler = Callable[[OrchestratorEvent], None]


class EventDispatcher:
    """
    Dispatches orchestrator events to registered handlers.

    Features:
    - Type-specific subscriptions
    - Wildcard subscriptions (receive all events)
    - Bounded event history
    - Pause/resume (events emitted while paused are dropped)

    Usage:
        dispatcher = EventDispatcher(name="catalog")

        # Subscribe to specific event type
        dispatcher.subscribe(OrchestratorEventType.FETCH_FAILED, handler)

        # Subscribe to all events
        dispatcher.subscribe_all(audit_handler)
    """

    def __init__(self, name: str = "", max_history: int = 100):
        """
        Initialize the event dispatcher.

        Args:
            name: Label used in log messages
            max_history: Maximum events to retain in history
        """
        self._name = name
        self._max_history = max_history

        # event_type -> handlers, in subscription order
        self._handlers: Dict[OrchestratorEventType, List[EventHandler]] = {}
        self._wildcard_handlers: List[EventHandler] = []

        self._history: List[OrchestratorEvent] = []
        self._subscription_counter = 0
        self._paused = False

        logger.debug(f"EventDispatcher created (name={name!r})")

    @property
    def name(self) -> str:
        return self._name

    def subscribe(
        self,
        event_type: OrchestratorEventType,
        handler: EventHandler,
    ) -> str:
        """
        Subscribe to events of a specific type.

        Returns:
            Subscription ID, or "" if the handler was already registered
        """
        handlers = self._handlers.setdefault(event_type, [])
        if handler in handlers:
            return ""

        handlers.append(handler)
        self._subscription_counter += 1
        sub_id = f"sub_{self._subscription_counter}"
        logger.debug(f"Subscribed {sub_id} to {event_type.value}")
        return sub_id

    def subscribe_all(self, handler: EventHandler) -> str:
        """Subscribe to all events (wildcard)."""
        if handler in self._wildcard_handlers:
            return ""

        self._wildcard_handlers.append(handler)
        self._subscription_counter += 1
        sub_id = f"sub_all_{self._subscription_counter}"
        logger.debug(f"Subscribed {sub_id} as wildcard")
        return sub_id

    def unsubscribe(
        self,
        event_type: OrchestratorEventType,
        handler: EventHandler,
    ) -> bool:
        """Remove a type-specific handler. Returns True if it was registered."""
        handlers = self._handlers.get(event_type, [])
        if handler not in handlers:
            return False
        handlers.remove(handler)
        logger.debug(f"Unsubscribed handler from {event_type.value}")
        return True

    def unsubscribe_all(self, handler: EventHandler) -> bool:
        """Remove a wildcard handler. Returns True if it was registered."""
        if handler not in self._wildcard_handlers:
            return False
        self._wildcard_handlers.remove(handler)
        logger.debug("Unsubscribed wildcard handler")
        return True

    def emit(self, event: OrchestratorEvent) -> None:
        """
        Deliver an event to typed handlers, then to wildcard handlers.

        A failing handler is logged and does not stop delivery.
        """
        if self._paused:
            logger.debug(f"Dispatcher paused, dropping: {event.event_type.value}")
            return

        self._history.append(event)
        if len(self._history) > self._max_history:
            self._history = self._history[-self._max_history:]

        logger.debug(
            f"Emitting {event.event_type.value} "
            f"(definition={event.definition_id}, version={event.state_version})"
        )

        # Copies: handlers may (un)subscribe while being notified
        for handler in list(self._handlers.get(event.event_type, [])):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Handler failed for {event.event_type.value}: {e}")

        for handler in list(self._wildcard_handlers):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Wildcard handler failed: {e}")

    def emit_many(self, events: List[OrchestratorEvent]) -> None:
        for event in events:
            self.emit(event)

    def pause(self) -> None:
        """Pause event emission (events are dropped)."""
        self._paused = True
        logger.debug("EventDispatcher paused")

    def resume(self) -> None:
        self._paused = False
        logger.debug("EventDispatcher resumed")

    @property
    def is_paused(self) -> bool:
        return self._paused

    def clear_handlers(self, event_type: Optional[OrchestratorEventType] = None) -> None:
        """Clear handlers of one type, or every handler when event_type is None."""
        if event_type:
            self._handlers.pop(event_type, None)
            logger.debug(f"Cleared handlers for {event_type.value}")
        else:
            self._handlers.clear()
            self._wildcard_handlers.clear()
            logger.debug("Cleared all handlers")

    def get_history(
        self,
        limit: int = 20,
        event_type: Optional[OrchestratorEventType] = None,
        definition_id: Optional[str] = None,
    ) -> List[OrchestratorEvent]:
        """
        Get recent events, oldest first.

        Args:
            limit: Maximum events to return
            event_type: Filter by type (optional)
            definition_id: Filter by definition (optional)
        """
        history = self._history
        if event_type:
            history = [e for e in history if e.event_type == event_type]
        if definition_id:
            history = [e for e in history if e.definition_id == definition_id]
        return history[-limit:]

    def clear_history(self) -> None:
        self._history.clear()
        logger.debug("Cleared event history")

    @property
    def handler_count(self) -> int:
        """Get total number of registered handlers."""
        count = sum(len(handlers) for handlers in self._handlers.values())
        return count + len(self._wildcard_handlers)

    @property
    def event_count(self) -> int:
        return len(self._history)

    def get_handler_summary(self) -> Dict[str, int]:
        """Map event type name (and "wildcard") to handler count."""
        summary = {
            event_type.value: len(handlers)
            for event_type, handlers in self._handlers.items()
        }
        summary["wildcard"] = len(self._wildcard_handlers)
        return summary

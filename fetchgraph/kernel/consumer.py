"""
fetchgraph Data Consumer

Binds a fixed set of named definitions to an Orchestrator on behalf of
one consumer: subscribes them on mount, reads their resolved values and
writes external input through named setters.
"""

from __future__ import annotations

import logging
from functools import partial
from typing import Any, Callable, Dict, List, Mapping, Optional, Set

from fetchgraph.core.definition import Definition
from fetchgraph.core.ids import IdGenerator, get_default_generator
from fetchgraph.dependencies.graph import unique_dependencies
from fetchgraph.kernel.events import OrchestratorEvent, OrchestratorEventType
from fetchgraph.kernel.orchestrator import Orchestrator

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[OrchestratorEvent], None]

_CHANGE_EVENTS = frozenset({
    OrchestratorEventType.STAGE_CHANGED,
    OrchestratorEventType.STORE_WRITTEN,
})


class DataConsumer:
    """
    One consumer's view of the orchestrator.

    Usage:
        with DataConsumer(orchestrator, {"books": books}, setters={"query": query}) as consumer:
            consumer.setters["query"]("python")
            await orchestrator.settle()
            consumer.read()["books"]["value"]
    """

    def __init__(
        self,
        orchestrator: Orchestrator,
        dependencies: Mapping[str, Definition],
        setters: Optional[Mapping[str, Definition]] = None,
        consumer_id: Optional[str] = None,
        id_generator: Optional[IdGenerator] = None,
    ):
        self._orchestrator = orchestrator
        self._dependencies: Dict[str, Definition] = dict(dependencies)
        self._id = consumer_id or (id_generator or get_default_generator()).next("consumer")
        self._mounted = False
        self._listeners: List[Callable[[OrchestratorEvent], None]] = []

        self.setters: Dict[str, Callable[[Any], None]] = {
            name: partial(orchestrator.set_store, definition=definition)
            for name, definition in (setters or {}).items()
        }

        # Definitions whose changes are relevant to this consumer
        watched = list(self._dependencies.values())
        for definition in self._dependencies.values():
            watched.extend(unique_dependencies(definition))
        self._watched_ids: Set[str] = {d.id for d in watched}
        self._watched_store_ids: Set[str] = {d.store_id for d in watched}

    @property
    def consumer_id(self) -> str:
        return self._id

    @property
    def mounted(self) -> bool:
        return self._mounted

    @property
    def dependencies(self) -> Mapping[str, Definition]:
        return dict(self._dependencies)

    def mount(self) -> None:
        """Subscribe every dependency under this consumer's id."""
        if self._mounted:
            return
        for definition in self._dependencies.values():
            self._orchestrator.subscribe(self._id, definition)
        self._mounted = True
        logger.debug(f"Mounted {self._id} ({len(self._dependencies)} dependencies)")

    def unmount(self) -> None:
        """Unsubscribe every dependency and drop change listeners."""
        if not self._mounted:
            return
        for listener in self._listeners:
            self._orchestrator.dispatcher.unsubscribe_all(listener)
        self._listeners.clear()
        for definition in self._dependencies.values():
            self._orchestrator.unsubscribe(self._id, definition)
        self._mounted = False
        logger.debug(f"Unmounted {self._id}")

    def read(self) -> Dict[str, Any]:
        return self._orchestrator.read(self._dependencies)

    def on_change(self, callback: ChangeCallback) -> Callable[[OrchestratorEvent], None]:
        """
        Call `callback` for stage/store events of this consumer's definitions.

        Returns the registered listener; it is removed on unmount.
        """

        def listener(event: OrchestratorEvent) -> None:
            if event.event_type not in _CHANGE_EVENTS:
                return
            store_id = getattr(event, "store_id", None)
            if event.definition_id in self._watched_ids or store_id in self._watched_store_ids:
                callback(event)

        self._orchestrator.dispatcher.subscribe_all(listener)
        self._listeners.append(listener)
        return listener

    def __enter__(self) -> "DataConsumer":
        self.mount()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.unmount()

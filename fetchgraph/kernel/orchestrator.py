"""
fetchgraph Orchestrator

Single writer of OrchestratorState. Every mutation (subscribe,
unsubscribe, store write, fetch settlement, stage proposal) is an
updater appended to a FIFO queue and drained one at a time:

    1. apply the updater to the committed state
    2. derive_status on the proposed state
    3. commit, then emit events for the differences
    4. plan_followups on the committed state; proposals are enqueued,
       launches handed to the FetchScheduler

Re-entrant enqueues during a drain are queued, never nested.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional, Tuple

from fetchgraph.bootstrap.config import OrchestratorConfig
from fetchgraph.core.definition import Definition
from fetchgraph.core.enums import Stage
from fetchgraph.dependencies.graph import active_definitions
from fetchgraph.dependencies.parameters import build_parameters, resolve
from fetchgraph.dependencies.registry import DefinitionRegistry
from fetchgraph.errors.aggregator import FailureAggregator
from fetchgraph.errors.taxonomy import FetchFailure, ResolutionDivergedError
from fetchgraph.kernel import subscriptions
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
from fetchgraph.kernel.scheduler import FetchScheduler
from fetchgraph.kernel.stage_machine import (
    LaunchRequest,
    StageTransition,
    derive_status,
    plan_followups,
)
from fetchgraph.kernel.state import OrchestratorState, StateSnapshot

logger = logging.getLogger("kernel.orchestrator")


# state -> proposed state, or None for "no change"
Updater = Callable[[OrchestratorState], Optional[OrchestratorState]]

_MISSING = object()


class Orchestrator:
    """
    Resolves subscribed definitions and keeps the store current.

    Usage:
        orchestrator = Orchestrator()
        orchestrator.subscribe("consumer_1", books)
        await orchestrator.settle()
        orchestrator.read({"books": books})
    """

    def __init__(
        self,
        config: Optional[OrchestratorConfig] = None,
        dispatcher: Optional[EventDispatcher] = None,
        registry: Optional[DefinitionRegistry] = None,
    ):
        self._config = config or OrchestratorConfig()
        self._registry = registry if registry is not None else DefinitionRegistry()
        self._dispatcher = dispatcher or EventDispatcher(
            name="orchestrator", max_history=self._config.event_history,
        )
        self._scheduler = FetchScheduler(
            surface_failures_to_loop=self._config.surface_failures_to_loop,
        )
        self._failures = FailureAggregator(max_failures=self._config.max_failures)

        self._state = OrchestratorState()
        self._version = 0

        self._pending: Deque[Tuple[str, Updater]] = deque()
        self._draining = False

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def config(self) -> OrchestratorConfig:
        return self._config

    @property
    def registry(self) -> DefinitionRegistry:
        return self._registry

    @property
    def dispatcher(self) -> EventDispatcher:
        return self._dispatcher

    @property
    def scheduler(self) -> FetchScheduler:
        return self._scheduler

    @property
    def failures(self) -> FailureAggregator:
        return self._failures

    @property
    def version(self) -> int:
        """Number of commits so far."""
        return self._version

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def subscribe(self, subscriber_id: str, definition: Definition) -> None:
        """
        Declare interest of `subscriber_id` in `definition`.

        Raises:
            ConfigurationError: the definition graph is invalid
        """
        self._registry.register(definition)

        def apply(state: OrchestratorState) -> OrchestratorState:
            return subscriptions.subscribe(state, subscriber_id, definition)

        self._enqueue(f"subscribe {subscriber_id} -> {definition.id}", apply)
        self._emit(SubscriptionEvent(
            event_type=OrchestratorEventType.SUBSCRIBED,
            definition_id=definition.id,
            subscriber_id=subscriber_id,
        ))

    def unsubscribe(self, subscriber_id: str, definition: Definition) -> None:
        """Withdraw one (subscriber, definition) pair and release orphans."""
        purge = self._config.purge_store_on_release

        def apply(state: OrchestratorState) -> OrchestratorState:
            return subscriptions.unsubscribe(
                state, subscriber_id, definition, self._registry, purge_store=purge,
            )

        self._enqueue(f"unsubscribe {subscriber_id} -> {definition.id}", apply)
        self._emit(SubscriptionEvent(
            event_type=OrchestratorEventType.UNSUBSCRIBED,
            definition_id=definition.id,
            subscriber_id=subscriber_id,
        ))

    def set_store(self, value: Any, definition: Definition) -> None:
        """Write `value` into the store slot of `definition`."""

        def apply(state: OrchestratorState) -> OrchestratorState:
            return state.with_store(definition.store_id, value)

        self._enqueue(f"set_store {definition.store_id}", apply)

    def snapshot(self) -> StateSnapshot:
        return StateSnapshot.from_state(self._state, self._version)

    def read(self, dependencies: Mapping[str, Definition]) -> Dict[str, Any]:
        """Resolve named definitions against the committed state."""
        return resolve(dependencies, self._state.store, self._state.status)

    def stage(self, definition: Definition) -> Optional[Stage]:
        """Current stage, or None while the definition is inactive."""
        return self._state.status.get(definition.id)

    def is_active(self, definition: Definition) -> bool:
        return definition.id in self._state.targeted_ids()

    def active_definitions(self) -> List[Definition]:
        return active_definitions(self._state.subscriptions, self._registry)

    async def settle(self, raise_errors: bool = True) -> List[BaseException]:
        """
        Wait until no fetch is in flight.

        Raises:
            FetchFailure: first failure since the last settle (raise_errors)
        """
        return await self._scheduler.settle(raise_errors=raise_errors)

    # =========================================================================
    # UPDATE QUEUE
    # =========================================================================

    def _enqueue(self, label: str, updater: Updater) -> None:
        self._pending.append((label, updater))
        if self._draining:
            return

        self._draining = True
        processed = 0
        errors: List[Exception] = []
        try:
            while self._pending:
                processed += 1
                if processed > self._config.max_updates_per_drain:
                    pending = [queued for queued, _ in self._pending]
                    self._pending.clear()
                    raise ResolutionDivergedError(
                        f"Update queue did not drain after "
                        f"{self._config.max_updates_per_drain} updates",
                        pending=pending,
                    )

                label, updater = self._pending.popleft()
                try:
                    self._apply(label, updater)
                except ResolutionDivergedError:
                    self._pending.clear()
                    raise
                except Exception as e:
                    logger.error(f"Update '{label}' failed: {e}")
                    errors.append(e)
        finally:
            self._draining = False

        if errors:
            raise errors[0]

    def _apply(self, label: str, updater: Updater) -> None:
        previous = self._state
        proposed = updater(previous)
        if proposed is None or proposed is previous:
            return

        active = active_definitions(proposed.subscriptions, self._registry)
        cache: Dict[str, Any] = {}
        derived = derive_status(active, proposed.store, proposed.status, cache)
        committed = proposed
        if derived != dict(proposed.status):
            committed = OrchestratorState(
                store=proposed.store,
                status=derived,
                subscriptions=proposed.subscriptions,
            )

        self._state = committed
        self._version += 1
        logger.debug(f"Committed v{self._version}: {label}")

        self._release_bookkeeping(previous, committed)
        self._emit_changes(label, previous, proposed, committed)

        # Derivation cache was built against the proposed status
        plan = plan_followups(
            active,
            previous.status,
            committed.store,
            committed.status,
            self._scheduler.fetch_keys,
            {},
        )
        for transition in plan.transitions:
            self._enqueue_transition(transition)
        for request in plan.launches:
            self._launch(request)

    def _enqueue_transition(self, transition: StageTransition) -> None:
        def apply(state: OrchestratorState) -> Optional[OrchestratorState]:
            if not transition.applies_to(state.status):
                return None
            return state.with_status({transition.definition_id: transition.to_stage})

        self._enqueue(
            f"{transition.definition_id} -> {transition.to_stage.value} ({transition.reason})",
            apply,
        )

    def _release_bookkeeping(
        self,
        previous: OrchestratorState,
        committed: OrchestratorState,
    ) -> None:
        released = [d for d in previous.status if d not in committed.status]
        for definition_id in released:
            self._scheduler.release(definition_id)
            store_id = self._registry[definition_id].store_id
            logger.info(f"Released {definition_id}")
            self._emit(DefinitionReleasedEvent(
                definition_id=definition_id,
                store_id=store_id,
                store_retained=store_id in committed.store,
            ))

    # =========================================================================
    # FETCHES
    # =========================================================================

    def _launch(self, request: LaunchRequest) -> None:
        self._scheduler.launch(request, self._on_fetch_success, self._on_fetch_failure)
        self._emit(FetchEvent(
            event_type=OrchestratorEventType.FETCH_STARTED,
            definition_id=request.definition_id,
            epoch=self._scheduler.epoch(request.definition_id),
            fetcher_key=request.fetcher_key,
        ))

    def _on_fetch_success(self, request: LaunchRequest, epoch: int, response: Any) -> None:
        definition = request.definition

        def apply(state: OrchestratorState) -> Optional[OrchestratorState]:
            if state.status.get(definition.id) != Stage.FETCHING:
                return self._discard(request, epoch, "stage changed")
            if not self._scheduler.is_current(definition.id, epoch):
                return self._discard(request, epoch, "superseded")

            value = response
            if definition.map_fetcher_response is not None:
                parameters = build_parameters(definition, state.store, state.status)
                try:
                    value = definition.map_fetcher_response(
                        response, parameters.mapped, parameters.raw,
                    )
                except Exception as e:
                    failure = FetchFailure(
                        definition.id, e, fetcher_key=request.fetcher_key, epoch=epoch,
                    )
                    self._record_failure(request, epoch, failure)
                    self._scheduler.record_key(definition.id, request.fetcher_key)
                    return state.with_status({definition.id: Stage.ERROR})

            self._emit(FetchEvent(
                event_type=OrchestratorEventType.FETCH_SUCCEEDED,
                definition_id=definition.id,
                epoch=epoch,
                fetcher_key=request.fetcher_key,
            ))
            return state.with_store(definition.store_id, value).with_status(
                {definition.id: Stage.IDLE}
            )

        self._enqueue(f"fetch success {definition.id}#{epoch}", apply)

    def _discard(self, request: LaunchRequest, epoch: int, reason: str) -> None:
        logger.debug(f"Discarding result of {request.definition_id}#{epoch}: {reason}")
        self._emit(FetchEvent(
            event_type=OrchestratorEventType.FETCH_DISCARDED,
            definition_id=request.definition_id,
            epoch=epoch,
            fetcher_key=request.fetcher_key,
            reason=reason,
        ))
        return None

    def _on_fetch_failure(self, request: LaunchRequest, epoch: int, failure: FetchFailure) -> None:
        definition_id = request.definition_id

        def apply(state: OrchestratorState) -> Optional[OrchestratorState]:
            stage = state.status.get(definition_id)
            if stage is None or stage == Stage.IDLE:
                return None
            if self._scheduler.is_released(definition_id, epoch):
                return None
            self._scheduler.record_key(definition_id, request.fetcher_key)
            return state.with_status({definition_id: Stage.ERROR})

        self._record_failure(request, epoch, failure)
        self._enqueue(f"fetch failure {definition_id}#{epoch}", apply)

    def _record_failure(self, request: LaunchRequest, epoch: int, failure: FetchFailure) -> None:
        logger.error(
            f"Fetch failed for {request.definition_id} (epoch {epoch}): {failure.cause!r}"
        )
        self._failures.add(failure)
        self._emit(FetchFailedEvent(
            definition_id=request.definition_id,
            epoch=epoch,
            fetcher_key=request.fetcher_key,
            error=repr(failure.cause),
            error_code=failure.code.value,
        ))

    # =========================================================================
    # EVENTS
    # =========================================================================

    def _emit(self, event: OrchestratorEvent) -> None:
        event.state_version = self._version
        self._dispatcher.emit(event)

    def _emit_changes(
        self,
        label: str,
        previous: OrchestratorState,
        proposed: OrchestratorState,
        committed: OrchestratorState,
    ) -> None:
        source = label.split(" ", 1)[0]
        for store_id, value in committed.store.items():
            if previous.store.get(store_id, _MISSING) is not value:
                self._emit(StoreWrittenEvent(store_id=store_id, source=source))
        for store_id in previous.store:
            if store_id not in committed.store:
                self._emit(StoreWrittenEvent(store_id=store_id, source=source, removed=True))

        # Updater step first, then derivation, so both hops are observable
        self._emit_stage_diff(previous.status, proposed.status)
        self._emit_stage_diff(proposed.status, committed.status)

    def _emit_stage_diff(
        self,
        before: Mapping[str, Stage],
        after: Mapping[str, Stage],
    ) -> None:
        for definition_id in list(before) + [d for d in after if d not in before]:
            old, new = before.get(definition_id), after.get(definition_id)
            if old == new:
                continue
            logger.debug(f"{definition_id}: {old.value if old else None} -> {new.value if new else None}")
            self._emit(StageChangedEvent(
                definition_id=definition_id, old_stage=old, new_stage=new,
            ))

"""
fetchgraph Orchestrator State

Immutable (store, status, subscriptions) triple. The orchestrator is the
only component that commits a new state; everything else receives a
state and returns a proposed successor.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Set, Tuple

from fetchgraph.core.enums import Stage


@dataclass(frozen=True)
class Subscription:
    """One subscriber's interest in one definition."""
    subscriber_id: str
    definition_id: str


@dataclass(frozen=True)
class OrchestratorState:
    """
    Complete orchestrator state.

    The mappings held here are never mutated after construction; the
    with_* helpers always copy.
    """
    store: Mapping[str, Any] = field(default_factory=dict)
    status: Mapping[str, Stage] = field(default_factory=dict)
    subscriptions: Tuple[Subscription, ...] = ()

    def with_store(self, store_id: str, value: Any) -> "OrchestratorState":
        store = dict(self.store)
        store[store_id] = value
        return replace(self, store=store)

    def without_store(self, store_ids: Iterable[str]) -> "OrchestratorState":
        drop = set(store_ids)
        return replace(self, store={k: v for k, v in self.store.items() if k not in drop})

    def with_status(self, updates: Mapping[str, Stage]) -> "OrchestratorState":
        status = dict(self.status)
        status.update(updates)
        return replace(self, status=status)

    def without_status(self, definition_ids: Iterable[str]) -> "OrchestratorState":
        drop = set(definition_ids)
        return replace(self, status={k: v for k, v in self.status.items() if k not in drop})

    def targeted_ids(self) -> Set[str]:
        """Ids of definitions with at least one subscription."""
        return {sub.definition_id for sub in self.subscriptions}


@dataclass(frozen=True)
class StateSnapshot:
    """Read-only view of a committed state, handed to external readers."""
    store: Mapping[str, Any]
    status: Mapping[str, Stage]
    subscriptions: Tuple[Subscription, ...]
    version: int = 0

    @classmethod
    def from_state(cls, state: OrchestratorState, version: int = 0) -> "StateSnapshot":
        return cls(
            store=MappingProxyType(dict(state.store)),
            status=MappingProxyType(dict(state.status)),
            subscriptions=state.subscriptions,
            version=version,
        )

    def subscribers_of(self, definition_id: str) -> Tuple[str, ...]:
        return tuple(
            sub.subscriber_id for sub in self.subscriptions
            if sub.definition_id == definition_id
        )

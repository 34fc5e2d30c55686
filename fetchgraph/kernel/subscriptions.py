"""
fetchgraph Subscription Manager

Reference-counted interest in definitions, expressed as pure reducers
over OrchestratorState.

Cascade rules:
- The first time a definition is subscribed (it owns no cascade
  subscriptions yet) every entry of its flattened dependency list is
  subscribed with the definition's own id as subscriber.
- When a definition is no longer targeted by any subscription, the
  cascade subscriptions it owns are removed, repeated until no orphaned
  owner remains.

A newly active definition starts WAITING; a definition that loses its
last subscription loses its status entry.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Container, List, Mapping, Set

from fetchgraph.core.definition import Definition
from fetchgraph.core.enums import Stage
from fetchgraph.dependencies.graph import flatten_dependencies
from fetchgraph.kernel.state import OrchestratorState, Subscription

logger = logging.getLogger(__name__)


def add_subscription(
    state: OrchestratorState,
    subscriber_id: str,
    definition: Definition,
) -> OrchestratorState:
    """Append one (subscriber, definition) pair."""
    subscriptions = state.subscriptions + (Subscription(subscriber_id, definition.id),)
    status = state.status
    if definition.id not in status:
        status = dict(status)
        status[definition.id] = Stage.WAITING
    return replace(state, subscriptions=subscriptions, status=status)


def remove_subscription(
    state: OrchestratorState,
    subscriber_id: str,
    definition: Definition,
) -> OrchestratorState:
    """Remove every exact (subscriber, definition) pair."""
    subscriptions = tuple(
        sub for sub in state.subscriptions
        if not (sub.definition_id == definition.id and sub.subscriber_id == subscriber_id)
    )
    return replace(state, subscriptions=subscriptions)


def owns_cascade(state: OrchestratorState, definition_id: str) -> bool:
    """True once a definition has subscribed its dependencies."""
    return any(sub.subscriber_id == definition_id for sub in state.subscriptions)


def subscribe(
    state: OrchestratorState,
    subscriber_id: str,
    definition: Definition,
) -> OrchestratorState:
    updated = add_subscription(state, subscriber_id, definition)
    if not owns_cascade(state, definition.id):
        for dependency in flatten_dependencies(definition):
            updated = add_subscription(updated, definition.id, dependency)
    return updated


def unsubscribe(
    state: OrchestratorState,
    subscriber_id: str,
    definition: Definition,
    definitions: Mapping[str, Definition],
    purge_store: bool = False,
) -> OrchestratorState:
    updated = remove_subscription(state, subscriber_id, definition)
    updated = release_cascades(updated, definitions)
    return release_inactive(state, updated, definitions, purge_store)


def release_cascades(
    state: OrchestratorState,
    definition_ids: Container[str],
) -> OrchestratorState:
    """Drop cascade subscriptions owned by definitions nobody targets."""
    subscriptions = state.subscriptions
    while True:
        targeted = {sub.definition_id for sub in subscriptions}
        orphans = {
            sub.subscriber_id for sub in subscriptions
            if sub.subscriber_id in definition_ids and sub.subscriber_id not in targeted
        }
        if not orphans:
            break
        subscriptions = tuple(sub for sub in subscriptions if sub.subscriber_id not in orphans)
    return replace(state, subscriptions=subscriptions)


def release_inactive(
    before: OrchestratorState,
    after: OrchestratorState,
    definitions: Mapping[str, Definition],
    purge_store: bool = False,
) -> OrchestratorState:
    """
    Remove status entries of definitions that just became inactive.

    With purge_store, their store slots are removed too unless a still
    active definition shares the slot.
    """
    still_active = after.targeted_ids()
    released: List[str] = [
        definition_id for definition_id in before.status
        if definition_id not in still_active
    ]
    if not released:
        return after

    result = after.without_status(released)
    if purge_store:
        kept_slots: Set[str] = {definitions[d].store_id for d in still_active}
        dropped = {definitions[d].store_id for d in released} - kept_slots
        result = result.without_store(dropped)

    logger.debug(f"Released {len(released)} definition(s): {released}")
    return result

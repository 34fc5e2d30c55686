"""
fetchgraph Stage State Machine

Per-definition lifecycle:

    WAITING        -> FETCHING | WAITING_INPUT   (dependencies IDLE)
    WAITING_INPUT  -> IDLE                       (data available)
    FETCHING       -> IDLE | ERROR               (fetch settled)
    ERROR          -> FETCHING                   (key changed, dependencies IDLE)
    FETCHING|ERROR -> IDLE                       (data available)
    IDLE           -> WAITING                    (data or a dependency invalid)

Two pure steps run on every commit:

- derive_status: invalid definitions fall back to WAITING and WAITING
  definitions whose dependencies settled move on.
- plan_followups: proposals (stage transitions and fetch launches) that
  re-enter the update queue after the commit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Sequence

from fetchgraph.core.definition import Definition
from fetchgraph.core.enums import RECONCILABLE_STAGES, Stage
from fetchgraph.dependencies.graph import flatten_dependencies
from fetchgraph.dependencies.invalidation import invalid_definitions
from fetchgraph.dependencies.parameters import (
    ParameterCache,
    Parameters,
    build_parameters,
)

logger = logging.getLogger(__name__)


# =============================================================================
# PROPOSALS
# =============================================================================

@dataclass(frozen=True)
class StageTransition:
    """
    Compare-and-set stage change.

    Applied only if the definition is still in one of `from_stages` when
    the proposal is drained.
    """
    definition_id: str
    from_stages: FrozenSet[Stage]
    to_stage: Stage
    reason: str = ""

    def applies_to(self, status: Mapping[str, Stage]) -> bool:
        return status.get(self.definition_id) in self.from_stages


@dataclass(frozen=True)
class LaunchRequest:
    """A fetch to start, with the parameters and key computed at planning."""
    definition: Definition
    parameters: Parameters
    fetcher_key: Any = None

    @property
    def definition_id(self) -> str:
        return self.definition.id


@dataclass
class FollowupPlan:
    transitions: List[StageTransition] = field(default_factory=list)
    launches: List[LaunchRequest] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.transitions and not self.launches


# =============================================================================
# DERIVATION
# =============================================================================

def derive_status(
    active: Sequence[Definition],
    store: Mapping[str, Any],
    status: Mapping[str, Stage],
    cache: Optional[ParameterCache] = None,
) -> Dict[str, Stage]:
    """
    Compute the status table implied by the current store.

    Returns a new dict; `status` is not modified. Applying the function
    to its own output yields the same table.
    """
    next_status = dict(status)

    for definition in invalid_definitions(active, store, status, cache):
        next_status[definition.id] = Stage.WAITING

    for definition in active:
        if next_status.get(definition.id) != Stage.WAITING:
            continue
        dependencies = flatten_dependencies(definition)
        if all(next_status.get(dep.id) == Stage.IDLE for dep in dependencies):
            next_status[definition.id] = (
                Stage.FETCHING if definition.has_fetcher else Stage.WAITING_INPUT
            )

    return next_status


def plan_followups(
    active: Sequence[Definition],
    previous_status: Mapping[str, Stage],
    store: Mapping[str, Any],
    status: Mapping[str, Stage],
    fetch_keys: Mapping[str, Any],
    cache: Optional[ParameterCache] = None,
) -> FollowupPlan:
    """
    Propose what should happen after a commit.

    Args:
        active: active definitions of the committed state
        previous_status: status table of the previous commit
        store: committed store
        status: committed status table
        fetch_keys: key snapshot recorded per definition at the last
            invocation or failure
        cache: parameter cache valid for (store, status)

    Returns:
        FollowupPlan with stage transitions and fetch launches
    """
    plan = FollowupPlan()
    cache = {} if cache is None else cache

    for definition in active:
        stage = status.get(definition.id)

        if stage == Stage.WAITING_INPUT:
            parameters = build_parameters(definition, store, status, cache)
            if definition.is_data_available(parameters.mapped, parameters.raw):
                plan.transitions.append(StageTransition(
                    definition.id, frozenset({Stage.WAITING_INPUT}), Stage.IDLE,
                    reason="input_available",
                ))
            continue

        if stage not in RECONCILABLE_STAGES:
            continue

        parameters = build_parameters(definition, store, status, cache)
        if definition.is_data_available(parameters.mapped, parameters.raw):
            plan.transitions.append(StageTransition(
                definition.id, frozenset({stage}), Stage.IDLE,
                reason="data_available",
            ))
            continue

        # Only fetch on top of settled dependencies
        dependencies = flatten_dependencies(definition)
        if not all(status.get(dep.id) == Stage.IDLE for dep in dependencies):
            continue

        just_entered = (
            stage == Stage.FETCHING
            and previous_status.get(definition.id) not in RECONCILABLE_STAGES
        )

        key = None
        if definition.fetcher_key is not None:
            key = definition.fetcher_key(parameters.mapped, parameters.raw)
        key_changed = (
            definition.fetcher_key is not None
            and not just_entered
            and key != fetch_keys.get(definition.id)
        )

        if not (just_entered or key_changed):
            continue

        if stage == Stage.ERROR:
            plan.transitions.append(StageTransition(
                definition.id, frozenset({Stage.ERROR}), Stage.FETCHING,
                reason="key_changed",
            ))
        logger.debug(
            f"Planning fetch for {definition.id} "
            f"({'entered' if just_entered else 'key changed'})"
        )
        plan.launches.append(LaunchRequest(definition, parameters, key))

    return plan

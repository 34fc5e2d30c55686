"""
fetchgraph Invalidation

Orders active definitions along their dependency chains and decides
which of them currently hold untrustworthy data.

A definition is invalid when one of its transitive dependencies is
invalid, or when it is IDLE and its availability predicate no longer
holds. Definitions in any other stage are left alone so a resolution
pass never re-triggers an operation already in progress.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set

from fetchgraph.core.definition import Definition
from fetchgraph.core.enums import Stage
from fetchgraph.dependencies.graph import dedupe, dependencies_object, flatten_dependencies
from fetchgraph.dependencies.parameters import ParameterCache, is_available
from fetchgraph.errors.taxonomy import ResolutionDivergedError

logger = logging.getLogger(__name__)


def _reachable_ids(definition: Definition) -> Set[str]:
    """Ids reachable through dependencies, visiting each definition once."""
    seen: Set[str] = set()
    stack = list(dependencies_object(definition).values())
    while stack:
        dependency = stack.pop()
        if dependency.id in seen:
            continue
        seen.add(dependency.id)
        stack.extend(dependencies_object(dependency).values())
    return seen


def dependency_order(definitions: Sequence[Definition]) -> List[Definition]:
    """
    Order definitions so every definition follows its dependencies.

    Fixed-point iteration: each scan accepts every definition whose
    transitive dependencies (within the given set) are already accepted,
    in scan order. A scan that accepts nothing means the graph is cyclic.

    Raises:
        ResolutionDivergedError: no progress was made in a scan
    """
    pending = dedupe(definitions)
    member_ids = {definition.id for definition in pending}
    requirements: Dict[str, Set[str]] = {
        definition.id: _reachable_ids(definition) & member_ids
        for definition in pending
    }

    ordered: List[Definition] = []
    accepted: Set[str] = set()
    scans = 0

    while len(ordered) < len(pending):
        scans += 1
        progressed = False
        for definition in pending:
            if definition.id in accepted:
                continue
            if requirements[definition.id] <= accepted:
                ordered.append(definition)
                accepted.add(definition.id)
                progressed = True

        if not progressed:
            stuck = [d.id for d in pending if d.id not in accepted]
            raise ResolutionDivergedError(
                f"Dependency ordering made no progress after {scans} scan(s); "
                f"cyclic definitions: {', '.join(stuck)}",
                pending=stuck,
            )

    return ordered


def invalid_definitions(
    active: Sequence[Definition],
    store: Mapping[str, Any],
    status: Mapping[str, Stage],
    cache: Optional[ParameterCache] = None,
) -> List[Definition]:
    """
    Get active definitions whose data is not currently trustworthy.

    Returned in dependency order: a definition is only ever classified
    after all of its dependencies.
    """
    invalid: List[Definition] = []
    invalid_ids: Set[str] = set()

    for definition in dependency_order(active):
        dependencies = flatten_dependencies(definition)
        if any(dep.id in invalid_ids for dep in dependencies):
            invalid.append(definition)
            invalid_ids.add(definition.id)
            continue

        # Skip while any operation is being performed
        if status.get(definition.id) != Stage.IDLE:
            continue

        if not is_available(definition, store, status, cache):
            invalid.append(definition)
            invalid_ids.add(definition.id)

    if invalid:
        logger.debug(f"Invalid definitions: {[d.id for d in invalid]}")
    return invalid

"""
fetchgraph Dependency Graph

Flattening of declared dependency trees and selection of active
definitions from the subscription list.

Dependency graphs are expected to be acyclic; cycles are rejected at
registration time by DefinitionRegistry, so the recursive helpers here
never see one.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Iterable, List, Mapping

from fetchgraph.core.definition import Definition

if TYPE_CHECKING:
    from fetchgraph.kernel.state import Subscription


def dependencies_object(definition: Definition) -> Dict[str, Definition]:
    """
    Get the named dependency mapping of a definition.

    Accepts dependencies declared as a mapping or as a zero-argument
    callable returning one. Always returns a dict.
    """
    declared = definition.dependencies
    if not declared:
        return {}
    if callable(declared):
        declared = declared()
    return dict(declared or {})


def flatten_dependencies(definition: Definition) -> List[Definition]:
    """
    Get all transitive dependencies, depth-first in declaration order.

    Not deduplicated: a definition reachable through several paths
    appears once per path.
    """
    result: List[Definition] = []
    for dependency in dependencies_object(definition).values():
        result.append(dependency)
        result.extend(flatten_dependencies(dependency))
    return result


def unique_dependencies(definition: Definition) -> List[Definition]:
    """Get all transitive dependencies, deduplicated by id."""
    return dedupe(flatten_dependencies(definition))


def dedupe(definitions: Iterable[Definition]) -> List[Definition]:
    """Drop repeated definitions, keeping first-seen order."""
    seen = set()
    result: List[Definition] = []
    for definition in definitions:
        if definition.id in seen:
            continue
        seen.add(definition.id)
        result.append(definition)
    return result


def active_definitions(
    subscriptions: Iterable["Subscription"],
    definitions: Mapping[str, Definition],
) -> List[Definition]:
    """
    Get definitions referenced by at least one subscription.

    Returned in first-subscription order, deduplicated by id.
    """
    seen = set()
    result: List[Definition] = []
    for sub in subscriptions:
        if sub.definition_id in seen:
            continue
        seen.add(sub.definition_id)
        result.append(definitions[sub.definition_id])
    return result

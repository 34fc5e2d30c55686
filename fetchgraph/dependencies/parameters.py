"""
fetchgraph Parameter Builder

Computes the inputs handed to a definition's hooks: its own store slot,
its own resolved value/status pair and the recursively resolved values
of its dependencies.

Parameters are memoized per resolution pass through an optional cache
keyed by definition id. A cache must never outlive the (store, status)
snapshot it was built from.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, MutableMapping, Optional

from fetchgraph.core.definition import Definition
from fetchgraph.core.enums import Stage
from fetchgraph.core.paths import assign_path
from fetchgraph.dependencies.graph import dependencies_object


@dataclass(frozen=True)
class Parameters:
    """Raw and mapped inputs for one definition."""
    raw: Dict[str, Any]
    mapped: Any


ParameterCache = MutableMapping[str, Parameters]


def resolve(
    dependencies: Mapping[str, Definition],
    store: Mapping[str, Any],
    status: Mapping[str, Stage],
) -> Dict[str, Any]:
    """
    Resolve named definitions into {"value": ..., "status": ...} pairs.

    Each definition's own dependencies are resolved first and passed,
    together with its store slot, to its map_data hook. Names containing
    dots nest the pair at that path.
    """
    resolved: Dict[str, Any] = {}
    for name, definition in dependencies.items():
        store_data = store.get(definition.store_id)
        nested = resolve(dependencies_object(definition), store, status)

        if definition.map_data is not None:
            value = definition.map_data({"store": store_data, "dependencies": nested})
        else:
            value = store_data

        resolved = assign_path(resolved, name, {
            "status": status.get(definition.id, Stage.WAITING),
            "value": value,
        })
    return resolved


def build_parameters(
    definition: Definition,
    store: Mapping[str, Any],
    status: Mapping[str, Stage],
    cache: Optional[ParameterCache] = None,
) -> Parameters:
    """Build (and memoize in cache) the parameters of a definition."""
    if cache is not None and definition.id in cache:
        return cache[definition.id]

    own = resolve({"data": definition}, store, status)
    raw = {
        "store": store.get(definition.store_id),
        "data": own["data"],
        "dependencies": resolve(dependencies_object(definition), store, status),
    }
    mapped = definition.map_parameters(raw) if definition.map_parameters else raw
    parameters = Parameters(raw=raw, mapped=mapped)

    if cache is not None:
        cache[definition.id] = parameters
    return parameters


def is_available(
    definition: Definition,
    store: Mapping[str, Any],
    status: Mapping[str, Stage],
    cache: Optional[ParameterCache] = None,
) -> bool:
    """Evaluate a definition's availability predicate against a snapshot."""
    parameters = build_parameters(definition, store, status, cache)
    return bool(definition.is_data_available(parameters.mapped, parameters.raw))

"""
fetchgraph Definition Registry

Append-only id -> Definition lookup. Registering a definition registers
its whole dependency closure and rejects cyclic graphs before any
resolution pass can loop on them.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Mapping

import networkx as nx

from fetchgraph.core.definition import Definition
from fetchgraph.dependencies.graph import dependencies_object
from fetchgraph.errors.taxonomy import (
    CyclicDependencyError,
    DuplicateDefinitionError,
    InvalidDependencyError,
    UnknownDefinitionError,
)

logger = logging.getLogger(__name__)


class DefinitionRegistry(Mapping[str, Definition]):
    """
    Registry of every definition the orchestrator has seen.

    Definitions are immutable, so entries are never replaced or removed.
    """

    def __init__(self) -> None:
        self._definitions: Dict[str, Definition] = {}

    def __getitem__(self, definition_id: str) -> Definition:
        try:
            return self._definitions[definition_id]
        except KeyError:
            raise UnknownDefinitionError(
                f"Unknown definition: {definition_id}",
                definition_id=definition_id,
            ) from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)

    def __contains__(self, key: object) -> bool:
        if isinstance(key, Definition):
            key = key.id
        return key in self._definitions

    def register(self, definition: Definition) -> List[Definition]:
        """
        Register a definition and its dependency closure.

        Returns:
            Definitions that were not registered before.

        Raises:
            InvalidDependencyError: a dependency is not a Definition
            DuplicateDefinitionError: another definition already uses an id
            CyclicDependencyError: the closure contains a cycle
        """
        if definition.id in self._definitions:
            self._check_same(definition)
            return []

        graph = self._build_closure_graph(definition)
        if not nx.is_directed_acyclic_graph(graph):
            cycle = [edge[0] for edge in nx.find_cycle(graph)]
            cycle.append(cycle[0])
            raise CyclicDependencyError(cycle)

        added: List[Definition] = []
        for node_id in nx.topological_sort(graph):
            node = graph.nodes[node_id]["definition"]
            if node_id in self._definitions:
                continue
            self._definitions[node_id] = node
            added.append(node)

        logger.info(
            f"Registered {definition.id}: {len(added)} new definition(s), "
            f"{graph.number_of_edges()} dependency edge(s)"
        )
        return added

    def _check_same(self, definition: Definition) -> None:
        existing = self._definitions.get(definition.id)
        if existing is not None and existing is not definition:
            raise DuplicateDefinitionError(
                f"Definition id {definition.id} is already registered to a different definition",
                definition_id=definition.id,
            )

    def _build_closure_graph(self, root: Definition) -> "nx.DiGraph":
        """Walk the closure once per node; edges point dependent -> dependency."""
        graph = nx.DiGraph()
        graph.add_node(root.id, definition=root)
        to_process = [root]
        visited = set()

        while to_process:
            current = to_process.pop()
            if current.id in visited:
                continue
            visited.add(current.id)

            for name, dependency in dependencies_object(current).items():
                if not isinstance(dependency, Definition):
                    raise InvalidDependencyError(
                        f"Dependency '{name}' of {current.id} is not a Definition: {dependency!r}",
                        definition_id=current.id,
                    )
                known = graph.nodes.get(dependency.id)
                if known is not None and known["definition"] is not dependency:
                    raise DuplicateDefinitionError(
                        f"Definition id {dependency.id} is used by two different definitions",
                        definition_id=dependency.id,
                    )
                self._check_same(dependency)
                graph.add_node(dependency.id, definition=dependency)
                graph.add_edge(current.id, dependency.id)
                to_process.append(dependency)

        return graph

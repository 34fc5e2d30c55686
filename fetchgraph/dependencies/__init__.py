"""
fetchgraph Dependency Resolution

Provides:
- Dependency flattening and active-definition selection
- DefinitionRegistry: closure registration with cycle rejection
- Parameter Builder: resolved inputs for definition hooks
- Invalidation: dependency ordering and invalid-set computation
"""

from .graph import (
    dependencies_object,
    flatten_dependencies,
    unique_dependencies,
    dedupe,
    active_definitions,
)
from .registry import DefinitionRegistry
from .parameters import (
    Parameters,
    ParameterCache,
    resolve,
    build_parameters,
    is_available,
)
from .invalidation import (
    dependency_order,
    invalid_definitions,
)

__all__ = [
    # Graph
    "dependencies_object",
    "flatten_dependencies",
    "unique_dependencies",
    "dedupe",
    "active_definitions",
    # Registry
    "DefinitionRegistry",
    # Parameters
    "Parameters",
    "ParameterCache",
    "resolve",
    "build_parameters",
    "is_available",
    # Invalidation
    "dependency_order",
    "invalid_definitions",
]

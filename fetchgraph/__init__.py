"""
fetchgraph - dependency-graph-driven data orchestration

Definitions describe fetchable or derivable data units and the
definitions they depend on; the Orchestrator keeps a shared store
current for whatever is subscribed, fetching each unit once its
dependencies have settled.
"""

__version__ = "0.1.0"

from fetchgraph.core import (
    Definition,
    IdGenerator,
    Stage,
    define_data_handler,
)
from fetchgraph.errors import (
    ConfigurationError,
    CyclicDependencyError,
    FetchFailure,
    FetchGraphError,
)
from fetchgraph.bootstrap import FetchGraphConfig, OrchestratorConfig, setup_logging
from fetchgraph.kernel import DataConsumer, EventDispatcher, Orchestrator, OrchestratorEventType

__all__ = [
    "__version__",
    "Definition",
    "IdGenerator",
    "Stage",
    "define_data_handler",
    "ConfigurationError",
    "CyclicDependencyError",
    "FetchFailure",
    "FetchGraphError",
    "FetchGraphConfig",
    "OrchestratorConfig",
    "setup_logging",
    "DataConsumer",
    "EventDispatcher",
    "Orchestrator",
    "OrchestratorEventType",
]

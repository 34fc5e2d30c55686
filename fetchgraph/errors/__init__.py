"""
errors/ - Error Taxonomy & Failure Aggregation

Structured error classification for configuration defects and fetch
failures, plus a bounded aggregator for failures surfaced at runtime.
"""

from .taxonomy import (
    ErrorCategory,
    ErrorCode,
    FetchGraphError,
    FetchFailure,
    ConfigurationError,
    DuplicateDefinitionError,
    InvalidDependencyError,
    CyclicDependencyError,
    ResolutionDivergedError,
    UnknownDefinitionError,
)

from .aggregator import (
    FailureReport,
    FailureAggregator,
)

__all__ = [
    # Taxonomy
    "ErrorCategory",
    "ErrorCode",
    "FetchGraphError",
    "FetchFailure",
    "ConfigurationError",
    "DuplicateDefinitionError",
    "InvalidDependencyError",
    "CyclicDependencyError",
    "ResolutionDivergedError",
    "UnknownDefinitionError",
    # Aggregator
    "FailureReport",
    "FailureAggregator",
]

"""
errors/taxonomy.py - Error classification

Every error raised by fetchgraph derives from FetchGraphError and carries
an ErrorCode and ErrorCategory. Stale fetch results are not errors and
have no entry here.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCategory(Enum):
    """Error categories."""
    # Fetch errors (1xxx)
    FETCH = "fetch"

    # Configuration errors (2xxx)
    CONFIGURATION = "configuration"

    # Dependency errors (2xxx)
    DEPENDENCY = "dependency"

    # State errors (3xxx)
    STATE = "state"


class ErrorCode(Enum):
    """Specific error codes."""

    # Fetch (1xxx)
    FET_FAILED = 1001

    # Configuration (2xxx)
    CFG_INVALID = 2001
    CFG_DUPLICATE_ID = 2002
    CFG_CIRCULAR_DEP = 2003
    CFG_INVALID_DEP = 2004
    CFG_DIVERGED = 2005

    # State (3xxx)
    STA_UNKNOWN_DEFINITION = 3001


class FetchGraphError(Exception):
    """Base class for fetchgraph errors."""

    code: ErrorCode = ErrorCode.CFG_INVALID
    category: ErrorCategory = ErrorCategory.CONFIGURATION

    def __init__(self, message: str, *, definition_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.definition_id = definition_id
        self.created_at = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code.value,
            "category": self.category.value,
            "message": self.message,
            "definition_id": self.definition_id,
            "created_at": self.created_at.isoformat(),
        }


# =============================================================================
# FETCH FAILURES
# =============================================================================

class FetchFailure(FetchGraphError):
    """A definition's fetcher raised."""

    code = ErrorCode.FET_FAILED
    category = ErrorCategory.FETCH

    def __init__(
        self,
        definition_id: str,
        cause: BaseException,
        *,
        fetcher_key: Any = None,
        epoch: int = 0,
    ):
        super().__init__(
            f"Fetch failed for {definition_id}: {cause!r}",
            definition_id=definition_id,
        )
        self.cause = cause
        self.fetcher_key = fetcher_key
        self.epoch = epoch

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "cause": repr(self.cause),
            "fetcher_key": str(self.fetcher_key) if self.fetcher_key is not None else None,
            "epoch": self.epoch,
        })
        return data


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================

class ConfigurationError(FetchGraphError):
    """Fatal configuration defect (not a runtime state)."""

    code = ErrorCode.CFG_INVALID
    category = ErrorCategory.CONFIGURATION


class DuplicateDefinitionError(ConfigurationError):
    """Two distinct definitions were registered under one id."""

    code = ErrorCode.CFG_DUPLICATE_ID


class InvalidDependencyError(ConfigurationError):
    """A dependency entry is not a Definition."""

    code = ErrorCode.CFG_INVALID_DEP
    category = ErrorCategory.DEPENDENCY


class CyclicDependencyError(ConfigurationError):
    """Raised when a cyclic dependency is detected."""

    code = ErrorCode.CFG_CIRCULAR_DEP
    category = ErrorCategory.DEPENDENCY

    def __init__(self, cycle: List[str]):
        self.cycle = cycle
        super().__init__(
            f"Cyclic dependency detected: {' -> '.join(cycle)}",
            definition_id=cycle[0] if cycle else None,
        )


class ResolutionDivergedError(ConfigurationError):
    """A fixed-point loop stopped making progress or hit its bound."""

    code = ErrorCode.CFG_DIVERGED
    category = ErrorCategory.DEPENDENCY

    def __init__(self, message: str, pending: Optional[List[str]] = None):
        self.pending = pending or []
        super().__init__(message)


class UnknownDefinitionError(FetchGraphError, KeyError):
    """A subscription references a definition the registry does not know."""

    code = ErrorCode.STA_UNKNOWN_DEFINITION
    category = ErrorCategory.STATE

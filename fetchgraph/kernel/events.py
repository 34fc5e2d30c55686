"""
fetchgraph Orchestrator Events

Typed event schemas for orchestrator operations.

State events are emitted after the state they describe has been committed,
so a handler reading the orchestrator always sees that state or a
later one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
import uuid

from fetchgraph.core.enums import Stage


# =============================================================================
# EVENT TYPES
# =============================================================================

class OrchestratorEventType(str, Enum):
    """Types of orchestrator events."""

    # Subscription events
    SUBSCRIBED = "subscribed"
    UNSUBSCRIBED = "unsubscribed"
    DEFINITION_RELEASED = "definition_released"

    # State events
    STORE_WRITTEN = "store_written"
    STAGE_CHANGED = "stage_changed"

    # Fetch events
    FETCH_STARTED = "fetch_started"
    FETCH_SUCCEEDED = "fetch_succeeded"
    FETCH_DISCARDED = "fetch_discarded"
    FETCH_FAILED = "fetch_failed"


# =============================================================================
# BASE EVENT
# =============================================================================

@dataclass
class OrchestratorEvent:
    """
    Base class for orchestrator events.

    All events have:
    - event_id: Unique identifier
    - event_type: Type classification
    - definition_id: Definition concerned (if any)
    - timestamp: When the event occurred
    - state_version: Committed state version at time of event
    """
    event_id: str = field(default_factory=lambda: str(uuid.uuid4())[:12])
    event_type: OrchestratorEventType = OrchestratorEventType.STAGE_CHANGED
    definition_id: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    state_version: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "event_id": self.event_id,
            "event_type": self.event_type.value,
            "definition_id": self.definition_id,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "state_version": self.state_version,
        }


# =============================================================================
# SUBSCRIPTION EVENTS
# =============================================================================

@dataclass
class SubscriptionEvent(OrchestratorEvent):
    """Emitted for subscribe/unsubscribe requests once applied."""
    event_type: OrchestratorEventType = field(default=OrchestratorEventType.SUBSCRIBED)
    subscriber_id: str = ""

    def to_dict(self) -> Dict[str, Any]:
        base = super().to_dict()
        base["subscriber_id"] = self.subscriber_id
        return base


@dataclass
class DefinitionReleasedEvent(OrchestratorEvent):
    """
    Emitted when a definition loses its last subscription.

    store_retained tells whether its store slot survived the release.
    """
    event_type: OrchestratorEventType = field(default=OrchestratorEventType.DEFINITION_RELEASED)
    store_id: str = ""
    store_retained: bool = True

    def to_dict(self) -> Dict[str, Any]:
        base = super().to_dict()
        base.update({
            "store_id": self.store_id,
            "store_retained": self.store_retained,
        })
        return base


# =============================================================================
# STATE EVENTS
# =============================================================================

@dataclass
class StoreWrittenEvent(OrchestratorEvent):
    """Emitted when a store slot is written or removed."""
    event_type: OrchestratorEventType = field(default=OrchestratorEventType.STORE_WRITTEN)
    store_id: str = ""
    source: str = "external"
    removed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        base = super().to_dict()
        base.update({
            "store_id": self.store_id,
            "source": self.source,
            "removed": self.removed,
        })
        return base


@dataclass
class StageChangedEvent(OrchestratorEvent):
    """Emitted for every committed stage change (None = no status entry)."""
    event_type: OrchestratorEventType = field(default=OrchestratorEventType.STAGE_CHANGED)
    old_stage: Optional[Stage] = None
    new_stage: Optional[Stage] = None

    def to_dict(self) -> Dict[str, Any]:
        base = super().to_dict()
        base.update({
            "old_stage": self.old_stage.value if self.old_stage else None,
            "new_stage": self.new_stage.value if self.new_stage else None,
        })
        return base


# =============================================================================
# FETCH EVENTS
# =============================================================================

@dataclass
class FetchEvent(OrchestratorEvent):
    """Emitted when a fetch starts, is accepted or is discarded."""
    event_type: OrchestratorEventType = field(default=OrchestratorEventType.FETCH_STARTED)
    epoch: int = 0
    fetcher_key: Any = None
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        base = super().to_dict()
        base.update({
            "epoch": self.epoch,
            "fetcher_key": str(self.fetcher_key) if self.fetcher_key is not None else None,
            "reason": self.reason,
        })
        return base


@dataclass
class FetchFailedEvent(FetchEvent):
    event_type: OrchestratorEventType = field(default=OrchestratorEventType.FETCH_FAILED)
    error: str = ""
    error_code: int = 0

    def to_dict(self) -> Dict[str, Any]:
        base = super().to_dict()
        base.update({
            "error": self.error,
            "error_code": self.error_code,
        })
        return base

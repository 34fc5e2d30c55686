"""
fetchgraph Kernel Module

Contains the orchestration layer:
- Immutable orchestrator state and snapshots
- Subscription reducers with dependency cascades
- Stage state machine (derivation and follow-up planning)
- Fetch scheduler with stale-result detection
- Orchestrator, events and the event dispatcher
- DataConsumer binding
"""

from fetchgraph.kernel.state import OrchestratorState, StateSnapshot, Subscription
from fetchgraph.kernel.stage_machine import (
    FollowupPlan,
    LaunchRequest,
    StageTransition,
    derive_status,
    plan_followups,
)
from fetchgraph.kernel.scheduler import FetchScheduler
from fetchgraph.kernel.events import (
    OrchestratorEventType,
    OrchestratorEvent,
    SubscriptionEvent,
    DefinitionReleasedEvent,
    StoreWrittenEvent,
    StageChangedEvent,
    FetchEvent,
    FetchFailedEvent,
)
from fetchgraph.kernel.event_dispatcher import EventDispatcher, EventHandler
from fetchgraph.kernel.orchestrator import Orchestrator
from fetchgraph.kernel.consumer import DataConsumer

__all__ = [
    # State
    "OrchestratorState",
    "StateSnapshot",
    "Subscription",
    # Stage machine
    "FollowupPlan",
    "LaunchRequest",
    "StageTransition",
    "derive_status",
    "plan_followups",
    # Scheduler
    "FetchScheduler",
    # Events
    "OrchestratorEventType",
    "OrchestratorEvent",
    "SubscriptionEvent",
    "DefinitionReleasedEvent",
    "StoreWrittenEvent",
    "StageChangedEvent",
    "FetchEvent",
    "FetchFailedEvent",
    "EventDispatcher",
    "EventHandler",
    # Orchestration
    "Orchestrator",
    "DataConsumer",
]

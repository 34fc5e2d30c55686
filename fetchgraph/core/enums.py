"""
fetchgraph Core Enumerations

Lifecycle stages shared by the resolver, the stage machine and the
scheduler.
"""

from enum import Enum


class Stage(str, Enum):
    """
    Lifecycle stage of an active definition.

    Flow: WAITING -> FETCHING | WAITING_INPUT -> IDLE | ERROR
    """
    WAITING = "waiting"              # Pending validity check
    WAITING_INPUT = "waiting_input"  # No fetcher, waiting for external writes
    FETCHING = "fetching"            # Fetch in flight
    IDLE = "idle"                    # Data available
    ERROR = "error"                  # Last fetch failed


# Stages a fetch outcome may still be reconciled against
RECONCILABLE_STAGES = frozenset({Stage.FETCHING, Stage.ERROR})

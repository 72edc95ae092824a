"""
Core application engine.

The `InstanceOrchestrator` turns configured instances into bound service clients
and fans batch operations out across them. `MediaHub` builds every long-lived
object once and manages their lifetime.
"""

from .hub import MediaHub
from .orchestrator import InstanceOrchestrator, OutcomeStatus, RequestOutcome
from .task_slot import LatestTaskSlot

__all__ = [
    "InstanceOrchestrator",
    "LatestTaskSlot",
    "MediaHub",
    "OutcomeStatus",
    "RequestOutcome",
]

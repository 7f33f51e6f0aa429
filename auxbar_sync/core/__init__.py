"""
Core synchronization engine.

The `Orchestrator` owns the event queue the background components report
into and decides what each event means for the other components.
"""

from .orchestrator import Orchestrator, SyncState

__all__ = ["Orchestrator", "SyncState"]

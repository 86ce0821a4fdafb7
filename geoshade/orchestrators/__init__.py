"""
Orchestrators for GeoShade.

This module contains the orchestrators that coordinate
the flow between the core, the store and the data provider.
"""
from .sampling import RunState, RunStatus, SamplingOrchestrator, SamplingRun
from .session import MapSession

__all__ = ["MapSession", "RunState", "RunStatus", "SamplingOrchestrator", "SamplingRun"]

"""tick-harvest - cooperative harvesting agents for tick-based voxel worlds."""
from __future__ import annotations

from tick_harvest.agent import Agent, AgentSettings
from tick_harvest.config import TICKS_PER_SECOND, HarvestConfig, woodcutter_config
from tick_harvest.gate import InteractionGate, handle_manager_interaction
from tick_harvest.jobs import PENDING, Done, Job, JobHandle, JobScheduler, JobStatus, Timer
from tick_harvest.pathfind import PathPlanner, PathResult, TravelJob
from tick_harvest.properties import AgentProperties
from tick_harvest.registry import AgentRegistry
from tick_harvest.search import (
    RegionSearch,
    ScanJob,
    classify,
    connected_blocks,
    is_valid_structure,
)
from tick_harvest.types import (
    AgentState,
    CellKind,
    DeliveryUnavailable,
    EntityInvalidated,
    HarvestError,
    JobStateError,
    Location,
    PathNotFound,
    PathSpec,
    PropertySchemaError,
    RegionUnloaded,
    SearchSpec,
    TargetInvalidated,
    TravelOutcome,
)
from tick_harvest.voxel import SimEntity, VoxelWorld

__all__ = [
    "PENDING",
    "TICKS_PER_SECOND",
    "Agent",
    "AgentProperties",
    "AgentRegistry",
    "AgentSettings",
    "AgentState",
    "CellKind",
    "DeliveryUnavailable",
    "Done",
    "EntityInvalidated",
    "HarvestConfig",
    "HarvestError",
    "InteractionGate",
    "Job",
    "JobHandle",
    "JobScheduler",
    "JobStateError",
    "JobStatus",
    "Location",
    "PathNotFound",
    "PathPlanner",
    "PathResult",
    "PathSpec",
    "PropertySchemaError",
    "RegionSearch",
    "RegionUnloaded",
    "ScanJob",
    "SearchSpec",
    "SimEntity",
    "TargetInvalidated",
    "Timer",
    "TravelJob",
    "TravelOutcome",
    "VoxelWorld",
    "classify",
    "connected_blocks",
    "handle_manager_interaction",
    "is_valid_structure",
    "woodcutter_config",
]

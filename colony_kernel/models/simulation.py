"""Simulation configuration and per-tick reporting."""

from typing import List, Optional

from pydantic import BaseModel, Field

from colony_kernel.models.allocation import AllocationConfig, AllocationSummary
from colony_kernel.models.world import Position


class RegionBounds(BaseModel):
    top: int = 0
    left: int = 0
    bottom: int = 49
    right: int = 49
    center: int = 24


class SimulationConfig(BaseModel):
    """Configuration for the colony tick loop."""

    allocation: AllocationConfig = AllocationConfig()
    bounds: RegionBounds = RegionBounds()
    threat_safe_range: int = 4
    collision_avoidance_range: int = 2
    high_value_external_radius: int = 6
    high_value_internal_radius: int = 3
    low_value_external_radius: int = 2
    low_value_internal_radius: int = 1
    rampart_hits_attack_ratio: float = 1.0
    planner_interval: int = Field(ge=1, default=100)
    controller_downgrade_safety_threshold: int = 4000
    tower_range: int = 20
    tick_interval_seconds: float = 1.0
    debug_mode: bool = False


class DecisionOutcome(BaseModel):
    """The committed behaviour of one agent for one tick."""

    agent_id: str
    agent_kind: str
    tick: int
    behavior: Optional[str] = None
    intent: Optional[str] = None
    target_id: Optional[str] = None
    target_position: Optional[Position] = None
    faulted: bool = False


class TickReport(BaseModel):
    """Everything the loop decided during one tick."""

    tick: int
    reconciled: bool = False
    allocation: Optional[AllocationSummary] = None
    outcomes: List[DecisionOutcome] = []

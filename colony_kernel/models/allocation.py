"""Allocation configuration and register types."""

from typing import Dict

from pydantic import BaseModel, Field

# intent -> target id -> agent id -> tick
Register = Dict[str, Dict[str, Dict[str, int]]]


class AllocationConfig(BaseModel):
    """Named constants for the allocation manager."""

    units_per_source: int = Field(ge=1, default=8)      # harvest ceiling per target
    units_per_rampart: int = Field(ge=1, default=1)     # guard quota
    units_per_resource: int = Field(ge=1, default=1)    # recycle quota
    priority_range: int = Field(ge=0, default=5)
    expiration_ticks: int = Field(ge=0, default=5)
    reconcile_period: int = Field(ge=1, default=5)
    repair_power: int = Field(ge=1, default=100)
    max_work_throughput: int = Field(ge=1, default=5)
    debug_mode: bool = False


class AllocationSummary(BaseModel):
    """What a single reconciliation pass did."""

    tick: int
    renewed: int = 0
    pruned: int = 0
    granted: int = 0
    skipped_targets: int = 0
    failed_targets: int = 0

"""Colony Kernel data models."""

from colony_kernel.models.actuation import Command, CommandVerb
from colony_kernel.models.allocation import (
    AllocationConfig,
    AllocationSummary,
    Register,
)
from colony_kernel.models.intent import INTENT_SUFFICIENCY, Intent, SufficiencyKind
from colony_kernel.models.simulation import (
    DecisionOutcome,
    RegionBounds,
    SimulationConfig,
    TickReport,
)
from colony_kernel.models.world import (
    AgentState,
    HostileState,
    Position,
    TargetKind,
    TargetState,
    WorldModel,
)

__all__ = [
    "AgentState",
    "AllocationConfig",
    "AllocationSummary",
    "Command",
    "CommandVerb",
    "DecisionOutcome",
    "HostileState",
    "INTENT_SUFFICIENCY",
    "Intent",
    "Position",
    "Register",
    "RegionBounds",
    "SimulationConfig",
    "SufficiencyKind",
    "TargetKind",
    "TargetState",
    "TickReport",
    "WorldModel",
]

"""World Model: read-only view of agents, targets and hostiles in the colony."""

from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field


class TargetKind(str, Enum):
    SOURCE = "source"
    SPAWN = "spawn"
    EXTENSION = "extension"
    TOWER = "tower"
    CONTAINER = "container"
    RAMPART = "rampart"
    CONTROLLER = "controller"
    CONSTRUCTION_SITE = "construction_site"
    DROPPED_ENERGY = "dropped_energy"
    TOMBSTONE = "tombstone"
    ROAD = "road"


STRUCTURE_KINDS = (
    TargetKind.SPAWN,
    TargetKind.EXTENSION,
    TargetKind.TOWER,
    TargetKind.CONTAINER,
    TargetKind.RAMPART,
    TargetKind.CONTROLLER,
    TargetKind.ROAD,
)

HIGH_VALUE_KINDS = (TargetKind.CONTROLLER, TargetKind.SPAWN, TargetKind.TOWER)


class Position(BaseModel):
    """A tile in a region. Range is Chebyshev distance, infinite across regions."""

    x: int
    y: int
    region: str

    def range_to(self, other: "Position") -> float:
        if other.region != self.region:
            return float("inf")
        return max(abs(self.x - other.x), abs(self.y - other.y))


class AgentState(BaseModel):
    """A mobile unit owned by the colony."""

    name: str
    position: Position
    spawn_region: Optional[str] = None
    can_move: bool = True
    can_work: bool = False
    can_carry: bool = False
    can_attack: bool = False
    energy: int = Field(ge=0, default=0)
    carry_capacity: int = Field(ge=0, default=0)
    hits: int = 100
    hits_max: int = 100
    spawning: bool = False

    @property
    def id(self) -> str:
        return self.name

    @property
    def is_worker(self) -> bool:
        return self.can_work and self.can_carry


class HostileState(BaseModel):
    """An entity owned by someone else. Threats are hostiles that can attack."""

    id: str
    position: Position
    can_attack: bool = False
    hits: int = 100
    hits_max: int = 100


class TargetState(BaseModel):
    """A structure or resource that agents contend for."""

    id: str
    kind: TargetKind
    position: Position
    energy: int = 0                         # stored or carried resource
    energy_capacity: int = 0
    progress: int = 0                       # construction sites
    progress_total: int = 0
    hits: int = 0
    hits_max: int = 0
    # controller
    level: int = 0
    ticks_to_downgrade: int = 0
    downgrade_ticks_max: int = 0
    upgrade_blocked: bool = False
    safe_mode_active: bool = False
    safe_mode_cooldown: int = 0
    safe_mode_available: int = 0
    # spawn
    spawning: Optional[str] = None
    # construction sites
    site_kind: Optional[TargetKind] = None

    @property
    def is_damaged(self) -> bool:
        return self.hits < self.hits_max


class WorldModel(BaseModel):
    """The colony's view of the world at the current tick."""

    tick: int = 0
    agents: Dict[str, AgentState] = {}
    targets: Dict[str, TargetState] = {}
    hostiles: Dict[str, HostileState] = {}

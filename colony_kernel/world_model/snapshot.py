"""
Region Snapshot: one read-only aggregate per region per tick.

Built lazily by the SnapshotCache and shared by every decision pass in the
same tick. The cache is invalidated unconditionally at the start of a tick.
"""

import logging
import math
from typing import Dict, List, Optional

from pydantic import BaseModel

from colony_kernel.models.simulation import RegionBounds, SimulationConfig
from colony_kernel.models.world import (
    HIGH_VALUE_KINDS,
    STRUCTURE_KINDS,
    AgentState,
    HostileState,
    TargetKind,
    TargetState,
)
from colony_kernel.world_model.geometry import in_range
from colony_kernel.world_model.store import WorldStore

logger = logging.getLogger("colony_kernel.world")

ATTACK_PART_COST = 80
ATTACK_POWER = 30


class RegionSnapshot(BaseModel):
    """Beliefs that are pertinent to one region at one tick."""

    tick: int
    region: str
    bounds: RegionBounds
    agents: List[AgentState] = []
    workers: List[AgentState] = []
    fighters: List[AgentState] = []
    enemies: List[HostileState] = []
    threats: List[HostileState] = []
    structures: List[TargetState] = []
    towers: List[TargetState] = []
    ramparts: List[TargetState] = []
    spawns: List[TargetState] = []
    energy_stores: List[TargetState] = []
    energy_sources: List[TargetState] = []
    dropped_energy: List[TargetState] = []
    tombstones: List[TargetState] = []
    damaged_structures: List[TargetState] = []
    construction_sites: List[TargetState] = []
    controller: Optional[TargetState] = None
    enemies_in_internal_perimeters: List[HostileState] = []
    enemies_in_external_perimeters: List[HostileState] = []
    threats_in_internal_perimeters: List[HostileState] = []
    threats_in_external_perimeters: List[HostileState] = []
    energy_available: int = 0
    energy_capacity_available: int = 0
    max_rampart_hits: int = 0

    @property
    def enemies_in_perimeters(self) -> List[HostileState]:
        return self.enemies_in_internal_perimeters + self.enemies_in_external_perimeters

    @property
    def threats_in_perimeters(self) -> List[HostileState]:
        return self.threats_in_internal_perimeters + self.threats_in_external_perimeters


def _dedupe(hostiles: List[HostileState]) -> List[HostileState]:
    seen: Dict[str, HostileState] = {}
    for h in hostiles:
        seen.setdefault(h.id, h)
    return list(seen.values())


def _perimeter_split(
    enemies: List[HostileState],
    structures: List[TargetState],
    external_radius: int,
    internal_radius: int,
) -> tuple:
    internal: List[HostileState] = []
    external: List[HostileState] = []
    for structure in structures:
        nearby = in_range(enemies, structure.position, external_radius)
        inner = in_range(nearby, structure.position, internal_radius)
        inner_ids = {h.id for h in inner}
        internal.extend(inner)
        external.extend(h for h in nearby if h.id not in inner_ids)
    return internal, external


def build_region_snapshot(
    world: WorldStore, region: str, config: SimulationConfig
) -> RegionSnapshot:
    """Aggregate everything the decision layers need to know about a region."""
    if not region:
        raise ValueError("Invalid region!")

    agents = world.agents_in(region)
    enemies = world.hostiles_in(region)
    threats = [h for h in enemies if h.can_attack]
    targets = world.targets_in(region)
    structures = [t for t in targets if t.kind in STRUCTURE_KINDS]
    high_value = [s for s in structures if s.kind in HIGH_VALUE_KINDS]
    low_value = [
        s for s in structures
        if s.kind not in HIGH_VALUE_KINDS and s.kind != TargetKind.RAMPART
    ]
    energy_stores = [
        s for s in structures if s.kind in (TargetKind.SPAWN, TargetKind.EXTENSION)
    ]
    safe_range = config.threat_safe_range

    def is_safe(target: TargetState) -> bool:
        return not in_range(threats, target.position, safe_range)

    energy_capacity = sum(s.energy_capacity for s in energy_stores)
    max_attack_potential = math.ceil(energy_capacity / ATTACK_PART_COST) * ATTACK_POWER
    max_rampart_hits = int(max_attack_potential * config.rampart_hits_attack_ratio)

    damaged = [
        s for s in structures
        if s.is_damaged
        and (s.kind != TargetKind.RAMPART or s.hits < max_rampart_hits)
    ]

    hi_internal, hi_external = _perimeter_split(
        enemies,
        high_value,
        config.high_value_external_radius,
        config.high_value_internal_radius,
    )
    lo_internal, lo_external = _perimeter_split(
        enemies,
        low_value,
        config.low_value_external_radius,
        config.low_value_internal_radius,
    )
    internal = _dedupe(hi_internal + lo_internal)
    internal_ids = {h.id for h in internal}
    external = [h for h in _dedupe(hi_external + lo_external) if h.id not in internal_ids]

    controllers = [s for s in structures if s.kind == TargetKind.CONTROLLER]

    return RegionSnapshot(
        tick=world.tick,
        region=region,
        bounds=config.bounds,
        agents=agents,
        workers=[a for a in agents if a.is_worker],
        fighters=[a for a in agents if a.can_attack],
        enemies=enemies,
        threats=threats,
        structures=structures,
        towers=[s for s in structures if s.kind == TargetKind.TOWER],
        ramparts=[s for s in structures if s.kind == TargetKind.RAMPART],
        spawns=[s for s in structures if s.kind == TargetKind.SPAWN],
        energy_stores=energy_stores,
        energy_sources=[
            t for t in targets
            if t.kind == TargetKind.SOURCE and t.energy > 0 and is_safe(t)
        ],
        dropped_energy=[
            t for t in targets
            if t.kind == TargetKind.DROPPED_ENERGY and is_safe(t)
        ],
        tombstones=[
            t for t in targets
            if t.kind == TargetKind.TOMBSTONE and t.energy > 0 and is_safe(t)
        ],
        damaged_structures=damaged,
        construction_sites=[
            t for t in targets if t.kind == TargetKind.CONSTRUCTION_SITE
        ],
        controller=controllers[0] if controllers else None,
        enemies_in_internal_perimeters=internal,
        enemies_in_external_perimeters=external,
        threats_in_internal_perimeters=[h for h in internal if h.can_attack],
        threats_in_external_perimeters=[h for h in external if h.can_attack],
        energy_available=sum(s.energy for s in energy_stores),
        energy_capacity_available=energy_capacity,
        max_rampart_hits=max_rampart_hits,
    )


class SnapshotCache:
    """Memoizes one RegionSnapshot per region for the current tick."""

    def __init__(self, world: WorldStore, config: Optional[SimulationConfig] = None):
        self.world = world
        self.config = config or SimulationConfig()
        self._tick: Optional[int] = None
        self._snapshots: Dict[str, RegionSnapshot] = {}

    def invalidate(self) -> None:
        """Drop every cached snapshot. Called at the start of each tick."""
        self._snapshots.clear()
        self._tick = self.world.tick

    def get(self, region: str) -> RegionSnapshot:
        """Return the snapshot for `region`, building it on first use this tick."""
        if self._tick != self.world.tick:
            self.invalidate()
        snapshot = self._snapshots.get(region)
        if snapshot is None:
            snapshot = build_region_snapshot(self.world, region, self.config)
            self._snapshots[region] = snapshot
            logger.debug(
                "SNAPSHOT built tick=%d region=%s agents=%d enemies=%d",
                snapshot.tick, region, len(snapshot.agents), len(snapshot.enemies),
            )
        return snapshot

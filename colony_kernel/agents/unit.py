"""
Unit model: the ranked behaviours of a mobile colony unit.

Contended behaviours (guard, recycle, harvest, stockpile, repair, build)
only commit to a target the allocation manager has leased to the unit.
Asking also registers the unit's interest for the next reconciliation.
"""

from typing import List

from colony_kernel.actuation.fabric import Actuator
from colony_kernel.allocation.manager import AllocationManager
from colony_kernel.decision.engine import Behavior, DecisionContext, DecisionEngine
from colony_kernel.models.actuation import CommandVerb
from colony_kernel.models.intent import Intent
from colony_kernel.models.simulation import SimulationConfig
from colony_kernel.models.world import (
    AgentState,
    HostileState,
    Position,
    TargetKind,
    TargetState,
)
from colony_kernel.world_model.geometry import avoidance_position, closest, in_range
from colony_kernel.world_model.snapshot import RegionSnapshot

# how close a unit must be for each verb to take effect
VERB_REACH = {
    CommandVerb.ATTACK: 1,
    CommandVerb.HARVEST: 1,
    CommandVerb.PICKUP: 1,
    CommandVerb.WITHDRAW: 1,
    CommandVerb.TRANSFER: 1,
    CommandVerb.BUILD: 3,
    CommandVerb.REPAIR: 3,
    CommandVerb.UPGRADE: 3,
}


class UnitBeliefs(DecisionContext):
    """Everything a unit knows when choosing a behaviour."""

    agent: AgentState
    region: RegionSnapshot
    manager: AllocationManager
    actuator: Actuator
    nearby_agents: List[AgentState] = []
    nearby_threats: List[HostileState] = []
    nearby_sources: List[TargetState] = []
    controller_downgrade_safety_threshold: int = 4000

    @property
    def has_energy(self) -> bool:
        return self.agent.energy > 0

    @property
    def is_near_energy_source(self) -> bool:
        return bool(self.nearby_sources)

    @property
    def available_carry_capacity(self) -> int:
        return self.agent.carry_capacity - self.agent.energy

    @property
    def can_gather_energy(self) -> bool:
        agent = self.agent
        return agent.can_work and agent.can_carry and self.available_carry_capacity > 0


def unit_beliefs(
    agent: AgentState,
    region: RegionSnapshot,
    manager: AllocationManager,
    actuator: Actuator,
    config: SimulationConfig,
) -> UnitBeliefs:
    """Assemble a unit's beliefs from the region snapshot."""
    others = [a for a in region.agents if a.name != agent.name]
    return UnitBeliefs(
        agent=agent,
        region=region,
        manager=manager,
        actuator=actuator,
        nearby_agents=in_range(others, agent.position, config.collision_avoidance_range),
        nearby_threats=in_range(region.threats, agent.position, config.threat_safe_range),
        nearby_sources=in_range(region.energy_sources, agent.position, 1),
        controller_downgrade_safety_threshold=config.controller_downgrade_safety_threshold,
    )


class UnitModel(DecisionEngine):
    """An intelligent agent for a mobile colony unit."""

    kind = "unit"

    @property
    def agent_id(self) -> str:
        return self.beliefs.agent.name

    # --- Capability checks ---

    def can_work_with_energy(self) -> bool:
        agent = self.beliefs.agent
        return agent.can_work and agent.can_carry and agent.energy > 0

    def can_upgrade(self, controller: TargetState) -> bool:
        if controller is None:
            raise TypeError("Invalid target!")
        return self.can_work_with_energy() and not controller.upgrade_blocked

    def can_store(self, target: TargetState) -> bool:
        if target is None:
            raise TypeError("Invalid target!")
        agent = self.beliefs.agent
        return agent.can_carry and agent.energy > 0 and target.energy_capacity > target.energy

    def can_withdraw(self, target: TargetState) -> bool:
        if target is None:
            raise TypeError("Invalid target!")
        return (
            self.beliefs.agent.can_carry
            and target.energy >= self.beliefs.available_carry_capacity
        )

    # --- Actuation helpers ---

    def _say(self, text: str) -> None:
        self.beliefs.actuator.issue(self.agent_id, CommandVerb.SAY, text=text)

    def _act(self, verb: CommandVerb, target) -> None:
        """Act on `target`, moving towards it first when out of reach."""
        if target is None:
            raise TypeError("Invalid target!")
        agent = self.beliefs.agent
        if agent.position.range_to(target.position) > VERB_REACH.get(verb, 1):
            self.beliefs.actuator.issue(
                self.agent_id, CommandVerb.MOVE,
                target_id=target.id, position=target.position,
            )
            return
        self.beliefs.actuator.issue(self.agent_id, verb, target_id=target.id)

    def _move_to_position(self) -> None:
        position = self.beliefs.target_position
        if position is not None:
            self.beliefs.actuator.issue(self.agent_id, CommandVerb.MOVE, position=position)

    def _commit(self, ctx: UnitBeliefs, intent, target=None) -> bool:
        ctx.intent = intent
        ctx.target = target
        return True

    def _leased(self, intent: Intent):
        manager = self.beliefs.manager
        name = self.agent_id
        return lambda t: manager.request_assignment(name, t.id, intent)

    # --- Behaviours ---

    def behaviors(self) -> List[Behavior]:
        return [
            Behavior("salute", self._salute_conditions, self._salute_actions),
            Behavior("retire", self._retire_conditions, self._retire_actions),
            Behavior("fight", self._fight_conditions, self._fight_actions),
            Behavior("guard", self._guard_conditions, self._guard_actions),
            Behavior("evade", self._evade_conditions, self._evade_actions),
            Behavior(
                "emergencyUpgradeController",
                self._emergency_upgrade_conditions,
                self._upgrade_actions,
            ),
            Behavior("recycle", self._recycle_conditions, self._recycle_actions),
            Behavior("harvest", self._harvest_conditions, self._harvest_actions),
            Behavior("stockpile", self._stockpile_conditions, self._stockpile_actions),
            Behavior("repair", self._repair_conditions, self._repair_actions),
            Behavior("build", self._build_conditions, self._build_actions),
            Behavior(
                "upgradeController",
                self._upgrade_conditions,
                self._upgrade_actions,
            ),
            Behavior("idle", self._idle_conditions, self._idle_actions),
        ]

    def _salute_conditions(self, ctx: UnitBeliefs) -> bool:
        if ctx.agent.spawning:
            return self._commit(ctx, "salute")
        return False

    def _salute_actions(self, ctx: UnitBeliefs) -> None:
        self._say("hello")

    def _retire_conditions(self, ctx: UnitBeliefs) -> bool:
        agent = ctx.agent
        region = ctx.region
        if (
            not region.enemies and not region.threats and not agent.can_attack
            and (not agent.can_work or not agent.can_carry)
        ):
            return self._commit(ctx, "retire", agent)
        return False

    def _retire_actions(self, ctx: UnitBeliefs) -> None:
        self._say("bye")
        ctx.actuator.issue(self.agent_id, CommandVerb.RETIRE, target_id=self.agent_id)

    def _fight_conditions(self, ctx: UnitBeliefs) -> bool:
        region = ctx.region
        if not ctx.agent.can_attack:
            return False
        # threats before harmless enemies
        target = closest(ctx.agent.position, region.threats_in_perimeters)
        if target is None:
            target = closest(ctx.agent.position, region.enemies_in_perimeters)
        if target is not None:
            return self._commit(ctx, "fight", target)
        return False

    def _fight_actions(self, ctx: UnitBeliefs) -> None:
        self._say("fight")
        self._act(CommandVerb.ATTACK, ctx.target)

    def _guard_conditions(self, ctx: UnitBeliefs) -> bool:
        agent = ctx.agent
        if agent.can_work or not agent.can_move or not agent.can_attack:
            return False
        target = closest(agent.position, ctx.region.ramparts, self._leased(Intent.GUARD))
        if target is not None:
            return self._commit(ctx, Intent.GUARD, target)
        return False

    def _guard_actions(self, ctx: UnitBeliefs) -> None:
        self._say("guard")
        ctx.actuator.issue(
            self.agent_id, CommandVerb.MOVE,
            target_id=ctx.target.id, position=ctx.target.position,
        )

    def _evade_conditions(self, ctx: UnitBeliefs) -> bool:
        if not ctx.nearby_threats or ctx.agent.can_attack:
            return False
        subject = closest(ctx.agent.position, ctx.nearby_threats)
        ctx.target_position = avoidance_position(
            ctx.agent.position, subject.position, ctx.region.bounds
        )
        return self._commit(ctx, "evade")

    def _evade_actions(self, ctx: UnitBeliefs) -> None:
        self._say("evade")
        self._move_to_position()

    def _emergency_upgrade_conditions(self, ctx: UnitBeliefs) -> bool:
        controller = ctx.region.controller
        if controller is None:
            return False
        elapsed = controller.downgrade_ticks_max - controller.ticks_to_downgrade
        if elapsed >= ctx.controller_downgrade_safety_threshold and self.can_upgrade(controller):
            return self._commit(ctx, "emergencyUpgradeController", controller)
        return False

    def _recycle_conditions(self, ctx: UnitBeliefs) -> bool:
        region = ctx.region
        if (
            not ctx.can_gather_energy or ctx.has_energy
            or (not region.dropped_energy and not region.tombstones)
        ):
            return False

        admitted = self._leased(Intent.RECYCLE)
        target = None
        if region.tombstones:
            target = closest(
                ctx.agent.position,
                region.tombstones,
                lambda t: self.can_withdraw(t) and admitted(t),
            )
        elif region.dropped_energy:
            target = closest(ctx.agent.position, region.dropped_energy, admitted)

        if target is not None:
            return self._commit(ctx, Intent.RECYCLE, target)
        return False

    def _recycle_actions(self, ctx: UnitBeliefs) -> None:
        self._say("recycle")
        if ctx.target.kind == TargetKind.TOMBSTONE:
            self._act(CommandVerb.WITHDRAW, ctx.target)
        else:
            self._act(CommandVerb.PICKUP, ctx.target)

    def _harvest_conditions(self, ctx: UnitBeliefs) -> bool:
        sources = ctx.region.energy_sources
        if (
            not ctx.can_gather_energy or not sources
            or (not ctx.is_near_energy_source and ctx.has_energy)
        ):
            return False
        target = closest(ctx.agent.position, sources, self._leased(Intent.HARVEST))
        if target is not None:
            return self._commit(ctx, Intent.HARVEST, target)
        return False

    def _harvest_actions(self, ctx: UnitBeliefs) -> None:
        self._say("harvest")
        self._act(CommandVerb.HARVEST, ctx.target)

    def _stockpile_conditions(self, ctx: UnitBeliefs) -> bool:
        admitted = self._leased(Intent.STOCKPILE)

        def accept(t: TargetState) -> bool:
            return self.can_store(t) and admitted(t)

        target = closest(ctx.agent.position, ctx.region.towers, accept)
        if target is None:
            target = closest(ctx.agent.position, ctx.region.energy_stores, accept)
        if target is not None:
            return self._commit(ctx, Intent.STOCKPILE, target)
        return False

    def _stockpile_actions(self, ctx: UnitBeliefs) -> None:
        self._say("stockpile")
        self._act(CommandVerb.TRANSFER, ctx.target)

    def _repair_conditions(self, ctx: UnitBeliefs) -> bool:
        damaged = ctx.region.damaged_structures
        if not damaged or not self.can_work_with_energy():
            return False
        target = closest(ctx.agent.position, damaged, self._leased(Intent.REPAIR))
        if target is not None:
            return self._commit(ctx, Intent.REPAIR, target)
        return False

    def _repair_actions(self, ctx: UnitBeliefs) -> None:
        self._say("repair")
        self._act(CommandVerb.REPAIR, ctx.target)

    def _build_conditions(self, ctx: UnitBeliefs) -> bool:
        sites = ctx.region.construction_sites
        if not sites or not self.can_work_with_energy():
            return False
        target = closest(ctx.agent.position, sites, self._leased(Intent.BUILD))
        if target is not None:
            return self._commit(ctx, Intent.BUILD, target)
        return False

    def _build_actions(self, ctx: UnitBeliefs) -> None:
        self._say("build")
        self._act(CommandVerb.BUILD, ctx.target)

    def _upgrade_conditions(self, ctx: UnitBeliefs) -> bool:
        controller = ctx.region.controller
        if controller is not None and self.can_upgrade(controller):
            return self._commit(ctx, "upgradeController", controller)
        return False

    def _upgrade_actions(self, ctx: UnitBeliefs) -> None:
        self._say(ctx.intent)
        self._act(CommandVerb.UPGRADE, ctx.target)

    def _idle_conditions(self, ctx: UnitBeliefs) -> bool:
        agent = ctx.agent
        bounds = ctx.region.bounds
        position = None

        if ctx.nearby_agents:
            subject = closest(agent.position, ctx.nearby_agents)
            position = avoidance_position(agent.position, subject.position, bounds)

        # head back to the spawn region through the nearest edge
        spawn_region = agent.spawn_region
        if spawn_region and spawn_region != agent.position.region:
            position = self._region_entry(agent, spawn_region)

        ctx.target_position = position
        return self._commit(ctx, "idle")

    def _region_entry(self, agent: AgentState, region: str) -> Position:
        bounds = self.beliefs.region.bounds
        if agent.position.x >= bounds.center:
            return Position(x=bounds.left + 1, y=agent.position.y, region=region)
        return Position(x=bounds.right - 1, y=agent.position.y, region=region)

    def _idle_actions(self, ctx: UnitBeliefs) -> None:
        self._say("idle")
        self._move_to_position()

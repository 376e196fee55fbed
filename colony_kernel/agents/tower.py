"""Tower model: a stationary defensive structure."""

from typing import List

from colony_kernel.actuation.fabric import Actuator
from colony_kernel.decision.engine import Behavior, DecisionContext, DecisionEngine
from colony_kernel.models.actuation import CommandVerb
from colony_kernel.models.simulation import SimulationConfig
from colony_kernel.models.world import AgentState, HostileState, TargetState
from colony_kernel.world_model.geometry import closest, in_range
from colony_kernel.world_model.snapshot import RegionSnapshot


class TowerBeliefs(DecisionContext):
    tower: TargetState
    actuator: Actuator
    workers_in_range: List[AgentState] = []
    fighters_in_range: List[AgentState] = []
    enemies_in_range: List[HostileState] = []
    threats_in_range: List[HostileState] = []
    damaged_structures_in_range: List[TargetState] = []


def tower_beliefs(
    tower: TargetState,
    region: RegionSnapshot,
    actuator: Actuator,
    config: SimulationConfig,
) -> TowerBeliefs:
    radius = config.tower_range
    return TowerBeliefs(
        tower=tower,
        actuator=actuator,
        workers_in_range=in_range(region.workers, tower.position, radius),
        fighters_in_range=in_range(region.fighters, tower.position, radius),
        enemies_in_range=in_range(region.enemies, tower.position, radius),
        threats_in_range=in_range(region.threats, tower.position, radius),
        damaged_structures_in_range=in_range(
            region.damaged_structures, tower.position, radius
        ),
    )


class TowerModel(DecisionEngine):
    """An intelligent agent for a defensive tower."""

    kind = "tower"

    @property
    def agent_id(self) -> str:
        return self.beliefs.tower.id

    def behaviors(self) -> List[Behavior]:
        return [
            Behavior("fight", self._fight_conditions, self._fight_actions),
            Behavior("heal", self._heal_conditions, self._heal_actions),
            Behavior("repair", self._repair_conditions, self._repair_actions),
        ]

    def _fight_conditions(self, ctx: TowerBeliefs) -> bool:
        origin = ctx.tower.position
        target = closest(origin, ctx.threats_in_range) or closest(origin, ctx.enemies_in_range)
        if target is not None:
            ctx.intent = "fight"
            ctx.target = target
            return True
        return False

    def _fight_actions(self, ctx: TowerBeliefs) -> None:
        ctx.actuator.issue(self.agent_id, CommandVerb.ATTACK, target_id=ctx.target.id)

    def _heal_conditions(self, ctx: TowerBeliefs) -> bool:
        origin = ctx.tower.position

        def wounded(agent: AgentState) -> bool:
            return agent.hits < agent.hits_max

        target = closest(origin, ctx.fighters_in_range, wounded)
        if target is None:
            target = closest(origin, ctx.workers_in_range, wounded)
        if target is not None:
            ctx.intent = "heal"
            ctx.target = target
            return True
        return False

    def _heal_actions(self, ctx: TowerBeliefs) -> None:
        ctx.actuator.issue(self.agent_id, CommandVerb.HEAL, target_id=ctx.target.id)

    def _repair_conditions(self, ctx: TowerBeliefs) -> bool:
        target = closest(ctx.tower.position, ctx.damaged_structures_in_range)
        if target is not None:
            ctx.intent = "repair"
            ctx.target = target
            return True
        return False

    def _repair_actions(self, ctx: TowerBeliefs) -> None:
        ctx.actuator.issue(self.agent_id, CommandVerb.REPAIR, target_id=ctx.target.id)

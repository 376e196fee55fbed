"""Controller model: the region's territory controller."""

from typing import List

from colony_kernel.actuation.fabric import Actuator
from colony_kernel.decision.engine import Behavior, DecisionContext, DecisionEngine
from colony_kernel.models.actuation import CommandVerb
from colony_kernel.models.world import TargetState
from colony_kernel.world_model.snapshot import RegionSnapshot


class ControllerBeliefs(DecisionContext):
    controller: TargetState
    region: RegionSnapshot
    actuator: Actuator


class ControllerModel(DecisionEngine):
    """An intelligent agent for a territory controller."""

    kind = "controller"

    @property
    def agent_id(self) -> str:
        return self.beliefs.controller.id

    def behaviors(self) -> List[Behavior]:
        return [
            Behavior(
                "activateSafeMode",
                self._safe_mode_conditions,
                self._safe_mode_actions,
            ),
        ]

    def _safe_mode_conditions(self, ctx: ControllerBeliefs) -> bool:
        controller = ctx.controller
        intruders = ctx.region.enemies_in_internal_perimeters
        if (
            not controller.safe_mode_active
            and not controller.safe_mode_cooldown
            and controller.safe_mode_available > 0
            and len(intruders) > len(ctx.region.fighters)
        ):
            ctx.intent = "activateSafeMode"
            ctx.target = controller
            return True
        return False

    def _safe_mode_actions(self, ctx: ControllerBeliefs) -> None:
        ctx.actuator.issue(self.agent_id, CommandVerb.SAFE_MODE, target_id=ctx.controller.id)

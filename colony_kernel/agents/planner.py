"""
Planner model: region-level construction housekeeping.

Placement of new structures is left to the host; the planner only withdraws
construction sites that hostile attackers have come too close to.
"""

from typing import List

from colony_kernel.actuation.fabric import Actuator
from colony_kernel.decision.engine import Behavior, DecisionContext, DecisionEngine
from colony_kernel.models.actuation import CommandVerb
from colony_kernel.models.world import TargetState
from colony_kernel.world_model.geometry import in_range
from colony_kernel.world_model.snapshot import RegionSnapshot


class PlannerBeliefs(DecisionContext):
    region: RegionSnapshot
    actuator: Actuator
    threat_safe_range: int = 4
    cancelled_sites: List[TargetState] = []


class PlannerModel(DecisionEngine):
    """An intelligent agent for construction planning in one region."""

    kind = "planner"

    @property
    def agent_id(self) -> str:
        return f"planner:{self.beliefs.region.region}"

    def behaviors(self) -> List[Behavior]:
        return [
            Behavior(
                "cancelConstructionSites",
                self._cancel_conditions,
                self._cancel_actions,
            ),
        ]

    def _cancel_conditions(self, ctx: PlannerBeliefs) -> bool:
        region = ctx.region
        if not region.construction_sites:
            return False
        threatened = [
            site for site in region.construction_sites
            if in_range(region.threats, site.position, ctx.threat_safe_range)
        ]
        if threatened:
            ctx.intent = "cancelConstructionSites"
            ctx.cancelled_sites = threatened
            return True
        return False

    def _cancel_actions(self, ctx: PlannerBeliefs) -> None:
        for site in ctx.cancelled_sites:
            ctx.actuator.issue(self.agent_id, CommandVerb.REMOVE_SITE, target_id=site.id)

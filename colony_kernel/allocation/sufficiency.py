"""
Sufficiency table: when does a target have enough assignees?

Each intent maps to a factory that inspects the target once per
reconciliation and returns a predicate. The predicate is asked, after every
tentative grant, whether the target is now satisfied; it receives the
current assignees and the identity of the agent that was just counted.
"""

import math
from typing import Callable, Dict, Optional

from colony_kernel.models.allocation import AllocationConfig
from colony_kernel.models.intent import Intent
from colony_kernel.models.world import TargetKind, TargetState
from colony_kernel.world_model.store import WorldStore


class Sufficiency:
    """Predicate over a target's assignees."""

    def is_satisfied(self, assignees: Dict[str, int], last_assigned: Optional[str]) -> bool:
        raise NotImplementedError


class HeadcountQuota(Sufficiency):
    """Satisfied once the target holds `quota` assignees."""

    def __init__(self, quota: int):
        self.quota = quota

    def is_satisfied(self, assignees: Dict[str, int], last_assigned: Optional[str]) -> bool:
        return len(assignees) >= self.quota


class CumulativeNeed(Sufficiency):
    """
    Satisfied once the contributions of counted agents cover the need.
    Agents that no longer resolve contribute nothing.
    """

    def __init__(self, need: float, contribution: Callable[[str], float]):
        self.need = need
        self.contribution = contribution

    def is_satisfied(self, assignees: Dict[str, int], last_assigned: Optional[str]) -> bool:
        if last_assigned:
            self.need -= self.contribution(last_assigned)
        return self.need <= 0


class AllocationContext:
    """What a sufficiency factory may look at for one target."""

    def __init__(
        self,
        target: TargetState,
        world: WorldStore,
        config: AllocationConfig,
        intent_requesters_total: int,
        intent_targets_total: int,
        wall_hits_ceiling: Optional[int] = None,
    ):
        self.target = target
        self.world = world
        self.config = config
        self.intent_requesters_total = intent_requesters_total
        self.intent_targets_total = intent_targets_total
        self.wall_hits_ceiling = wall_hits_ceiling

    def carried(self, agent_id: str) -> int:
        agent = self.world.get_agent(agent_id)
        return agent.energy if agent else 0

    def work_output(self, agent_id: str) -> int:
        return min(self.carried(agent_id), self.config.max_work_throughput)


def proportional_quota(requesters: int, targets: int, ceiling: int) -> int:
    """
    Spread requesters evenly over targets, capped per target.
    Never below one so a lone requester can still be admitted.
    """
    if targets <= 0:
        return ceiling
    return max(1, math.floor(min(requesters / targets, ceiling)))


def _guard(ctx: AllocationContext) -> Sufficiency:
    return HeadcountQuota(ctx.config.units_per_rampart)


def _recycle(ctx: AllocationContext) -> Sufficiency:
    return HeadcountQuota(ctx.config.units_per_resource)


def _harvest(ctx: AllocationContext) -> Sufficiency:
    return HeadcountQuota(proportional_quota(
        ctx.intent_requesters_total,
        ctx.intent_targets_total,
        ctx.config.units_per_source,
    ))


def _stockpile(ctx: AllocationContext) -> Sufficiency:
    target = ctx.target
    return CumulativeNeed(target.energy_capacity - target.energy, ctx.carried)


def _build(ctx: AllocationContext) -> Sufficiency:
    target = ctx.target
    return CumulativeNeed(target.progress_total - target.progress, ctx.work_output)


def _repair(ctx: AllocationContext) -> Sufficiency:
    target = ctx.target
    hits_max = target.hits_max
    if target.kind == TargetKind.RAMPART and ctx.wall_hits_ceiling is not None:
        hits_max = ctx.wall_hits_ceiling
    need = (hits_max - target.hits) / ctx.config.repair_power
    return CumulativeNeed(need, ctx.work_output)


SUFFICIENCY_TABLE: Dict[Intent, Callable[[AllocationContext], Sufficiency]] = {
    Intent.GUARD: _guard,
    Intent.RECYCLE: _recycle,
    Intent.HARVEST: _harvest,
    Intent.STOCKPILE: _stockpile,
    Intent.BUILD: _build,
    Intent.REPAIR: _repair,
}


def build_sufficiency(intent: Intent, ctx: AllocationContext) -> Sufficiency:
    """Look up and instantiate the predicate for an intent."""
    factory = SUFFICIENCY_TABLE.get(intent)
    if factory is None:
        raise KeyError(f"No sufficiency rule registered for intent: {intent}")
    return factory(ctx)

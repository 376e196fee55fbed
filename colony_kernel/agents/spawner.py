"""
Spawner model: decides which unit, if any, a spawn structure produces.

Fighters come first while the region is under attack and has fewer fighters
than ramparts; otherwise the largest affordable worker body is chosen while
the region is below its worker ceiling.
"""

from typing import Dict, List, Optional
from uuid import uuid4

from colony_kernel.actuation.fabric import Actuator
from colony_kernel.decision.engine import Behavior, DecisionContext, DecisionEngine
from colony_kernel.models.actuation import CommandVerb
from colony_kernel.models.world import TargetState
from colony_kernel.world_model.snapshot import RegionSnapshot

MOVE = "move"
WORK = "work"
CARRY = "carry"
ATTACK = "attack"

BODYPART_COST = {MOVE: 50, WORK: 100, CARRY: 50, ATTACK: 80}

FIGHTER_BODY = [MOVE, ATTACK]
WORKER_BODIES = [
    ("spawnDrone", "D", [WORK, WORK, CARRY, CARRY, MOVE, MOVE, MOVE, MOVE, MOVE, ATTACK]),
    ("spawnWorker3G", "3GW", [WORK, WORK, CARRY, CARRY, MOVE, MOVE, MOVE, MOVE]),
    ("spawnWorker2G", "2GW", [WORK, WORK, CARRY, MOVE, MOVE]),
    ("spawnWorker1G", "1GW", [WORK, WORK, CARRY, MOVE]),
]


def body_cost(body: List[str]) -> int:
    """Energy needed to produce a unit with the given body parts."""
    if not body:
        raise ValueError("Invalid body!")
    return sum(BODYPART_COST[part] for part in body)


def body_capabilities(body: List[str]) -> Dict[str, bool]:
    return {
        "can_move": MOVE in body,
        "can_work": WORK in body,
        "can_carry": CARRY in body,
        "can_attack": ATTACK in body,
    }


def generate_unit_name(prefix: str = "") -> str:
    return f"{prefix}{uuid4().hex[:6]}"


class SpawnerBeliefs(DecisionContext):
    spawn: TargetState
    region: RegionSnapshot
    actuator: Actuator
    max_workers: int = 0
    target_body: Optional[List[str]] = None
    unit_name: Optional[str] = None


class SpawnerModel(DecisionEngine):
    """An intelligent agent for a spawn structure."""

    kind = "spawner"

    @property
    def agent_id(self) -> str:
        return self.beliefs.spawn.id

    def behaviors(self) -> List[Behavior]:
        entries = [Behavior("spawnFighter", self._fighter_conditions, self._spawn_actions)]
        for title, prefix, body in WORKER_BODIES:
            entries.append(Behavior(
                title,
                self._worker_conditions(title, prefix, body),
                self._spawn_actions,
            ))
        return entries

    def can_spawn(self, body: List[str]) -> bool:
        ctx = self.beliefs
        return ctx.spawn.spawning is None and body_cost(body) <= ctx.region.energy_available

    def _choose(self, ctx: SpawnerBeliefs, title: str, prefix: str, body: List[str]) -> bool:
        if not self.can_spawn(body):
            return False
        ctx.intent = title
        ctx.target = None
        ctx.target_body = body
        ctx.unit_name = generate_unit_name(prefix)
        return True

    def _fighter_conditions(self, ctx: SpawnerBeliefs) -> bool:
        region = ctx.region
        # not under attack, or already enough defenders
        if not region.enemies or len(region.fighters) >= len(region.ramparts):
            return False
        return self._choose(ctx, "spawnFighter", "F", FIGHTER_BODY)

    def _worker_conditions(self, title: str, prefix: str, body: List[str]):
        def conditions(ctx: SpawnerBeliefs) -> bool:
            if len(ctx.region.workers) >= ctx.max_workers:
                return False
            return self._choose(ctx, title, prefix, body)
        return conditions

    def _spawn_actions(self, ctx: SpawnerBeliefs) -> None:
        ctx.actuator.issue(
            self.agent_id,
            CommandVerb.SPAWN,
            target_id=ctx.spawn.id,
            name=ctx.unit_name,
            body=list(ctx.target_body),
            spawn_region=ctx.spawn.position.region,
            **body_capabilities(ctx.target_body),
        )

"""
World Store: the in-process collaborator that owns agents and targets.

Updated by: the host simulation (ingest, tick advance)
Queried by: the snapshot cache, the allocation manager and the tick loop
"""

from typing import List, Optional, Union

from colony_kernel.models.world import (
    AgentState,
    HostileState,
    TargetKind,
    TargetState,
    WorldModel,
)


class WorldStore:
    """
    In-memory world store. Agents and targets are owned here; the decision
    layers only read them.
    """

    def __init__(self, model: Optional[WorldModel] = None):
        self._model = model or WorldModel()

    @property
    def model(self) -> WorldModel:
        return self._model

    @property
    def tick(self) -> int:
        return self._model.tick

    def advance_tick(self) -> int:
        """Move the world forward by one tick and return the new tick."""
        self._model.tick += 1
        return self._model.tick

    def upsert_agent(self, agent: AgentState) -> None:
        self._model.agents[agent.name] = agent

    def upsert_target(self, target: TargetState) -> None:
        self._model.targets[target.id] = target

    def upsert_hostile(self, hostile: HostileState) -> None:
        self._model.hostiles[hostile.id] = hostile

    def remove(self, object_id: str) -> bool:
        """Remove an agent, target or hostile. Returns False if nothing matched."""
        for collection in (
            self._model.agents,
            self._model.targets,
            self._model.hostiles,
        ):
            if object_id in collection:
                del collection[object_id]
                return True
        return False

    def get_agent(self, name: str) -> Optional[AgentState]:
        return self._model.agents.get(name)

    def get_target(self, target_id: str) -> Optional[TargetState]:
        return self._model.targets.get(target_id)

    def get_object(
        self, object_id: str
    ) -> Optional[Union[AgentState, TargetState, HostileState]]:
        """Resolve any identifier, the way a target reference is resolved each tick."""
        return (
            self._model.targets.get(object_id)
            or self._model.agents.get(object_id)
            or self._model.hostiles.get(object_id)
        )

    def regions(self) -> List[str]:
        """All regions that contain at least one owned agent or target."""
        seen = {}
        for agent in self._model.agents.values():
            seen.setdefault(agent.position.region, None)
        for target in self._model.targets.values():
            seen.setdefault(target.position.region, None)
        return list(seen)

    def agents_in(self, region: str) -> List[AgentState]:
        return [
            a for a in self._model.agents.values() if a.position.region == region
        ]

    def targets_in(self, region: str, *kinds: TargetKind) -> List[TargetState]:
        return [
            t for t in self._model.targets.values()
            if t.position.region == region and (not kinds or t.kind in kinds)
        ]

    def hostiles_in(self, region: str) -> List[HostileState]:
        return [
            h for h in self._model.hostiles.values() if h.position.region == region
        ]

    def get_state_snapshot(self) -> dict:
        """Get a serializable snapshot of the current world state."""
        return self._model.model_dump(mode="json")

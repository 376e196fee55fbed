"""
Colony Loop: drives the colony one tick at a time.

Per tick:
  1. Advance the world tick and invalidate the snapshot cache
  2. Reconcile allocations when the reconciliation period comes round
  3. Run one decision pass for every planner (on its own interval),
     controller, tower, spawner and unit
  4. Persist the registers when a register store is configured

Everything runs to completion before the next tick begins.
"""

import asyncio
import logging
from typing import Callable, List, Optional

from colony_kernel.actuation.fabric import Actuator
from colony_kernel.agents.controller import ControllerBeliefs, ControllerModel
from colony_kernel.agents.planner import PlannerBeliefs, PlannerModel
from colony_kernel.agents.spawner import SpawnerBeliefs, SpawnerModel
from colony_kernel.agents.tower import TowerModel, tower_beliefs
from colony_kernel.agents.unit import UnitModel, unit_beliefs
from colony_kernel.allocation.manager import AllocationManager
from colony_kernel.decision.engine import DecisionEngine
from colony_kernel.models.allocation import AllocationConfig
from colony_kernel.models.simulation import DecisionOutcome, SimulationConfig, TickReport
from colony_kernel.models.world import TargetKind
from colony_kernel.registry.store import RegisterStore
from colony_kernel.world_model.snapshot import SnapshotCache
from colony_kernel.world_model.store import WorldStore

logger = logging.getLogger("colony_kernel.simulation")


class ColonyLoop:
    """Drives snapshots, reconciliation and decision passes tick by tick."""

    def __init__(
        self,
        world: WorldStore,
        config: Optional[SimulationConfig] = None,
        actuator: Optional[Actuator] = None,
        register_store: Optional[RegisterStore] = None,
        history_limit: int = 100,
    ):
        self.world = world
        self.config = config or SimulationConfig()
        self.actuator = actuator or Actuator(clock=lambda: self.world.tick)
        self.register_store = register_store
        self.snapshots = SnapshotCache(world, self.config)

        requests, leases = ({}, {})
        if register_store is not None:
            requests, leases = register_store.load()
            saved_tick = register_store.last_saved_tick()
            # lease stamps are only meaningful against the tick they were saved at
            if saved_tick is not None and world.tick < saved_tick:
                logger.info("Resuming world tick from register store tick=%d", saved_tick)
                world.model.tick = saved_tick

        self.manager = AllocationManager(
            world=world,
            config=self._allocation_config(self.config),
            snapshots=self.snapshots,
            request_register=requests,
            lease_register=leases,
        )

        self._history: List[TickReport] = []
        self._history_limit = history_limit
        self._running = False

    @staticmethod
    def _allocation_config(config: SimulationConfig) -> AllocationConfig:
        allocation = config.allocation
        if config.debug_mode and not allocation.debug_mode:
            allocation = allocation.model_copy(update={"debug_mode": True})
        return allocation

    def update_allocation_config(self, allocation: AllocationConfig) -> AllocationConfig:
        """Replace the allocation constants. Takes effect from the next reconciliation."""
        self.config = self.config.model_copy(update={"allocation": allocation})
        self.snapshots.config = self.config
        self.snapshots.invalidate()
        self.manager.config = self._allocation_config(self.config)
        return self.manager.config

    @property
    def status(self) -> str:
        """Current loop status."""
        return "running" if self._running else "stopped"

    @property
    def history(self) -> List[TickReport]:
        return list(self._history)

    @property
    def last_report(self) -> Optional[TickReport]:
        return self._history[-1] if self._history else None

    def tick(self) -> TickReport:
        """Advance the world by one tick and run every decision layer."""
        tick = self.world.advance_tick()
        self.snapshots.invalidate()
        self.actuator.clear()
        report = TickReport(tick=tick)

        if self.manager.is_due(tick):
            try:
                report.allocation = self.manager.reconcile()
                report.reconciled = True
            except Exception:
                if self.manager.config.debug_mode:
                    raise
                logger.exception("Reconciliation failed tick=%d", tick)

        if tick % self.config.planner_interval == 0:
            self._run_planners(report)
        self._run_controllers(report)
        self._run_towers(report)
        self._run_spawners(report)
        self._run_units(report)

        if self.register_store is not None:
            self.register_store.save(self.manager.requests, self.manager.leases, tick)

        self._history.append(report)
        if len(self._history) > self._history_limit:
            del self._history[0]

        logger.info(
            "TICK tick=%d reconciled=%s outcomes=%d faults=%d",
            tick, report.reconciled, len(report.outcomes),
            sum(1 for o in report.outcomes if o.faulted),
        )
        return report

    def run(self, ticks: int) -> List[TickReport]:
        """Run a fixed number of ticks."""
        return [self.tick() for _ in range(ticks)]

    async def run_async(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Run the loop until `stop_event` is set, one tick per interval."""
        self._running = True
        if stop_event is None:
            stop_event = asyncio.Event()

        try:
            while not stop_event.is_set():
                self.tick()
                try:
                    await asyncio.wait_for(
                        stop_event.wait(),
                        timeout=self.config.tick_interval_seconds,
                    )
                except asyncio.TimeoutError:
                    continue
        finally:
            self._running = False

    # --- Decision passes ---

    def _evaluate(
        self,
        report: TickReport,
        kind: str,
        agent_id: str,
        build: Callable[[], DecisionEngine],
    ) -> None:
        """Build and execute one agent's model, containing any fault to that agent."""
        try:
            engine = build()
        except Exception:
            if self.config.debug_mode:
                raise
            logger.exception("Belief assembly failed kind=%s agent=%s", kind, agent_id)
            report.outcomes.append(DecisionOutcome(
                agent_id=agent_id, agent_kind=kind, tick=report.tick, faulted=True,
            ))
            return

        engine.execute()
        outcome = engine.outcome(report.tick)
        if outcome.behavior:
            logger.debug(
                "DECIDE kind=%s agent=%s behavior=%s target=%s",
                kind, agent_id, outcome.behavior, outcome.target_id,
            )
        report.outcomes.append(outcome)

    def _run_planners(self, report: TickReport) -> None:
        for region in self.world.regions():
            def build(region=region):
                return PlannerModel(
                    PlannerBeliefs(
                        region=self.snapshots.get(region),
                        actuator=self.actuator,
                        threat_safe_range=self.config.threat_safe_range,
                    ),
                    debug=self.config.debug_mode,
                )
            self._evaluate(report, PlannerModel.kind, f"planner:{region}", build)

    def _run_controllers(self, report: TickReport) -> None:
        for controller in self._structures(TargetKind.CONTROLLER):
            def build(controller=controller):
                return ControllerModel(
                    ControllerBeliefs(
                        controller=controller,
                        region=self.snapshots.get(controller.position.region),
                        actuator=self.actuator,
                    ),
                    debug=self.config.debug_mode,
                )
            self._evaluate(report, ControllerModel.kind, controller.id, build)

    def _run_towers(self, report: TickReport) -> None:
        for tower in self._structures(TargetKind.TOWER):
            def build(tower=tower):
                return TowerModel(
                    tower_beliefs(
                        tower,
                        self.snapshots.get(tower.position.region),
                        self.actuator,
                        self.config,
                    ),
                    debug=self.config.debug_mode,
                )
            self._evaluate(report, TowerModel.kind, tower.id, build)

    def _run_spawners(self, report: TickReport) -> None:
        per_source = self.config.allocation.units_per_source
        for spawn in self._structures(TargetKind.SPAWN):
            def build(spawn=spawn):
                region = self.snapshots.get(spawn.position.region)
                return SpawnerModel(
                    SpawnerBeliefs(
                        spawn=spawn,
                        region=region,
                        actuator=self.actuator,
                        max_workers=len(region.energy_sources) * per_source,
                    ),
                    debug=self.config.debug_mode,
                )
            self._evaluate(report, SpawnerModel.kind, spawn.id, build)

    def _run_units(self, report: TickReport) -> None:
        for agent in list(self.world.model.agents.values()):
            def build(agent=agent):
                return UnitModel(
                    unit_beliefs(
                        agent,
                        self.snapshots.get(agent.position.region),
                        self.manager,
                        self.actuator,
                        self.config,
                    ),
                    debug=self.config.debug_mode,
                )
            self._evaluate(report, UnitModel.kind, agent.name, build)

    def _structures(self, kind: TargetKind):
        return [t for t in self.world.model.targets.values() if t.kind == kind]

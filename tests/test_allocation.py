"""Tests for the allocation manager: requests, leases and reconciliation."""

import logging

import pytest

from colony_kernel.allocation import manager as manager_module
from colony_kernel.allocation.manager import AllocationManager, InvalidAssignmentRequest
from colony_kernel.models.allocation import AllocationConfig
from colony_kernel.models.intent import Intent
from colony_kernel.models.world import (
    AgentState,
    Position,
    TargetKind,
    TargetState,
    WorldModel,
)
from colony_kernel.world_model.store import WorldStore

REGION = "W1N1"


def _worker(name: str, x: int = 25, y: int = 25, energy: int = 0) -> AgentState:
    return AgentState(
        name=name,
        position=Position(x=x, y=y, region=REGION),
        can_work=True,
        can_carry=True,
        energy=energy,
        carry_capacity=50,
    )


def _source(target_id: str, x: int = 25, y: int = 25) -> TargetState:
    return TargetState(
        id=target_id,
        kind=TargetKind.SOURCE,
        position=Position(x=x, y=y, region=REGION),
        energy=3000,
        energy_capacity=3000,
    )


def _make_world(tick: int = 0, agents=(), targets=()) -> WorldStore:
    world = WorldStore(WorldModel(tick=tick))
    for agent in agents:
        world.upsert_agent(agent)
    for target in targets:
        world.upsert_target(target)
    return world


class TestRequestAssignment:
    def setup_method(self):
        self.world = _make_world(tick=1, agents=[_worker("Creepy")], targets=[_source("src1")])
        self.manager = AllocationManager(self.world)

    def test_first_request_is_recorded_and_not_leased(self):
        """A first request is never granted on the spot."""
        assert self.manager.request_assignment("Creepy", "src1", "harvest") is False
        assert self.manager.requests == {"harvest": {"src1": {"Creepy": 1}}}
        assert self.manager.leases == {}

    def test_leased_agent_is_told_yes_and_request_refreshed(self):
        manager = AllocationManager(
            _make_world(tick=2),
            lease_register={"harvest": {"src1": {"Creepy": 1}}},
        )
        assert manager.request_assignment("Creepy", "src1", Intent.HARVEST) is True
        assert manager.requests == {"harvest": {"src1": {"Creepy": 2}}}
        # answering never touches the lease register
        assert manager.leases == {"harvest": {"src1": {"Creepy": 1}}}

    def test_lease_on_another_target_does_not_count(self):
        self.manager.leases["harvest"] = {"src2": {"Creepy": 1}}
        assert self.manager.request_assignment("Creepy", "src1", "harvest") is False

    def test_repeated_request_in_same_tick_is_idempotent(self):
        self.manager.request_assignment("Creepy", "src1", "harvest")
        self.manager.request_assignment("Creepy", "src1", "harvest")
        assert self.manager.requests == {"harvest": {"src1": {"Creepy": 1}}}

    def test_latest_request_in_window_wins(self):
        self.manager.request_assignment("Creepy", "src1", "harvest")
        self.world.advance_tick()
        self.world.advance_tick()
        assert self.manager.request_assignment("Creepy", "src1", "harvest") is False
        assert self.manager.requests == {"harvest": {"src1": {"Creepy": 3}}}

    @pytest.mark.parametrize("agent_id,target_id,intent", [
        ("", "src1", "harvest"),
        (None, "src1", "harvest"),
        ("Creepy", "", "harvest"),
        ("Creepy", None, "harvest"),
        ("Creepy", "src1", ""),
        ("Creepy", "src1", None),
        ("Creepy", "src1", "dance"),
    ])
    def test_invalid_arguments_raise(self, agent_id, target_id, intent):
        with pytest.raises(InvalidAssignmentRequest):
            self.manager.request_assignment(agent_id, target_id, intent)
        assert self.manager.requests == {}

    def test_invalid_request_is_a_value_error(self):
        with pytest.raises(ValueError):
            self.manager.request_assignment("Creepy", "src1", "dance")

    def test_leased_target_lookup(self):
        self.manager.leases["harvest"] = {"src1": {"Creepy": 1}}
        assert self.manager.leased_target("Creepy", Intent.HARVEST) == "src1"
        assert self.manager.leased_target("Creepy", Intent.BUILD) is None
        assert self.manager.is_leased("Creepy", "src1", "harvest")
        assert self.manager.requests == {}


class TestLeaseLifecycle:
    def test_renewal_stamps_the_reconcile_tick(self):
        manager = AllocationManager(
            _make_world(tick=2, agents=[_worker("Creepy")], targets=[_source("src1")]),
            lease_register={"harvest": {"src1": {"Creepy": 1}}},
            request_register={"harvest": {"src1": {"Creepy": 2}}},
        )
        summary = manager.reconcile()
        assert manager.leases == {"harvest": {"src1": {"Creepy": 2}}}
        assert summary.renewed == 1
        assert summary.pruned == 0

    def test_stale_lease_is_pruned(self):
        manager = AllocationManager(
            _make_world(tick=7),
            lease_register={"harvest": {"src1": {"Creepy": 1}}},
        )
        summary = manager.reconcile()
        assert manager.leases == {"harvest": {}}
        assert manager.requests == {}
        assert summary.pruned == 1

    def test_lease_survives_the_grace_period(self):
        manager = AllocationManager(
            _make_world(tick=6),
            lease_register={"harvest": {"src1": {"Creepy": 1}}},
        )
        manager.reconcile()
        assert manager.leases == {"harvest": {"src1": {"Creepy": 1}}}

    def test_request_register_cleared_after_reconcile(self):
        world = _make_world(tick=5, agents=[_worker("a")], targets=[_source("src1")])
        manager = AllocationManager(world)
        manager.request_assignment("a", "src1", "harvest")
        manager.reconcile()
        assert manager.requests == {}

    def test_is_due_on_period_boundaries(self):
        manager = AllocationManager(_make_world(), AllocationConfig(reconcile_period=5))
        assert manager.is_due(5)
        assert manager.is_due(10)
        assert not manager.is_due(6)


class TestAllocation:
    def test_nearby_requester_wins_contested_source(self):
        """
        Two units want one single-occupancy source. The one within the
        priority range gets the lease even though it asked second.
        """
        near = _worker("A1", x=27, y=25)
        far = _worker("A2", x=35, y=25)
        world = _make_world(agents=[near, far], targets=[_source("src1")])
        manager = AllocationManager(world, AllocationConfig(units_per_source=1))

        world.advance_tick()
        assert manager.request_assignment("A2", "src1", "harvest") is False
        assert manager.request_assignment("A1", "src1", "harvest") is False

        for _ in range(4):
            world.advance_tick()
        assert manager.is_due()
        summary = manager.reconcile()
        assert summary.granted == 1
        assert manager.leases == {"harvest": {"src1": {"A1": 5}}}

        world.advance_tick()
        assert manager.request_assignment("A1", "src1", "harvest") is True
        assert manager.request_assignment("A2", "src1", "harvest") is False

    def test_at_most_one_lease_per_intent(self):
        """Agents that asked for every source end up on exactly one."""
        agents = [_worker(name) for name in ("a", "b", "c", "d")]
        world = _make_world(
            tick=5, agents=agents, targets=[_source("s1", x=20), _source("s2", x=30)],
        )
        manager = AllocationManager(world)
        for agent in agents:
            manager.request_assignment(agent.name, "s1", "harvest")
            manager.request_assignment(agent.name, "s2", "harvest")

        manager.reconcile()

        s1 = set(manager.leases["harvest"]["s1"])
        s2 = set(manager.leases["harvest"]["s2"])
        assert len(s1) == 2
        assert len(s2) == 2
        assert not s1 & s2

    def test_proportional_quota_admits_everyone_under_ceiling(self):
        agents = [_worker(name) for name in ("a", "b", "c")]
        world = _make_world(tick=5, agents=agents, targets=[_source("s1")])
        manager = AllocationManager(world)
        for agent in agents:
            manager.request_assignment(agent.name, "s1", "harvest")
        summary = manager.reconcile()
        assert summary.granted == 3
        assert set(manager.leases["harvest"]["s1"]) == {"a", "b", "c"}

    def test_existing_lessee_keeps_its_place(self):
        """A renewed lessee is not displaced by a closer newcomer."""
        incumbent = _worker("B", x=40, y=25)
        newcomer = _worker("A", x=25, y=25)
        world = _make_world(tick=10, agents=[incumbent, newcomer], targets=[_source("s1")])
        manager = AllocationManager(
            world,
            AllocationConfig(units_per_source=1),
            lease_register={"harvest": {"s1": {"B": 5}}},
        )
        manager.request_assignment("A", "s1", "harvest")
        manager.request_assignment("B", "s1", "harvest")
        summary = manager.reconcile()
        assert summary.granted == 0
        assert manager.leases == {"harvest": {"s1": {"B": 10}}}

    def test_guard_fixed_quota(self):
        rampart = TargetState(
            id="r1", kind=TargetKind.RAMPART,
            position=Position(x=25, y=25, region=REGION), hits=100, hits_max=1000,
        )
        fighters = [
            AgentState(name=n, position=Position(x=25, y=26, region=REGION), can_attack=True)
            for n in ("f1", "f2")
        ]
        world = _make_world(tick=5, agents=fighters, targets=[rampart])
        manager = AllocationManager(world)
        for fighter in fighters:
            manager.request_assignment(fighter.name, "r1", Intent.GUARD)
        manager.reconcile()
        assert manager.leases["guard"]["r1"] == {"f1": 5}

    def test_stockpile_stops_when_capacity_is_covered(self):
        extension = TargetState(
            id="e1", kind=TargetKind.EXTENSION,
            position=Position(x=25, y=25, region=REGION),
            energy=0, energy_capacity=100,
        )
        carriers = [_worker(n, energy=60) for n in ("a", "b", "c")]
        world = _make_world(tick=5, agents=carriers, targets=[extension])
        manager = AllocationManager(world)
        for carrier in carriers:
            manager.request_assignment(carrier.name, "e1", Intent.STOCKPILE)
        summary = manager.reconcile()
        assert summary.granted == 2
        assert set(manager.leases["stockpile"]["e1"]) == {"a", "b"}

    def test_build_counts_work_throughput(self):
        site = TargetState(
            id="c1", kind=TargetKind.CONSTRUCTION_SITE,
            position=Position(x=25, y=25, region=REGION),
            progress=0, progress_total=10,
        )
        builders = [_worker(n, energy=50) for n in ("a", "b", "c")]
        world = _make_world(tick=5, agents=builders, targets=[site])
        manager = AllocationManager(world)
        for builder in builders:
            manager.request_assignment(builder.name, "c1", Intent.BUILD)
        manager.reconcile()
        assert set(manager.leases["build"]["c1"]) == {"a", "b"}

    def test_unresolved_target_is_skipped(self):
        world = _make_world(tick=5, agents=[_worker("a")], targets=[_source("s1")])
        manager = AllocationManager(world)
        manager.request_assignment("a", "ghost", "harvest")
        manager.request_assignment("a", "s1", "harvest")
        summary = manager.reconcile()
        assert summary.skipped_targets == 1
        assert "ghost" not in manager.leases["harvest"]
        assert manager.leases["harvest"]["s1"] == {"a": 5}

    def test_failure_on_one_target_does_not_block_others(self, monkeypatch, caplog):
        original = manager_module.build_sufficiency

        def flaky(intent, ctx):
            if ctx.target.id == "s1":
                raise RuntimeError("boom")
            return original(intent, ctx)

        monkeypatch.setattr(manager_module, "build_sufficiency", flaky)
        world = _make_world(
            tick=5, agents=[_worker("a"), _worker("b")],
            targets=[_source("s1"), _source("s2")],
        )
        manager = AllocationManager(world)
        manager.request_assignment("a", "s1", "harvest")
        manager.request_assignment("b", "s2", "harvest")

        with caplog.at_level(logging.ERROR, logger="colony_kernel.allocation"):
            summary = manager.reconcile()

        assert summary.failed_targets == 1
        assert manager.leases["harvest"] == {"s2": {"b": 5}}
        assert "ALLOCATE failed" in caplog.text

    def test_failure_propagates_in_debug_mode(self, monkeypatch):
        def broken(intent, ctx):
            raise RuntimeError("boom")

        monkeypatch.setattr(manager_module, "build_sufficiency", broken)
        world = _make_world(tick=5, agents=[_worker("a")], targets=[_source("s1")])
        manager = AllocationManager(world, AllocationConfig(debug_mode=True))
        manager.request_assignment("a", "s1", "harvest")
        with pytest.raises(RuntimeError):
            manager.reconcile()

    def test_malformed_lease_does_not_block_allocation(self, caplog):
        """A corrupt lease stamp fails its own target, not the whole pass."""
        world = _make_world(tick=10, agents=[_worker("a")], targets=[_source("s1")])
        manager = AllocationManager(world, lease_register={"guard": {"r1": {"x": None}}})
        manager.request_assignment("a", "s1", "harvest")

        with caplog.at_level(logging.ERROR, logger="colony_kernel.allocation"):
            summary = manager.reconcile()

        assert summary.failed_targets == 1
        assert summary.granted == 1
        assert manager.leases["harvest"] == {"s1": {"a": 10}}
        assert manager.requests == {}
        assert "RENEW failed" in caplog.text

    def test_request_window_closes_when_debug_failure_propagates(self):
        world = _make_world(tick=10, agents=[_worker("a")], targets=[_source("s1")])
        manager = AllocationManager(
            world,
            AllocationConfig(debug_mode=True),
            lease_register={"guard": {"r1": {"x": None}}},
        )
        manager.request_assignment("a", "s1", "harvest")
        with pytest.raises(TypeError):
            manager.reconcile()
        assert manager.requests == {}

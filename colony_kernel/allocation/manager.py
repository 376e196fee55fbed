"""
Allocation Manager: deferred, lease-based contention resolution.

Agents ask "am I leased for this target?" during their decision pass. The
question doubles as a request: it is stamped into the request register and
considered at the next reconciliation. Reconciliation runs on its own
period, renews or prunes existing leases and then grants new ones until
each target's sufficiency predicate is met.

Behavioral Contract:
- request_assignment only writes the request register
- reconcile is the only writer of the lease register
- For one intent an agent holds at most one lease across all targets
- Leases without a fresh request survive `expiration_ticks` before pruning
- Targets that no longer resolve are skipped, not reported as errors
- A failure while allocating one target never blocks the others
"""

import logging
from typing import Dict, List, Optional, Set, Union

from colony_kernel.allocation.sufficiency import AllocationContext, build_sufficiency
from colony_kernel.models.allocation import AllocationConfig, AllocationSummary, Register
from colony_kernel.models.intent import Intent
from colony_kernel.models.world import TargetState
from colony_kernel.world_model.snapshot import SnapshotCache
from colony_kernel.world_model.store import WorldStore

logger = logging.getLogger("colony_kernel.allocation")


class InvalidAssignmentRequest(ValueError):
    """Raised when an assignment request is missing a required argument."""
    pass


class AllocationManager:
    """Owns the request and lease registers and the reconciliation algorithm."""

    def __init__(
        self,
        world: WorldStore,
        config: Optional[AllocationConfig] = None,
        snapshots: Optional[SnapshotCache] = None,
        request_register: Optional[Register] = None,
        lease_register: Optional[Register] = None,
    ):
        self.world = world
        self.config = config or AllocationConfig()
        self.snapshots = snapshots
        self._requests: Register = request_register if request_register is not None else {}
        self._leases: Register = lease_register if lease_register is not None else {}

    @property
    def requests(self) -> Register:
        """intent -> target id -> agent id -> tick of most recent request."""
        return self._requests

    @property
    def leases(self) -> Register:
        """intent -> target id -> agent id -> tick of most recent renewal."""
        return self._leases

    # --- Admission ---

    def request_assignment(
        self, agent_id: str, target_id: str, intent: Union[Intent, str]
    ) -> bool:
        """
        Record interest in (target, intent) and report whether the agent is
        currently leased to it. Always records, whatever the answer.
        """
        if not agent_id:
            raise InvalidAssignmentRequest("Invalid agent!")
        if not target_id:
            raise InvalidAssignmentRequest("Invalid target!")
        if not intent:
            raise InvalidAssignmentRequest("Invalid intent!")
        try:
            key = Intent(intent).value
        except ValueError as e:
            raise InvalidAssignmentRequest(f"Unknown intent: {intent}") from e

        target_requesters = self._requests.setdefault(key, {}).setdefault(target_id, {})
        target_requesters[agent_id] = self.world.tick

        return agent_id in self._leases.get(key, {}).get(target_id, {})

    def is_leased(
        self, agent_id: str, target_id: str, intent: Union[Intent, str]
    ) -> bool:
        """Read-only lease check. Does not register a request."""
        key = Intent(intent).value
        return agent_id in self._leases.get(key, {}).get(target_id, {})

    def leased_target(self, agent_id: str, intent: Union[Intent, str]) -> Optional[str]:
        """The target an agent is leased to under an intent, if any."""
        key = Intent(intent).value
        for target_id, assignees in self._leases.get(key, {}).items():
            if agent_id in assignees:
                return target_id
        return None

    # --- Reconciliation ---

    def is_due(self, tick: Optional[int] = None) -> bool:
        """Whether reconciliation is scheduled for this tick."""
        if tick is None:
            tick = self.world.tick
        return tick % self.config.reconcile_period == 0

    def reconcile(self) -> AllocationSummary:
        """
        Run one reconciliation: renew or prune leases, then allocate new
        ones. Clears the request register for the next window, even when
        a debug-mode failure propagates.
        """
        tick = self.world.tick
        summary = AllocationSummary(tick=tick)

        try:
            self._prune_and_renew(tick, summary)
            self._allocate(tick, summary)
        finally:
            self.reset_requests()

        logger.debug(
            "RECONCILE tick=%d renewed=%d pruned=%d granted=%d skipped=%d failed=%d",
            tick, summary.renewed, summary.pruned, summary.granted,
            summary.skipped_targets, summary.failed_targets,
        )
        return summary

    def reset_requests(self) -> None:
        """Start a new request window."""
        self._requests.clear()

    def _prune_and_renew(self, tick: int, summary: AllocationSummary) -> None:
        for intent, lease_targets in self._leases.items():
            request_targets = self._requests.get(intent, {})
            for target_id in list(lease_targets):
                try:
                    self._prune_and_renew_target(
                        intent, target_id, lease_targets,
                        request_targets.get(target_id, {}), tick, summary,
                    )
                except Exception:
                    if self.config.debug_mode:
                        raise
                    summary.failed_targets += 1
                    logger.exception(
                        "RENEW failed intent=%s target=%s", intent, target_id
                    )

    def _prune_and_renew_target(
        self,
        intent: str,
        target_id: str,
        lease_targets: Dict[str, Dict[str, int]],
        requesters: Dict[str, int],
        tick: int,
        summary: AllocationSummary,
    ) -> None:
        expiration = self.config.expiration_ticks
        assignees = lease_targets[target_id]
        for agent_id in list(assignees):
            if agent_id in requesters:
                assignees[agent_id] = tick
                summary.renewed += 1
            elif tick > assignees[agent_id] + expiration:
                del assignees[agent_id]
                summary.pruned += 1
                logger.debug(
                    "LEASE pruned intent=%s target=%s agent=%s",
                    intent, target_id, agent_id,
                )
        if not assignees:
            del lease_targets[target_id]

    def _allocate(self, tick: int, summary: AllocationSummary) -> None:
        for intent_key, request_targets in self._requests.items():
            intent_requesters: Set[str] = set()
            for requesters in request_targets.values():
                intent_requesters.update(requesters)

            for target_id in list(request_targets):
                try:
                    intent = Intent(intent_key)
                    target = self.world.get_target(target_id)
                    if target is None:
                        summary.skipped_targets += 1
                        logger.debug(
                            "ALLOCATE skipped unresolved target intent=%s target=%s",
                            intent_key, target_id,
                        )
                        continue
                    ctx = AllocationContext(
                        target=target,
                        world=self.world,
                        config=self.config,
                        intent_requesters_total=len(intent_requesters),
                        intent_targets_total=len(request_targets),
                        wall_hits_ceiling=self._wall_hits_ceiling(target),
                    )
                    summary.granted += self._allocate_target(
                        intent, target, request_targets[target_id], ctx, tick
                    )
                except Exception:
                    if self.config.debug_mode:
                        raise
                    summary.failed_targets += 1
                    logger.exception(
                        "ALLOCATE failed intent=%s target=%s", intent_key, target_id
                    )

    def _allocate_target(
        self,
        intent: Intent,
        target: TargetState,
        requesters: Dict[str, int],
        ctx: AllocationContext,
        tick: int,
    ) -> int:
        """Grant leases on one target in priority order until it is satisfied."""
        lease_targets = self._leases.setdefault(intent.value, {})
        assignees = lease_targets.get(target.id, {})

        intent_assignees: Set[str] = set()
        for leased in lease_targets.values():
            intent_assignees.update(leased)

        is_sufficient = build_sufficiency(intent, ctx)
        granted = 0
        last_counted: Optional[str] = None
        for agent_id in self._priority_order(target, requesters, assignees):
            if is_sufficient.is_satisfied(assignees, last_counted):
                break
            last_counted = None
            if agent_id in assignees:
                # continuing lessees count toward the need first
                last_counted = agent_id
                continue
            if agent_id in intent_assignees:
                continue
            assignees[agent_id] = tick
            intent_assignees.add(agent_id)
            last_counted = agent_id
            granted += 1
            logger.debug(
                "LEASE granted intent=%s target=%s agent=%s",
                intent.value, target.id, agent_id,
            )

        if assignees:
            lease_targets[target.id] = assignees
        return granted

    def _priority_order(
        self,
        target: TargetState,
        requesters: Dict[str, int],
        assignees: Dict[str, int],
    ) -> List[str]:
        """
        Continuing lessees first, then requesters within priority range, then
        everyone else. Ties keep registration order.
        """
        registered = sorted(requesters, key=lambda name: requesters[name])
        continuing = [name for name in registered if name in assignees]
        nearby = []
        for name in registered:
            agent = self.world.get_agent(name)
            if agent and agent.position.range_to(target.position) <= self.config.priority_range:
                nearby.append(name)

        ordered: Dict[str, None] = {}
        for name in continuing + nearby + registered:
            ordered.setdefault(name, None)
        return list(ordered)

    def _wall_hits_ceiling(self, target: TargetState) -> Optional[int]:
        if self.snapshots is None:
            return None
        return self.snapshots.get(target.position.region).max_rampart_hits

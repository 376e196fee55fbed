"""
Colony Kernel API: FastAPI endpoints.

Exposes the kernel for inspection and for driving a simulation:
- Allocation registers and configuration
- World state ingest and inspection
- Tick stepping and decision outcomes
"""

from typing import List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from colony_kernel.allocation.manager import InvalidAssignmentRequest
from colony_kernel.models.allocation import AllocationConfig
from colony_kernel.models.simulation import SimulationConfig
from colony_kernel.models.world import AgentState, HostileState, TargetState
from colony_kernel.registry.store import RegisterStore
from colony_kernel.simulation.loop import ColonyLoop
from colony_kernel.world_model.store import WorldStore


# --- Request/Response Models ---

class AssignmentRequest(BaseModel):
    agent_id: str
    target_id: str
    intent: str


class TickRequest(BaseModel):
    ticks: int = 1


# --- Application Factory ---

def create_app(
    world_store: Optional[WorldStore] = None,
    config: Optional[SimulationConfig] = None,
    register_store: Optional[RegisterStore] = None,
    loop: Optional[ColonyLoop] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="Colony Kernel API",
        description="Multi-agent colony decision and allocation kernel",
        version="0.1.0",
    )

    if loop is None:
        loop = ColonyLoop(
            world=world_store or WorldStore(),
            config=config,
            register_store=register_store,
        )
    ws = loop.world
    manager = loop.manager

    # Store components on app state for access in endpoints
    app.state.world_store = ws
    app.state.loop = loop
    app.state.manager = manager
    app.state.actuator = loop.actuator

    # === ALLOCATION ===

    @app.get("/allocation/requests")
    def get_requests():
        """The request register for the current window."""
        return manager.requests

    @app.get("/allocation/leases")
    def get_leases():
        """The lease register."""
        return manager.leases

    @app.post("/allocation/requests")
    def request_assignment(req: AssignmentRequest):
        """Register interest on behalf of an agent and report its lease."""
        try:
            leased = manager.request_assignment(req.agent_id, req.target_id, req.intent)
        except InvalidAssignmentRequest as e:
            raise HTTPException(400, str(e))
        return {"leased": leased, "tick": ws.tick}

    @app.get("/allocation/config")
    def get_allocation_config():
        return manager.config.model_dump(mode="json")

    @app.put("/allocation/config")
    def update_allocation_config(new_config: AllocationConfig):
        """Replace the allocation constants. Takes effect at the next reconciliation."""
        return loop.update_allocation_config(new_config).model_dump(mode="json")

    @app.post("/allocation/reconcile")
    def trigger_reconcile():
        """Force a reconciliation outside the regular period."""
        summary = manager.reconcile()
        return {
            "summary": summary.model_dump(mode="json"),
            "leases": manager.leases,
        }

    # === WORLD STATE ===

    @app.get("/world/state")
    def get_world_state():
        """Get the full world state snapshot."""
        return ws.get_state_snapshot()

    @app.get("/world/regions/{region}")
    def get_region_snapshot(region: str):
        """The region snapshot the decision layers see this tick."""
        if region not in ws.regions():
            raise HTTPException(404, "Region not found")
        return loop.snapshots.get(region).model_dump(mode="json")

    @app.post("/world/agents")
    def ingest_agent(agent: AgentState):
        ws.upsert_agent(agent)
        return {"status": "ingested", "id": agent.name}

    @app.post("/world/targets")
    def ingest_target(target: TargetState):
        ws.upsert_target(target)
        return {"status": "ingested", "id": target.id}

    @app.post("/world/hostiles")
    def ingest_hostile(hostile: HostileState):
        ws.upsert_hostile(hostile)
        return {"status": "ingested", "id": hostile.id}

    @app.delete("/world/objects/{object_id}")
    def remove_object(object_id: str):
        if not ws.remove(object_id):
            raise HTTPException(404, "Object not found")
        return {"status": "removed", "id": object_id}

    # === SIMULATION ===

    @app.post("/simulation/tick")
    def step_simulation(req: Optional[TickRequest] = None):
        """Advance the simulation one or more ticks."""
        ticks = req.ticks if req else 1
        if ticks < 1:
            raise HTTPException(400, "ticks must be at least 1")
        reports = loop.run(ticks)
        return {
            "tick": ws.tick,
            "reports": [r.model_dump(mode="json") for r in reports],
        }

    @app.get("/simulation/outcomes")
    def get_outcomes(agent_id: Optional[str] = None):
        """Decision outcomes of the most recent tick."""
        report = loop.last_report
        if report is None:
            return []
        outcomes = report.outcomes
        if agent_id:
            outcomes = [o for o in outcomes if o.agent_id == agent_id]
        return [o.model_dump(mode="json") for o in outcomes]

    @app.get("/simulation/commands")
    def get_commands(agent_id: Optional[str] = None) -> List[dict]:
        """Commands issued during the most recent tick."""
        commands = loop.actuator.issued_for(agent_id) if agent_id else loop.actuator.issued
        return [c.model_dump(mode="json") for c in commands]

    @app.get("/health")
    def health():
        return {
            "status": "healthy",
            "tick": ws.tick,
            "loop_status": loop.status,
        }

    return app


# Default application instance
app = create_app()

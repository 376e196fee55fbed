"""
Decision Engine: priority-ordered behaviour arbitration.

Every agent kind (units, towers, spawners, controllers, planners) is driven
by the same loop: walk a fixed, ranked list of behaviours, commit to the
first whose conditions hold, run its actions once and stop.

Behavioral Contract:
- First match, not best match. Later behaviours are never evaluated.
- No behaviour matched means no actions ran and no behaviour is recorded.
- A fault inside conditions or actions is contained to this agent:
  logged and swallowed, or re-raised when debug mode is on.
- A faulted agent reports no committed intent or target. Side effects its
  actions already issued are not rolled back.
"""

import logging
from enum import Enum
from typing import Any, Callable, List, Optional

from pydantic import BaseModel, ConfigDict

from colony_kernel.models.simulation import DecisionOutcome
from colony_kernel.models.world import Position

logger = logging.getLogger("colony_kernel.decision")


def _as_text(value: Any) -> Optional[str]:
    if isinstance(value, Enum):
        return value.value
    return value


class DecisionContext(BaseModel):
    """
    Mutable beliefs for one evaluation. Conditions record the chosen intent
    and target here; the engine records which behaviour was committed.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    intent: Optional[str] = None
    target: Any = None
    target_position: Optional[Position] = None
    behavior: Optional[str] = None
    faulted: bool = False

    @property
    def target_id(self) -> Optional[str]:
        if self.target is None:
            return None
        return getattr(self.target, "id", None)


class Behavior:
    """One ranked entry: a title, a precondition and an effect."""

    def __init__(
        self,
        title: str,
        conditions: Callable[[Any], bool],
        actions: Callable[[Any], None],
    ):
        self.title = title
        self.conditions = conditions
        self.actions = actions

    def __repr__(self) -> str:
        return f"Behavior({self.title!r})"


class DecisionEngine:
    """Base class for every agent model. Subclasses supply `behaviors()`."""

    kind = "agent"

    def __init__(self, beliefs: DecisionContext, debug: bool = False):
        self.beliefs = beliefs
        self.debug = debug

    @property
    def agent_id(self) -> str:
        return "unknown"

    def behaviors(self) -> List[Behavior]:
        """Return the ranked behaviours for this model."""
        raise NotImplementedError

    def execute(self) -> DecisionContext:
        """Commit to the first applicable behaviour and run it."""
        try:
            for behavior in self.behaviors():
                if behavior.conditions(self.beliefs):
                    behavior.actions(self.beliefs)
                    self.beliefs.behavior = behavior.title
                    break
        except Exception:
            if self.debug:
                raise
            self.beliefs.faulted = True
            logger.exception(
                "Behaviour evaluation failed kind=%s agent=%s",
                self.kind, self.agent_id,
            )
        return self.beliefs

    def outcome(self, tick: int) -> DecisionOutcome:
        """
        Summarize the committed behaviour for observability. A faulted
        evaluation committed nothing, whatever its conditions recorded.
        """
        beliefs = self.beliefs
        if beliefs.faulted:
            return DecisionOutcome(
                agent_id=self.agent_id, agent_kind=self.kind, tick=tick, faulted=True,
            )
        return DecisionOutcome(
            agent_id=self.agent_id,
            agent_kind=self.kind,
            tick=tick,
            behavior=beliefs.behavior,
            intent=_as_text(beliefs.intent),
            target_id=beliefs.target_id,
            target_position=beliefs.target_position,
        )

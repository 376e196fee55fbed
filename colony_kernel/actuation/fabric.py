"""
Actuator: translates committed behaviours into world-mutating commands.

Behavioral Contract:
- Accepts Commands issued by behaviour effects
- Dispatches each to the executor registered for its verb
- Executor failures are captured on the command, never reported back to the
  decision layers
"""

import logging
from typing import Callable, Dict, List, Optional

from colony_kernel.models.actuation import Command, CommandVerb
from colony_kernel.models.world import Position

logger = logging.getLogger("colony_kernel.actuation")


class ActuationError(Exception):
    """Raised when a command cannot be dispatched at all."""
    pass


class Actuator:
    """
    Dispatches commands to per-verb executors. By default every verb is
    accepted and recorded; hosts register executors that mutate the world.
    """

    def __init__(self, clock: Optional[Callable[[], int]] = None):
        self._clock = clock or (lambda: 0)
        self._executors: Dict[CommandVerb, Callable[[Command], None]] = {}
        self._issued: List[Command] = []
        self._register_default_executors()

    def _register_default_executors(self) -> None:
        for verb in CommandVerb:
            self._executors[verb] = self._record_only

    def register_executor(
        self, verb: CommandVerb, executor: Callable[[Command], None]
    ) -> None:
        """Register a custom executor for a command verb."""
        self._executors[verb] = executor

    @property
    def issued(self) -> List[Command]:
        return list(self._issued)

    def issued_for(self, agent_id: str) -> List[Command]:
        return [c for c in self._issued if c.agent_id == agent_id]

    def clear(self) -> None:
        self._issued.clear()

    def issue(
        self,
        agent_id: str,
        verb: CommandVerb,
        target_id: Optional[str] = None,
        position: Optional[Position] = None,
        **params,
    ) -> Command:
        """Issue a single command for an agent."""
        try:
            verb = CommandVerb(verb)
        except ValueError as e:
            raise ActuationError(f"Unknown command verb: {verb}") from e

        command = Command(
            agent_id=agent_id,
            verb=verb,
            tick=self._clock(),
            target_id=target_id,
            position=position,
            params=params,
        )
        executor = self._executors.get(verb)
        if executor is None:
            raise ActuationError(f"No executor registered for verb: {verb.value}")

        try:
            executor(command)
        except Exception as e:
            command.success = False
            command.error = str(e)
            logger.warning(
                "Command failed agent=%s verb=%s target=%s: %s",
                agent_id, verb.value, target_id, e,
            )
        self._issued.append(command)
        return command

    def _record_only(self, command: Command) -> None:
        return None

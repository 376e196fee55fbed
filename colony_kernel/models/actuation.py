"""Actuation commands: what the decision layer asks the world to do."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel

from colony_kernel.models.world import Position


class CommandVerb(str, Enum):
    MOVE = "move"
    SAY = "say"
    HARVEST = "harvest"
    PICKUP = "pickup"
    WITHDRAW = "withdraw"
    TRANSFER = "transfer"
    BUILD = "build"
    REPAIR = "repair"
    UPGRADE = "upgrade"
    ATTACK = "attack"
    HEAL = "heal"
    RETIRE = "retire"
    SPAWN = "spawn"
    SAFE_MODE = "safe_mode"
    REMOVE_SITE = "remove_site"


class Command(BaseModel):
    """A single world-mutating command issued for an agent."""

    agent_id: str
    verb: CommandVerb
    tick: int
    target_id: Optional[str] = None
    position: Optional[Position] = None
    params: dict = {}
    success: bool = True
    error: Optional[str] = None

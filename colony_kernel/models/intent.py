"""Intents: the closed set of contended behaviour categories."""

from enum import Enum


class Intent(str, Enum):
    GUARD = "guard"
    HARVEST = "harvest"
    RECYCLE = "recycle"
    STOCKPILE = "stockpile"
    BUILD = "build"
    REPAIR = "repair"


class SufficiencyKind(str, Enum):
    """How a target decides it has enough assignees for an intent."""

    FIXED_HEADCOUNT = "fixed_headcount"
    PROPORTIONAL_HEADCOUNT = "proportional_headcount"
    CUMULATIVE_NEED = "cumulative_need"


INTENT_SUFFICIENCY = {
    Intent.GUARD: SufficiencyKind.FIXED_HEADCOUNT,
    Intent.RECYCLE: SufficiencyKind.FIXED_HEADCOUNT,
    Intent.HARVEST: SufficiencyKind.PROPORTIONAL_HEADCOUNT,
    Intent.STOCKPILE: SufficiencyKind.CUMULATIVE_NEED,
    Intent.BUILD: SufficiencyKind.CUMULATIVE_NEED,
    Intent.REPAIR: SufficiencyKind.CUMULATIVE_NEED,
}

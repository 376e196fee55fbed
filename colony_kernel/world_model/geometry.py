"""Proximity queries over positioned objects."""

from typing import Callable, Iterable, List, Optional, TypeVar

from colony_kernel.models.simulation import RegionBounds
from colony_kernel.models.world import Position

T = TypeVar("T")


def in_range(subjects: Iterable[T], origin: Position, radius: int) -> List[T]:
    """Subjects within `radius` tiles of `origin`."""
    if radius < 0:
        raise ValueError("Invalid range value!")
    return [s for s in subjects if origin.range_to(s.position) <= radius]


def closest(
    origin: Position,
    candidates: Iterable[T],
    accept: Optional[Callable[[T], bool]] = None,
) -> Optional[T]:
    """
    Closest accepted candidate to `origin`, or None.

    `accept` is evaluated for every candidate before ranking, so admission
    checks register interest in each of them and not only in the winner.
    """
    accepted = [c for c in candidates if accept is None or accept(c)]
    reachable = [c for c in accepted if origin.range_to(c.position) != float("inf")]
    if not reachable:
        return None
    return min(reachable, key=lambda c: origin.range_to(c.position))


def avoidance_position(
    origin: Position, subject: Position, bounds: RegionBounds
) -> Position:
    """One step away from `subject`, clamped to the region bounds."""
    x = origin.x + 1 if origin.x > subject.x else origin.x - 1
    y = origin.y + 1 if origin.y > subject.y else origin.y - 1
    return Position(
        x=min(max(x, bounds.left), bounds.right),
        y=min(max(y, bounds.top), bounds.bottom),
        region=origin.region,
    )

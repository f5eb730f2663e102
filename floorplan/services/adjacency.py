"""
Shared-edge detection between zones on one floor.

Two zones are neighbors on a side when their facing edges coincide within
``epsilon`` and their projections on the perpendicular axis overlap by more
than ``epsilon`` (touching at a corner only does not count). The index is
derived data: it is rebuilt from the zone list and never stored.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from .zones import Zone

SIDES = ("north", "south", "east", "west")
OPPOSITE = {"north": "south", "south": "north", "east": "west", "west": "east"}

DEFAULT_EPSILON = 0.1


@dataclass
class EdgeFlags:
    north: bool = False
    south: bool = False
    east: bool = False
    west: bool = False

    def get(self, side: str) -> bool:
        return getattr(self, side)

    def as_dict(self) -> dict[str, bool]:
        return {side: getattr(self, side) for side in SIDES}


def _overlap(a_min: float, a_max: float, b_min: float, b_max: float) -> float:
    return min(a_max, b_max) - max(a_min, b_min)


def touches(a: Zone, b: Zone, side: str, epsilon: float = DEFAULT_EPSILON) -> bool:
    """True when ``b`` shares ``a``'s ``side`` edge."""
    if side == "north":
        edge = abs(b.min_y - a.max_y) <= epsilon
        span = _overlap(a.min_x, a.max_x, b.min_x, b.max_x)
    elif side == "south":
        edge = abs(b.max_y - a.min_y) <= epsilon
        span = _overlap(a.min_x, a.max_x, b.min_x, b.max_x)
    elif side == "east":
        edge = abs(b.min_x - a.max_x) <= epsilon
        span = _overlap(a.min_y, a.max_y, b.min_y, b.max_y)
    elif side == "west":
        edge = abs(b.max_x - a.min_x) <= epsilon
        span = _overlap(a.min_y, a.max_y, b.min_y, b.max_y)
    else:
        raise ValueError(f"Unknown side: {side}")
    return edge and span > epsilon


class AdjacencyIndex:
    """
    Per-floor map of zone index -> EdgeFlags.

    Indices follow the order of the zone list handed to :meth:`recompute`.
    The scan is O(n^2), fine for the tens of zones a floor holds.
    """

    def __init__(self, epsilon: float = DEFAULT_EPSILON):
        self.epsilon = epsilon
        self.zone_ids: list[str] = []
        self.flags: dict[int, EdgeFlags] = {}
        self.neighbors: dict[int, dict[str, list[int]]] = {}

    @classmethod
    def for_zones(cls, zones: Sequence[Zone], epsilon: float = DEFAULT_EPSILON) -> "AdjacencyIndex":
        index = cls(epsilon=epsilon)
        index.recompute(zones)
        return index

    def recompute(self, zones: Sequence[Zone]) -> "AdjacencyIndex":
        zones = list(zones)
        self.zone_ids = [zone.id for zone in zones]
        self.flags = {i: EdgeFlags() for i in range(len(zones))}
        self.neighbors = {i: {side: [] for side in SIDES} for i in range(len(zones))}

        for i, zone in enumerate(zones):
            for j, other in enumerate(zones):
                if i == j or other.floor != zone.floor:
                    continue
                for side in SIDES:
                    if touches(zone, other, side, self.epsilon):
                        setattr(self.flags[i], side, True)
                        self.neighbors[i][side].append(j)
        return self

    def __len__(self) -> int:
        return len(self.zone_ids)

    def flags_for(self, zone_id: str) -> EdgeFlags:
        try:
            return self.flags[self.zone_ids.index(zone_id)]
        except ValueError:
            return EdgeFlags()

    def neighbors_of(self, index: int, side: str) -> list[int]:
        return list(self.neighbors.get(index, {}).get(side, ()))

    def symmetry_violations(self) -> list[tuple[int, str, int]]:
        """
        (index, side, neighbor) triples whose neighbor does not report the
        opposite side back. Empty for a consistent index.
        """
        violations = []
        for i, by_side in self.neighbors.items():
            for side, others in by_side.items():
                for j in others:
                    if i not in self.neighbors.get(j, {}).get(OPPOSITE[side], ()):
                        violations.append((i, side, j))
        return violations

    def as_dict(self) -> dict[str, dict[str, bool]]:
        return {zone_id: self.flags[i].as_dict() for i, zone_id in enumerate(self.zone_ids)}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AdjacencyIndex):
            return NotImplemented
        return self.zone_ids == other.zone_ids and self.neighbors == other.neighbors

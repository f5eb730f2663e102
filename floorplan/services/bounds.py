"""
Bounding-box computation and normalization into the canvas viewport.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from .entities import Arc, CadEntity, Circle, coerce_entity
from .errors import BoundsUnavailable, DegenerateEntity
from .transforms import NormalizationTransform

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Bounds:
    min_x: float
    max_x: float
    min_y: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def center(self) -> tuple[float, float]:
        return ((self.min_x + self.max_x) / 2.0, (self.min_y + self.max_y) / 2.0)

    def as_dict(self) -> dict:
        return {
            "min_x": self.min_x,
            "max_x": self.max_x,
            "min_y": self.min_y,
            "max_y": self.max_y,
        }


# Sentinel used when a drawing has no usable coordinates: the canvas itself.
DEFAULT_BOUNDS = Bounds(0.0, 800.0, 0.0, 500.0)


class _Accumulator:
    def __init__(self) -> None:
        self.min_x = math.inf
        self.max_x = -math.inf
        self.min_y = math.inf
        self.max_y = -math.inf
        self.seen = False

    def add(self, x: float, y: float) -> None:
        if not (math.isfinite(x) and math.isfinite(y)):
            return
        self.min_x = min(self.min_x, x)
        self.max_x = max(self.max_x, x)
        self.min_y = min(self.min_y, y)
        self.max_y = max(self.max_y, y)
        self.seen = True

    def result(self) -> Bounds:
        if not self.seen:
            raise BoundsUnavailable("no valid coordinates")
        return Bounds(self.min_x, self.max_x, self.min_y, self.max_y)


def _visit(acc: _Accumulator, entity: CadEntity) -> None:
    if isinstance(entity, (Arc, Circle)):
        # Full circle extent, also for arcs
        r = entity.radius
        acc.add(entity.center.x - r, entity.center.y - r)
        acc.add(entity.center.x + r, entity.center.y + r)
        return
    for point in entity.points:
        acc.add(point.x, point.y)


def compute_bounds(
    entities: Iterable[Union[CadEntity, Mapping]],
    default: Bounds = DEFAULT_BOUNDS,
) -> Bounds:
    """
    Compute the bounding box of the given entities.

    Raw mappings are coerced first; degenerate ones are ignored. Never
    raises: with no valid coordinate the ``default`` sentinel is returned.
    """
    acc = _Accumulator()
    for item in entities or ():
        try:
            entity = coerce_entity(item)
        except DegenerateEntity as exc:
            logger.debug("Ignoring entity for bounds: %s", exc)
            continue
        _visit(acc, entity)

    try:
        return acc.result()
    except BoundsUnavailable:
        logger.debug("No valid coordinates, using default bounds %s", default)
        return default


def normalize(
    bounds: Optional[Bounds],
    target_w: float = 800.0,
    target_h: float = 500.0,
) -> NormalizationTransform:
    """
    Derive the document -> canvas transform for ``bounds``.

    Scale is uniform (aspect ratio preserved) and the bounds are recentred
    on the target's geometric center. Width and height are floored to 1 so
    zero-extent drawings still get a positive scale.
    """
    if target_w <= 0 or target_h <= 0:
        raise ValueError(f"target must be positive, got {target_w}x{target_h}")
    bounds = bounds or DEFAULT_BOUNDS

    width = max(bounds.width, 1.0)
    height = max(bounds.height, 1.0)
    scale = min(target_w / width, target_h / height)
    center_x, center_y = bounds.center

    return NormalizationTransform(
        scale=scale,
        center_x=center_x,
        center_y=center_y,
        target_w=target_w,
        target_h=target_h,
    )

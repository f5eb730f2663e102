"""
Entity tessellation.

Every entity becomes a flat ``[x1, y1, x2, y2, ...]`` list in which each
group of four numbers is one line segment. Output is in document space;
map it through a NormalizationTransform for the canvas.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from typing import Iterable, Optional, Sequence, Union

from .entities import Arc, CadDocument, CadEntity, Circle, Line, Point2D, Polyline, Spline, coerce_entity
from .errors import DegenerateEntity
from .transforms import NormalizationTransform

logger = logging.getLogger(__name__)

DEFAULT_SEGMENTS = 32
SPLINE_STEPS = 8  # samples per quadratic piece


def _chain(points: Sequence[tuple[float, float]], closed: bool = False) -> list[float]:
    flat: list[float] = []
    for i in range(len(points) - 1):
        flat.extend((points[i][0], points[i][1], points[i + 1][0], points[i + 1][1]))
    if closed and len(points) >= 2:
        flat.extend((points[-1][0], points[-1][1], points[0][0], points[0][1]))
    return flat


def _sample_arc(center: Point2D, radius: float, start_deg: float, sweep_deg: float, segments: int) -> list[tuple[float, float]]:
    start = math.radians(start_deg)
    sweep = math.radians(sweep_deg)
    return [
        (
            center.x + radius * math.cos(start + sweep * i / segments),
            center.y + radius * math.sin(start + sweep * i / segments),
        )
        for i in range(segments + 1)
    ]


def _arc_sweep(start_deg: float, end_deg: float) -> float:
    """Counter-clockwise sweep from start to end, in (0, 360]."""
    sweep = (end_deg - start_deg) % 360.0
    return 360.0 if sweep == 0.0 else sweep


def _spline_points(control: Sequence[Point2D]) -> list[tuple[float, float]]:
    """
    Approximate a spline with quadratic curves through control-point
    midpoints, ending with a straight run to the last control point.
    """
    pts = [p.as_tuple() for p in control]
    if len(pts) < 3:
        return pts

    out = [pts[0]]
    current_start = pts[0]
    for i in range(1, len(pts) - 1):
        ctrl = pts[i]
        nxt = pts[i + 1]
        mid = ((ctrl[0] + nxt[0]) / 2.0, (ctrl[1] + nxt[1]) / 2.0)
        for step in range(1, SPLINE_STEPS + 1):
            t = step / SPLINE_STEPS
            u = 1.0 - t
            out.append((
                u * u * current_start[0] + 2 * u * t * ctrl[0] + t * t * mid[0],
                u * u * current_start[1] + 2 * u * t * ctrl[1] + t * t * mid[1],
            ))
        current_start = mid
    out.append(pts[-1])
    return out


def tessellate(entity: Union[CadEntity, Mapping], segments: int = DEFAULT_SEGMENTS) -> list[float]:
    """
    Convert one entity into flat line segments.

    Raw mappings are coerced through the entity boundary first; degenerate
    entities tessellate to an empty list.
    """
    if segments < 1:
        raise ValueError("segments must be >= 1")
    try:
        entity = coerce_entity(entity)
    except DegenerateEntity as exc:
        logger.debug("Skipping degenerate entity: %s", exc)
        return []

    if isinstance(entity, Line):
        return [entity.start.x, entity.start.y, entity.end.x, entity.end.y]

    if isinstance(entity, Polyline):
        return _chain([v.as_tuple() for v in entity.vertices], closed=entity.closed)

    if isinstance(entity, Circle):
        return _chain(_sample_arc(entity.center, entity.radius, 0.0, 360.0, segments))

    if isinstance(entity, Arc):
        sweep = _arc_sweep(entity.start_angle, entity.end_angle)
        return _chain(_sample_arc(entity.center, entity.radius, entity.start_angle, sweep, segments))

    if isinstance(entity, Spline):
        return _chain(_spline_points(entity.control_points))

    return []


def tessellate_entities(
    entities: Iterable[Union[CadEntity, Mapping]],
    segments: int = DEFAULT_SEGMENTS,
) -> list[tuple[str, list[float]]]:
    """Tessellate entities, keeping each one's layer for styling."""
    out: list[tuple[str, list[float]]] = []
    for item in entities:
        flat = tessellate(item, segments=segments)
        if flat:
            layer = getattr(item, "layer", None) or (item.get("layer") if isinstance(item, Mapping) else None)
            out.append((str(layer or "0"), flat))
    return out


def tessellate_document(
    document: CadDocument,
    transform: Optional[NormalizationTransform] = None,
    segments: int = DEFAULT_SEGMENTS,
) -> list[float]:
    """Tessellate a whole document into one flat segment list."""
    flat: list[float] = []
    for _layer, part in tessellate_entities(document.entities, segments=segments):
        flat.extend(part)
    if transform is not None:
        flat = transform.apply_segments(flat)
    return flat

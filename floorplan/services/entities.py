"""
CAD entity model.

Drawings arrive in several loosely-typed shapes: DXF group codes, ezdxf
entities, and JSON blobs saved by older editors (``{start, end}`` vs
``{startPoint, endPoint}``, ``{x, y}`` dicts vs tuples, ``closed`` vs
``shape``). All of them pass through :func:`coerce_entity` exactly once, at
ingestion, and come out as one of five immutable variants. Nothing
downstream inspects raw shapes.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, ClassVar, Iterable, Optional, Union

from .errors import DegenerateEntity


@dataclass(frozen=True)
class Point2D:
    """2D point in document space."""
    x: float
    y: float

    def is_origin(self) -> bool:
        return self.x == 0.0 and self.y == 0.0

    def as_tuple(self) -> tuple[float, float]:
        return (self.x, self.y)


ORIGIN = Point2D(0.0, 0.0)


@dataclass(frozen=True)
class Line:
    start: Point2D
    end: Point2D
    layer: str = "0"
    kind: ClassVar[str] = "LINE"

    @property
    def points(self) -> tuple[Point2D, ...]:
        return (self.start, self.end)


@dataclass(frozen=True)
class Polyline:
    vertices: tuple[Point2D, ...]
    closed: bool = False
    layer: str = "0"
    kind: ClassVar[str] = "POLYLINE"

    @property
    def points(self) -> tuple[Point2D, ...]:
        return self.vertices


@dataclass(frozen=True)
class Arc:
    center: Point2D
    radius: float
    start_angle: float  # degrees, counter-clockwise
    end_angle: float
    layer: str = "0"
    kind: ClassVar[str] = "ARC"

    @property
    def points(self) -> tuple[Point2D, ...]:
        return (self.center,)


@dataclass(frozen=True)
class Circle:
    center: Point2D
    radius: float
    layer: str = "0"
    kind: ClassVar[str] = "CIRCLE"

    @property
    def points(self) -> tuple[Point2D, ...]:
        return (self.center,)


@dataclass(frozen=True)
class Spline:
    control_points: tuple[Point2D, ...]
    layer: str = "0"
    kind: ClassVar[str] = "SPLINE"

    @property
    def points(self) -> tuple[Point2D, ...]:
        return self.control_points


CadEntity = Union[Line, Polyline, Arc, Circle, Spline]
ENTITY_CLASSES = (Line, Polyline, Arc, Circle, Spline)


@dataclass(frozen=True)
class SkippedEntity:
    """An entity dropped at ingestion, kept for diagnostics."""
    index: int
    entity_type: str
    reason: str


@dataclass(frozen=True)
class CadDocument:
    """Parsed drawing. ``entities`` may be empty but is never None."""
    entities: tuple[CadEntity, ...] = ()
    skipped: tuple[SkippedEntity, ...] = ()
    source_format: str = "dxf"
    units: str = "unitless"
    layers: tuple[str, ...] = field(default=())

    def __len__(self) -> int:
        return len(self.entities)


# ----------------------------------------------------------------------
# Coercion boundary
# ----------------------------------------------------------------------
_TYPE_ALIASES = {
    "LINE": "LINE",
    "LWPOLYLINE": "POLYLINE",
    "POLYLINE": "POLYLINE",
    "ARC": "ARC",
    "CIRCLE": "CIRCLE",
    "SPLINE": "SPLINE",
}


def _finite(value: Any) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def point_or_none(value: Any) -> Optional[Point2D]:
    """Return a Point2D for any recognized vertex shape, else None."""
    if isinstance(value, Point2D):
        return value
    if value is None or isinstance(value, (str, bytes)):
        return None
    if isinstance(value, Mapping):
        x, y = _finite(value.get("x")), _finite(value.get("y"))
    elif isinstance(value, Sequence):
        if len(value) < 2:
            return None
        x, y = _finite(value[0]), _finite(value[1])
    elif hasattr(value, "x") and hasattr(value, "y"):
        # ezdxf Vec2/Vec3 and similar
        x, y = _finite(value.x), _finite(value.y)
    else:
        return None
    if x is None or y is None:
        return None
    return Point2D(x, y)


def resolve_point(value: Any) -> Point2D:
    """Resolve a vertex shape; unrecognized shapes resolve to the origin."""
    return point_or_none(value) or ORIGIN


def _first(raw: Mapping, *keys: str) -> Any:
    """First present value among ``keys``; None and empty lists count as absent."""
    for key in keys:
        value = raw.get(key)
        if value is None or (isinstance(value, (list, tuple)) and not value):
            continue
        return value
    return None


def _resolve_many(values: Any) -> tuple[Point2D, ...]:
    if values is None or isinstance(values, (str, bytes, Mapping)):
        return ()
    try:
        return tuple(resolve_point(v) for v in values)
    except TypeError:
        return ()


def _reject_all_origin(entity_type: str, points: Sequence[Point2D]) -> None:
    if all(p.is_origin() for p in points):
        raise DegenerateEntity(entity_type, "every vertex resolved to (0, 0)")


def _radius(entity_type: str, raw: Mapping) -> float:
    radius = _finite(raw.get("radius"))
    if radius is None or radius <= 0:
        raise DegenerateEntity(entity_type, f"invalid radius {raw.get('radius')!r}")
    return radius


def _center(entity_type: str, raw: Mapping) -> Point2D:
    center = point_or_none(raw.get("center"))
    if center is None:
        raise DegenerateEntity(entity_type, "missing or unrecognized center")
    return center


def coerce_entity(raw: Union[Mapping, CadEntity]) -> CadEntity:
    """
    Convert a loosely-typed entity mapping into a closed CadEntity variant.

    Raises:
        DegenerateEntity: unknown type or unusable geometry.
    """
    if isinstance(raw, ENTITY_CLASSES):
        return raw
    if not isinstance(raw, Mapping):
        raise DegenerateEntity(type(raw).__name__, "not an entity mapping")

    raw_type = str(raw.get("type") or "").upper()
    kind = _TYPE_ALIASES.get(raw_type)
    if kind is None:
        raise DegenerateEntity(raw_type or "UNKNOWN", "unsupported entity type")

    layer = str(raw.get("layer") or "0")

    if kind == "LINE":
        start = _first(raw, "start", "startPoint", "start_point")
        end = _first(raw, "end", "endPoint", "end_point")
        if start is None and end is None:
            vertices = _resolve_many(raw.get("vertices"))
            if len(vertices) < 2:
                raise DegenerateEntity(raw_type, "line needs two endpoints")
            points = (vertices[0], vertices[1])
        else:
            points = (resolve_point(start), resolve_point(end))
        _reject_all_origin(raw_type, points)
        return Line(points[0], points[1], layer=layer)

    if kind == "POLYLINE":
        vertices = _resolve_many(_first(raw, "vertices", "points"))
        if len(vertices) < 2:
            raise DegenerateEntity(raw_type, f"{len(vertices)} vertices, need at least 2")
        _reject_all_origin(raw_type, vertices)
        closed = bool(raw.get("closed") or raw.get("shape"))
        return Polyline(vertices, closed=closed, layer=layer)

    if kind == "ARC":
        start_angle = _finite(_first(raw, "start_angle", "startAngle"))
        end_angle = _finite(_first(raw, "end_angle", "endAngle"))
        return Arc(
            _center(raw_type, raw),
            _radius(raw_type, raw),
            0.0 if start_angle is None else start_angle,
            360.0 if end_angle is None else end_angle,
            layer=layer,
        )

    if kind == "CIRCLE":
        return Circle(_center(raw_type, raw), _radius(raw_type, raw), layer=layer)

    control = _resolve_many(_first(raw, "control_points", "controlPoints", "fit_points", "fitPoints"))
    if len(control) < 2:
        raise DegenerateEntity(raw_type, f"{len(control)} control points, need at least 2")
    _reject_all_origin(raw_type, control)
    return Spline(control, layer=layer)


def coerce_entities(items: Iterable[Union[Mapping, CadEntity]]) -> tuple[list[CadEntity], list[SkippedEntity]]:
    """Coerce many raw entities, splitting accepted ones from skipped ones."""
    accepted: list[CadEntity] = []
    skipped: list[SkippedEntity] = []
    for index, raw in enumerate(items):
        try:
            accepted.append(coerce_entity(raw))
        except DegenerateEntity as exc:
            skipped.append(SkippedEntity(index, exc.entity_type, exc.reason))
    return accepted, skipped

"""
Floor-structure analysis.

Reads walls, doors and windows off a parsed drawing by layer name, infers
rooms from the wall network with shapely and turns them into suggested
zones for the editor. Everything here is best-effort: a drawing without
wall layers simply yields no rooms.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Iterable, Optional, Sequence

from shapely.geometry import LineString, Point, box
from shapely.ops import polygonize, unary_union

from .bounds import Bounds, compute_bounds, normalize
from .entities import Arc, CadDocument, CadEntity, Circle, Line, Point2D, Polyline
from .zones import DEFAULT_FLOOR, Zone, zone_from_selection

logger = logging.getLogger(__name__)

WALL_KEYWORDS = ("WALL",)
DOOR_KEYWORDS = ("DOOR",)
WINDOW_KEYWORDS = ("WINDOW",)

# Area thresholds in drawing units, smallest first
BATHROOM_MAX_AREA = 500.0
BEDROOM_MAX_AREA = 1000.0
LIVING_MIN_AREA = 2000.0

# Faces smaller than this share of the drawing are wall slivers, not rooms
MIN_ROOM_FRACTION = 0.005


def _layer_matches(layer: str, keywords: Sequence[str]) -> bool:
    layer_upper = (layer or "").upper()
    return any(keyword in layer_upper for keyword in keywords)


def is_wall_layer(layer: str) -> bool:
    """Wall layers by keyword; the default layer "0" counts as walls too."""
    return layer == "0" or _layer_matches(layer, WALL_KEYWORDS)


def is_door_layer(layer: str) -> bool:
    return _layer_matches(layer, DOOR_KEYWORDS)


def is_window_layer(layer: str) -> bool:
    return _layer_matches(layer, WINDOW_KEYWORDS)


@dataclass(frozen=True)
class WallSegment:
    start: Point2D
    end: Point2D
    layer: str = "0"

    @property
    def length(self) -> float:
        return math.hypot(self.end.x - self.start.x, self.end.y - self.start.y)

    def as_line(self) -> LineString:
        return LineString([self.start.as_tuple(), self.end.as_tuple()])


@dataclass(frozen=True)
class Opening:
    """A door or window: where it sits, how wide it is and which way it faces."""
    position: Point2D
    width: float
    direction: float = 0.0  # radians
    layer: str = "0"
    room_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class DetectedRoom:
    id: str
    name: str
    kind: str
    bounds: Bounds
    area: float
    doors: tuple[Opening, ...] = ()
    windows: tuple[Opening, ...] = ()


@dataclass(frozen=True)
class FloorStructure:
    rooms: tuple[DetectedRoom, ...]
    walls: tuple[WallSegment, ...]
    doors: tuple[Opening, ...]
    windows: tuple[Opening, ...]
    bounds: Bounds


def _segments(entity: CadEntity) -> list[tuple[Point2D, Point2D]]:
    if isinstance(entity, Line):
        return [(entity.start, entity.end)]
    if isinstance(entity, Polyline):
        points = list(entity.vertices)
        pairs = list(zip(points, points[1:]))
        if entity.closed and len(points) >= 3:
            pairs.append((points[-1], points[0]))
        return pairs
    return []


def extract_walls(entities: Iterable[CadEntity]) -> list[WallSegment]:
    """LINE and polyline runs on wall layers, one segment per edge."""
    walls: list[WallSegment] = []
    for entity in entities:
        if not is_wall_layer(entity.layer):
            continue
        for start, end in _segments(entity):
            if start != end:
                walls.append(WallSegment(start, end, entity.layer))
    return walls


def _opening_from_span(start: Point2D, end: Point2D, layer: str) -> Opening:
    return Opening(
        position=Point2D((start.x + end.x) / 2.0, (start.y + end.y) / 2.0),
        width=math.hypot(end.x - start.x, end.y - start.y),
        direction=math.atan2(end.y - start.y, end.x - start.x),
        layer=layer,
    )


def _openings(entities: Iterable[CadEntity], matches) -> list[Opening]:
    openings: list[Opening] = []
    for entity in entities:
        if not matches(entity.layer):
            continue
        if isinstance(entity, (Arc, Circle)):
            # Door swings are drawn as arcs centred on the hinge
            direction = math.radians(entity.start_angle) if isinstance(entity, Arc) else 0.0
            openings.append(Opening(entity.center, entity.radius, direction, entity.layer))
        elif len(entity.points) >= 2:
            openings.append(_opening_from_span(entity.points[0], entity.points[1], entity.layer))
    return openings


def extract_doors(entities: Iterable[CadEntity]) -> list[Opening]:
    return _openings(entities, is_door_layer)


def extract_windows(entities: Iterable[CadEntity]) -> list[Opening]:
    return _openings(entities, is_window_layer)


def find_enclosed_areas(walls: Sequence[WallSegment], bounds: Bounds, min_fraction: float = MIN_ROOM_FRACTION) -> list:
    """
    Closed faces of the wall network as shapely polygons, largest first.

    Wall lines are noded with ``unary_union`` before polygonizing so walls
    meeting in a T still close a room. Faces below ``min_fraction`` of the
    drawing area are dropped as slivers.
    """
    lines = [wall.as_line() for wall in walls]
    if not lines:
        return []
    faces = list(polygonize(unary_union(lines)))
    min_area = max(bounds.width * bounds.height, 1.0) * min_fraction
    faces = [face for face in faces if face.area >= min_area]
    faces.sort(key=lambda face: (-face.area, face.bounds))
    return faces


def classify_room(area: float, window_count: int) -> str:
    """Room kind from its area and how many windows it has."""
    if area < BATHROOM_MAX_AREA:
        return "bathroom"
    if area < BEDROOM_MAX_AREA:
        return "bedroom"
    if window_count > 1 or area > LIVING_MIN_AREA:
        return "living"
    return "room"


def detect_rooms(
    walls: Sequence[WallSegment],
    doors: Sequence[Opening],
    windows: Sequence[Opening],
    bounds: Bounds,
) -> list[DetectedRoom]:
    """
    Rooms enclosed by the walls. When walls exist but close no area the
    whole drawing becomes a single room.
    """
    faces = find_enclosed_areas(walls, bounds)
    if not faces and walls:
        faces = [box(bounds.min_x, bounds.min_y, bounds.max_x, bounds.max_y)]

    rooms: list[DetectedRoom] = []
    for index, face in enumerate(faces):
        min_x, min_y, max_x, max_y = face.bounds
        room_doors = tuple(d for d in doors if face.covers(Point(d.position.as_tuple())))
        room_windows = tuple(w for w in windows if face.covers(Point(w.position.as_tuple())))
        kind = classify_room(face.area, len(room_windows))
        rooms.append(DetectedRoom(
            id=f"room-{index + 1}",
            name=f"{kind.capitalize()} {index + 1}",
            kind=kind,
            bounds=Bounds(min_x, max_x, min_y, max_y),
            area=face.area,
            doors=room_doors,
            windows=room_windows,
        ))
    return rooms


def analyze_structure(document: CadDocument) -> FloorStructure:
    """Walls, openings and inferred rooms of one parsed drawing."""
    entities = document.entities
    bounds = compute_bounds(entities)
    walls = extract_walls(entities)
    doors = extract_doors(entities)
    windows = extract_windows(entities)
    rooms = detect_rooms(walls, doors, windows, bounds) if entities else []

    # Doors learn which rooms they open into
    doors = [
        replace(door, room_ids=tuple(room.id for room in rooms if door in room.doors))
        for door in doors
    ]
    logger.debug(
        "Structure: %d walls, %d doors, %d windows, %d rooms",
        len(walls), len(doors), len(windows), len(rooms),
    )
    return FloorStructure(
        rooms=tuple(rooms),
        walls=tuple(walls),
        doors=tuple(doors),
        windows=tuple(windows),
        bounds=bounds,
    )


def suggest_zones(
    document: CadDocument,
    floor: str = DEFAULT_FLOOR,
    canvas_width: float = 800.0,
    canvas_height: float = 500.0,
    structure: Optional[FloorStructure] = None,
) -> list[Zone]:
    """
    Detected rooms as canvas-space zone rectangles, ready for the editor to
    accept or discard. Suggestions are not yet defined by the user, so they
    come back with ``is_defined=False``.
    """
    structure = structure or analyze_structure(document)
    if not structure.rooms:
        return []
    transform = normalize(structure.bounds, canvas_width, canvas_height)
    zones = []
    for room in structure.rooms:
        b = room.bounds
        corners = [transform.apply(b.min_x, b.min_y), transform.apply(b.max_x, b.max_y)]
        try:
            zone = zone_from_selection(
                corners,
                zone_id=f"{floor}-{room.id}",
                name=room.name,
                floor=floor,
                is_defined=False,
                description=f"Detected {room.kind}, area {room.area:.1f} {document.units}",
            )
        except ValueError as exc:
            logger.debug("Dropping room %s: %s", room.id, exc)
            continue
        zones.append(zone)
    return zones

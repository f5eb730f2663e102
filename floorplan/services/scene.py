"""
3D scene reconstruction from the zone model.

The scene is rebuilt from scratch on every call; nothing is patched in
place. Zones, walls and device markers are mapped from canvas space through
a CanvasToScene transform. The CAD outline, when present, is additionally
mapped document -> canvas first.

Wall elision: a zone gets a wall on every side where the adjacency index
reports no neighbor, and none where it does. A building perimeter is added
around the union of all zones.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Sequence, Union

from ..conf import get_settings
from .adjacency import SIDES, AdjacencyIndex
from .bounds import compute_bounds, normalize
from .entities import CadDocument
from .tessellation import tessellate_document
from .transforms import CanvasToScene, DocumentToScene
from .zones import DevicePosition, Zone, union_bounds, zone_color

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SceneOptions:
    canvas_width: float = 800.0
    canvas_height: float = 500.0
    scene_width: float = 20.0
    scene_depth: float = 15.0
    floor_height: float = 3.0
    wall_height: float = 2.5
    wall_thickness: float = 0.1
    slab_thickness: float = 0.2
    perimeter_padding: float = 10.0
    adjacency_epsilon: float = 0.1
    arc_segments: int = 32

    @classmethod
    def from_settings(cls) -> "SceneOptions":
        s = get_settings()
        return cls(
            canvas_width=s.canvas_width,
            canvas_height=s.canvas_height,
            scene_width=s.scene_width,
            scene_depth=s.scene_depth,
            floor_height=s.floor_height,
            wall_height=s.wall_height,
            wall_thickness=s.wall_thickness,
            perimeter_padding=s.perimeter_padding,
            adjacency_epsilon=s.adjacency_epsilon,
            arc_segments=s.arc_segments,
        )

    def to_scene(self) -> CanvasToScene:
        return CanvasToScene.for_footprints(
            self.canvas_width, self.canvas_height, self.scene_width, self.scene_depth
        )


@dataclass(frozen=True)
class FloorSlab:
    floor_index: int
    elevation: float
    width: float
    depth: float
    thickness: float


@dataclass(frozen=True)
class ZonePatch:
    zone_id: str
    name: str
    zone_type: str
    color: str
    center: tuple[float, float]  # (x, z)
    width: float
    depth: float
    elevation: float


@dataclass(frozen=True)
class Wall:
    start: tuple[float, float]  # (x, z)
    end: tuple[float, float]
    elevation: float
    height: float
    thickness: float
    kind: str  # "zone" or "perimeter"
    side: str
    zone_id: Optional[str] = None


@dataclass(frozen=True)
class DeviceMarker:
    device_id: str
    position: tuple[float, float]  # (x, z)
    elevation: float
    zone_id: Optional[str] = None


@dataclass(frozen=True)
class SceneGraph:
    floor_index: int
    floor_slabs: tuple[FloorSlab, ...] = ()
    zone_patches: tuple[ZonePatch, ...] = ()
    walls: tuple[Wall, ...] = ()
    device_markers: tuple[DeviceMarker, ...] = ()
    outline_segments: tuple[float, ...] = ()
    outline_available: bool = False

    def zone_walls(self, zone_id: Optional[str] = None) -> list[Wall]:
        return [
            w for w in self.walls
            if w.kind == "zone" and (zone_id is None or w.zone_id == zone_id)
        ]

    @property
    def perimeter_walls(self) -> list[Wall]:
        return [w for w in self.walls if w.kind == "perimeter"]


def _edge(min_x: float, min_y: float, max_x: float, max_y: float, side: str):
    """Canvas-space endpoints of one side of a rectangle."""
    if side == "north":
        return (min_x, max_y), (max_x, max_y)
    if side == "south":
        return (min_x, min_y), (max_x, min_y)
    if side == "east":
        return (max_x, min_y), (max_x, max_y)
    return (min_x, min_y), (min_x, max_y)


class SceneReconstructor:
    """Builds a SceneGraph for one floor."""

    def __init__(self, options: Optional[SceneOptions] = None):
        self.options = options or SceneOptions()

    def build(
        self,
        floor_index: int,
        zones: Sequence[Zone],
        device_positions: Union[Mapping[str, DevicePosition], Iterable[DevicePosition]] = (),
        options: Optional[SceneOptions] = None,
        adjacency: Optional[AdjacencyIndex] = None,
        outline: Optional[CadDocument] = None,
    ) -> SceneGraph:
        opts = options or self.options
        to_scene = opts.to_scene()
        zones = list(zones)
        elevation = floor_index * opts.floor_height

        if adjacency is None or adjacency.zone_ids != [z.id for z in zones]:
            adjacency = AdjacencyIndex.for_zones(zones, epsilon=opts.adjacency_epsilon)

        slab = FloorSlab(
            floor_index=floor_index,
            elevation=elevation,
            width=opts.scene_width,
            depth=opts.scene_depth,
            thickness=opts.slab_thickness,
        )

        patches = []
        walls: list[Wall] = []
        for i, zone in enumerate(zones):
            patches.append(self._patch(zone, to_scene, elevation))
            flags = adjacency.flags[i]
            for side in SIDES:
                if flags.get(side):
                    continue
                start, end = _edge(zone.min_x, zone.min_y, zone.max_x, zone.max_y, side)
                walls.append(self._wall(to_scene, start, end, elevation, opts, "zone", side, zone.id))

        walls.extend(self._perimeter(zones, to_scene, elevation, opts))

        if isinstance(device_positions, Mapping):
            device_positions = device_positions.values()
        markers = tuple(
            DeviceMarker(
                device_id=p.device_id,
                position=to_scene.apply(p.x, p.y),
                elevation=elevation,
                zone_id=p.zone_id,
            )
            for p in device_positions
        )

        outline_segments: tuple[float, ...] = ()
        if outline is not None and outline.entities:
            to_canvas = normalize(compute_bounds(outline.entities), opts.canvas_width, opts.canvas_height)
            composed = DocumentToScene(to_canvas, to_scene)
            outline_segments = tuple(
                composed.apply_segments(tessellate_document(outline, segments=opts.arc_segments))
            )

        scene = SceneGraph(
            floor_index=floor_index,
            floor_slabs=(slab,),
            zone_patches=tuple(patches),
            walls=tuple(walls),
            device_markers=markers,
            outline_segments=outline_segments,
            outline_available=bool(outline_segments),
        )
        logger.debug(
            "Built scene for floor %d: %d zones, %d walls, %d markers",
            floor_index, len(patches), len(walls), len(markers),
        )
        return scene

    @staticmethod
    def _patch(zone: Zone, to_scene: CanvasToScene, elevation: float) -> ZonePatch:
        x0, z0 = to_scene.apply(zone.min_x, zone.min_y)
        x1, z1 = to_scene.apply(zone.max_x, zone.max_y)
        return ZonePatch(
            zone_id=zone.id,
            name=zone.name,
            zone_type=zone.type,
            color=zone_color(zone.type),
            center=((x0 + x1) / 2.0, (z0 + z1) / 2.0),
            width=x1 - x0,
            depth=z1 - z0,
            elevation=elevation,
        )

    @staticmethod
    def _wall(to_scene, start, end, elevation, opts, kind, side, zone_id=None) -> Wall:
        return Wall(
            start=to_scene.apply(*start),
            end=to_scene.apply(*end),
            elevation=elevation,
            height=opts.wall_height,
            thickness=opts.wall_thickness,
            kind=kind,
            side=side,
            zone_id=zone_id,
        )

    def _perimeter(self, zones, to_scene, elevation, opts) -> list[Wall]:
        bounds = union_bounds(zones)
        if bounds is None:
            return []
        pad = opts.perimeter_padding
        min_x, min_y, max_x, max_y = bounds
        min_x, min_y, max_x, max_y = min_x - pad, min_y - pad, max_x + pad, max_y + pad
        return [
            self._wall(to_scene, *_edge(min_x, min_y, max_x, max_y, side), elevation, opts, "perimeter", side)
            for side in SIDES
        ]

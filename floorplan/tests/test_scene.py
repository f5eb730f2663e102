"""
Tests for 3D scene reconstruction.
"""

import pytest

from floorplan.services.adjacency import SIDES, AdjacencyIndex
from floorplan.services.entities import CadDocument, Line, Point2D
from floorplan.services.scene import SceneOptions, SceneReconstructor
from floorplan.services.transforms import CanvasToScene
from floorplan.services.zones import DevicePosition, Zone
from floorplan.tests.fixtures import BLOCK_LAYOUT, PAIR_LAYOUT
from floorplan.tests.layouts import grid_layout, scattered_layout


def _zones(layout):
    return [Zone.from_dict(item) for item in layout]


@pytest.fixture
def reconstructor():
    return SceneReconstructor(SceneOptions())


class TestWalls:
    def test_pair_has_six_zone_walls(self, reconstructor):
        scene = reconstructor.build(0, _zones(PAIR_LAYOUT), {})
        assert len(scene.zone_walls()) == 6
        assert {w.side for w in scene.zone_walls("A")} == {"north", "south", "west"}
        assert {w.side for w in scene.zone_walls("B")} == {"north", "south", "east"}

    def test_perimeter_surrounds_union_with_padding(self, reconstructor):
        scene = reconstructor.build(0, _zones(PAIR_LAYOUT), {})
        perimeter = scene.perimeter_walls
        assert len(perimeter) == 4
        to_scene = CanvasToScene.for_footprints()
        south = next(w for w in perimeter if w.side == "south")
        assert south.start == pytest.approx(to_scene.apply(-10, -10))
        assert south.end == pytest.approx(to_scene.apply(210, -10))

    def test_block_layout_wall_count(self, reconstructor):
        scene = reconstructor.build(0, _zones(BLOCK_LAYOUT), {})
        assert len(scene.zone_walls()) == 16

    def test_no_zones(self, reconstructor):
        scene = reconstructor.build(0, [], {})
        assert scene.walls == ()
        assert len(scene.floor_slabs) == 1
        assert scene.outline_available is False

    def test_stale_adjacency_is_recomputed(self, reconstructor):
        zones = _zones(PAIR_LAYOUT)
        stale = AdjacencyIndex.for_zones(zones[:1])
        scene = reconstructor.build(0, zones, {}, adjacency=stale)
        assert len(scene.zone_walls()) == 6

    def test_wall_geometry(self, reconstructor):
        scene = reconstructor.build(1, [Zone(id="z", x=0, y=0, w=800, h=500)], {})
        west = next(w for w in scene.zone_walls("z") if w.side == "west")
        assert west.start == pytest.approx((-10, -7.5))
        assert west.end == pytest.approx((-10, 7.5))
        assert west.elevation == pytest.approx(3.0)
        assert west.height == pytest.approx(2.5)


class TestWallProperty:
    """Walls appear exactly on edges without a neighbor."""

    @pytest.mark.parametrize("seed", range(30))
    def test_generated_layouts(self, reconstructor, seed):
        zones = grid_layout(seed)
        index = AdjacencyIndex.for_zones(zones)
        scene = reconstructor.build(0, zones, {}, adjacency=index)
        for i, zone in enumerate(zones):
            sides = {w.side for w in scene.zone_walls(zone.id)}
            expected = {side for side in SIDES if not index.flags[i].get(side)}
            assert sides == expected

    @pytest.mark.parametrize("seed", range(30))
    def test_scattered_layouts(self, reconstructor, seed):
        zones = scattered_layout(seed)
        index = AdjacencyIndex.for_zones(zones)
        scene = reconstructor.build(0, zones, {})
        for i, zone in enumerate(zones):
            for side in SIDES:
                has_wall = any(w.side == side for w in scene.zone_walls(zone.id))
                assert has_wall is not index.flags[i].get(side)


class TestPatchesAndMarkers:
    def test_zone_patch_rescaled(self, reconstructor):
        scene = reconstructor.build(0, [Zone(id="z", type="Lobby", x=400, y=250, w=80, h=50)], {})
        patch = scene.zone_patches[0]
        assert patch.width == pytest.approx(2.0)
        assert patch.depth == pytest.approx(1.5)
        assert patch.center == pytest.approx((1.0, 0.75))
        assert patch.color == "#86EFAC"

    def test_markers_independent_of_containment(self, reconstructor):
        positions = {
            "d1": DevicePosition("d1", "Ground", 400, 250, None),
            "d2": DevicePosition("d2", "Ground", 0, 0, "gone"),
        }
        scene = reconstructor.build(0, _zones(PAIR_LAYOUT), positions)
        markers = {m.device_id: m for m in scene.device_markers}
        assert markers["d1"].position == pytest.approx((0, 0))
        assert markers["d2"].position == pytest.approx((-10, -7.5))

    def test_floor_index_sets_elevation(self, reconstructor):
        scene = reconstructor.build(2, _zones(PAIR_LAYOUT), {})
        assert scene.floor_slabs[0].elevation == pytest.approx(6.0)
        assert all(w.elevation == pytest.approx(6.0) for w in scene.walls)

    def test_custom_options(self):
        options = SceneOptions(scene_width=40, scene_depth=30, floor_height=4)
        scene = SceneReconstructor().build(1, [], {}, options=options)
        slab = scene.floor_slabs[0]
        assert (slab.width, slab.depth, slab.elevation) == (40, 30, 4)


class TestOutline:
    def test_outline_composed_into_scene_space(self, reconstructor):
        outline = CadDocument(entities=(Line(Point2D(0, 0), Point2D(160, 100)),))
        scene = reconstructor.build(0, [], {}, outline=outline)
        assert scene.outline_available is True
        # document -> canvas (0, 500)-(800, 0) -> scene
        assert list(scene.outline_segments) == pytest.approx([-10, 7.5, 10, -7.5])

    def test_empty_outline_degrades(self, reconstructor):
        scene = reconstructor.build(0, _zones(PAIR_LAYOUT), {}, outline=CadDocument())
        assert scene.outline_available is False
        assert scene.outline_segments == ()
        assert len(scene.zone_walls()) == 6

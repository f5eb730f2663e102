"""
Tests for the entity coercion boundary.

Covers:
- Vertex shape normalization ({x, y}, tuples, objects with .x/.y)
- Line field-name variants
- Degenerate entity rejection
- Batch coercion with skipped records
"""

from types import SimpleNamespace

import pytest

from floorplan.services.entities import (
    ORIGIN,
    Arc,
    Circle,
    Line,
    Point2D,
    Polyline,
    Spline,
    coerce_entities,
    coerce_entity,
    resolve_point,
)
from floorplan.services.errors import DegenerateEntity


class TestResolvePoint:
    """Vertex shapes accepted at the boundary."""

    def test_mapping(self):
        assert resolve_point({"x": 1, "y": 2}) == Point2D(1.0, 2.0)

    def test_tuple_and_list(self):
        assert resolve_point((3, 4)) == Point2D(3.0, 4.0)
        assert resolve_point([3, 4, 9]) == Point2D(3.0, 4.0)

    def test_object_with_attributes(self):
        assert resolve_point(SimpleNamespace(x=5, y=6)) == Point2D(5.0, 6.0)

    def test_unrecognized_resolves_to_origin(self):
        assert resolve_point("10,20") == ORIGIN
        assert resolve_point(None) == ORIGIN
        assert resolve_point({"x": "a", "y": 1}) == ORIGIN
        assert resolve_point((float("nan"), 1.0)) == ORIGIN


class TestCoerceLine:
    """Line field-name variants are equivalent."""

    def test_start_end(self):
        line = coerce_entity({"type": "LINE", "start": {"x": 0, "y": 0}, "end": {"x": 10, "y": 5}})
        assert line == Line(Point2D(0, 0), Point2D(10, 5))

    def test_start_point_end_point(self):
        line = coerce_entity({"type": "line", "startPoint": {"x": 0, "y": 0}, "endPoint": {"x": 10, "y": 5}})
        assert line == Line(Point2D(0, 0), Point2D(10, 5))

    def test_vertices(self):
        line = coerce_entity({"type": "LINE", "vertices": [(1, 1), (2, 2)]})
        assert line.start == Point2D(1, 1)
        assert line.end == Point2D(2, 2)

    def test_layer_kept(self):
        line = coerce_entity({"type": "LINE", "start": (0, 0), "end": (1, 1), "layer": "WALLS"})
        assert line.layer == "WALLS"

    def test_all_origin_rejected(self):
        with pytest.raises(DegenerateEntity):
            coerce_entity({"type": "LINE", "start": "bad", "end": None})

    def test_missing_endpoints_rejected(self):
        with pytest.raises(DegenerateEntity):
            coerce_entity({"type": "LINE"})


class TestCoerceOtherKinds:
    """Polylines, arcs, circles and splines."""

    def test_lwpolyline_alias_and_closed(self):
        poly = coerce_entity({"type": "LWPOLYLINE", "vertices": [(0, 0), (1, 0), (1, 1)], "closed": True})
        assert isinstance(poly, Polyline)
        assert poly.closed is True
        assert len(poly.vertices) == 3

    def test_polyline_shape_flag(self):
        poly = coerce_entity({"type": "POLYLINE", "points": [{"x": 0, "y": 0}, {"x": 5, "y": 5}], "shape": True})
        assert poly.closed is True

    def test_polyline_needs_two_vertices(self):
        with pytest.raises(DegenerateEntity):
            coerce_entity({"type": "POLYLINE", "vertices": [(1, 1)]})

    def test_polyline_all_origin_rejected(self):
        with pytest.raises(DegenerateEntity):
            coerce_entity({"type": "POLYLINE", "vertices": [(0, 0), "junk", {"x": 0, "y": 0}]})

    def test_arc_defaults_angles(self):
        arc = coerce_entity({"type": "ARC", "center": (5, 5), "radius": 2})
        assert arc == Arc(Point2D(5, 5), 2.0, 0.0, 360.0)

    def test_arc_camel_case_angles(self):
        arc = coerce_entity({"type": "ARC", "center": (0, 0), "radius": 1, "startAngle": 90, "endAngle": 180})
        assert (arc.start_angle, arc.end_angle) == (90.0, 180.0)

    def test_circle_at_origin_is_valid(self):
        circle = coerce_entity({"type": "CIRCLE", "center": (0, 0), "radius": 3})
        assert circle == Circle(ORIGIN, 3.0)

    @pytest.mark.parametrize("radius", [0, -1, None, "big"])
    def test_circle_bad_radius(self, radius):
        with pytest.raises(DegenerateEntity):
            coerce_entity({"type": "CIRCLE", "center": (1, 1), "radius": radius})

    def test_circle_missing_center(self):
        with pytest.raises(DegenerateEntity):
            coerce_entity({"type": "CIRCLE", "radius": 3})

    def test_spline_fit_points_fallback(self):
        spline = coerce_entity({"type": "SPLINE", "fitPoints": [(0, 0), (1, 2), (3, 1)]})
        assert isinstance(spline, Spline)
        assert len(spline.control_points) == 3

    def test_empty_control_points_fall_back_to_fit_points(self):
        raw = {"type": "SPLINE", "control_points": [], "fit_points": [(0, 0), (1, 2), (3, 1)]}
        spline = coerce_entity(raw)
        assert spline.control_points == (Point2D(0, 0), Point2D(1, 2), Point2D(3, 1))

    def test_unknown_type(self):
        with pytest.raises(DegenerateEntity) as info:
            coerce_entity({"type": "INSERT"})
        assert info.value.entity_type == "INSERT"

    def test_variant_passes_through(self):
        line = Line(Point2D(1, 1), Point2D(2, 2))
        assert coerce_entity(line) is line


class TestCoerceEntities:
    """Batch coercion splits accepted from skipped."""

    def test_split(self):
        accepted, skipped = coerce_entities([
            {"type": "LINE", "start": (0, 0), "end": (1, 1)},
            {"type": "TEXT"},
            {"type": "CIRCLE", "center": (0, 0), "radius": 0},
        ])
        assert len(accepted) == 1
        assert [(s.index, s.entity_type) for s in skipped] == [(1, "TEXT"), (2, "CIRCLE")]

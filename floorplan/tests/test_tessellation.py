"""
Tests for entity tessellation into flat segment lists.
"""

import math

import pytest

from floorplan.services.bounds import normalize, compute_bounds
from floorplan.services.entities import Arc, CadDocument, Circle, Line, Point2D, Polyline, Spline
from floorplan.services.tessellation import tessellate, tessellate_document, tessellate_entities


def _segments(flat):
    return [tuple(flat[i:i + 4]) for i in range(0, len(flat), 4)]


class TestLines:
    def test_single_segment(self):
        assert tessellate(Line(Point2D(0, 0), Point2D(3, 4))) == [0, 0, 3, 4]

    def test_field_variants_tessellate_identically(self):
        a = tessellate({"type": "LINE", "start": {"x": 1, "y": 2}, "end": {"x": 7, "y": 9}})
        b = tessellate({"type": "LINE", "startPoint": {"x": 1, "y": 2}, "endPoint": {"x": 7, "y": 9}})
        assert a == b == [1.0, 2.0, 7.0, 9.0]

    def test_degenerate_is_empty(self):
        assert tessellate({"type": "LINE", "start": None, "end": None}) == []
        assert tessellate({"type": "HATCH"}) == []


class TestPolylines:
    def test_open_polyline_does_not_wrap(self):
        poly = Polyline((Point2D(0, 0), Point2D(1, 0), Point2D(1, 1)), closed=False)
        assert _segments(tessellate(poly)) == [(0, 0, 1, 0), (1, 0, 1, 1)]

    def test_closed_polyline_wraps(self):
        poly = Polyline((Point2D(0, 0), Point2D(1, 0), Point2D(1, 1)), closed=True)
        segments = _segments(tessellate(poly))
        assert len(segments) == 3
        assert segments[-1] == (1, 1, 0, 0)

    def test_closed_two_vertex_polyline_wraps(self):
        poly = Polyline((Point2D(0, 0), Point2D(5, 0)), closed=True)
        assert _segments(tessellate(poly)) == [(0, 0, 5, 0), (5, 0, 0, 0)]

    def test_open_two_vertex_polyline_has_one_segment(self):
        poly = Polyline((Point2D(0, 0), Point2D(5, 0)), closed=False)
        assert len(_segments(tessellate(poly))) == 1

    def test_single_vertex_skipped(self):
        assert tessellate({"type": "POLYLINE", "vertices": [(1, 1)]}) == []


class TestCurves:
    def test_circle_default_resolution(self):
        flat = tessellate(Circle(Point2D(10, 10), 5))
        segments = _segments(flat)
        assert len(segments) == 32
        # closed loop
        assert segments[0][:2] == pytest.approx(segments[-1][2:])
        for x1, y1, _x2, _y2 in segments:
            assert math.hypot(x1 - 10, y1 - 10) == pytest.approx(5)

    def test_circle_custom_resolution(self):
        assert len(_segments(tessellate(Circle(Point2D(0, 0), 1), segments=8))) == 8

    def test_arc_counter_clockwise_quarter(self):
        segments = _segments(tessellate(Arc(Point2D(0, 0), 1, 0, 90)))
        assert segments[0][:2] == pytest.approx((1, 0))
        assert segments[-1][2:] == pytest.approx((0, 1))

    def test_arc_wrapping_through_zero(self):
        segments = _segments(tessellate(Arc(Point2D(0, 0), 1, 270, 90)))
        # Sweeps through 0 degrees, so passes (1, 0)
        points = [s[:2] for s in segments]
        assert any(x == pytest.approx(1) and y == pytest.approx(0, abs=1e-9) for x, y in points)

    def test_spline_starts_and_ends_on_control_points(self):
        spline = Spline((Point2D(0, 0), Point2D(10, 20), Point2D(20, 0), Point2D(30, 10)))
        segments = _segments(tessellate(spline))
        assert segments[0][:2] == (0, 0)
        assert segments[-1][2:] == (30, 10)

    def test_two_point_spline_is_a_line(self):
        assert tessellate(Spline((Point2D(0, 0), Point2D(4, 4)))) == [0, 0, 4, 4]

    def test_invalid_resolution(self):
        with pytest.raises(ValueError):
            tessellate(Circle(Point2D(0, 0), 1), segments=0)


class TestIdempotence:
    @pytest.mark.parametrize("entity", [
        Line(Point2D(0, 0), Point2D(1, 1)),
        Polyline((Point2D(0, 0), Point2D(2, 0), Point2D(2, 2)), closed=True),
        Arc(Point2D(3, 3), 2, 45, 300),
        Circle(Point2D(-1, 4), 0.5),
        Spline((Point2D(0, 0), Point2D(1, 5), Point2D(2, 0))),
        {"type": "LINE", "startPoint": {"x": 1, "y": 1}, "endPoint": {"x": 2, "y": 3}},
    ])
    def test_repeated_calls_match(self, entity):
        assert tessellate(entity) == tessellate(entity)


class TestDocument:
    def test_layers_kept(self):
        entities = [
            Line(Point2D(0, 0), Point2D(1, 0), layer="WALLS"),
            {"type": "LINE", "start": (0, 0), "end": (0, 1), "layer": "DOORS"},
            {"type": "TEXT", "layer": "TEXT"},
        ]
        assert [layer for layer, _flat in tessellate_entities(entities)] == ["WALLS", "DOORS"]

    def test_document_through_transform(self):
        doc = CadDocument(entities=(Line(Point2D(0, 0), Point2D(160, 100)),))
        transform = normalize(compute_bounds(doc.entities))
        flat = tessellate_document(doc, transform=transform)
        # Fills the 800x500 canvas, Y flipped
        assert flat == pytest.approx([0, 500, 800, 0])

"""
Tests for bounds computation and canvas normalization.
"""

import math
import random

import pytest

from floorplan.services.bounds import DEFAULT_BOUNDS, Bounds, compute_bounds, normalize
from floorplan.services.entities import Arc, CadDocument, Circle, Line, Point2D, Polyline, Spline


class TestComputeBounds:
    def test_empty_document_uses_default(self):
        doc = CadDocument(entities=())
        assert compute_bounds(doc.entities) == DEFAULT_BOUNDS

    def test_none_uses_default(self):
        assert compute_bounds(None) == DEFAULT_BOUNDS

    def test_only_degenerate_entities_use_default(self):
        assert compute_bounds([{"type": "LINE"}, {"type": "TEXT"}]) == DEFAULT_BOUNDS

    def test_lines_and_polylines(self):
        bounds = compute_bounds([
            Line(Point2D(-5, 2), Point2D(10, 3)),
            Polyline((Point2D(0, -7), Point2D(4, 20))),
        ])
        assert bounds == Bounds(-5, 10, -7, 20)

    def test_arc_uses_full_circle_extent(self):
        bounds = compute_bounds([Arc(Point2D(10, 10), 5, 0, 90)])
        assert bounds == Bounds(5, 15, 5, 15)

    def test_circle(self):
        assert compute_bounds([Circle(Point2D(0, 0), 2)]) == Bounds(-2, 2, -2, 2)

    def test_spline_control_points(self):
        bounds = compute_bounds([Spline((Point2D(0, 0), Point2D(5, 9), Point2D(10, 1)))])
        assert bounds == Bounds(0, 10, 0, 9)

    def test_raw_mappings_are_coerced(self):
        bounds = compute_bounds([
            {"type": "LINE", "startPoint": {"x": 1, "y": 1}, "endPoint": {"x": 3, "y": 4}},
            {"type": "LINE", "start": "junk", "end": None},
        ])
        assert bounds == Bounds(1, 3, 1, 4)

    def test_min_le_max_for_random_documents(self):
        rng = random.Random(7)
        for _ in range(50):
            entities = [
                Line(
                    Point2D(rng.uniform(-1e4, 1e4), rng.uniform(-1e4, 1e4)),
                    Point2D(rng.uniform(-1e4, 1e4), rng.uniform(-1e4, 1e4)),
                )
                for _ in range(rng.randint(1, 20))
            ]
            bounds = compute_bounds(entities)
            assert bounds.min_x <= bounds.max_x
            assert bounds.min_y <= bounds.max_y


class TestNormalize:
    def test_scale_preserves_aspect(self):
        transform = normalize(Bounds(0, 1000, 0, 100))
        assert transform.scale == pytest.approx(0.8)
        assert transform.center_x == 500
        assert transform.center_y == 50

    def test_center_maps_to_canvas_center(self):
        transform = normalize(Bounds(100, 300, -50, 50))
        assert transform.apply(200, 0) == pytest.approx((400, 250))

    @pytest.mark.parametrize("bounds", [
        Bounds(5, 5, 5, 5),
        Bounds(0, 0, 0, 100),
        Bounds(0, 100, 3, 3),
    ])
    def test_zero_extent_has_positive_scale(self, bounds):
        transform = normalize(bounds)
        assert transform.scale > 0
        assert math.isfinite(transform.scale)

    def test_custom_target(self):
        transform = normalize(Bounds(0, 10, 0, 10), target_w=100, target_h=50)
        assert transform.scale == pytest.approx(5)

    def test_invalid_target(self):
        with pytest.raises(ValueError):
            normalize(DEFAULT_BOUNDS, target_w=0)

    def test_default_bounds_fill_canvas(self):
        transform = normalize(DEFAULT_BOUNDS)
        assert transform.scale == pytest.approx(1)
        assert transform.apply(0, 0) == pytest.approx((0, 500))

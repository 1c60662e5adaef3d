"""Tests for geometry helpers and the segment spatial index."""

import random

import numpy as np
import pytest

from tensor_streets.exceptions import DegenerateGeometryError
from tensor_streets.utils import (
    PolygonMask,
    SpatialIndex,
    average_point,
    calculate_bearing,
    complexify_polyline,
    compute_entropy,
    inside_polygon,
    line_rectangle_polygon_intersection,
    polygon_area,
    polygon_signed_area,
    resize_geometry,
    simplify_polyline,
    subdivide_polygon,
    to_shapely_polygon,
)
from tensor_streets.vector import Vector


def square(size, origin=(0.0, 0.0)):
    x, y = origin
    return [Vector(x, y), Vector(x + size, y), Vector(x + size, y + size), Vector(x, y + size)]


class TestPolygonHelpers:
    """Areas, containment and masks."""

    def test_signed_area_follows_orientation(self):
        ring = square(10.0)
        assert polygon_signed_area(ring) == pytest.approx(100.0)
        assert polygon_signed_area(ring[::-1]) == pytest.approx(-100.0)
        assert polygon_area(ring[::-1]) == pytest.approx(100.0)

    def test_degenerate_area_is_zero(self):
        assert polygon_signed_area([Vector(0.0, 0.0), Vector(1.0, 1.0)]) == 0.0

    def test_average_point(self):
        assert average_point(square(10.0)) == Vector(5.0, 5.0)
        assert average_point([]) == Vector.zero()

    def test_inside_polygon(self):
        assert inside_polygon(Vector(5.0, 5.0), square(10.0))
        assert not inside_polygon(Vector(15.0, 5.0), square(10.0))
        assert not inside_polygon(Vector(0.0, 0.0), [Vector(0.0, 0.0), Vector(1.0, 0.0)])

    def test_polygon_mask(self):
        empty = PolygonMask([])
        assert not empty
        assert not empty.contains(Vector(1.0, 1.0))

        mask = PolygonMask([square(10.0), square(10.0, (20.0, 0.0)), [Vector(0.0, 0.0)]])
        assert mask
        assert mask.contains(Vector(5.0, 5.0))
        assert mask.contains(Vector(25.0, 5.0))
        assert not mask.contains(Vector(15.0, 5.0))

    def test_to_shapely_polygon_orients_counter_clockwise(self):
        poly = to_shapely_polygon(square(10.0)[::-1])
        assert poly.exterior.is_ccw

        with pytest.raises(DegenerateGeometryError):
            to_shapely_polygon([Vector(0.0, 0.0), Vector(1.0, 0.0)])
        with pytest.raises(DegenerateGeometryError):
            to_shapely_polygon([Vector(0.0, 0.0), Vector(1.0, 0.0), Vector(2.0, 0.0)])

    def test_bearing_ignores_direction(self):
        assert calculate_bearing(Vector(0.0, 0.0), Vector(1.0, 1.0)) == pytest.approx(45.0)
        assert calculate_bearing(Vector(0.0, 0.0), Vector(-1.0, -1.0)) == pytest.approx(45.0)
        assert calculate_bearing(Vector(0.0, 0.0), Vector(-1.0, 0.0)) == pytest.approx(0.0)

    def test_entropy(self):
        assert compute_entropy(np.array([1, 1, 1, 1])) == pytest.approx(2.0)
        assert compute_entropy(np.array([5, 0, 0])) == pytest.approx(0.0)
        assert compute_entropy(np.zeros(4)) == 0.0


class TestResize:
    """Polygon offsets and polyline buffers."""

    def test_shrink_polygon(self):
        shrunk = resize_geometry(square(100.0), -10.0)
        assert polygon_area(shrunk) == pytest.approx(80.0 * 80.0)
        assert polygon_signed_area(shrunk) > 0

    def test_buffer_polyline_has_flat_caps(self):
        road = resize_geometry([Vector(0.0, 0.0), Vector(10.0, 0.0)], 2.0, is_polygon=False)
        assert polygon_area(road) == pytest.approx(40.0)

    def test_shrink_to_nothing_raises(self):
        with pytest.raises(DegenerateGeometryError):
            resize_geometry(square(10.0), -6.0)

    def test_short_polyline_raises(self):
        with pytest.raises(DegenerateGeometryError):
            resize_geometry([Vector(0.0, 0.0)], 2.0, is_polygon=False)

    def test_line_cuts_world_rectangle(self):
        line = [Vector(-10.0, 30.0), Vector(110.0, 30.0)]
        region = line_rectangle_polygon_intersection(Vector(0.0, 0.0), Vector(100.0, 100.0), line)

        assert polygon_area(region) == pytest.approx(3000.0)
        assert all(v.y <= 30.0 + 1e-9 for v in region)

    def test_line_rectangle_needs_two_points(self):
        with pytest.raises(DegenerateGeometryError):
            line_rectangle_polygon_intersection(Vector(0.0, 0.0), Vector(100.0, 100.0), [Vector(1.0, 1.0)])

    @pytest.mark.parametrize(
        "line",
        [
            [Vector(10.0, 10.0), Vector(50.0, 50.0)],
            [Vector(-10.0, 30.0), Vector(50.0, 30.0)],
            [Vector(-10.0, -10.0), Vector(-10.0, 110.0)],
        ],
        ids=["inside", "enters-only", "outside"],
    )
    def test_line_not_splitting_world_raises(self, line):
        with pytest.raises(DegenerateGeometryError):
            line_rectangle_polygon_intersection(Vector(0.0, 0.0), Vector(100.0, 100.0), line)


class TestPolylineSampling:
    """Simplify and complexify."""

    CORNER = [Vector(0.0, 0.0), Vector(10.0, 0.0), Vector(10.0, 10.0)]

    def test_complexify_spacing(self):
        dense = complexify_polyline(self.CORNER, 1.0)

        assert dense[0] == self.CORNER[0]
        assert dense[-1] == self.CORNER[-1]
        assert self.CORNER[1] in dense
        assert all(a.distance_to(b) <= 1.0 for a, b in zip(dense, dense[1:]))
        # Halving 10 four times gives 0.625 spacing, 16 steps per side
        assert len(dense) == 33

    def test_complexify_has_no_duplicates(self):
        dense = complexify_polyline(self.CORNER, 3.0)
        assert all(a != b for a, b in zip(dense, dense[1:]))

    def test_complexify_single_point(self):
        assert complexify_polyline([Vector(1.0, 1.0)], 1.0) == [Vector(1.0, 1.0)]

    def test_simplify_recovers_corners(self):
        dense = complexify_polyline(self.CORNER, 1.0)
        assert simplify_polyline(dense, 0.5) == self.CORNER

    def test_simplify_keeps_short_lines(self):
        line = [Vector(0.0, 0.0), Vector(1.0, 0.0)]
        assert simplify_polyline(line, 10.0) == line

    def test_simplify_within_tolerance(self):
        rng = random.Random(4)
        wobbly = [Vector(float(x), rng.uniform(-0.2, 0.2)) for x in range(50)]
        simple = simplify_polyline(wobbly, 0.5)

        assert len(simple) < len(wobbly)
        assert simple[0] == wobbly[0]
        assert simple[-1] == wobbly[-1]


class TestSubdivide:
    """Lot subdivision."""

    def test_pieces_respect_area_bounds(self):
        min_area = 50.0
        lots = subdivide_polygon(square(20.0), min_area, random.Random(2))

        assert lots
        areas = [polygon_area(lot) for lot in lots]
        assert all(area <= min_area + 1e-6 for area in areas)
        assert all(area >= min_area / 2 - 1e-6 for area in areas)
        assert sum(areas) <= 400.0 + 1e-6

    def test_small_polygon_kept_whole(self):
        lots = subdivide_polygon(square(6.0), 50.0, random.Random(0))
        assert len(lots) == 1
        assert polygon_area(lots[0]) == pytest.approx(36.0)

    def test_tiny_polygon_dropped(self):
        assert subdivide_polygon(square(2.0), 50.0, random.Random(0)) == []

    def test_sliver_dropped(self):
        sliver = [Vector(0.0, 0.0), Vector(40.0, 0.0), Vector(40.0, 1.0), Vector(0.0, 1.0)]
        assert subdivide_polygon(sliver, 30.0, random.Random(0)) == []

    def test_deterministic_for_seed(self):
        a = subdivide_polygon(square(30.0), 40.0, random.Random(9))
        b = subdivide_polygon(square(30.0), 40.0, random.Random(9))
        assert a == b


class TestSpatialIndex:
    """Segment intersection queries."""

    def test_crossing_lines(self):
        index = SpatialIndex()
        index.add_polyline([Vector(0.0, 0.0), Vector(10.0, 10.0)], 0)
        index.add_polyline([Vector(0.0, 10.0), Vector(10.0, 0.0)], 1)

        hits = index.find_intersections()
        assert len(hits) == 1
        point, a, b = hits[0]
        assert point.x == pytest.approx(5.0)
        assert point.y == pytest.approx(5.0)
        assert {a, b} == {(0, 0), (1, 0)}

    def test_consecutive_segments_ignored(self):
        index = SpatialIndex()
        index.add_polyline([Vector(0.0, 0.0), Vector(10.0, 0.0), Vector(10.0, 10.0)], 0)
        assert index.find_intersections() == []

    def test_empty_index(self):
        assert SpatialIndex().find_intersections() == []

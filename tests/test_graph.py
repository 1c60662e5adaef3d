"""Tests for the road graph and block polygon finding."""

import random

import pytest

from tensor_streets.config import PolygonParams
from tensor_streets.graph import Graph
from tensor_streets.polygon_finder import PolygonFinder
from tensor_streets.tensor_field import TensorField
from tensor_streets.utils import polygon_area, polygon_signed_area
from tensor_streets.vector import Vector


def lattice(count=3, spacing=10.0, overhang=5.0):
    """`count` horizontal and `count` vertical roads, sticking out past the last crossing."""
    low = -overhang
    high = (count - 1) * spacing + overhang
    lines = []
    for i in range(count):
        c = i * spacing
        lines.append([Vector(low, c), Vector(high, c)])
        lines.append([Vector(c, low), Vector(c, high)])
    return lines


@pytest.fixture
def tensor_field():
    return TensorField()


def make_finder(graph, tensor_field, **params):
    return PolygonFinder(graph, PolygonParams(**params), tensor_field, random.Random(0))


class TestGraph:
    """Graph construction from polylines."""

    def test_lattice_nodes_and_edges(self):
        graph = Graph(lattice(), 1.0)

        # 9 crossings plus 12 road ends
        assert len(graph.intersections) == 9
        assert graph.graph.number_of_nodes() == 21
        assert graph.graph.number_of_edges() == 24

    def test_node_positions(self):
        graph = Graph(lattice(), 1.0)
        positions = {graph.position(n) for n in graph.nodes}

        assert Vector(10.0, 10.0) in positions
        for node in graph.nodes:
            assert graph.graph.nodes[node]["pos"] == graph.position(node)
            assert graph.graph.nodes[node]["x"] == graph.position(node).x

    def test_delete_dangling(self):
        graph = Graph(lattice(), 1.0, delete_dangling=True)

        assert graph.graph.number_of_nodes() == 9
        assert graph.graph.number_of_edges() == 12
        assert all(len(graph.neighbours(n)) >= 2 for n in graph.nodes)

    def test_dangling_deletion_removes_trees(self):
        graph = Graph([[Vector(0.0, 0.0), Vector(10.0, 0.0), Vector(20.0, 5.0)]], 1.0, delete_dangling=True)
        assert graph.nodes == []

    def test_nearby_ends_merge(self):
        graph = Graph([[Vector(0.0, 0.0), Vector(10.0, 0.0)], [Vector(10.5, 0.0), Vector(20.0, 0.0)]], 1.0)

        assert graph.graph.number_of_nodes() == 3
        assert graph.graph.number_of_edges() == 2

    def test_bent_line_keeps_only_ends(self):
        graph = Graph([[Vector(0.0, 0.0), Vector(10.0, 0.0), Vector(10.0, 10.0)]], 1.0)
        assert graph.graph.number_of_nodes() == 2

    def test_short_lines_ignored(self):
        graph = Graph([[Vector(0.0, 0.0)], []], 1.0)
        assert graph.nodes == []

    def test_crossing_order_along_line(self):
        # One road crossed by three others, out of order in the input
        lines = [
            [Vector(0.0, 0.0), Vector(30.0, 0.0)],
            [Vector(25.0, -5.0), Vector(25.0, 5.0)],
            [Vector(5.0, -5.0), Vector(5.0, 5.0)],
            [Vector(15.0, -5.0), Vector(15.0, 5.0)],
        ]
        graph = Graph(lines, 1.0)
        by_position = {graph.position(n): n for n in graph.nodes}

        crossings = [by_position[Vector(x, 0.0)] for x in (5.0, 15.0, 25.0)]
        assert graph.graph.has_edge(crossings[0], crossings[1])
        assert graph.graph.has_edge(crossings[1], crossings[2])
        assert not graph.graph.has_edge(crossings[0], crossings[2])


class TestPolygonFinder:
    """Face finding, setback and subdivision."""

    def test_interior_faces(self, tensor_field):
        finder = make_finder(Graph(lattice(), 1.0), tensor_field)
        finder.find_polygons()

        assert len(finder.polygons) == 4
        for polygon in finder.polygons:
            assert polygon_area(polygon) == pytest.approx(100.0)
            # Clockwise from the rightmost-turn walk
            assert polygon_signed_area(polygon) < 0

    def test_outer_face_excluded(self, tensor_field):
        finder = make_finder(Graph(lattice(), 1.0, delete_dangling=True), tensor_field)
        finder.find_polygons()

        assert len(finder.polygons) == 4
        assert all(polygon_area(p) == pytest.approx(100.0) for p in finder.polygons)

    def test_single_square(self, tensor_field):
        ring = [Vector(0.0, 0.0), Vector(10.0, 0.0), Vector(10.0, 10.0), Vector(0.0, 10.0), Vector(0.0, 0.0)]
        lines = [ring[i:i + 2] for i in range(4)]
        finder = make_finder(Graph(lines, 1.0), tensor_field)
        finder.find_polygons()

        assert len(finder.polygons) == 1

    def test_max_length(self, tensor_field):
        finder = make_finder(Graph(lattice(), 1.0), tensor_field, max_length=3)
        finder.find_polygons()
        assert finder.polygons == []

    def test_water_and_parks_filtered(self, tensor_field):
        tensor_field.sea = [Vector(1.0, 1.0), Vector(9.0, 1.0), Vector(9.0, 9.0), Vector(1.0, 9.0)]
        tensor_field.parks = [[Vector(11.0, 11.0), Vector(19.0, 11.0), Vector(19.0, 19.0), Vector(11.0, 19.0)]]
        finder = make_finder(Graph(lattice(), 1.0), tensor_field)
        finder.find_polygons()

        assert len(finder.polygons) == 2

    def test_shrink(self, tensor_field):
        finder = make_finder(Graph(lattice(), 1.0), tensor_field, shrink_spacing=1.0)
        finder.shrink()

        assert len(finder.polygons) == 4
        assert all(polygon_area(p) == pytest.approx(64.0) for p in finder.polygons)

    def test_divide(self, tensor_field):
        finder = make_finder(
            Graph(lattice(), 1.0), tensor_field, min_area=20.0, shrink_spacing=1.0, chance_no_divide=0.0
        )
        finder.shrink()
        finder.divide()

        lots = finder.polygons
        assert len(lots) > 4
        areas = [polygon_area(lot) for lot in lots]
        assert all(10.0 - 1e-6 <= area <= 20.0 + 1e-6 for area in areas)
        assert sum(areas) <= 4 * 64.0 + 1e-6

    def test_no_divide_keeps_blocks(self, tensor_field):
        finder = make_finder(Graph(lattice(), 1.0), tensor_field, shrink_spacing=1.0, chance_no_divide=1.0)
        finder.shrink()
        finder.divide()

        assert len(finder.polygons) == 4
        assert all(polygon_area(p) == pytest.approx(64.0) for p in finder.polygons)

    def test_divide_without_shrink(self, tensor_field):
        finder = make_finder(Graph(lattice(), 1.0), tensor_field, chance_no_divide=1.0)
        finder.divide()
        assert len(finder.polygons) == 4

    def test_incremental(self, tensor_field):
        finder = make_finder(Graph(lattice(), 1.0), tensor_field, shrink_spacing=1.0, chance_no_divide=1.0)
        finder.shrink(animate=True)

        assert len(finder.to_shrink) == 4
        assert finder.update()
        assert finder.to_shrink == []
        assert len(finder.polygons) == 4
        assert not finder.update()

        finder.divide(animate=True)
        assert len(finder.to_divide) == 4
        assert finder.update()
        assert len(finder.polygons) == 4

    def test_degenerate_shrink_skipped(self, tensor_field):
        finder = make_finder(Graph(lattice(), 1.0), tensor_field, shrink_spacing=6.0)
        finder.shrink()
        # Nothing survives the setback, so the raw faces are reported
        assert finder.to_shrink == []
        assert len(finder.polygons) == 4
        assert all(polygon_area(p) == pytest.approx(100.0) for p in finder.polygons)

    def test_reset(self, tensor_field):
        finder = make_finder(Graph(lattice(), 1.0), tensor_field)
        finder.find_polygons()
        finder.reset()
        assert finder.polygons == []

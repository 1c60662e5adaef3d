"""Tests for the phased map generator."""

import random

import pytest

from tensor_streets.config import BasisFieldSpec, MapConfig, StreamlineParams, Viewport
from tensor_streets.generator import (
    MAIN_ROAD_WIDTH,
    BuildingModel,
    CityGenerator,
    PhaseResult,
)
from tensor_streets.utils import polygon_area
from tensor_streets.vector import Vector


def small_config(**overrides):
    """Straight grid roads in a 400x400 world."""
    values = dict(
        seed=5,
        viewport=Viewport(Vector(0.0, 0.0), Vector(400.0, 400.0)),
        basis_fields=[BasisFieldSpec(type="grid", x=0.0, y=0.0, size=2000.0, decay=0.0, theta=0.0)],
        main=StreamlineParams(dsep=150.0, dtest=80.0, dlookahead=200.0),
        major=StreamlineParams(dsep=60.0, dtest=30.0, dlookahead=100.0),
        minor=StreamlineParams(dsep=25.0, dtest=15.0, dlookahead=40.0),
    )
    values.update(overrides)
    return MapConfig(**values)


@pytest.fixture(scope="module")
def roads():
    """Main, major and minor roads plus buildings, without water."""
    generator = CityGenerator(small_config())
    results = [
        generator.generate_main_roads(),
        generator.generate_major_roads(),
        generator.generate_minor_roads(),
        generator.generate_buildings(),
    ]
    return generator, results


def line_length(line):
    return sum(a.distance_to(b) for a, b in zip(line, line[1:]))


class TestTensorFieldSetup:
    """Field built from the config."""

    def test_configured_fields(self):
        generator = CityGenerator(small_config())
        assert len(generator.tensor_field.basis_fields) == 1
        assert generator.tensor_field.basis_fields[0].field_type == "grid"

    def test_recommended_fields(self):
        generator = CityGenerator(small_config(basis_fields=[]))
        assert len(generator.tensor_field.basis_fields) == 5

    def test_injected_rng(self):
        rng = random.Random(1)
        generator = CityGenerator(small_config(), rng=rng)
        assert generator.rng is rng


class TestPhases:
    """Phase ordering and outputs."""

    def test_phase_results(self, roads):
        _, results = roads
        assert results == [
            PhaseResult.MAIN_ROADS_DONE,
            PhaseResult.MAJOR_ROADS_DONE,
            PhaseResult.MINOR_ROADS_DONE,
            PhaseResult.BUILDINGS_DONE,
        ]

    def test_road_lines(self, roads):
        generator, _ = roads

        assert generator.main_road_lines
        assert generator.major_road_lines
        assert generator.minor_road_lines
        assert generator.coastline_road_lines == []
        assert not generator.roads_empty()
        assert len(generator.all_road_lines()) == (
            len(generator.main_road_lines) + len(generator.major_road_lines) + len(generator.minor_road_lines)
        )

    def test_minor_roads_avoid_major_roads(self, roads):
        generator, _ = roads
        major_ys = [line[0].y for line in generator.major_road_lines + generator.main_road_lines if line[0].y == line[-1].y]
        for line in generator.minor_road_lines:
            if line[0].y != line[-1].y:
                continue
            # Parallel roads of a lower hierarchy keep dtest away
            assert all(abs(line[0].y - y) >= generator.config.minor.dtest - 1e-6 for y in major_ys)

    def test_buildings(self, roads):
        generator, _ = roads

        assert generator.lots
        assert len(generator.buildings) == len(generator.lots)
        heights = [b.height for b in generator.buildings]
        assert heights == sorted(heights)
        assert all(20.0 <= h < 40.0 for h in heights)
        assert all(isinstance(b, BuildingModel) for b in generator.buildings)

    def test_parks(self, roads):
        generator, _ = roads

        assert len(generator.big_parks) <= generator.config.parks.num_big_parks
        assert generator.small_parks == []
        assert generator.tensor_field.parks == generator.parks

    def test_blocks(self, roads):
        generator, _ = roads
        blocks = generator.get_blocks()

        assert blocks
        assert all(polygon_area(b) > 0 for b in blocks)

    def test_metrics(self, roads):
        generator, _ = roads
        metrics = generator.metrics()

        assert metrics["num_nodes"] > 0
        assert metrics["num_edges"] > 0
        assert metrics["num_blocks"] == len(generator.lots)

    def test_regenerating_roads_clears_downstream(self):
        generator = CityGenerator(small_config())
        generator.generate_main_roads()
        generator.generate_major_roads()
        generator.generate_minor_roads()
        generator.generate_buildings()

        generator.generate_major_roads()
        assert generator.minor_roads is None
        assert generator.lots == []
        assert generator.buildings == []

    def test_deterministic_for_seed(self):
        a = CityGenerator(small_config())
        b = CityGenerator(small_config())
        a.generate_main_roads()
        b.generate_main_roads()
        assert a.main_road_lines == b.main_road_lines


class TestRoadPolygons:
    """Road outlines scaled by zoom."""

    def test_polygons_per_road(self, roads):
        generator, _ = roads
        assert len(generator.minor_road_polygons) == len(generator.minor_road_lines)
        assert len(generator.main_road_polygons) == len(generator.main_road_lines)
        assert generator.coastline_polygon == []

    def test_width_scales_with_zoom(self):
        viewport = Viewport(Vector(0.0, 0.0), Vector(400.0, 400.0), zoom=2.0)
        generator = CityGenerator(small_config(viewport=viewport))
        generator.generate_main_roads()

        road = generator.main_road_lines[0]
        polygon = generator.main_road_polygons[0]
        expected = 2 * MAIN_ROAD_WIDTH * viewport.zoom * line_length(road)
        assert polygon_area(polygon) == pytest.approx(expected, rel=1e-6)


class TestEverything:
    """Full run including water."""

    def test_generate_everything(self):
        config = small_config(viewport=Viewport(Vector(0.0, 0.0), Vector(300.0, 300.0)))
        generator = CityGenerator(config)

        assert generator.generate_everything() == PhaseResult.EVERYTHING_DONE
        assert generator.coastline
        assert generator.coastline_road_lines
        assert generator.minor_road_lines
        assert generator.tensor_field.ignore_river is False

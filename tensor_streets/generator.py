"""
Headless map generation: water, three road hierarchies, parks and lots.
"""

import random
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, List, Optional, Sequence

import structlog

from .config import MapConfig, PolygonParams, StreamlineParams
from .exceptions import DegenerateGeometryError
from .graph import Graph
from .integrator import RK4Integrator
from .metrics import MorphologyMetrics
from .polygon_finder import PolygonFinder
from .streamlines import StreamlineGenerator
from .tensor_field import TensorField
from .utils import resize_geometry
from .vector import Polygon, Polyline, Vector
from .water import WaterGenerator

logger = structlog.get_logger()

# Faces used to pick parks
PARK_POLYGON_PARAMS = PolygonParams(max_length=20, min_area=80, shrink_spacing=4, chance_no_divide=1)

# Half widths of road polygons, in world units at zoom 1
MINOR_ROAD_WIDTH = 1.0
MAJOR_ROAD_WIDTH = 2.0
MAIN_ROAD_WIDTH = 2.5
COASTLINE_WIDTH = 15.0


class PhaseResult(Enum):
    """Phase completed by a `CityGenerator` call."""

    WATER_DONE = "water"
    MAIN_ROADS_DONE = "main_roads"
    MAJOR_ROADS_DONE = "major_roads"
    MINOR_ROADS_DONE = "minor_roads"
    BUILDINGS_DONE = "buildings"
    EVERYTHING_DONE = "everything"


@dataclass
class BuildingModel:
    """Lot with an extrusion height."""

    height: float
    lot: Polygon


class CityGenerator:
    """Generate a full map from a tensor field."""

    def __init__(
        self,
        config: MapConfig,
        tensor_field: Optional[TensorField] = None,
        rng: Optional[random.Random] = None
    ):
        """
        Initialize generator.

        Args:
            config: Map configuration
            tensor_field: Field to trace (built from config if None)
            rng: Random source (seeded from config.seed if None)
        """
        self.config = config
        self.viewport = config.viewport
        self.rng = rng if rng is not None else random.Random(config.seed)

        if tensor_field is None:
            tensor_field = self.create_tensor_field()
        self.tensor_field = tensor_field

        self.water: Optional[WaterGenerator] = None
        self.main_roads: Optional[StreamlineGenerator] = None
        self.major_roads: Optional[StreamlineGenerator] = None
        self.minor_roads: Optional[StreamlineGenerator] = None

        self.big_parks: List[Polygon] = []
        self.small_parks: List[Polygon] = []
        self.intersections: List[Vector] = []

        self.lots: List[Polygon] = []
        self.buildings: List[BuildingModel] = []

    def create_tensor_field(self) -> TensorField:
        """Field from the configured basis fields, or the recommended layout."""
        tensor_field = TensorField(
            noise_params=self.config.noise,
            noise_seed=self.config.seed,
            smooth=self.config.smooth_field,
        )
        if self.config.basis_fields:
            tensor_field.add_from_specs(self.config.basis_fields)
        else:
            tensor_field.set_recommended(self.viewport, self.rng)
        return tensor_field

    # Phases

    def generate_everything(self) -> PhaseResult:
        self.generate_water()
        self.generate_main_roads()
        self.generate_major_roads()
        self.generate_minor_roads()
        self.generate_buildings()
        return PhaseResult.EVERYTHING_DONE

    def generate_water(self) -> PhaseResult:
        """Coastline, sea and river; clears everything downstream."""
        self.main_roads = None
        self.major_roads = None
        self.minor_roads = None
        self.big_parks = []
        self.small_parks = []
        self.reset_buildings()
        self.tensor_field.parks = []
        self.tensor_field.seas = []
        self.tensor_field.river = []

        params = self.config.water
        self.water = WaterGenerator(
            RK4Integrator(self.tensor_field, params),
            self.viewport,
            params,
            self.tensor_field,
            self.rng,
        )
        self.water.create_coast()
        self.water.create_river()

        logger.info("Water generated", sea_polygons=len(self.water.sea_polygons), river=bool(self.water.river_polygon))
        return PhaseResult.WATER_DONE

    def generate_main_roads(self) -> PhaseResult:
        self.major_roads = None
        self.minor_roads = None
        self.big_parks = []
        self.small_parks = []
        self.reset_buildings()
        self.tensor_field.parks = []

        self.tensor_field.ignore_river = True
        try:
            self.main_roads = self._generate_roads(self.config.main, [self.water])
        finally:
            self.tensor_field.ignore_river = False

        logger.info("Main roads generated", roads=len(self.main_roads.all_streamlines_simple))
        return PhaseResult.MAIN_ROADS_DONE

    def generate_major_roads(self) -> PhaseResult:
        self.minor_roads = None
        self.big_parks = []
        self.small_parks = []
        self.reset_buildings()
        self.tensor_field.parks = []

        self.tensor_field.ignore_river = True
        try:
            self.major_roads = self._generate_roads(self.config.major, [self.water, self.main_roads])
        finally:
            self.tensor_field.ignore_river = False

        self.add_parks()
        logger.info("Major roads generated", roads=len(self.major_roads.all_streamlines_simple))
        return PhaseResult.MAJOR_ROADS_DONE

    def generate_minor_roads(self) -> PhaseResult:
        self.reset_buildings()
        self.small_parks = []
        self.tensor_field.parks = self.big_parks

        self.minor_roads = self._generate_roads(
            self.config.minor, [self.water, self.main_roads, self.major_roads]
        )

        self.add_parks()
        logger.info("Minor roads generated", roads=len(self.minor_roads.all_streamlines_simple))
        return PhaseResult.MINOR_ROADS_DONE

    def generate_buildings(self) -> PhaseResult:
        """Find blocks, shrink and divide them into lots with random heights."""
        self.reset_buildings()

        finder = PolygonFinder(self._building_graph(), self.config.buildings, self.tensor_field, self.rng)
        finder.find_polygons()
        finder.shrink()
        finder.divide()
        self.lots = finder.polygons

        min_height = self.config.min_building_height
        height_range = self.config.max_building_height - min_height
        self.buildings = sorted(
            (BuildingModel(height=self.rng.random() * height_range + min_height, lot=lot) for lot in self.lots),
            key=lambda b: b.height,
        )

        logger.info("Buildings generated", lots=len(self.lots))
        return PhaseResult.BUILDINGS_DONE

    def reset_buildings(self) -> None:
        self.lots = []
        self.buildings = []

    def _generate_roads(
        self,
        params: StreamlineParams,
        existing: Sequence[Optional[StreamlineGenerator]]
    ) -> StreamlineGenerator:
        generator = StreamlineGenerator(
            RK4Integrator(self.tensor_field, params),
            self.viewport,
            params,
            self.rng,
        )
        for other in existing:
            if other is not None:
                generator.add_existing_streamlines(other)
        generator.create_all_streamlines()
        return generator

    # Parks

    def add_parks(self) -> None:
        """
        Turn road faces into parks: big parks after the major roads, small
        parks once minor roads exist.
        """
        graph = Graph(
            self.major_road_lines + self.main_road_lines + self.minor_road_lines,
            self.config.minor.dstep,
        )
        self.intersections = graph.intersections

        finder = PolygonFinder(graph, PARK_POLYGON_PARAMS, self.tensor_field, self.rng)
        finder.find_polygons()
        polygons = finder.polygons
        park_params = self.config.parks

        if not self.minor_road_lines:
            # Big parks
            self.big_parks = []
            self.small_parks = []
            if len(polygons) > park_params.num_big_parks:
                if park_params.cluster_big_parks:
                    # Group in adjacent polygons
                    park_index = self.rng.randrange(len(polygons) - park_params.num_big_parks)
                    self.big_parks.extend(polygons[park_index:park_index + park_params.num_big_parks])
                else:
                    for _ in range(park_params.num_big_parks):
                        self.big_parks.append(self.rng.choice(polygons))
            else:
                self.big_parks.extend(polygons)
        else:
            # Small parks
            self.small_parks = []
            if polygons:
                for _ in range(park_params.num_small_parks):
                    self.small_parks.append(self.rng.choice(polygons))

        self.tensor_field.parks = self.big_parks + self.small_parks
        logger.debug("Parks added", big=len(self.big_parks), small=len(self.small_parks))

    @property
    def parks(self) -> List[Polygon]:
        return self.big_parks + self.small_parks

    # Outputs

    @property
    def main_road_lines(self) -> List[Polyline]:
        return self.main_roads.all_streamlines_simple if self.main_roads else []

    @property
    def major_road_lines(self) -> List[Polyline]:
        return self.major_roads.all_streamlines_simple if self.major_roads else []

    @property
    def minor_road_lines(self) -> List[Polyline]:
        return self.minor_roads.all_streamlines_simple if self.minor_roads else []

    @property
    def coastline_road_lines(self) -> List[Polyline]:
        """Coastline road and the near river bank."""
        return self.water.all_streamlines_simple if self.water else []

    @property
    def sea_polygons(self) -> List[Polygon]:
        return self.water.sea_polygons if self.water else []

    @property
    def river_polygons(self) -> List[Polygon]:
        return self.water.rivers if self.water else []

    @property
    def coastline(self) -> Polyline:
        return self.water.coastline if self.water else []

    @property
    def river_secondary_road(self) -> Polyline:
        return self.water.river_secondary_road if self.water else []

    def roads_empty(self) -> bool:
        return not (
            self.main_road_lines
            or self.major_road_lines
            or self.minor_road_lines
            or self.coastline_road_lines
        )

    def all_road_lines(self) -> List[Polyline]:
        """Every simplified road, including both river banks."""
        lines = self.main_road_lines + self.major_road_lines + self.minor_road_lines
        if self.water:
            lines = lines + self.water.streamlines_with_secondary_road
        return lines

    def _building_graph(self) -> Graph:
        return Graph(self.all_road_lines(), self.config.minor.dstep, delete_dangling=True)

    def get_blocks(self) -> List[Polygon]:
        """Road faces shrunk by half the lot setback, not divided."""
        block_params = replace(self.config.buildings, shrink_spacing=self.config.buildings.shrink_spacing / 2)
        finder = PolygonFinder(self._building_graph(), block_params, self.tensor_field, self.rng)
        finder.find_polygons()
        finder.shrink()
        return finder.polygons

    def _road_polygons(self, roads: Sequence[Polyline], width: float) -> List[Polygon]:
        polygons = []
        for road in roads:
            if len(road) < 2:
                continue
            try:
                polygons.append(resize_geometry(road, width * self.viewport.zoom, False))
            except DegenerateGeometryError as e:
                logger.warning("Skipping road polygon", error=str(e), points=len(road))
        return polygons

    @property
    def minor_road_polygons(self) -> List[Polygon]:
        return self._road_polygons(self.minor_road_lines, MINOR_ROAD_WIDTH)

    @property
    def major_road_polygons(self) -> List[Polygon]:
        return self._road_polygons(self.major_road_lines + [self.river_secondary_road], MAJOR_ROAD_WIDTH)

    @property
    def main_road_polygons(self) -> List[Polygon]:
        return self._road_polygons(self.main_road_lines + self.coastline_road_lines, MAIN_ROAD_WIDTH)

    @property
    def coastline_polygon(self) -> Polygon:
        polygons = self._road_polygons([self.coastline], COASTLINE_WIDTH)
        return polygons[0] if polygons else []

    def metrics(self) -> Dict:
        """Morphology of the road graph and its blocks."""
        graph = Graph(self.all_road_lines(), self.config.minor.dstep)
        return MorphologyMetrics.compute_all_morphology(
            graph.graph, self.viewport, blocks=self.lots or None
        )

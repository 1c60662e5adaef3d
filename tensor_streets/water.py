"""
Coastline and river generation on top of the streamline tracer.
"""

import random
from typing import Any, List, Mapping, Optional

import structlog

from .config import Viewport, WaterParams
from .exceptions import DegenerateGeometryError, PreconditionError
from .geo import MercatorProjection
from .integrator import FieldIntegrator
from .streamlines import StreamlineGenerator
from .tensor_field import TensorField
from .utils import (
    PolygonMask,
    complexify_polyline,
    inside_polygon,
    line_rectangle_polygon_intersection,
    resize_geometry,
)
from .vector import Polygon, Polyline

logger = structlog.get_logger()


class WaterGenerator(StreamlineGenerator):
    """
    Integrates polylines to create coastline and river, with controllable noise.
    """

    TRIES = 100

    def __init__(
        self,
        integrator: FieldIntegrator,
        viewport: Viewport,
        params: WaterParams,
        tensor_field: TensorField,
        rng: Optional[random.Random] = None,
    ):
        """
        Args:
            integrator: Field integrator
            viewport: World rectangle
            params: Water parameters
            tensor_field: Field whose sea/river masks are written
            rng: Random source
        """
        super().__init__(integrator, viewport, params, rng)
        self.params: WaterParams = params
        self.tensor_field = tensor_field

        self.coastline_major = True
        self._coastline: Polyline = []  # Noisy line
        self._sea_polygons: List[Polygon] = []  # Uses screen rectangle and simplified road
        self._river_polygon: Polygon = []
        self._river_secondary_road: Polyline = []

    @property
    def coastline(self) -> Polyline:
        return self._coastline

    @property
    def sea_polygons(self) -> List[Polygon]:
        return self._sea_polygons

    @property
    def river_polygon(self) -> Polygon:
        return self._river_polygon

    @property
    def rivers(self) -> List[Polygon]:
        return [self._river_polygon] if self._river_polygon else []

    @property
    def river_secondary_road(self) -> Polyline:
        return self._river_secondary_road

    @property
    def streamlines_with_secondary_road(self) -> List[Polyline]:
        """Simplified roads plus the road along the far river bank."""
        with_secondary = list(self.all_streamlines_simple)
        if self._river_secondary_road:
            with_secondary.append(self._river_secondary_road)
        return with_secondary

    def create_coast(self) -> None:
        """
        Trace a noisy coastline that crosses the world and install the sea
        polygon on one side of it.

        Raises:
            PreconditionError: no seed could be found in any attempt
        """
        coast_streamline: Polyline = []
        major = True

        if self.params.coast_noise.noise_enabled:
            self.tensor_field.enable_global_noise(
                self.params.coast_noise.noise_angle, self.params.coast_noise.noise_size
            )

        try:
            for i in range(self.TRIES):
                major = self.rng.random() < 0.5
                seed = self.get_seed(major)
                if seed is None:
                    logger.warning("No coastline seed found", attempt=i)
                    continue

                streamline = self.integrate_streamline(seed, major)
                if len(streamline) < 2:
                    continue
                coast_streamline = self.extend_streamline(streamline)

                if self.reaches_edges(coast_streamline):
                    break
            else:
                logger.warning("Failed to find coastline reaching edge", tries=self.TRIES)
        finally:
            self.tensor_field.disable_global_noise()

        if not coast_streamline:
            raise PreconditionError("Could not seed a coastline")

        self._coastline = coast_streamline
        self.coastline_major = major

        road = self.simplify_streamline(coast_streamline)
        try:
            self._sea_polygons.append(self.get_sea_polygon(road))
            self.tensor_field.sea = self._sea_polygons[-1]
        except DegenerateGeometryError as e:
            logger.warning("Coastline does not split the world, no sea", error=str(e))
        self.all_streamlines_simple.append(road)

        self.manually_add_streamline(road, major)
        logger.info("Coastline created", points=len(coast_streamline), major=major)

    def create_coast_from_data(self, feature: Mapping[str, Any], projection: MercatorProjection) -> None:
        """
        Use a (lon, lat) line or ring as the coastline.

        A ring is used as the sea polygon directly; a line is cut against the
        world rectangle. Coast data is always projected with y negated so
        north is up in screen coordinates, whatever the projection default.
        """
        coast_streamline = projection.project_feature(feature, flip_y=True)
        major = True

        self._coastline = coast_streamline
        self.coastline_major = major
        road = self.simplify_streamline(coast_streamline)

        if feature["geometry"]["type"] == "Polygon":
            self._sea_polygons.append(coast_streamline)
            self.tensor_field.sea = coast_streamline
        else:
            try:
                self._sea_polygons.append(self.get_sea_polygon(road))
                self.tensor_field.sea = self._sea_polygons[-1]
            except DegenerateGeometryError as e:
                logger.warning("Coastline does not split the world, no sea", error=str(e))
        self.all_streamlines_simple.append(road)

        self.manually_add_streamline(road, major)
        logger.info("Coastline loaded", points=len(coast_streamline))

    def create_river(self) -> None:
        """
        Trace a river on the other hierarchy from the coastline, then build
        the river polygon and the roads along both banks.
        """
        river_streamline: Polyline = []
        river_major = not self.coastline_major

        # Need to ignore sea when integrating for edge check
        old_seas = self.tensor_field.seas
        self.tensor_field.seas = []
        if self.params.river_noise.noise_enabled:
            self.tensor_field.enable_global_noise(
                self.params.river_noise.noise_angle, self.params.river_noise.noise_size
            )

        try:
            for i in range(self.TRIES):
                seed = self.get_seed(river_major)
                if seed is None:
                    logger.warning("No river seed found", attempt=i)
                    continue

                streamline = self.integrate_streamline(seed, river_major)
                if len(streamline) < 2:
                    continue
                river_streamline = self.extend_streamline(streamline)

                if self.reaches_edges(river_streamline):
                    break
            else:
                logger.warning("Failed to find river reaching edge", tries=self.TRIES)
        finally:
            self.tensor_field.seas = old_seas
            self.tensor_field.disable_global_noise()

        if len(river_streamline) < 2:
            logger.warning("No river traced")
            return

        try:
            expanded_noisy = complexify_polyline(
                resize_geometry(river_streamline, self.params.river_size, False),
                self.params.dstep,
            )
            self._river_polygon = resize_geometry(
                river_streamline,
                self.params.river_size - self.params.river_bank_size,
                False,
            )
            river_split_poly = self.get_sea_polygon(river_streamline)
        except DegenerateGeometryError as e:
            logger.warning("Skipping river roads", error=str(e))
            return

        # Make sure expanded_noisy[0] is off screen
        first_off_screen = next(
            (i for i, v in enumerate(expanded_noisy) if self.viewport.off_screen(v)), 0
        )
        expanded_noisy = expanded_noisy[first_off_screen:] + expanded_noisy[:first_off_screen]

        sea_mask = PolygonMask(self._sea_polygons)
        road1 = []
        road2 = []
        for v in expanded_noisy:
            if sea_mask.contains(v) or self.viewport.off_screen(v):
                continue
            if inside_polygon(v, river_split_poly):
                road1.append(v)
            else:
                road2.append(v)

        if not road1 or not road2:
            return

        road1_simple = self.simplify_streamline(road1)
        road2_simple = self.simplify_streamline(road2)

        # Keep both banks running the same way
        if road1[0].distance_to_sq(road2[0]) < road1[0].distance_to_sq(road2[-1]):
            road2_simple.reverse()

        self.tensor_field.river = road1_simple + road2_simple

        # Road 1
        self.all_streamlines_simple.append(road1_simple)
        self._river_secondary_road = road2_simple

        self.grid(river_major).add_polyline(road1)
        self.grid(river_major).add_polyline(road2)
        self.streamlines(river_major).append(road1)
        self.streamlines(river_major).append(road2)
        self.all_streamlines.append(road1)
        self.all_streamlines.append(road2)
        logger.info("River created", bank1=len(road1_simple), bank2=len(road2_simple))

    def manually_add_streamline(self, s: Polyline, major: bool) -> None:
        """Register a simplified line with intermediate samples every dstep."""
        complex_line = complexify_polyline(s, self.params.dstep)
        self.grid(major).add_polyline(complex_line)
        self.streamlines(major).append(complex_line)
        self.all_streamlines.append(complex_line)

    def get_sea_polygon(self, polyline: Polyline) -> Polygon:
        return line_rectangle_polygon_intersection(self.origin, self.world_dimensions, polyline)

    def extend_streamline(self, streamline: Polyline) -> Polyline:
        """Extrapolate both ends by 5 * dstep so the line visibly exits the world."""
        extension = self.params.dstep * 5
        start = streamline[0].add(streamline[0].sub(streamline[1]).set_length(extension))
        end = streamline[-1].add(streamline[-1].sub(streamline[-2]).set_length(extension))
        return [start] + list(streamline) + [end]

    def reaches_edges(self, streamline: Polyline) -> bool:
        return self.viewport.off_screen(streamline[0]) and self.viewport.off_screen(streamline[-1])

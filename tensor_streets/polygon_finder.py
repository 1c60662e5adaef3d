"""
Block extraction from the road graph, lot setback and lot subdivision.
"""

import math
import random
from typing import Dict, List, Optional

import structlog

from .config import PolygonParams
from .exceptions import DegenerateGeometryError
from .graph import Graph
from .tensor_field import TensorField
from .utils import average_point, polygon_signed_area, resize_geometry, subdivide_polygon
from .vector import Polygon

logger = structlog.get_logger()


class PolygonFinder:
    """
    Finds enclosed faces of a road graph and turns them into lots.
    """

    # Polygons processed per incremental update
    STEP_SIZE = 10

    def __init__(
        self,
        graph: Graph,
        params: PolygonParams,
        tensor_field: TensorField,
        rng: Optional[random.Random] = None,
    ):
        """
        Args:
            graph: Road graph
            params: Face length cap, lot area and setback
            tensor_field: Used to discard faces in water or parks
            rng: Random source for division
        """
        self.graph = graph
        self.params = params
        self.tensor_field = tensor_field
        self.rng = rng if rng is not None else random.Random()

        self._polygons: List[Polygon] = []
        self._shrunk_polygons: List[Polygon] = []
        self._divided_polygons: List[Polygon] = []
        self.to_shrink: List[Polygon] = []
        self.to_divide: List[Polygon] = []

    @property
    def polygons(self) -> List[Polygon]:
        """Most processed polygons available: divided, shrunk or raw."""
        if self._divided_polygons:
            return self._divided_polygons
        if self._shrunk_polygons:
            return self._shrunk_polygons
        return self._polygons

    def reset(self) -> None:
        self.to_shrink = []
        self.to_divide = []
        self._polygons = []
        self._shrunk_polygons = []
        self._divided_polygons = []

    def update(self) -> bool:
        """
        Shrink or divide up to STEP_SIZE queued polygons.

        Returns:
            Whether anything changed
        """
        change = False
        if self.to_shrink:
            for _ in range(min(self.STEP_SIZE, len(self.to_shrink))):
                if self.step_shrink(self.to_shrink.pop()):
                    change = True
        elif self.to_divide:
            for _ in range(min(self.STEP_SIZE, len(self.to_divide))):
                if self.step_divide(self.to_divide.pop()):
                    change = True
        return change

    def shrink(self, animate: bool = False) -> None:
        """Offset every found polygon inwards by `shrink_spacing`."""
        if not self._polygons:
            self.find_polygons()

        self._shrunk_polygons = []
        if animate:
            self.to_shrink = list(self._polygons)
            return

        for polygon in self._polygons:
            self.step_shrink(polygon)

    def step_shrink(self, polygon: Polygon) -> bool:
        try:
            shrunk = resize_geometry(polygon, -self.params.shrink_spacing)
        except DegenerateGeometryError as e:
            logger.warning("Skipping polygon that cannot be shrunk", error=str(e), points=len(polygon))
            return False
        self._shrunk_polygons.append(shrunk)
        return True

    def divide(self, animate: bool = False) -> None:
        """Subdivide shrunk (or raw) polygons into lots."""
        if not self._polygons:
            self.find_polygons()

        polygons = self._shrunk_polygons if self._shrunk_polygons else self._polygons

        self._divided_polygons = []
        if animate:
            self.to_divide = list(polygons)
            return

        for polygon in polygons:
            self.step_divide(polygon)

    def step_divide(self, polygon: Polygon) -> bool:
        # Keep some large lots for variety
        if self.params.chance_no_divide > 0 and self.rng.random() < self.params.chance_no_divide:
            self._divided_polygons.append(polygon)
            return True

        divided = subdivide_polygon(polygon, self.params.min_area, self.rng)
        if divided:
            self._divided_polygons.extend(divided)
            return True
        return False

    def find_polygons(self) -> None:
        """
        Walk the graph turning right at every junction to collect its
        enclosed faces.
        """
        self._shrunk_polygons = []
        self._divided_polygons = []

        # Directed adjacency, each edge is consumed once per direction
        adjacency: Dict[int, List[int]] = {n: self.graph.neighbours(n) for n in self.graph.nodes}

        polygons = []
        for node in self.graph.nodes:
            if len(self.graph.neighbours(node)) < 2:
                continue

            for next_node in list(adjacency[node]):
                if next_node not in adjacency[node]:
                    continue

                walk = self._walk([node, next_node], adjacency)
                if walk is None or len(walk) >= self.params.max_length:
                    continue

                self._remove_polygon_adjacencies(walk, adjacency)
                polygon = [self.graph.position(n) for n in walk]
                # Rightmost walks trace interior faces clockwise; the outer
                # boundary comes out counter-clockwise
                if polygon_signed_area(polygon) < 0:
                    polygons.append(polygon)

        self._polygons = self._filter_polygons_by_water(polygons)
        logger.info("Polygons found", count=len(self._polygons), discarded=len(polygons) - len(self._polygons))

    def _filter_polygons_by_water(self, polygons: List[Polygon]) -> List[Polygon]:
        out = []
        for polygon in polygons:
            average = average_point(polygon)
            if not self.tensor_field.on_land(average) or self.tensor_field.in_parks(average):
                continue
            out.append(polygon)
        return out

    def _remove_polygon_adjacencies(self, walk: List[int], adjacency: Dict[int, List[int]]) -> None:
        for i, current in enumerate(walk):
            following = walk[(i + 1) % len(walk)]
            if following in adjacency[current]:
                adjacency[current].remove(following)
            else:
                logger.debug("Node not in adjacency", node=current, neighbour=following)

    def _walk(self, visited: List[int], adjacency: Dict[int, List[int]]) -> Optional[List[int]]:
        """
        Follow rightmost turns until a node repeats.

        Returns:
            The closed loop of nodes, or None at a dead end or after
            `max_length` steps
        """
        while len(visited) <= self.params.max_length:
            next_node = self._get_rightmost_node(visited[-2], visited[-1], adjacency)
            # Dead end inside the face
            if next_node is None:
                return None

            if next_node in visited:
                return visited[visited.index(next_node):]
            visited.append(next_node)

        return None

    def _get_rightmost_node(self, node_from: int, node_to: int, adjacency: Dict[int, List[int]]) -> Optional[int]:
        # We want to turn right at every junction
        candidates = adjacency[node_to]
        if not candidates:
            return None

        to_position = self.graph.position(node_to)
        backwards = self.graph.position(node_from).sub(to_position)
        transform_angle = math.atan2(backwards.y, backwards.x)

        rightmost_node = None
        smallest_theta = math.pi * 2

        for next_node in candidates:
            if next_node == node_from:
                continue
            next_vector = self.graph.position(next_node).sub(to_position)
            next_angle = math.atan2(next_vector.y, next_vector.x) - transform_angle
            if next_angle < 0:
                next_angle += math.pi * 2

            if next_angle < smallest_theta:
                smallest_theta = next_angle
                rightmost_node = next_node

        return rightmost_node

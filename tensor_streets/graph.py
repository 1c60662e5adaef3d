"""
Planar road graph built from streamline intersections.
"""

import math
from collections import defaultdict
from typing import DefaultDict, Dict, List, Sequence, Tuple

import networkx as nx
import structlog

from .utils import SpatialIndex
from .vector import Polyline, Vector

logger = structlog.get_logger()


def _segment_parameter(point: Vector, a: Vector, b: Vector) -> float:
    """Projection of `point` onto segment a-b, clamped to [0, 1]."""
    ab = b.sub(a)
    length_sq = ab.length_sq()
    if length_sq == 0:
        return 0.0
    t = point.sub(a).dot(ab) / length_sq
    return min(1.0, max(0.0, t))


class Graph:
    """
    Undirected planar graph of road junctions.

    Nodes are streamline endpoints and pairwise intersections, merged when
    closer than `dstep`. Consecutive nodes along each streamline are joined
    by an edge. Every node carries its world position as the ``pos``
    attribute.
    """

    def __init__(self, streamlines: Sequence[Polyline], dstep: float, delete_dangling: bool = False):
        """
        Build the graph.

        Args:
            streamlines: Road polylines (usually simplified)
            dstep: Node merge tolerance
            delete_dangling: Repeatedly remove nodes of degree <= 1
        """
        self.dstep = dstep
        self.dstep_sq = dstep * dstep
        self.graph = nx.Graph()
        self.pos: Dict[int, Vector] = {}
        self.next_node_id = 0
        self._cells: DefaultDict[Tuple[int, int], List[int]] = defaultdict(list)

        self.intersections: List[Vector] = []

        lines = [list(s) for s in streamlines if len(s) >= 2]

        spatial_index = SpatialIndex()
        for i, line in enumerate(lines):
            spatial_index.add_polyline(line, i)

        # Stops along each polyline as (segment index + segment parameter, point)
        stops: List[List[Tuple[float, Vector]]] = [
            [(0.0, line[0]), (float(len(line) - 1), line[-1])] for line in lines
        ]
        for point, (line_a, segment_a), (line_b, segment_b) in spatial_index.find_intersections():
            self.intersections.append(point)
            for line_index, segment in ((line_a, segment_a), (line_b, segment_b)):
                line = lines[line_index]
                t = _segment_parameter(point, line[segment], line[segment + 1])
                stops[line_index].append((segment + t, point))

        for line_stops in stops:
            line_stops.sort(key=lambda stop: stop[0])
            previous = None
            for _, point in line_stops:
                node = self._get_or_add_node(point)
                if previous is not None and previous != node:
                    self.graph.add_edge(previous, node)
                previous = node

        if delete_dangling:
            self.delete_dangling_nodes()

        logger.debug(
            "Road graph built",
            nodes=self.graph.number_of_nodes(),
            edges=self.graph.number_of_edges(),
            intersections=len(self.intersections),
        )

    @property
    def nodes(self) -> List[int]:
        return list(self.graph.nodes())

    def neighbours(self, node: int) -> List[int]:
        return list(self.graph.neighbors(node))

    def position(self, node: int) -> Vector:
        return self.pos[node]

    def delete_dangling_nodes(self) -> None:
        """Remove dead ends until every node has degree >= 2."""
        while True:
            dangling = [n for n, degree in self.graph.degree() if degree <= 1]
            if not dangling:
                return
            for node in dangling:
                self.graph.remove_node(node)
                self._cells[self._cell(self.pos[node])].remove(node)
                del self.pos[node]

    def _cell(self, v: Vector) -> Tuple[int, int]:
        return (math.floor(v.x / self.dstep), math.floor(v.y / self.dstep))

    def _get_or_add_node(self, point: Vector) -> int:
        """Existing node within dstep of `point`, or a new one."""
        cx, cy = self._cell(point)
        for x in range(cx - 1, cx + 2):
            for y in range(cy - 1, cy + 2):
                for node in self._cells.get((x, y), ()):
                    if self.pos[node].distance_to_sq(point) < self.dstep_sq:
                        return node

        node_id = self.next_node_id
        self.next_node_id += 1
        self.graph.add_node(node_id, x=point.x, y=point.y, pos=point)
        self.pos[node_id] = point
        self._cells[(cx, cy)].append(node_id)
        return node_id

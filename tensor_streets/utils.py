"""
Utility functions for geometry operations and spatial indexing.
"""

import math
import random
from typing import List, Optional, Sequence, Tuple

import networkx as nx
import numpy as np
import shapely
import structlog
from shapely.geometry import LineString, Point, Polygon, box
from shapely.geometry.polygon import orient
from shapely.ops import polygonize, split, unary_union
from shapely.strtree import STRtree
from shapely.validation import make_valid

from .exceptions import DegenerateGeometryError
from .vector import Vector, to_tuples, to_vectors

logger = structlog.get_logger()


def calculate_bearing(p1: Vector, p2: Vector) -> float:
    """
    Calculate bearing (0-180°) of line segment from p1 to p2.

    Args:
        p1: Start point
        p2: End point

    Returns:
        Bearing in degrees [0, 180)
    """
    bearing = math.degrees(math.atan2(p2.y - p1.y, p2.x - p1.x))

    # Normalize to [0, 180) - we don't care about direction
    if bearing < 0:
        bearing += 180
    if bearing >= 180:
        bearing -= 180

    return bearing


def to_shapely_polygon(points: Sequence[Vector]) -> Polygon:
    """
    Build a valid, counter-clockwise shapely polygon.

    Raises:
        DegenerateGeometryError: fewer than 3 points or zero area
    """
    if len(points) < 3:
        raise DegenerateGeometryError(f"Polygon needs 3 points, got {len(points)}")
    poly = Polygon(to_tuples(points))
    if not poly.is_valid:
        poly = make_valid(poly)
        if poly.geom_type != "Polygon":
            parts = [g for g in getattr(poly, "geoms", []) if g.geom_type == "Polygon"]
            if not parts:
                raise DegenerateGeometryError("Polygon could not be repaired")
            poly = max(parts, key=lambda g: g.area)
    if poly.is_empty or poly.area == 0:
        raise DegenerateGeometryError("Polygon has zero area")
    return orient(poly, sign=1.0)


def polygon_to_vectors(poly: Polygon) -> List[Vector]:
    """Exterior ring without the closing point."""
    return to_vectors(poly.exterior.coords[:-1])


def polygon_signed_area(points: Sequence[Vector]) -> float:
    """Shoelace area, positive for counter-clockwise rings (y up)."""
    if len(points) < 3:
        return 0.0
    xs = np.array([p.x for p in points])
    ys = np.array([p.y for p in points])
    return float((np.dot(xs, np.roll(ys, -1)) - np.dot(ys, np.roll(xs, -1))) / 2)


def polygon_area(points: Sequence[Vector]) -> float:
    return abs(polygon_signed_area(points))


def average_point(points: Sequence[Vector]) -> Vector:
    if not points:
        return Vector.zero()
    arr = np.array(to_tuples(points))
    mean = arr.mean(axis=0)
    return Vector(float(mean[0]), float(mean[1]))


def inside_polygon(point: Vector, polygon: Sequence[Vector]) -> bool:
    """Point-in-polygon; always False for polygons with fewer than 3 points."""
    if len(polygon) < 3:
        return False
    return bool(Polygon(to_tuples(polygon)).contains(Point(point.x, point.y)))


class PolygonMask:
    """
    Prepared union of polygons for fast repeated containment tests.
    """

    def __init__(self, polygons: Sequence[Sequence[Vector]]):
        geoms = []
        for p in polygons:
            if len(p) < 3:
                continue
            geom = Polygon(to_tuples(p))
            if not geom.is_valid:
                geom = make_valid(geom)
            geoms.append(geom)
        self._geom = unary_union(geoms) if geoms else None
        if self._geom is not None:
            shapely.prepare(self._geom)

    def __bool__(self) -> bool:
        return self._geom is not None

    def contains(self, point: Vector) -> bool:
        if self._geom is None:
            return False
        return bool(shapely.contains_xy(self._geom, point.x, point.y))


def resize_geometry(geometry: Sequence[Vector], spacing: float, is_polygon: bool = True) -> List[Vector]:
    """
    Offset a polygon (negative spacing shrinks) or buffer a polyline.

    Args:
        geometry: Polygon ring or polyline
        spacing: Offset distance
        is_polygon: Treat `geometry` as a closed ring

    Returns:
        Exterior ring of the result (counter-clockwise, not closed)

    Raises:
        DegenerateGeometryError: empty or multi-part result
    """
    if is_polygon:
        geom = to_shapely_polygon(geometry)
    else:
        if len(geometry) < 2:
            raise DegenerateGeometryError("Polyline needs 2 points")
        geom = LineString(to_tuples(geometry))

    resized = geom.buffer(spacing, cap_style="flat")
    if resized.is_empty:
        raise DegenerateGeometryError("Offset result is empty")
    if resized.geom_type != "Polygon":
        raise DegenerateGeometryError(f"Offset produced {resized.geom_type}")
    return polygon_to_vectors(orient(resized, sign=1.0))


def line_rectangle_polygon_intersection(
    origin: Vector,
    world_dimensions: Vector,
    line: Sequence[Vector],
) -> List[Vector]:
    """
    Smallest region cut out of the world rectangle by `line`.

    The rectangle boundary and the line are noded together and polygonized;
    the smallest resulting face is returned.

    Raises:
        DegenerateGeometryError: the line leaves the rectangle in one piece
    """
    if len(line) < 2:
        raise DegenerateGeometryError("Cutting line needs 2 points")
    bounds = box(origin.x, origin.y, origin.x + world_dimensions.x, origin.y + world_dimensions.y)
    union = unary_union([bounds.exterior, LineString(to_tuples(line))])
    polygons = list(polygonize(union))
    if len(polygons) < 2:
        raise DegenerateGeometryError("Line does not divide the world rectangle")
    smallest = min(polygons, key=lambda p: p.area)
    return polygon_to_vectors(orient(smallest, sign=1.0))


def simplify_polyline(points: Sequence[Vector], tolerance: float) -> List[Vector]:
    """Douglas-Peucker reduction; endpoints are always kept."""
    if len(points) < 3:
        return list(points)
    simplified = LineString(to_tuples(points)).simplify(tolerance, preserve_topology=False)
    return to_vectors(simplified.coords)


def complexify_polyline(points: Sequence[Vector], dstep: float) -> List[Vector]:
    """
    Insert samples by repeated halving until consecutive points are at most
    `dstep` apart. Uses an explicit stack, not recursion.
    """
    dstep_sq = dstep * dstep
    out: List[Vector] = []
    for i in range(len(points) - 1):
        stack = [(points[i], points[i + 1])]
        while stack:
            v1, v2 = stack.pop()
            if v1.distance_to_sq(v2) <= dstep_sq:
                if not out or out[-1] != v1:
                    out.append(v1)
                out.append(v2)
                continue
            halfway = v1.lerp(v2, 0.5)
            # Second half pushed first so the first half is emitted first
            stack.append((halfway, v2))
            stack.append((v1, halfway))
    if not out and points:
        out = [points[0]]
    return out


def subdivide_polygon(
    points: Sequence[Vector],
    min_area: float,
    rng: random.Random,
) -> List[List[Vector]]:
    """
    Recursively bisect a polygon across the longer axis of its oriented
    bounding box until every piece has area <= `min_area`.

    Pieces smaller than half of `min_area`, or thinner than a 1:4 rectangle
    (area / perimeter² < 0.04), are dropped.

    Args:
        points: Polygon ring
        min_area: Target lot area
        rng: Random source for the cut position

    Returns:
        List of lot polygons (possibly empty)
    """
    try:
        poly = to_shapely_polygon(points)
    except DegenerateGeometryError:
        return []

    area = poly.area
    if area < 0.5 * min_area:
        return []

    # Shape index, using rectangle ratio of 1:4 as limit
    perimeter = poly.length
    if area / (perimeter * perimeter) < 0.04:
        return []

    if area <= min_area:
        return [polygon_to_vectors(poly)]

    corners = to_vectors(shapely.oriented_envelope(poly).exterior.coords)
    side_a = corners[1].sub(corners[0])
    side_b = corners[2].sub(corners[1])
    if side_a.length_sq() >= side_b.length_sq():
        long_start, long_side = corners[0], side_a
    else:
        long_start, long_side = corners[1], side_b

    # Between 0.4 and 0.6
    deviation = rng.uniform(0.4, 0.6)
    cut_point = long_start.add(long_side.scale(deviation))
    reach = side_a.length() + side_b.length()
    perp = long_side.perpendicular().set_length(reach)
    bisect = LineString(to_tuples([cut_point.add(perp), cut_point.sub(perp)]))

    pieces = [g for g in split(poly, bisect).geoms if g.geom_type == "Polygon"]
    if len(pieces) < 2:
        logger.warning("Lot bisection failed, dropping polygon", area=area)
        return []

    divided: List[List[Vector]] = []
    for piece in pieces:
        divided.extend(subdivide_polygon(polygon_to_vectors(piece), min_area, rng))
    return divided


class SpatialIndex:
    """
    Spatial index over polyline segments for intersection queries.
    """

    def __init__(self):
        """Initialize empty spatial index."""
        self.edges: List[LineString] = []
        self.edge_data: List[Tuple[int, int]] = []  # (polyline index, segment index)
        self.tree: Optional[STRtree] = None

    def add_polyline(self, points: Sequence[Vector], polyline_id: int) -> None:
        """
        Add every segment of a polyline to the index.

        Args:
            points: Polyline vertices
            polyline_id: Identifier stored with each segment
        """
        for i in range(len(points) - 1):
            if points[i] == points[i + 1]:
                continue
            self.edges.append(LineString([points[i], points[i + 1]]))
            self.edge_data.append((polyline_id, i))
        # Rebuild tree (will be lazy rebuilt on next query)
        self.tree = None

    def _ensure_tree(self):
        """Rebuild spatial index tree if needed."""
        if self.tree is None and self.edges:
            self.tree = STRtree(self.edges)

    def find_intersections(self) -> List[Tuple[Vector, Tuple[int, int], Tuple[int, int]]]:
        """
        Find every pairwise crossing between indexed segments.

        Segments that are consecutive on the same polyline only share their
        common vertex and are skipped.

        Returns:
            List of (point, segment_a, segment_b) tuples
        """
        self._ensure_tree()
        if not self.edges:
            return []

        results = []
        left, right = self.tree.query(self.edges, predicate="intersects")
        for i, j in zip(left.tolist(), right.tolist()):
            if i >= j:
                continue
            a = self.edge_data[i]
            b = self.edge_data[j]
            if a[0] == b[0] and abs(a[1] - b[1]) <= 1:
                continue

            hit = self.edges[i].intersection(self.edges[j])
            for point in _points_of(hit):
                results.append((point, a, b))

        return results


def _points_of(geom) -> List[Vector]:
    """Representative points of an intersection result."""
    if geom.is_empty:
        return []
    if geom.geom_type == "Point":
        return [Vector(geom.x, geom.y)]
    if geom.geom_type in ("LineString", "LinearRing"):
        # Collinear overlap: keep both ends
        return to_vectors([geom.coords[0], geom.coords[-1]])
    out: List[Vector] = []
    for g in geom.geoms:
        out.extend(_points_of(g))
    return out


def compute_orientation_histogram(
    graph: nx.Graph,
    num_bins: int = 18
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Compute orientation histogram for edges.

    Args:
        graph: NetworkX graph with a `pos` Vector on every node
        num_bins: Number of bins for [0, 180)

    Returns:
        (bin_edges, counts) arrays
    """
    bearings = []

    for u, v in graph.edges():
        bearing = calculate_bearing(graph.nodes[u]["pos"], graph.nodes[v]["pos"])
        bearings.append(bearing)

    if not bearings:
        return np.linspace(0, 180, num_bins + 1), np.zeros(num_bins)

    counts, bin_edges = np.histogram(bearings, bins=num_bins, range=(0, 180))
    return bin_edges, counts


def compute_entropy(histogram_counts: np.ndarray) -> float:
    """
    Compute Shannon entropy of histogram.

    Args:
        histogram_counts: Array of bin counts

    Returns:
        Entropy value
    """
    # Normalize to probabilities
    total = np.sum(histogram_counts)
    if total == 0:
        return 0.0

    probs = histogram_counts / total
    # Remove zeros to avoid log(0)
    probs = probs[probs > 0]

    return float(-np.sum(probs * np.log2(probs)))

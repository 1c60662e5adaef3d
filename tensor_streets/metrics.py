"""
Summary metrics of a generated road network and its lots.
"""

from collections import Counter
from typing import Dict, List, Optional, Sequence, Tuple

import networkx as nx
import numpy as np

from .config import Viewport
from .utils import compute_entropy, compute_orientation_histogram, polygon_area
from .vector import Polygon


class MorphologyMetrics:
    """Road graph and block morphology metrics."""

    @staticmethod
    def compute_node_density(graph: nx.Graph, viewport: Viewport) -> float:
        """
        Junctions per km², taking one world unit as one metre.

        Args:
            graph: Road graph
            viewport: World rectangle the graph was generated in

        Returns:
            Node density
        """
        area_km2 = viewport.width * viewport.height / 1e6
        if area_km2 == 0:
            return 0.0
        return graph.number_of_nodes() / area_km2

    @staticmethod
    def compute_degree_distribution(graph: nx.Graph) -> Dict[int, int]:
        """Map of degree -> number of nodes with that degree."""
        return dict(Counter(d for _, d in graph.degree()))

    @staticmethod
    def compute_segment_lengths(graph: nx.Graph) -> List[float]:
        """Straight-line length of every edge."""
        return [
            graph.nodes[u]["pos"].distance_to(graph.nodes[v]["pos"])
            for u, v in graph.edges()
        ]

    @staticmethod
    def compute_dead_end_ratio(graph: nx.Graph) -> float:
        """Share of nodes with degree 1."""
        if graph.number_of_nodes() == 0:
            return 0.0
        dead_ends = sum(1 for _, d in graph.degree() if d == 1)
        return dead_ends / graph.number_of_nodes()

    @staticmethod
    def compute_block_areas(polygons: Sequence[Polygon]) -> List[float]:
        return [polygon_area(p) for p in polygons]

    @staticmethod
    def compute_all_morphology(
        graph: nx.Graph,
        viewport: Viewport,
        blocks: Optional[Sequence[Polygon]] = None,
        num_orientation_bins: int = 18
    ) -> Dict:
        """
        Compute all morphology metrics.

        Args:
            graph: Road graph with a `pos` Vector per node
            viewport: World rectangle
            blocks: Optional block polygons for area statistics
            num_orientation_bins: Number of orientation bins

        Returns:
            Dict with all morphology metrics
        """
        segment_lengths = MorphologyMetrics.compute_segment_lengths(graph)
        bin_edges, orientation_counts = compute_orientation_histogram(graph, num_orientation_bins)

        metrics = {
            "num_nodes": graph.number_of_nodes(),
            "num_edges": graph.number_of_edges(),
            "node_density": MorphologyMetrics.compute_node_density(graph, viewport),
            "degree_distribution": MorphologyMetrics.compute_degree_distribution(graph),
            "dead_end_ratio": MorphologyMetrics.compute_dead_end_ratio(graph),
            "segment_lengths": segment_lengths,
            "mean_segment_length": float(np.mean(segment_lengths)) if segment_lengths else 0.0,
            "total_length": float(np.sum(segment_lengths)),
            "orientation_histogram": {
                "bin_edges": bin_edges.tolist(),
                "counts": orientation_counts.tolist(),
                "entropy": compute_entropy(orientation_counts),
            },
        }

        if blocks is not None:
            areas = MorphologyMetrics.compute_block_areas(blocks)
            metrics["num_blocks"] = len(areas)
            metrics["mean_block_area"] = float(np.mean(areas)) if areas else 0.0

        return metrics


def compute_distribution_histogram(
    values: List[float],
    num_bins: int = 20,
    range_min: Optional[float] = None,
    range_max: Optional[float] = None
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Histogram of a list of values.

    Args:
        values: Values to bin
        num_bins: Number of bins
        range_min: Lower edge (min of values if None)
        range_max: Upper edge (max of values if None)

    Returns:
        (bin_edges, counts) arrays
    """
    if not values:
        return np.linspace(0, 1, num_bins + 1), np.zeros(num_bins)

    lower = min(values) if range_min is None else range_min
    upper = max(values) if range_max is None else range_max
    counts, bin_edges = np.histogram(values, bins=num_bins, range=(lower, upper))
    return bin_edges, counts

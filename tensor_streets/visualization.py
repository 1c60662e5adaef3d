"""
Static matplotlib plots of a generated map.
"""

from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Tuple

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.collections import LineCollection, PolyCollection
from matplotlib.patches import Rectangle

from .config import Viewport
from .metrics import compute_distribution_histogram
from .tensor_field import TensorField
from .vector import Polygon, Polyline, Vector, to_tuples

if TYPE_CHECKING:
    from .generator import CityGenerator

ROAD_STYLES = {
    "coastline": ('#5D6D7E', 2.5),
    "main": ('#2C3E50', 2.0),
    "major": ('#34495E', 1.4),
    "minor": ('#7F8C8D', 0.7),
}


def _add_polygons(ax: plt.Axes, polygons: Sequence[Polygon], **kwargs) -> None:
    polygons = [to_tuples(p) for p in polygons if len(p) >= 3]
    if polygons:
        ax.add_collection(PolyCollection(polygons, **kwargs))


def _add_lines(ax: plt.Axes, lines: Sequence[Polyline], color: str, width: float) -> None:
    lines = [to_tuples(line) for line in lines if len(line) >= 2]
    if lines:
        ax.add_collection(LineCollection(lines, colors=color, linewidths=width, zorder=3))


def _finish_axes(ax: plt.Axes, viewport: Viewport, title: str) -> None:
    origin = viewport.origin
    ax.add_patch(Rectangle(
        (origin.x, origin.y), viewport.width, viewport.height,
        fill=False, edgecolor='gray', linestyle='--', linewidth=1
    ))
    margin = 0.02 * max(viewport.width, viewport.height)
    ax.set_xlim(origin.x - margin, origin.x + viewport.width + margin)
    ax.set_ylim(origin.y - margin, origin.y + viewport.height + margin)
    ax.set_aspect('equal')
    ax.set_title(title, fontsize=12, fontweight='bold')
    ax.set_xlabel('X (world units)')
    ax.set_ylabel('Y (world units)')


def plot_map(
    generator: "CityGenerator",
    ax: Optional[plt.Axes] = None,
    title: str = "Generated Map",
    show_lots: bool = True,
    show_intersections: bool = False,
) -> plt.Axes:
    """
    Plot water, parks, lots and roads of a generator.

    Args:
        generator: Generator after one or more phases
        ax: Matplotlib axis (creates new if None)
        title: Plot title
        show_lots: Draw building lots
        show_intersections: Mark road intersections

    Returns:
        Matplotlib axis
    """
    viewport = generator.viewport
    if ax is None:
        aspect = viewport.height / viewport.width if viewport.width else 1.0
        width = 10 * viewport.zoom
        fig, ax = plt.subplots(figsize=(width, max(2.0, width * aspect)))

    _add_polygons(ax, generator.sea_polygons, facecolors='#AED6F1', edgecolors='none', zorder=0)
    _add_polygons(ax, generator.river_polygons, facecolors='#AED6F1', edgecolors='none', zorder=1)
    _add_polygons(ax, generator.parks, facecolors='#A9DFBF', edgecolors='none', zorder=1)
    if show_lots:
        _add_polygons(ax, generator.lots, facecolors='#F5CBA7', edgecolors='#AF601A', linewidths=0.3, zorder=2)

    _add_lines(ax, [generator.coastline], *ROAD_STYLES["coastline"])
    _add_lines(ax, generator.main_road_lines, *ROAD_STYLES["main"])
    _add_lines(ax, generator.major_road_lines + [generator.river_secondary_road], *ROAD_STYLES["major"])
    _add_lines(ax, generator.minor_road_lines, *ROAD_STYLES["minor"])

    if show_intersections and generator.intersections:
        points = np.array(to_tuples(generator.intersections))
        ax.scatter(points[:, 0], points[:, 1], s=6, c='#E74C3C', zorder=4)

    _finish_axes(ax, viewport, title)
    return ax


def plot_tensor_field(
    tensor_field: TensorField,
    viewport: Viewport,
    ax: Optional[plt.Axes] = None,
    spacing: float = 20.0,
    major: bool = True,
    title: str = "Tensor Field",
) -> plt.Axes:
    """
    Draw short line segments along the major (or minor) eigenvectors on a
    regular grid.
    """
    if ax is None:
        fig, ax = plt.subplots(figsize=(8, 8))

    half = spacing * 0.4
    segments = []
    for x in np.arange(viewport.origin.x, viewport.origin.x + viewport.width, spacing):
        for y in np.arange(viewport.origin.y, viewport.origin.y + viewport.height, spacing):
            point = Vector(float(x), float(y))
            tensor = tensor_field.sample_point(point)
            direction = tensor.get_major() if major else tensor.get_minor()
            if direction.length_sq() == 0:
                continue
            offset = direction.scale(half)
            segments.append([tuple(point.sub(offset)), tuple(point.add(offset))])

    if segments:
        ax.add_collection(LineCollection(segments, colors='#2C3E50', linewidths=0.6))

    _finish_axes(ax, viewport, title)
    return ax


def plot_histogram(
    hist: Tuple[np.ndarray, np.ndarray],
    ax: Optional[plt.Axes] = None,
    title: str = "Distribution",
    xlabel: str = "Value",
    color: str = '#3498DB',
) -> plt.Axes:
    """Bar plot of a (bin_edges, counts) histogram."""
    if ax is None:
        fig, ax = plt.subplots(figsize=(8, 4))

    bin_edges, counts = hist
    bin_edges = np.asarray(bin_edges)
    centers = (bin_edges[:-1] + bin_edges[1:]) / 2
    width = (bin_edges[1] - bin_edges[0]) * 0.9 if len(bin_edges) > 1 else 1.0
    ax.bar(centers, counts, width=width, color=color, edgecolor='black', linewidth=0.5)

    ax.set_title(title, fontsize=11, fontweight='bold')
    ax.set_xlabel(xlabel)
    ax.set_ylabel('Count')
    ax.grid(True, alpha=0.3, axis='y')
    return ax


def plot_summary(
    generator: "CityGenerator",
    metrics: Optional[Dict] = None,
    save_path: Optional[str] = None,
    dpi: int = 150,
) -> plt.Figure:
    """
    Map, tensor field, orientation and segment length panels in one figure.

    Args:
        generator: Generator after one or more phases
        metrics: Precomputed `generator.metrics()` (computed if None)
        save_path: Write the figure here if given
        dpi: Output resolution

    Returns:
        Matplotlib figure
    """
    if metrics is None:
        metrics = generator.metrics()

    fig, axes = plt.subplots(2, 2, figsize=(14, 12))

    plot_map(generator, ax=axes[0, 0])
    plot_tensor_field(generator.tensor_field, generator.viewport, ax=axes[0, 1], spacing=max(
        generator.viewport.width, generator.viewport.height) / 40)

    orientation = metrics["orientation_histogram"]
    plot_histogram(
        (orientation["bin_edges"], orientation["counts"]),
        ax=axes[1, 0],
        title=f"Orientation (entropy {orientation['entropy']:.2f})",
        xlabel='Bearing (degrees)',
    )

    lengths: List[float] = metrics["segment_lengths"]
    plot_histogram(
        compute_distribution_histogram(lengths),
        ax=axes[1, 1],
        title="Segment Lengths",
        xlabel='Length (world units)',
        color='#E67E22',
    )

    fig.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=dpi, bbox_inches='tight')
    return fig

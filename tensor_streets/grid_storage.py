"""
Uniform spatial hash of streamline samples.
"""

import math
from collections import defaultdict
from typing import DefaultDict, Iterable, List, Optional, Tuple

from .vector import Vector

Cell = Tuple[int, int]


class GridStorage:
    """
    Cartesian grid accelerated data structure.
    Grid of cells, each containing a list of vectors.
    """

    def __init__(self, world_dimensions: Vector, origin: Vector, dsep: float):
        """
        Args:
            world_dimensions: Size of the world rectangle
            origin: World-space origin of the grid
            dsep: Cell size, also the default separation distance
        """
        self.world_dimensions = world_dimensions
        self.origin = origin
        self.dsep = dsep
        self.dsep_sq = dsep * dsep
        self.grid: DefaultDict[Cell, List[Vector]] = defaultdict(list)

    def __len__(self) -> int:
        return sum(len(cell) for cell in self.grid.values())

    def samples(self) -> Iterable[Vector]:
        for cell in self.grid.values():
            yield from cell

    def add_all(self, other: "GridStorage") -> None:
        """Add all samples from another grid to this one."""
        for sample in list(other.samples()):
            self.add_sample(sample)

    def add_polyline(self, line: Iterable[Vector]) -> None:
        for v in line:
            self.add_sample(v)

    def add_sample(self, v: Vector) -> None:
        self.grid[self.get_sample_coords(v)].append(v)

    def is_valid_sample(self, v: Vector, d_sq: Optional[float] = None) -> bool:
        """
        True iff no stored sample lies closer than sqrt(d_sq) to `v`.

        Samples equal to `v` itself are ignored.
        """
        if d_sq is None:
            d_sq = self.dsep_sq
        radius = self._cell_radius(math.sqrt(d_sq))
        cx, cy = self.get_sample_coords(v)
        # Inlined rather than built on get_nearby_points to avoid list copies
        for x in range(cx - radius, cx + radius + 1):
            for y in range(cy - radius, cy + radius + 1):
                cell = self.grid.get((x, y))
                if cell and not self.vector_far_from_vectors(v, cell, d_sq):
                    return False
        return True

    @staticmethod
    def vector_far_from_vectors(v: Vector, vectors: List[Vector], d_sq: float) -> bool:
        for sample in vectors:
            # Vectors are values, so any equal sample counts as `v` itself
            if sample != v and v.distance_to_sq(sample) < d_sq:
                return False
        return True

    def get_nearby_points(self, v: Vector, distance: float) -> List[Vector]:
        """
        Candidate samples in cells within `distance` of `v`'s cell.
        Not filtered by exact distance.
        """
        radius = self._cell_radius(distance)
        cx, cy = self.get_sample_coords(v)
        out: List[Vector] = []
        for x in range(cx - radius, cx + radius + 1):
            for y in range(cy - radius, cy + radius + 1):
                cell = self.grid.get((x, y))
                if cell:
                    out.extend(cell)
        return out

    def get_sample_coords(self, world_v: Vector) -> Cell:
        v = world_v.sub(self.origin)
        return (math.floor(v.x / self.dsep), math.floor(v.y / self.dsep))

    def _cell_radius(self, distance: float) -> int:
        return max(1, math.ceil(distance / self.dsep))

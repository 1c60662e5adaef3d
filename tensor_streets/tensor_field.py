"""
Tensor primitives, basis fields and the combined tensor field.

A tensor is kept in reduced form: a magnitude ``r`` and the unit pair
``(cos 2θ, sin 2θ)``. Eigen-decomposition of the 2x2 symmetric traceless
matrix collapses to ``θ = atan2(t2, t1) / 2``; the major eigenvector is
``(cos θ, sin θ)`` and the minor one is perpendicular to it.
"""

import math
import random
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple, Union

import structlog
from opensimplex import OpenSimplex

from .config import BasisFieldSpec, NoiseParams, Viewport
from .utils import PolygonMask
from .vector import Polygon, Vector

logger = structlog.get_logger()


class Tensor:
    """Immutable reduced 2x2 symmetric traceless tensor."""

    __slots__ = ("r", "matrix", "_theta")

    def __init__(self, r: float, matrix: Tuple[float, float]):
        self.r = r
        self.matrix = (matrix[0], matrix[1])
        self._theta: Optional[float] = None

    @staticmethod
    def zero() -> "Tensor":
        return Tensor(0.0, (0.0, 0.0))

    @property
    def theta(self) -> float:
        if self._theta is None:
            if self.r == 0:
                self._theta = 0.0
            else:
                self._theta = math.atan2(self.matrix[1] / self.r, self.matrix[0] / self.r) / 2
        return self._theta

    def add(self, tensor: "Tensor", smooth: bool) -> "Tensor":
        """Weighted sum of two tensors; independent of summation order."""
        matrix = (
            self.matrix[0] * self.r + tensor.matrix[0] * tensor.r,
            self.matrix[1] * self.r + tensor.matrix[1] * tensor.r,
        )
        if smooth:
            r = math.hypot(matrix[0], matrix[1])
            if r == 0:
                return Tensor(0.0, (0.0, 0.0))
            return Tensor(r, (matrix[0] / r, matrix[1] / r))
        return Tensor(1.0, matrix)

    def scale(self, s: float) -> "Tensor":
        return Tensor(self.r * s, self.matrix)

    def rotate(self, theta: float) -> "Tensor":
        """Rotate the eigenvectors by `theta` radians."""
        if theta == 0:
            return self
        new_theta = (self.theta + theta) % math.pi
        rotated = Tensor(
            self.r,
            (math.cos(2 * new_theta) * self.r, math.sin(2 * new_theta) * self.r),
        )
        rotated._theta = new_theta
        return rotated

    def get_major(self) -> Vector:
        # Degenerate case
        if self.r == 0:
            return Vector.zero()
        return Vector(math.cos(self.theta), math.sin(self.theta))

    def get_minor(self) -> Vector:
        if self.r == 0:
            return Vector.zero()
        angle = self.theta + math.pi / 2
        return Vector(math.cos(angle), math.sin(angle))

    def __repr__(self) -> str:
        return f"Tensor(r={self.r!r}, matrix={self.matrix!r})"


@dataclass
class Grid:
    """Constant direction `theta` (radians)."""

    theta: float


@dataclass
class Radial:
    """Directions curving around the field center."""


@dataclass
class BasisField:
    """Single local contributor to the tensor field."""

    center: Vector
    size: float
    decay: float
    kind: Union[Grid, Radial]

    @property
    def field_type(self) -> str:
        return "grid" if isinstance(self.kind, Grid) else "radial"

    def get_tensor(self, point: Vector) -> Tensor:
        match self.kind:
            case Grid(theta=theta):
                return Tensor(1.0, (math.cos(2 * theta), math.sin(2 * theta)))
            case Radial():
                t = point.sub(self.center)
                t1 = t.y ** 2 - t.x ** 2
                t2 = -2 * t.x * t.y
                return Tensor(1.0, (t1, t2))
        raise TypeError(f"Unknown basis field kind: {self.kind!r}")

    def get_weighted_tensor(self, point: Vector, smooth: bool) -> Tensor:
        return self.get_tensor(point).scale(self.get_tensor_weight(point, smooth))

    def get_tensor_weight(self, point: Vector, smooth: bool) -> float:
        norm_distance_to_center = point.distance_to(self.center) / self.size
        if smooth:
            return max(norm_distance_to_center, 1e-9) ** -self.decay
        # x ** 0 == 1 would otherwise fill the whole world outside `size`
        if self.decay == 0 and norm_distance_to_center >= 1:
            return 0.0
        return max(0.0, 1 - norm_distance_to_center) ** self.decay

    @classmethod
    def from_spec(cls, spec: BasisFieldSpec) -> "BasisField":
        center = Vector(spec.x, spec.y)
        if spec.type == "grid":
            return cls(center, spec.size, spec.decay, Grid(spec.theta))
        if spec.type == "radial":
            return cls(center, spec.size, spec.decay, Radial())
        raise ValueError(f"Unknown basis field type: {spec.type}")


class TensorField:
    """
    Combined tensor field: weighted sum of basis fields, plus rotational
    noise in parks (and optionally everywhere) and water masks.
    """

    # Fraction of the world used to place the recommended fields
    TENSOR_SPAWN_SCALE = 0.7

    def __init__(
        self,
        noise_params: Optional[NoiseParams] = None,
        noise_seed: int = 0,
        smooth: bool = False,
    ):
        """
        Initialize an empty field.

        Args:
            noise_params: Park/global rotational noise settings
            noise_seed: Seed for the simplex noise generator
            smooth: Use smooth (inverse power) weighting and normalised sums
        """
        self.noise_params = noise_params or NoiseParams()
        self.smooth = smooth
        self.ignore_river = False
        self._noise = OpenSimplex(noise_seed)
        self._basis_fields: List[BasisField] = []

        self._seas: List[Polygon] = []
        self._river: Polygon = []
        self._parks: List[Polygon] = []
        self._sea_mask = PolygonMask([])
        self._river_mask = PolygonMask([])
        self._park_mask = PolygonMask([])

    # Basis fields

    @property
    def basis_fields(self) -> Tuple[BasisField, ...]:
        return tuple(self._basis_fields)

    def add_field(self, basis_field: BasisField) -> BasisField:
        self._basis_fields.append(basis_field)
        return basis_field

    def add_grid(self, center: Vector, size: float, decay: float, theta: float) -> BasisField:
        return self.add_field(BasisField(center, size, decay, Grid(theta)))

    def add_radial(self, center: Vector, size: float, decay: float) -> BasisField:
        return self.add_field(BasisField(center, size, decay, Radial()))

    def add_from_specs(self, specs: Sequence[BasisFieldSpec]) -> None:
        for spec in specs:
            self.add_field(BasisField.from_spec(spec))

    def remove_field(self, basis_field: BasisField) -> None:
        self._basis_fields.remove(basis_field)

    def reset(self) -> None:
        """Remove all basis fields and masks."""
        self._basis_fields = []
        self.seas = []
        self.river = []
        self.parks = []
        self.ignore_river = False

    def set_recommended(self, viewport: Viewport, rng: random.Random) -> None:
        """Four grids around a shrunk world rectangle and one radial field."""
        self._basis_fields = []
        size = viewport.world_dimensions.scale(self.TENSOR_SPAWN_SCALE)
        new_origin = viewport.world_dimensions.scale((1 - self.TENSOR_SPAWN_SCALE) / 2).add(
            viewport.origin
        )
        for corner in (
            new_origin,
            new_origin.add(size),
            new_origin.add(Vector(size.x, 0)),
            new_origin.add(Vector(0, size.y)),
        ):
            self._add_grid_at_location(corner, viewport, rng)
        self._add_radial_random(viewport, rng)
        logger.debug("Recommended tensor field set", fields=len(self._basis_fields))

    def _add_grid_at_location(self, location: Vector, viewport: Viewport, rng: random.Random) -> None:
        width = viewport.width
        self.add_grid(
            location,
            rng.uniform(width / 4, width),
            rng.uniform(0, 50),
            rng.uniform(0, math.pi / 2),
        )

    def _add_radial_random(self, viewport: Viewport, rng: random.Random) -> None:
        width = viewport.width
        self.add_radial(
            self._random_location(viewport, rng),
            rng.uniform(width / 10, width / 5),
            rng.uniform(0, 50),
        )

    def _random_location(self, viewport: Viewport, rng: random.Random) -> Vector:
        size = viewport.world_dimensions.scale(self.TENSOR_SPAWN_SCALE)
        location = Vector(rng.random(), rng.random()).multiply(size)
        new_origin = viewport.world_dimensions.scale((1 - self.TENSOR_SPAWN_SCALE) / 2)
        return location.add(viewport.origin).add(new_origin)

    # Masks

    @property
    def seas(self) -> List[Polygon]:
        return self._seas

    @seas.setter
    def seas(self, seas: List[Polygon]) -> None:
        self._seas = list(seas)
        self._sea_mask = PolygonMask(self._seas)

    @property
    def sea(self) -> Polygon:
        """Most recently installed sea polygon."""
        return self._seas[-1] if self._seas else []

    @sea.setter
    def sea(self, sea: Polygon) -> None:
        self.seas = [sea] if sea else []

    @property
    def river(self) -> Polygon:
        return self._river

    @river.setter
    def river(self, river: Polygon) -> None:
        self._river = list(river)
        self._river_mask = PolygonMask([self._river] if self._river else [])

    @property
    def parks(self) -> List[Polygon]:
        return self._parks

    @parks.setter
    def parks(self, parks: List[Polygon]) -> None:
        self._parks = list(parks)
        self._park_mask = PolygonMask(self._parks)

    # Noise

    def enable_global_noise(self, angle: float, size: float) -> None:
        self.noise_params = replace(
            self.noise_params,
            global_noise=True,
            noise_angle_global=angle,
            noise_size_global=size,
        )

    def disable_global_noise(self) -> None:
        self.noise_params = replace(self.noise_params, global_noise=False)

    def get_rotational_noise(self, point: Vector, noise_size: float, noise_angle: float) -> float:
        """Noise angle in radians, in [-noise_angle, noise_angle] degrees."""
        return self._noise.noise2(point.x / noise_size, point.y / noise_size) * noise_angle * math.pi / 180

    # Sampling

    def sample_point(self, point: Vector) -> Tensor:
        """Tensor at `point`; the zero tensor in water."""
        if not self.on_land(point):
            # Degenerate point
            return Tensor.zero()

        # Default field is a grid
        if not self._basis_fields:
            return Tensor(1.0, (0.0, 0.0))

        tensor_acc = Tensor.zero()
        for basis_field in self._basis_fields:
            tensor_acc = tensor_acc.add(basis_field.get_weighted_tensor(point, self.smooth), self.smooth)

        # Rotational noise for parks, range -pi/2 to pi/2
        if self._park_mask.contains(point):
            tensor_acc = tensor_acc.rotate(
                self.get_rotational_noise(
                    point, self.noise_params.noise_size_park, self.noise_params.noise_angle_park
                )
            )

        if self.noise_params.global_noise:
            tensor_acc = tensor_acc.rotate(
                self.get_rotational_noise(
                    point, self.noise_params.noise_size_global, self.noise_params.noise_angle_global
                )
            )

        return tensor_acc

    def on_land(self, point: Vector) -> bool:
        in_sea = self._sea_mask.contains(point)
        if self.ignore_river:
            return not in_sea
        return not in_sea and not self._river_mask.contains(point)

    def in_parks(self, point: Vector) -> bool:
        return self._park_mask.contains(point)

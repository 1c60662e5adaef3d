"""
Configuration management for tensor-field street generation.

All parameter objects are frozen: build them once per generation pass and
derive variants with ``dataclasses.replace``.
"""

import json
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, List, Optional

from .vector import Vector


@dataclass(frozen=True)
class Viewport:
    """World-space rectangle that all generation happens inside."""

    origin: Vector = Vector(0.0, 0.0)
    world_dimensions: Vector = Vector(1536.0, 746.0)
    zoom: float = 1.0  # Pixels per world unit when drawing

    @property
    def width(self) -> float:
        return self.world_dimensions.x

    @property
    def height(self) -> float:
        return self.world_dimensions.y

    def contains(self, v: Vector) -> bool:
        """Half-open containment [origin, origin + dimensions)."""
        return (
            self.origin.x <= v.x < self.origin.x + self.world_dimensions.x
            and self.origin.y <= v.y < self.origin.y + self.world_dimensions.y
        )

    def off_screen(self, v: Vector) -> bool:
        """True on or beyond the rectangle boundary."""
        to_origin = v.sub(self.origin)
        return (
            to_origin.x <= 0
            or to_origin.y <= 0
            or to_origin.x >= self.world_dimensions.x
            or to_origin.y >= self.world_dimensions.y
        )


@dataclass(frozen=True)
class StreamlineParams:
    """Parameters for one road hierarchy."""

    dsep: float = 20.0  # Seed separating distance
    dtest: float = 15.0  # Integration separating distance
    dstep: float = 1.0  # Integration step size
    dlookahead: float = 40.0  # How far to look to join dangling ends
    dcirclejoin: float = 5.0  # How close fronts must come to close a loop
    joinangle: float = 0.1  # Radians
    path_iterations: int = 1000
    seed_tries: int = 300
    simplify_tolerance: float = 0.5
    collide_early: float = 0.0  # Probability of testing against both grids

    def __post_init__(self):
        # Test radius never exceeds seed separation
        object.__setattr__(self, "dtest", min(self.dtest, self.dsep))
        if not 0.0 <= self.collide_early <= 1.0:
            raise ValueError(f"collide_early must be in [0, 1], got {self.collide_early}")
        if self.dstep <= 0 or self.dsep <= 0:
            raise ValueError("dstep and dsep must be positive")


@dataclass(frozen=True)
class NoiseStreamlineParams:
    """Rotational noise applied while tracing water."""

    noise_enabled: bool = True
    noise_size: float = 30.0
    noise_angle: float = 20.0  # Degrees


@dataclass(frozen=True)
class WaterParams(StreamlineParams):
    """Streamline parameters plus coastline/river specific fields."""

    coast_noise: NoiseStreamlineParams = field(default_factory=NoiseStreamlineParams)
    river_noise: NoiseStreamlineParams = field(default_factory=NoiseStreamlineParams)
    river_bank_size: float = 10.0
    river_size: float = 30.0


@dataclass(frozen=True)
class NoiseParams:
    """Tensor field noise settings."""

    global_noise: bool = False
    noise_size_park: float = 20.0
    noise_angle_park: float = 90.0  # Degrees
    noise_size_global: float = 30.0
    noise_angle_global: float = 20.0  # Degrees


@dataclass(frozen=True)
class PolygonParams:
    """Block finding and lot subdivision parameters."""

    max_length: int = 20  # Max nodes in a block polygon
    min_area: float = 50.0
    shrink_spacing: float = 4.0
    chance_no_divide: float = 0.05


@dataclass(frozen=True)
class BasisFieldSpec:
    """Declarative basis field: {type: grid|radial, x, y, size, decay, theta}."""

    type: str = "grid"
    x: float = 0.0
    y: float = 0.0
    size: float = 100.0
    decay: float = 1.0
    theta: float = 0.0


@dataclass(frozen=True)
class ParkParams:
    """How many block polygons become parks."""

    num_big_parks: int = 2
    num_small_parks: int = 0
    cluster_big_parks: bool = False


def _default_major() -> StreamlineParams:
    return StreamlineParams(dsep=100.0, dtest=30.0, dlookahead=200.0)


def _default_main() -> StreamlineParams:
    return StreamlineParams(dsep=400.0, dtest=200.0, dlookahead=500.0)


def _default_water() -> WaterParams:
    return WaterParams(path_iterations=10000, simplify_tolerance=10.0)


@dataclass(frozen=True)
class MapConfig:
    """Configuration for a full map generation pass."""

    # Reproducibility
    seed: int = 42

    viewport: Viewport = field(default_factory=Viewport)

    # Road hierarchies
    minor: StreamlineParams = field(default_factory=StreamlineParams)
    major: StreamlineParams = field(default_factory=_default_major)
    main: StreamlineParams = field(default_factory=_default_main)
    water: WaterParams = field(default_factory=_default_water)

    buildings: PolygonParams = field(default_factory=PolygonParams)
    parks: ParkParams = field(default_factory=ParkParams)
    noise: NoiseParams = field(default_factory=NoiseParams)

    # Empty means use the recommended layout
    basis_fields: List[BasisFieldSpec] = field(default_factory=list)
    smooth_field: bool = False

    # Building extrusion heights
    min_building_height: float = 20.0
    max_building_height: float = 40.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MapConfig":
        """Build a config from plain (JSON-decoded) data."""
        data = dict(data)
        if "viewport" in data:
            vp = data["viewport"]
            data["viewport"] = Viewport(
                origin=Vector(*vp.get("origin", (0.0, 0.0))),
                world_dimensions=Vector(*vp.get("world_dimensions", (1536.0, 746.0))),
                zoom=vp.get("zoom", 1.0),
            )
        for key in ("minor", "major", "main"):
            if key in data:
                data[key] = StreamlineParams(**data[key])
        if "water" in data:
            water = dict(data["water"])
            for noise_key in ("coast_noise", "river_noise"):
                if noise_key in water:
                    water[noise_key] = NoiseStreamlineParams(**water[noise_key])
            data["water"] = WaterParams(**water)
        if "buildings" in data:
            data["buildings"] = PolygonParams(**data["buildings"])
        if "parks" in data:
            data["parks"] = ParkParams(**data["parks"])
        if "noise" in data:
            data["noise"] = NoiseParams(**data["noise"])
        if "basis_fields" in data:
            data["basis_fields"] = [BasisFieldSpec(**b) for b in data["basis_fields"]]
        return cls(**data)

    @classmethod
    def from_json(cls, filepath: str) -> "MapConfig":
        """Load configuration from JSON file."""
        with open(filepath, 'r') as f:
            data = json.load(f)
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["viewport"] = {
            "origin": list(self.viewport.origin),
            "world_dimensions": list(self.viewport.world_dimensions),
            "zoom": self.viewport.zoom,
        }
        return data

    def to_json(self, filepath: str) -> None:
        """Save configuration to JSON file."""
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    def with_seed(self, seed: Optional[int]) -> "MapConfig":
        if seed is None:
            return self
        return replace(self, seed=seed)

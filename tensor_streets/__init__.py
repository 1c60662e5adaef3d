"""
Tensor Field Street Generator

Procedural street networks, coastlines, rivers, parks and building lots
traced as streamlines of a 2D tensor field.
"""

__version__ = "0.1.0"

from .config import MapConfig, PolygonParams, StreamlineParams, Viewport, WaterParams
from .generator import BuildingModel, CityGenerator, PhaseResult
from .streamlines import StreamlineGenerator, StreamlinePhase
from .tensor_field import TensorField
from .vector import Vector

__all__ = [
    "MapConfig",
    "PolygonParams",
    "StreamlineParams",
    "Viewport",
    "WaterParams",
    "BuildingModel",
    "CityGenerator",
    "PhaseResult",
    "StreamlineGenerator",
    "StreamlinePhase",
    "TensorField",
    "Vector",
]

"""
Flat-earth projection of (longitude, latitude) features to local world space.

Only used to align optional real-world contour data with the synthetic
field; accuracy beyond spherical Web-Mercator is not a goal.
"""

import math
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from .exceptions import GeoInputError, PreconditionError
from .vector import Vector

R_MAJOR = 6378137.0
MAX_LATITUDE = 89.5


def mercator_x(lon: float) -> float:
    return R_MAJOR * math.radians(lon)


def mercator_y(lat: float) -> float:
    """Spherical Mercator northing; latitude clamped to ±89.5°."""
    lat = max(-MAX_LATITUDE, min(MAX_LATITUDE, lat))
    phi = math.radians(lat)
    return -R_MAJOR * math.log(math.tan(math.pi / 4 - phi / 2))


def mercator_x_inverse(x: float) -> float:
    return math.degrees(x / R_MAJOR)


def mercator_y_inverse(y: float) -> float:
    """Latitude in degrees for a Mercator northing."""
    return math.degrees(math.pi / 2 - 2 * math.atan(math.exp(-y / R_MAJOR)))


def latlong_to_mercator(lat: float, lon: float) -> Vector:
    """Projected point, floored to whole metres."""
    return Vector(math.floor(mercator_x(lon)), math.floor(mercator_y(lat)))


def feature_coordinates(feature: Mapping[str, Any]) -> List[Tuple[float, float]]:
    """
    (lon, lat) pairs of a GeoJSON-shaped line, ring or point feature.

    Raises:
        GeoInputError: missing geometry, empty or malformed coordinates
    """
    try:
        geometry = feature["geometry"]
        geom_type = geometry["type"]
        coords = geometry["coordinates"]
    except (KeyError, TypeError) as e:
        raise GeoInputError(f"Feature has no geometry: {e}") from e

    if geom_type == "Point":
        coords = [coords]
    elif geom_type == "Polygon":
        if not coords:
            raise GeoInputError("Polygon feature has no rings")
        coords = coords[0]
    elif geom_type != "LineString":
        raise GeoInputError(f"Unsupported geometry type: {geom_type}")

    if not coords:
        raise GeoInputError("Feature has empty coordinates")

    out = []
    for c in coords:
        if len(c) < 2:
            raise GeoInputError(f"Malformed coordinate: {c!r}")
        out.append((float(c[0]), float(c[1])))
    return out


def is_origin_feature(feature: Mapping[str, Any]) -> bool:
    properties = feature.get("properties") or {}
    return bool(properties.get("origin")) or properties.get("name") == "origin"


class MercatorProjection:
    """
    Projects (lon, lat) to local coordinates with `origin` at (0, 0).
    """

    def __init__(self, origin_lon: float, origin_lat: float, flip_y: bool = False):
        """
        Args:
            origin_lon: Longitude of the local origin
            origin_lat: Latitude of the local origin
            flip_y: Negate y (north up in screen coordinates)
        """
        self.origin = latlong_to_mercator(origin_lat, origin_lon)
        self.flip_y = flip_y

    @classmethod
    def from_features(cls, features: Iterable[Mapping[str, Any]], flip_y: bool = False) -> "MercatorProjection":
        """
        Use the feature tagged as origin.

        Raises:
            PreconditionError: no origin feature
        """
        for feature in features:
            if is_origin_feature(feature):
                lon, lat = feature_coordinates(feature)[0]
                return cls(lon, lat, flip_y=flip_y)
        raise PreconditionError("No origin feature in geographic input")

    def project(self, lon: float, lat: float, flip_y: Optional[bool] = None) -> Vector:
        """Local point; `flip_y` overrides the projection default for this call."""
        if flip_y is None:
            flip_y = self.flip_y
        v = latlong_to_mercator(lat, lon).sub(self.origin)
        if flip_y:
            v = Vector(v.x, -v.y)
        return v

    def project_coordinates(
        self, coords: Sequence[Tuple[float, float]], flip_y: Optional[bool] = None
    ) -> List[Vector]:
        return [self.project(lon, lat, flip_y=flip_y) for lon, lat in coords]

    def project_feature(self, feature: Mapping[str, Any], flip_y: Optional[bool] = None) -> List[Vector]:
        return self.project_coordinates(feature_coordinates(feature), flip_y=flip_y)

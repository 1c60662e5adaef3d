"""
Immutable 2D vector used for all world-space geometry.

Every operation returns a new Vector, so shared points can be passed
around freely without cloning.
"""

import math
from typing import Iterable, List, NamedTuple, Sequence, Tuple


class Vector(NamedTuple):
    """2D point / direction."""

    x: float
    y: float

    @staticmethod
    def zero() -> "Vector":
        return Vector(0.0, 0.0)

    @staticmethod
    def from_angle(angle: float) -> "Vector":
        """Unit vector at `angle` radians from the x axis."""
        return Vector(math.cos(angle), math.sin(angle))

    @staticmethod
    def angle_between(v1: "Vector", v2: "Vector") -> float:
        """
        Signed angle from v1 to v2 in (-pi, pi].

        Args:
            v1: First direction
            v2: Second direction

        Returns:
            Angle in radians
        """
        angle = math.atan2(v2.y, v2.x) - math.atan2(v1.y, v1.x)
        if angle > math.pi:
            angle -= 2 * math.pi
        if angle <= -math.pi:
            angle += 2 * math.pi
        return angle

    def add(self, v: "Vector") -> "Vector":
        return Vector(self.x + v.x, self.y + v.y)

    def sub(self, v: "Vector") -> "Vector":
        return Vector(self.x - v.x, self.y - v.y)

    def multiply(self, v: "Vector") -> "Vector":
        return Vector(self.x * v.x, self.y * v.y)

    def scale(self, s: float) -> "Vector":
        return Vector(self.x * s, self.y * s)

    def negate(self) -> "Vector":
        return Vector(-self.x, -self.y)

    def dot(self, v: "Vector") -> float:
        return self.x * v.x + self.y * v.y

    def cross(self, v: "Vector") -> float:
        """z component of the 3D cross product."""
        return self.x * v.y - self.y * v.x

    def length(self) -> float:
        return math.hypot(self.x, self.y)

    def length_sq(self) -> float:
        return self.x * self.x + self.y * self.y

    def distance_to(self, v: "Vector") -> float:
        return math.hypot(self.x - v.x, self.y - v.y)

    def distance_to_sq(self, v: "Vector") -> float:
        dx = self.x - v.x
        dy = self.y - v.y
        return dx * dx + dy * dy

    def normalize(self) -> "Vector":
        length = self.length()
        if length == 0:
            return Vector.zero()
        return Vector(self.x / length, self.y / length)

    def set_length(self, length: float) -> "Vector":
        return self.normalize().scale(length)

    def perpendicular(self) -> "Vector":
        """Clockwise perpendicular (y, -x)."""
        return Vector(self.y, -self.x)

    def rotate_around(self, center: "Vector", angle: float) -> "Vector":
        cos = math.cos(angle)
        sin = math.sin(angle)
        dx = self.x - center.x
        dy = self.y - center.y
        return Vector(center.x + dx * cos - dy * sin, center.y + dx * sin + dy * cos)

    def lerp(self, v: "Vector", t: float) -> "Vector":
        return Vector(self.x + (v.x - self.x) * t, self.y + (v.y - self.y) * t)


Polyline = List[Vector]
Polygon = List[Vector]


def to_vectors(coords: Iterable[Sequence[float]]) -> List[Vector]:
    """Convert coordinate pairs (shapely coords, tuples, lists) to Vectors."""
    return [Vector(float(c[0]), float(c[1])) for c in coords]


def to_tuples(points: Iterable[Vector]) -> List[Tuple[float, float]]:
    return [(p.x, p.y) for p in points]

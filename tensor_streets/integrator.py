"""
Numerical integrators turning the sign-free tensor field into step vectors.
"""

from abc import ABC, abstractmethod

from .config import StreamlineParams
from .tensor_field import TensorField
from .vector import Vector

# Below this squared length a field direction is treated as degenerate
DEGENERATE_LENGTH_SQ = 0.01


class FieldIntegrator(ABC):
    """Base class for integrators over a tensor field."""

    def __init__(self, field: TensorField, params: StreamlineParams):
        """
        Args:
            field: Source of directions
            params: Only `dstep` is used
        """
        self.field = field
        self.params = params

    @abstractmethod
    def integrate(self, point: Vector, major: bool) -> Vector:
        """Step vector of length ~dstep from `point`, or the zero vector."""

    def sample_field_vector(self, point: Vector, major: bool) -> Vector:
        tensor = self.field.sample_point(point)
        return tensor.get_major() if major else tensor.get_minor()

    def on_land(self, point: Vector) -> bool:
        return self.field.on_land(point)


class EulerIntegrator(FieldIntegrator):
    """First-order step, kept for comparison with RK4."""

    def integrate(self, point: Vector, major: bool) -> Vector:
        return self.sample_field_vector(point, major).scale(self.params.dstep)


class RK4Integrator(FieldIntegrator):
    """
    Classical fourth-order Runge-Kutta step of size `dstep`.

    Eigenvectors have no canonical sign, so every intermediate direction is
    flipped if needed to agree with the direction used to reach its sample
    point.
    """

    def integrate(self, point: Vector, major: bool) -> Vector:
        dstep = self.params.dstep

        k1 = self.sample_field_vector(point, major)
        if k1.length_sq() < DEGENERATE_LENGTH_SQ:
            return Vector.zero()

        k2 = self._aligned(point.add(k1.scale(dstep / 2)), major, k1)
        k3 = self._aligned(point.add(k2.scale(dstep / 2)), major, k2)
        k4 = self._aligned(point.add(k3.scale(dstep)), major, k3)

        return k1.add(k2.scale(2)).add(k3.scale(2)).add(k4).scale(dstep / 6)

    def _aligned(self, point: Vector, major: bool, reference: Vector) -> Vector:
        direction = self.sample_field_vector(point, major)
        if direction.dot(reference) < 0:
            return direction.negate()
        return direction
